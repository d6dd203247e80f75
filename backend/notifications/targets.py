"""
Resolution of a notification's recipients into TargetRecords.

Targets are resolved at send time rather than queue time, so changes to the
recipient/method matrix made after an article was scheduled are honoured.
"""

from typing import List, Optional

from config.settings import YEAR_PLACEHOLDER
from models.notification import TargetRecord
from notifications.store import NotificationStore


def apply_year(settings: Optional[str], year_id: Optional[int]) -> str:
    """Substitute the year placeholder in a settings string."""
    if not settings:
        return ""
    if year_id is None:
        return settings
    return settings.replace(YEAR_PLACEHOLDER, str(year_id))


def resolve_targets(
    store: NotificationStore, header_id: int, year_id: Optional[int]
) -> List[TargetRecord]:
    """
    Build the delivery targets for a notification header.

    Year-specific settings from the matrix config replace the base settings
    when present, and any {V_[yearid]} placeholder is replaced with the
    numeric year id.

    Args:
        store: Notification store
        header_id: Notification header id
        year_id: Year the article was composed for (may be None)

    Returns:
        One TargetRecord per recipient/method row linked to the header,
        ordered by recipient/method id
    """
    rm_ids = store.get_header_recipient_methods(header_id)
    if not rm_ids:
        return []

    rows = store.get_matrix_rows(rm_ids)
    recipients = store.get_recipients({row["recipient_id"] for row in rows})
    overrides = store.get_year_settings(rm_ids, year_id) if year_id is not None else {}

    targets = []
    for row in rows:
        recipient = recipients.get(row["recipient_id"])
        if not recipient:
            continue
        settings = overrides.get(row["id"]) or row.get("settings") or ""
        targets.append(
            TargetRecord(
                id=row["id"],
                name=recipient["name"],
                shortname=recipient["shortname"],
                settings=apply_year(settings, year_id),
            )
        )
    return targets
