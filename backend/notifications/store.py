"""
Supabase persistence for notification headers and recipient/method data.

The store is the only shared mutable resource between dispatcher processes.
Every status mutation goes through here, and claim_notification() is the
mutual-exclusion point: it only succeeds for the process whose conditional
update actually moved the row out of 'pending'.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from config.settings import CANCELLABLE_STATUSES, TABLES
from notifications.errors import NotificationQueueError
from shared.db import get_supabase_client
from shared.utils import format_timestamp, utcnow


class NotificationStore:
    """Row-level access to the notification tables."""

    def __init__(self, client: Any = None, tables: Optional[Dict[str, str]] = None):
        self._client = client
        self.tables = dict(TABLES)
        if tables:
            self.tables.update(tables)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def _table(self, key: str):
        return self.client.table(self.tables[key])

    # ------------------------------------------------------------------
    # Header creation and mutation

    def insert_header(
        self,
        article_id: int,
        method_id: int,
        year_id: Optional[int],
        send_mode: str,
        send_after: datetime,
        status: str,
    ) -> int:
        """Insert a notification header and return its new id."""
        response = (
            self._table("article_notify")
            .insert(
                {
                    "article_id": article_id,
                    "method_id": method_id,
                    "year_id": year_id,
                    "status": status,
                    "send_mode": send_mode,
                    "send_after": format_timestamp(send_after),
                    "updated": format_timestamp(utcnow()),
                }
            )
            .execute()
        )
        if not response.data or not response.data[0].get("id"):
            raise NotificationQueueError("Article notification insert failed, no rows inserted")
        return response.data[0]["id"]

    def insert_recipient_methods(self, header_id: int, recip_meth_ids: Iterable[int]) -> None:
        """Link a header to the recipient/method rows it delivers to."""
        rows = [
            {"article_notify_id": header_id, "recip_meth_id": rmid}
            for rmid in recip_meth_ids
        ]
        if not rows:
            return
        response = self._table("article_notify_rms").insert(rows).execute()
        if not response.data or len(response.data) != len(rows):
            raise NotificationQueueError("Article notification rm map insert failed, no rows inserted")

    def promote_headers(self, header_ids: List[int]) -> int:
        """Move draft headers to 'pending' in one update. Returns the number promoted."""
        response = (
            self._table("article_notify")
            .update({"status": "pending", "updated": format_timestamp(utcnow())})
            .in_("id", list(header_ids))
            .eq("status", "draft")
            .execute()
        )
        return len(response.data or [])

    def discard_draft_header(self, header_id: int) -> bool:
        """
        Remove a header and its recipient/method links if it is still a draft.

        The header is first cancelled with a conditional update, like the
        claim, so a header that has meanwhile been made pending is never
        removed.

        Returns:
            True if the header was removed
        """
        response = (
            self._table("article_notify")
            .update({"status": "cancelled", "updated": format_timestamp(utcnow())})
            .eq("id", header_id)
            .eq("status", "draft")
            .execute()
        )
        if len(response.data or []) != 1:
            return False
        self._table("article_notify_rms").delete().eq("article_notify_id", header_id).execute()
        self._table("article_notify").delete().eq("id", header_id).execute()
        return True

    def set_data_id(self, header_id: int, data_id: int) -> int:
        response = (
            self._table("article_notify")
            .update({"data_id": data_id})
            .eq("id", header_id)
            .execute()
        )
        return len(response.data or [])

    def set_status(self, header_id: int, status: str, message: Optional[str] = None) -> int:
        """Unconditionally set a header's status. Returns the number of rows updated."""
        response = (
            self._table("article_notify")
            .update(
                {
                    "status": status,
                    "message": message,
                    "updated": format_timestamp(utcnow()),
                }
            )
            .eq("id", header_id)
            .execute()
        )
        return len(response.data or [])

    def claim_notification(self, header_id: int) -> bool:
        """
        Atomically move a header from 'pending' to 'sending'.

        The status filter is part of the UPDATE itself, so of any number of
        concurrent callers at most one sees an updated row.

        Returns:
            True if this caller now owns delivery of the header
        """
        response = (
            self._table("article_notify")
            .update({"status": "sending", "updated": format_timestamp(utcnow())})
            .eq("id", header_id)
            .eq("status", "pending")
            .execute()
        )
        return len(response.data or []) == 1

    def cancel_headers(self, article_id: int, method_id: Optional[int] = None) -> int:
        """Cancel every non-terminal header for an article (and method)."""
        query = (
            self._table("article_notify")
            .update({"status": "cancelled", "updated": format_timestamp(utcnow())})
            .eq("article_id", article_id)
            .in_("status", list(CANCELLABLE_STATUSES))
        )
        if method_id is not None:
            query = query.eq("method_id", method_id)
        response = query.execute()
        return len(response.data or [])

    # ------------------------------------------------------------------
    # Header lookups

    def get_header(self, header_id: int) -> Optional[Dict[str, Any]]:
        response = (
            self._table("article_notify").select("*").eq("id", header_id).limit(1).execute()
        )
        return response.data[0] if response.data else None

    def find_header(self, article_id: int, method_id: int) -> Optional[Dict[str, Any]]:
        response = (
            self._table("article_notify")
            .select("*")
            .eq("article_id", article_id)
            .eq("method_id", method_id)
            .order("id")
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def get_article_headers(
        self, article_id: int, statuses: Optional[Iterable[str]] = None
    ) -> List[Dict[str, Any]]:
        query = self._table("article_notify").select("*").eq("article_id", article_id)
        if statuses is not None:
            query = query.in_("status", list(statuses))
        return query.order("id").execute().data or []

    def get_headers(
        self, header_ids: Iterable[int], statuses: Optional[Iterable[str]] = None
    ) -> List[Dict[str, Any]]:
        ids = list(header_ids)
        if not ids:
            return []
        query = self._table("article_notify").select("*").in_("id", ids)
        if statuses is not None:
            query = query.in_("status", list(statuses))
        return query.execute().data or []

    def get_due_headers(self, now: datetime) -> List[Dict[str, Any]]:
        """Pending headers whose send_after has passed."""
        response = (
            self._table("article_notify")
            .select("id, article_id, method_id, year_id, send_after")
            .eq("status", "pending")
            .lte("send_after", format_timestamp(now))
            .execute()
        )
        return response.data or []

    def get_next_send_after(self, after: datetime) -> Optional[str]:
        response = (
            self._table("article_notify")
            .select("send_after")
            .eq("status", "pending")
            .gte("send_after", format_timestamp(after))
            .order("send_after")
            .limit(1)
            .execute()
        )
        return response.data[0]["send_after"] if response.data else None

    # ------------------------------------------------------------------
    # Methods, recipients and the recipient/method matrix

    def get_methods(self) -> List[Dict[str, Any]]:
        response = self._table("notify_methods").select("id, name, module").execute()
        return response.data or []

    def get_header_recipient_methods(self, header_id: int) -> List[int]:
        response = (
            self._table("article_notify_rms")
            .select("recip_meth_id")
            .eq("article_notify_id", header_id)
            .execute()
        )
        return [row["recip_meth_id"] for row in response.data or []]

    def get_recipient_method_links(self, recip_meth_ids: Iterable[int]) -> List[Dict[str, Any]]:
        """Header links for a set of recipient/method rows."""
        ids = list(recip_meth_ids)
        if not ids:
            return []
        response = (
            self._table("article_notify_rms")
            .select("article_notify_id, recip_meth_id")
            .in_("recip_meth_id", ids)
            .execute()
        )
        return response.data or []

    def get_matrix_rows(self, recip_meth_ids: Iterable[int]) -> List[Dict[str, Any]]:
        ids = list(recip_meth_ids)
        if not ids:
            return []
        response = (
            self._table("notify_matrix")
            .select("id, recipient_id, method_id, settings")
            .in_("id", ids)
            .order("id")
            .execute()
        )
        return response.data or []

    def find_matrix_ids(
        self, recipient_ids: Optional[List[int]], method_ids: Optional[List[int]]
    ) -> List[int]:
        query = self._table("notify_matrix").select("id")
        if recipient_ids is not None:
            query = query.in_("recipient_id", recipient_ids)
        if method_ids is not None:
            query = query.in_("method_id", method_ids)
        return [row["id"] for row in query.execute().data or []]

    def get_year_settings(self, recip_meth_ids: Iterable[int], year_id: int) -> Dict[int, str]:
        """Year-specific settings overrides, keyed by recipient/method id."""
        ids = list(recip_meth_ids)
        if not ids:
            return {}
        response = (
            self._table("notify_matrix_cfg")
            .select("rm_id, settings")
            .in_("rm_id", ids)
            .eq("year_id", year_id)
            .execute()
        )
        return {row["rm_id"]: row["settings"] for row in response.data or [] if row.get("settings")}

    def get_recipients(self, recipient_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = list(recipient_ids)
        if not ids:
            return {}
        response = (
            self._table("notify_recipients")
            .select("id, name, shortname")
            .in_("id", ids)
            .execute()
        )
        return {row["id"]: row for row in response.data or []}
