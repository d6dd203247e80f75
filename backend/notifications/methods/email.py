"""
Email delivery method.

Recipient/method settings for email hold the destination addresses, either as
a JSON object ({"to": [...], "cc": [...], "bcc": [...]}) or as a plain list
of addresses separated by commas, semicolons or whitespace.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from config.settings import TABLES, get_from_email
from models.article import Article
from models.notification import RecipientResult, TargetRecord
from models.types import AllRecipients
from notifications.email_sender import (
    build_article_html,
    build_article_subject,
    build_article_text,
    send_email,
)
from notifications.errors import NotificationDeliveryError
from notifications.methods.base import NotificationMethod

ADDRESS_SPLIT = re.compile(r"[,;\s]+")
EMAIL_DATA_FIELDS = ("subject_prefix", "cc", "bcc", "reply_to")


def parse_destinations(settings: str) -> Dict[str, List[str]]:
    """Parse a target's settings string into to/cc/bcc address lists."""
    dest: Dict[str, List[str]] = {"to": [], "cc": [], "bcc": []}
    if not settings or not settings.strip():
        return dest

    try:
        parsed = json.loads(settings)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        for field in dest:
            value = parsed.get(field)
            if isinstance(value, str):
                value = ADDRESS_SPLIT.split(value)
            if value:
                dest[field] = [addr.strip() for addr in value if addr and addr.strip()]
    else:
        dest["to"] = [addr for addr in ADDRESS_SPLIT.split(settings.strip()) if addr]
    return dest


def _address_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [addr for addr in ADDRESS_SPLIT.split(value.strip()) if addr]
    return [str(addr) for addr in value if addr]


class EmailMethod(NotificationMethod):
    """Send articles to recipients by email via Resend."""

    @property
    def data_table(self) -> str:
        return self.store.tables.get("email_data", TABLES["email_data"])

    def store_data(
        self,
        article_id: int,
        article: Article,
        user_id: int,
        is_draft: bool,
        recip_meth_ids: List[int],
    ) -> Optional[int]:
        self.clear_error()
        settings = article.methods.get(self.name) or {}
        data = {field: settings.get(field) for field in EMAIL_DATA_FIELDS if settings.get(field)}
        if not data:
            return 0

        row = {
            "article_id": article_id,
            "subject_prefix": data.get("subject_prefix"),
            "cc": ",".join(_address_list(data.get("cc"))) or None,
            "bcc": ",".join(_address_list(data.get("bcc"))) or None,
            "reply_to": data.get("reply_to"),
        }
        response = self.store.client.table(self.data_table).insert(row).execute()
        if not response.data:
            self.set_error("Unable to store email settings for article")
            raise NotificationDeliveryError(self.errstr(), method=self.name)
        return response.data[0]["id"]

    def get_data(self, article_id: int, queue: Any) -> Optional[Dict[str, Any]]:
        data_id = queue.get_notification_dataid(article_id, self.method_id)
        if not data_id:
            return None

        response = (
            self.store.client.table(self.data_table)
            .select("*")
            .eq("id", data_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def delete_data(self, data_id: int) -> None:
        self.store.client.table(self.data_table).delete().eq("id", data_id).execute()

    def send(
        self,
        article: Article,
        targets: List[TargetRecord],
        all_recipients: AllRecipients,
        queue: Any,
    ) -> Tuple[Optional[str], Optional[List[RecipientResult]]]:
        self.clear_error()
        if not targets:
            self.set_error("No recipients configured for this notification")
            return None, None

        data = self.get_data(article.id, queue) or {}
        subject = build_article_subject(article, data.get("subject_prefix"))
        sent_to = all_recipients.get(self.name, [])
        html_body = build_article_html(article, sent_to)
        text_body = build_article_text(article, sent_to)

        results: List[RecipientResult] = []
        for target in targets:
            dest = parse_destinations(target.settings)
            if not dest["to"] and not dest["bcc"]:
                results.append(
                    RecipientResult(
                        name=target.name,
                        state="error",
                        message="No destination addresses configured",
                    )
                )
                continue

            # Bcc-only targets are addressed to the sender
            outcome = send_email(
                to=dest["to"] or [get_from_email()],
                subject=subject,
                html_body=html_body,
                text_body=text_body,
                cc=dest["cc"] + _address_list(data.get("cc")),
                bcc=dest["bcc"] + _address_list(data.get("bcc")),
                reply_to=data.get("reply_to"),
            )
            if outcome["success"]:
                results.append(RecipientResult(name=target.name, state="sent"))
            else:
                results.append(
                    RecipientResult(name=target.name, state="error", message=outcome.get("error"))
                )

        failed = any(result.state == "error" for result in results)
        return ("failed" if failed else "sent"), results
