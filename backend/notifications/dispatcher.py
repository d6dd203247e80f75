"""
Cron driver that delivers pending article notifications.

Usage:
    # Send everything that is due
    uv run python -m notifications.dispatcher

    # List what is due without claiming or sending anything
    uv run python -m notifications.dispatcher --dry-run

    # Only print the final counts
    uv run python -m notifications.dispatcher --quiet

Intended to be run every few minutes. Several runs may overlap safely: each
notification is claimed atomically before it is sent, and a run that loses
the claim reports the notification as skipped.
"""

import argparse
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from models.notification import PendingNotification, RecipientResult
from models.types import AllRecipients
from notifications.email_sender import send_author_status
from notifications.error_logger import log_notification_error
from notifications.errors import NotificationError
from notifications.queue import NotificationQueue, create_notification_queue
from shared.utils import print_summary

STATUS_CHANGED_REPORT = "Status changed during cron run, unable to process"


@dataclass
class DispatchItem:
    """One line of the run report."""

    article_id: int
    notification_id: int
    year_id: Optional[int]
    method: str
    name: str
    state: str
    message: Optional[str] = None


@dataclass
class DispatchReport:
    """What a dispatcher run found and did."""

    pending: List[PendingNotification] = field(default_factory=list)
    items: List[DispatchItem] = field(default_factory=list)
    aborted: bool = False
    next_time: Optional[datetime] = None

    @property
    def stats(self) -> Dict[str, int]:
        stats = {"sent": 0, "failed": 0, "skipped": 0}
        for item in self.items:
            if item.state == "sent":
                stats["sent"] += 1
            elif item.state == "error":
                stats["failed"] += 1
            else:
                stats["skipped"] += 1
        return stats

    def render(self) -> str:
        """Human-readable report for attended runs."""
        if not self.pending:
            text = "No pending notifications to send.\n"
        else:
            text = "Pending notifications\n" + "-" * 60 + "\n"
            for entry in self.pending:
                released = entry.release_time.isoformat() if entry.release_time else "unreleased"
                text += (
                    f"article {entry.article_id}, notification {entry.id}, "
                    f"year {entry.year_id}, method {entry.name}, released {released}\n"
                )
            if self.items:
                text += "\nStatus\n" + "-" * 60 + "\n"
                for item in self.items:
                    line = f"article {item.article_id} / notification {item.notification_id} / {item.method}"
                    if item.name:
                        line += f" / {item.name}"
                    line += f": {item.state or 'not processed'}"
                    if item.message:
                        line += f" ({item.message})"
                    text += line + "\n"
            if self.aborted:
                text += "\nProcessing stopped after a delivery failure.\n"
        if self.next_time:
            text += f"\nNext notification due at {self.next_time.isoformat()}\n"
        return text


class Dispatcher:
    """Sends due notifications, one header at a time, in queue order."""

    def __init__(
        self,
        queue: NotificationQueue,
        author_sender: Callable = send_author_status,
    ):
        self.queue = queue
        self.author_sender = author_sender

    def build_all_recipients(self, pending: List[PendingNotification]) -> AllRecipients:
        """
        Who is receiving what, across every pending notification.

        Used only for the "sent to" text in messages, so it covers all
        pending notifications whether or not this run ends up sending them.
        """
        recipients: AllRecipients = {}
        for notify in pending:
            method = self.queue.methods.get(notify.name)
            for target in method.get_notification_targets(notify.id, notify.year_id):
                recipients.setdefault(notify.name, []).append(target.shortname)
        return recipients

    def run(self, now: Optional[datetime] = None, dry_run: bool = False) -> DispatchReport:
        report = DispatchReport()
        print("Cron starting.")

        report.pending = self.queue.get_pending_notifications(now)
        if not report.pending:
            print("No pending notifications to send.")
        else:
            print(f"{len(report.pending)} pending notifications to send.")
            if not dry_run:
                self._send_pending(report)

        report.next_time = self.queue.get_next_notification_time(now)
        print("Cron finished.")
        return report

    def _send_pending(self, report: DispatchReport) -> None:
        all_recipients = self.build_all_recipients(report.pending)

        for notify in report.pending:
            header = self.queue.get_notification_status(id=notify.id)
            if not header or header.status != "pending":
                print(f"  Status of notification {notify.id} changed since pending lookup")
                report.items.append(self._item(notify, "", "", STATUS_CHANGED_REPORT))
                continue

            print(f"  Starting delivery of notification {notify.id}")
            try:
                results = self.queue.send_pending_notification(notify, all_recipients)
            except NotificationError as e:
                print(f"  ✗ Delivery of notification {notify.id} failed: {e}")
                report.items.append(self._item(notify, "", "error", str(e)))
                error_file = log_notification_error(
                    error_type="sending",
                    error_message=str(e),
                    context={
                        "notification_id": notify.id,
                        "article_id": notify.article_id,
                        "method": notify.name,
                    },
                )
                print(f"    Error details logged to: {error_file}")
                self._notify_author(
                    notify, [RecipientResult(name="all", state="error", message=str(e))]
                )
                report.aborted = True
                break

            for row in results:
                report.items.append(self._item(notify, row.name, row.state, row.message))
                print(
                    f"    Status of notification {notify.id}, {row.name} = "
                    f"{row.state} ({row.message or ''})"
                )

            if any(row.state != "skipped" for row in results):
                self._notify_author(notify, results)
            print(f"  Finished delivery of notification {notify.id}")

    def _item(
        self, notify: PendingNotification, name: str, state: str, message: Optional[str]
    ) -> DispatchItem:
        return DispatchItem(
            article_id=notify.article_id,
            notification_id=notify.id,
            year_id=notify.year_id,
            method=notify.name,
            name=name,
            state=state,
            message=message,
        )

    def _notify_author(
        self, notify: PendingNotification, results: List[RecipientResult]
    ) -> Optional[str]:
        """
        Email the article's author the outcome of a notification.

        Failures here are reported but never stop the run.

        Returns:
            Error message, or None if the email was sent
        """
        try:
            article = self.queue.articles.get_article(notify.article_id)
            if article.creator_id is None:
                raise LookupError(f"Article {article.id} has no author")
            author = self.queue.articles.get_author(article.creator_id)
            outcome = self.author_sender(author, article, notify.name, results)
        except Exception as e:
            outcome = {"success": False, "error": str(e)}

        if outcome.get("success"):
            return None

        error = outcome.get("error") or "Unknown error"
        print(f"  ⚠️  Unable to notify author of notification {notify.id}: {error}")
        log_notification_error(
            error_type="author",
            error_message=error,
            context={"notification_id": notify.id, "article_id": notify.article_id},
        )
        return error


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Send pending article notifications")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending notifications without sending them",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print the summary counts",
    )
    args = parser.parse_args(argv)

    try:
        dispatcher = Dispatcher(create_notification_queue())
        report = dispatcher.run(dry_run=args.dry_run)
    except Exception as e:
        error_file = log_notification_error(error_type="cron", error_message=str(e))
        print(f"✗ Notification run failed: {e}")
        print(f"  Error details logged to: {error_file}")
        return 1

    if not args.quiet:
        print()
        print(report.render())

    stats = report.stats
    print_summary(sent=stats["sent"], skipped=stats["skipped"], failed=stats["failed"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
