"""
Notification queue: scheduling, claiming and status tracking.

One notification header is created per delivery method an article uses.
Headers move through the states

    draft -> pending -> sending -> sent | failed
    draft | pending -> cancelled

and only this module mutates them. 'sending' is a lock marker taken by the
atomic claim in send_pending_notification(); it is never left behind once a
send completes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from config.settings import (
    DELIVERY_STATUSES,
    NOTIFICATION_STATUSES,
    SEND_MODES,
    get_hold_delay_minutes,
)
from models.article import Article
from models.notification import (
    ArticleNotifications,
    NotificationHeader,
    NotificationSchedule,
    NotifiedArticle,
    PendingNotification,
    RecipientResult,
    TargetRecord,
)
from models.types import AllRecipients, UsedMethods
from notifications.articles import ArticleReader
from notifications.error_logger import log_notification_error
from notifications.errors import (
    NotificationDeliveryError,
    NotificationQueueError,
    NotificationValidationError,
)
from notifications.methods.base import NotificationMethod
from notifications.methods.registry import MethodRegistry
from notifications.store import NotificationStore
from notifications.targets import resolve_targets
from shared.utils import parse_timestamp, utcnow

STATUS_CHANGED_MESSAGE = "Message status changed during cron processing."
VISIBLE_TO_RECIPIENT_STATUSES = ("pending", "sending", "sent")
QUEUED_STATUSES = ("draft", "pending", "sending")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def build_status_message(results: Sequence[RecipientResult]) -> str:
    """Collapse per-recipient results into "name: state (message); ..." text."""
    states = []
    for result in results:
        msg = f"{result.name}: {result.state}"
        if result.message:
            msg += f" ({result.message})"
        states.append(msg)
    return "; ".join(states)


def final_status(status: Optional[str], message: str) -> Tuple[str, str]:
    """
    Header status and message for a method's overall delivery status.

    Methods may report channel-specific overall statuses; the header only
    records sent or failed, with any other status kept in the message.
    """
    if status in DELIVERY_STATUSES:
        return status, message
    if status:
        message = f"Delivery method reported status '{status}'. {message}"
    return "failed", message


class NotificationQueue:
    """Creates, cancels, claims and reports on article notifications."""

    def __init__(
        self,
        store: NotificationStore,
        methods: MethodRegistry,
        articles: ArticleReader,
        hold_delay_minutes: Optional[int] = None,
    ):
        self.store = store
        self.methods = methods
        self.articles = articles
        self.hold_delay_minutes = (
            hold_delay_minutes if hold_delay_minutes is not None else get_hold_delay_minutes()
        )

    def get_methods(self) -> Dict[str, NotificationMethod]:
        return self.methods.as_dict()

    # ------------------------------------------------------------------
    # Scheduling

    def compute_send_after(
        self,
        article: Article,
        send_mode: str,
        send_after: Union[datetime, str, int, None] = None,
    ) -> datetime:
        """
        Work out when notifications in the given mode become eligible.

        Only timed notifications accept a caller-supplied time; immediate and
        delayed ones are always based on the article's release time (or now,
        for articles without one).

        Raises:
            NotificationValidationError: Bad mode, or a missing/unparseable
                time for timed mode
        """
        if send_mode not in SEND_MODES:
            raise NotificationValidationError(
                f"Illegal release mode '{send_mode}' specified in call to queue_notifications"
            )

        if send_mode == "timed":
            if send_after is None or send_after == "":
                raise NotificationValidationError(
                    "Unable to queue notifications: no time specified for timed notification"
                )
            when = parse_timestamp(send_after)
            if when is None:
                raise NotificationValidationError(
                    f"Unable to queue notifications: invalid send time '{send_after}'"
                )
            return when

        when = parse_timestamp(article.release_time) or utcnow()
        if send_mode == "delay":
            when += timedelta(minutes=self.hold_delay_minutes)
        return when

    def queue_notifications(
        self,
        article_id: int,
        article: Article,
        user_id: int,
        is_draft: bool,
        used_methods: UsedMethods,
        send_mode: str = "delay",
        send_after: Union[datetime, str, int, None] = None,
    ) -> List[int]:
        """
        Create notification headers for every method an article uses.

        Headers are written as drafts, given their recipient/method links and
        method data, and only promoted to 'pending' once every method has been
        stored, so a dispatcher can never pick up a half-built notification.
        If anything fails, the headers created by this call are removed again.

        Args:
            article_id: Article being notified
            article: Article record (release time, year, per-method settings)
            user_id: User queuing the notifications
            is_draft: Leave headers as drafts rather than pending
            used_methods: Method name -> recipient/method ids to notify
            send_mode: immediate, delay or timed
            send_after: Required for timed mode, ignored otherwise

        Returns:
            Ids of the created headers, in used_methods order

        Raises:
            NotificationValidationError: Nothing was written
            NotificationQueueError: Creation failed; ``queued`` on the
                exception says how many methods could not be rolled back
        """
        when = self.compute_send_after(article, send_mode, send_after)

        # Resolve every method up front so an unknown name writes nothing
        requested = [
            (name, self.methods.get(name), list(rm_ids or []))
            for name, rm_ids in used_methods.items()
        ]
        year_id = article.notify_matrix.year

        created: List[Dict[str, Any]] = []
        try:
            for name, method, rm_ids in requested:
                header_id = self.store.insert_header(
                    article_id, method.get_id(), year_id, send_mode, when, "draft"
                )
                entry = {"id": header_id, "method": method, "data_id": None}
                created.append(entry)

                self.store.insert_recipient_methods(header_id, rm_ids)

                data_id = method.store_data(article_id, article, user_id, is_draft, rm_ids)
                if data_id:
                    entry["data_id"] = data_id
                    self.set_notification_data(header_id, data_id)

            if not is_draft and created:
                promoted = self.store.promote_headers([entry["id"] for entry in created])
                if promoted != len(created):
                    raise NotificationQueueError(
                        f"Only {promoted} of {len(created)} notifications could be made pending"
                    )

        except Exception as e:
            left = self._rollback(created)
            message = f"Unable to queue notifications: {e}"
            if left:
                message += f" ({left} of {len(requested)} methods queued)"
            log_notification_error(
                error_type="queuing",
                error_message=message,
                context={
                    "article_id": article_id,
                    "methods": list(used_methods),
                    "headers_left": left,
                },
            )
            raise NotificationQueueError(message, queued=left, total=len(requested)) from e

        return [entry["id"] for entry in created]

    def _rollback(self, created: List[Dict[str, Any]]) -> int:
        """Undo headers created by a failed queue_notifications() call.

        Only headers still in 'draft' are removed; one that has already been
        made pending may be claimed by a dispatcher and is left alone.

        Returns:
            Number of headers that could not be removed
        """
        left = 0
        for entry in reversed(created):
            try:
                if not self.store.discard_draft_header(entry["id"]):
                    left += 1
                    print(f"  ⚠️  Notification {entry['id']} is no longer a draft, not rolled back")
                    continue
                if entry["data_id"]:
                    entry["method"].delete_data(entry["data_id"])
            except Exception as e:
                left += 1
                print(f"  ⚠️  Unable to roll back notification {entry['id']}: {e}")
        return left

    def cancel_notifications(self, article_id: int, method_id: Optional[int] = None) -> int:
        """
        Cancel the article's draft and pending notifications.

        Headers that are already sending, sent or failed are left alone.

        Returns:
            Number of headers cancelled (zero is not an error)
        """
        return self.store.cancel_headers(article_id, method_id)

    # ------------------------------------------------------------------
    # Dispatch

    def get_pending_notifications(self, now: Optional[datetime] = None) -> List[PendingNotification]:
        """
        Pending notifications whose send time has passed.

        Ordered by article release time then method name, so the earliest
        released articles go out first.
        """
        rows = self.store.get_due_headers(now or utcnow())
        if not rows:
            return []

        release_times = self.articles.get_release_times(row["article_id"] for row in rows)

        pending = []
        for row in rows:
            if row["article_id"] not in release_times:
                continue
            try:
                method = self.methods.get_by_id(row["method_id"])
            except NotificationValidationError:
                print(f"  ⚠️  Notification {row['id']} uses an unavailable method, skipping")
                continue
            pending.append(
                PendingNotification(
                    id=row["id"],
                    article_id=row["article_id"],
                    method_id=row["method_id"],
                    year_id=row.get("year_id"),
                    name=method.name,
                    release_time=parse_timestamp(release_times[row["article_id"]]),
                    send_after=row.get("send_after"),
                )
            )

        pending.sort(key=lambda n: (n.release_time or _EPOCH, n.name))
        return pending

    def get_next_notification_time(self, after: Optional[datetime] = None) -> Optional[datetime]:
        """Send time of the next pending notification at or after ``after``."""
        return parse_timestamp(self.store.get_next_send_after(after or utcnow()))

    def send_pending_notification(
        self, notification: PendingNotification, all_recipients: AllRecipients
    ) -> List[RecipientResult]:
        """
        Claim a pending notification and deliver it.

        The claim is a single conditional update from 'pending' to 'sending'.
        A caller that loses the claim (another dispatcher got there first, or
        the notification was cancelled) gets a single skipped result back and
        nothing is sent. Once claimed, the header's final status is always
        written, whatever happens during delivery.

        Returns:
            Per-recipient results from the delivery method

        Raises:
            NotificationDeliveryError: The method failed outright; the header
                has been marked failed
        """
        method = self.methods.get(notification.name)

        if not self.store.claim_notification(notification.id):
            return [RecipientResult(name="all", state="skipped", message=STATUS_CHANGED_MESSAGE)]

        try:
            article = self.articles.get_article(notification.article_id)
            targets = self.get_notification_targets(notification.id, notification.year_id)
            status, results = method.send(article, targets, all_recipients, self)
        except Exception as e:
            error = str(e) or method.errstr() or e.__class__.__name__
            self._finish(notification, "failed", error)
            if isinstance(e, NotificationDeliveryError):
                raise
            raise NotificationDeliveryError(error, method=method.name) from e

        if results is None:
            error = method.errstr() or "Delivery method reported no results"
            self._finish(notification, *final_status(status, error))
            raise NotificationDeliveryError(error, method=method.name)

        self._finish(notification, *final_status(status, build_status_message(results)))
        return results

    def _finish(self, notification: PendingNotification, status: str, message: str) -> None:
        try:
            self.set_notification_status(notification.id, status, message)
        except Exception as e:
            log_notification_error(
                error_type="status",
                error_message=str(e),
                context={
                    "notification_id": notification.id,
                    "article_id": notification.article_id,
                    "intended_status": status,
                    "message": message,
                },
            )
            raise

    # ------------------------------------------------------------------
    # Mutators

    def set_notification_status(
        self, header_id: int, status: str, message: Optional[str] = None
    ) -> None:
        if status not in NOTIFICATION_STATUSES:
            raise NotificationValidationError(f"Illegal notification status '{status}'")
        if not self.store.set_status(header_id, status, message):
            raise NotificationQueueError("Article notification update failed: no rows updated.")

    def set_notification_data(self, header_id: int, data_id: int) -> None:
        if not self.store.set_data_id(header_id, data_id):
            raise NotificationQueueError("Article notification update failed: no rows updated.")

    # ------------------------------------------------------------------
    # Queries

    def get_notification_status(
        self,
        id: Optional[int] = None,
        article_id: Optional[int] = None,
        method_id: Optional[int] = None,
    ) -> Optional[NotificationHeader]:
        """
        Fresh read of a notification header, by id or by article and method.

        Returns:
            The header, or None if there is no such notification
        """
        if id:
            row = self.store.get_header(id)
        elif article_id and method_id:
            row = self.store.find_header(article_id, method_id)
        else:
            raise NotificationValidationError(
                "get_notification_status() needs an id, or an article_id and method_id"
            )
        return NotificationHeader.model_validate(row) if row else None

    def get_notification_targets(self, header_id: int, year_id: Optional[int]) -> List[TargetRecord]:
        return resolve_targets(self.store, header_id, year_id)

    def get_notification_dataid(self, article_id: int, method_id: int) -> int:
        """Method data id for an article's notification, or 0 when there is none."""
        row = self.store.find_header(article_id, method_id)
        if not row or not row.get("data_id"):
            return 0
        return row["data_id"]

    def get_notifications(self, article_id: int, unsent: bool = False) -> ArticleNotifications:
        """
        Summarise an article's notifications for the composer.

        Args:
            article_id: Article to summarise
            unsent: Only consider draft and pending notifications

        Returns:
            Year, used recipients per method, enabled recipient/method pairs,
            send schedule and each method's stored data
        """
        headers = self.store.get_article_headers(
            article_id, statuses=("pending", "draft") if unsent else None
        )

        summary = ArticleNotifications()
        notify_at: Dict[str, List[datetime]] = {}
        for header in headers:
            try:
                method = self.methods.get_by_id(header["method_id"])
            except NotificationValidationError:
                continue

            # All headers for an article share a year, use the first one seen
            if summary.year is None and header.get("year_id") is not None:
                summary.year = header["year_id"]

            rm_ids = self.store.get_header_recipient_methods(header["id"])
            for row in self.store.get_matrix_rows(rm_ids):
                summary.used.setdefault(method.name, []).append(row["recipient_id"])
                summary.enabled.setdefault(row["recipient_id"], {})[header["method_id"]] = True

            summary.methods[method.name] = method.get_data(article_id, self)

            send_at = parse_timestamp(header.get("send_after"))
            if send_at is not None:
                times = notify_at.setdefault(header["send_mode"], [])
                if send_at not in times:
                    times.append(send_at)

        schedule = []
        for mode, times in notify_at.items():
            # Immediate and delayed sends share one time per article; timed
            # sends may have several
            if mode in ("immediate", "delay"):
                times = times[:1]
            schedule.extend(NotificationSchedule(send_mode=mode, send_at=t) for t in times)
        summary.notify_at = sorted(schedule, key=lambda s: s.send_at)
        return summary

    def get_notification_articles(
        self,
        target: Union[int, List[int]],
        method: Union[int, List[int]],
    ) -> List[NotifiedArticle]:
        """
        Articles that have been (or are being) notified to recipients.

        Args:
            target: Recipient id or list of ids
            method: Method id or list of ids

        Returns:
            One entry per article/recipient-method pair, oldest release first
        """
        targets = target if isinstance(target, list) else [target]
        methods = method if isinstance(method, list) else [method]

        rm_ids = self.store.find_matrix_ids(targets, methods)
        if not rm_ids:
            return []

        links = self.store.get_recipient_method_links(rm_ids)
        headers = {
            row["id"]: row
            for row in self.store.get_headers(
                {link["article_notify_id"] for link in links},
                statuses=VISIBLE_TO_RECIPIENT_STATUSES,
            )
        }
        articles = self.articles.get_articles(row["article_id"] for row in headers.values())
        users = self.articles.get_users(
            row["creator_id"] for row in articles.values() if row.get("creator_id") is not None
        )
        matrix = {row["id"]: row for row in self.store.get_matrix_rows(rm_ids)}
        recipients = self.store.get_recipients(row["recipient_id"] for row in matrix.values())

        results = []
        for link in links:
            header = headers.get(link["article_notify_id"])
            if not header:
                continue
            article = articles.get(header["article_id"])
            if not article:
                continue
            user = users.get(article.get("creator_id"))
            recipient = recipients.get(matrix.get(link["recip_meth_id"], {}).get("recipient_id"))
            if not user or not recipient:
                continue
            results.append(
                NotifiedArticle(
                    id=article["id"],
                    creator_id=article.get("creator_id"),
                    created=article.get("created"),
                    release_time=article.get("release_time"),
                    recip_meth_id=link["recip_meth_id"],
                    status=header["status"],
                    username=user.get("username"),
                    realname=user.get("realname"),
                    email=user.get("email"),
                    name=recipient.get("name"),
                    shortname=recipient.get("shortname"),
                )
            )

        results.sort(key=lambda a: parse_timestamp(a.release_time) or _EPOCH)
        return results

    # ------------------------------------------------------------------
    # Status API

    def notification_exists(self, article_id: int, method_id: int) -> bool:
        return self.store.find_header(article_id, method_id) is not None

    def get_notification_counts(self, article_id: int) -> Dict[str, int]:
        """Queued (draft, pending or sending) and sent notification counts."""
        counts = {"queued": 0, "sent": 0}
        for header in self.store.get_article_headers(article_id):
            if header["status"] in QUEUED_STATUSES:
                counts["queued"] += 1
            elif header["status"] == "sent":
                counts["sent"] += 1
        return counts


def create_notification_queue(
    client: Any = None, method_config: Optional[Dict[str, Dict[str, Any]]] = None
) -> NotificationQueue:
    """
    Build a queue wired to Supabase, with methods loaded from notify_methods.

    Call once per process and share the result.
    """
    store = NotificationStore(client)
    registry = MethodRegistry.load(store, method_config)
    return NotificationQueue(store, registry, ArticleReader(store.client))
