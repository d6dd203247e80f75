"""
Base class for notification delivery methods.

A method is one delivery channel (email, and so on). The queue creates one
notification header per method an article uses; the method stores any
channel-specific data for the article and performs the actual delivery when
the dispatcher claims the header.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from models.article import Article
from models.notification import RecipientResult, TargetRecord
from models.types import AllRecipients
from notifications.store import NotificationStore
from notifications.targets import resolve_targets

if TYPE_CHECKING:
    from notifications.queue import NotificationQueue


class NotificationMethod(ABC):
    """Contract every delivery channel implements."""

    def __init__(
        self,
        method_id: int,
        method_name: str,
        store: NotificationStore,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.method_id = method_id
        self.name = method_name
        self.store = store
        self.config = config or {}
        self._errstr = ""

    def get_id(self) -> int:
        return self.method_id

    def errstr(self) -> str:
        """Last error message recorded by this method."""
        return self._errstr

    def set_error(self, message: str) -> None:
        self._errstr = message

    def clear_error(self) -> None:
        self._errstr = ""

    def get_notification_targets(
        self, header_id: int, year_id: Optional[int]
    ) -> List[TargetRecord]:
        self.clear_error()
        return resolve_targets(self.store, header_id, year_id)

    def store_data(
        self,
        article_id: int,
        article: Article,
        user_id: int,
        is_draft: bool,
        recip_meth_ids: List[int],
    ) -> Optional[int]:
        """
        Persist method-specific data for an article.

        Returns:
            The id of the stored data, or 0/None when the method needs none
        """
        return 0

    def get_data(self, article_id: int, queue: "NotificationQueue") -> Any:
        """Previously stored method-specific data for an article, if any."""
        return None

    def delete_data(self, data_id: int) -> None:
        """Discard stored data when queuing is rolled back."""
        return None

    @abstractmethod
    def send(
        self,
        article: Article,
        targets: List[TargetRecord],
        all_recipients: AllRecipients,
        queue: "NotificationQueue",
    ) -> Tuple[Optional[str], Optional[List[RecipientResult]]]:
        """
        Deliver an article to the targets.

        Per-recipient failures are reported as results with state "error".
        Systemic failures either raise NotificationDeliveryError or return
        (None, None) with errstr() set.

        Returns:
            (overall_status, per_recipient_results)
        """
