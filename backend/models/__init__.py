"""Pydantic models for data validation and type checking."""

from models.article import Article, Author, NotifyMatrix
from models.notification import (
    ArticleNotifications,
    NotificationHeader,
    NotificationSchedule,
    NotifiedArticle,
    PendingNotification,
    RecipientResult,
    TargetRecord,
)

__all__ = [
    "Article",
    "Author",
    "NotifyMatrix",
    "ArticleNotifications",
    "NotificationHeader",
    "NotificationSchedule",
    "NotifiedArticle",
    "PendingNotification",
    "RecipientResult",
    "TargetRecord",
]
