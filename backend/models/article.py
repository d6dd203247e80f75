"""Pydantic models for article data consumed by the notification engine."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from models.types import ArticleID, UsedMethods, UserID, YearID


class NotifyMatrix(BaseModel):
    """Recipient/method selection made when the article was composed."""

    year: YearID | None = None
    used_methods: UsedMethods = Field(default_factory=dict)


class Article(BaseModel):
    """Article record as read from article storage."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: ArticleID
    title: str = ""
    summary: str | None = None
    article: str | None = None
    creator_id: UserID | None = None
    created: datetime | None = None
    release_time: datetime | None = None
    notify_matrix: NotifyMatrix = Field(default_factory=NotifyMatrix)
    # Per-method composer settings, keyed by method name
    methods: dict[str, dict[str, Any]] = Field(default_factory=dict)


class Author(BaseModel):
    """The user who created an article."""

    model_config = ConfigDict(extra="ignore")

    user_id: UserID
    username: str | None = None
    realname: str | None = None
    email: str | None = None

    @property
    def fullname(self) -> str:
        return self.realname or self.username or f"User {self.user_id}"
