"""Pydantic models for the notification queue."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from models.types import (
    ArticleID,
    HeaderID,
    MethodID,
    RecipientMethodID,
    UsedMethods,
    YearID,
)

STATUS_PATTERN = "^(draft|pending|sending|sent|failed|cancelled)$"
SEND_MODE_PATTERN = "^(immediate|delay|timed)$"


class NotificationHeader(BaseModel):
    """One notification per (article, delivery method) pair."""

    model_config = ConfigDict(extra="ignore")

    id: HeaderID
    article_id: ArticleID
    method_id: MethodID
    year_id: YearID | None = None
    status: str = Field(..., pattern=STATUS_PATTERN)
    send_mode: str = Field("delay", pattern=SEND_MODE_PATTERN)
    send_after: datetime | None = None
    data_id: int | None = None
    message: str | None = None
    updated: datetime | None = None


class PendingNotification(BaseModel):
    """Pending header joined with its method name and article release time."""

    model_config = ConfigDict(extra="ignore")

    id: HeaderID
    article_id: ArticleID
    method_id: MethodID
    year_id: YearID | None = None
    name: str
    release_time: datetime | None = None
    send_after: datetime | None = None


class TargetRecord(BaseModel):
    """A recipient resolved for delivery, with year settings applied."""

    id: RecipientMethodID
    name: str
    shortname: str
    settings: str = ""


class RecipientResult(BaseModel):
    """Outcome of a delivery attempt for one recipient."""

    name: str
    state: str = Field(..., min_length=1)  # sent, error, skipped, or channel-defined
    message: str | None = None


class NotificationSchedule(BaseModel):
    """When notifications for an article go out, and in which mode."""

    send_mode: str = Field(..., pattern=SEND_MODE_PATTERN)
    send_at: datetime


class ArticleNotifications(BaseModel):
    """Aggregate view of an article's notifications for the composer."""

    year: YearID | None = None
    used: UsedMethods = Field(default_factory=dict)
    enabled: dict[int, dict[int, bool]] = Field(default_factory=dict)
    notify_at: list[NotificationSchedule] = Field(default_factory=list)
    methods: dict[str, Any] = Field(default_factory=dict)


class NotifiedArticle(BaseModel):
    """An article notified to a recipient/method, for reverse lookups."""

    model_config = ConfigDict(extra="ignore")

    id: ArticleID
    creator_id: int | None = None
    created: datetime | None = None
    release_time: datetime | None = None
    recip_meth_id: RecipientMethodID
    status: str = Field(..., pattern=STATUS_PATTERN)
    username: str | None = None
    realname: str | None = None
    email: str | None = None
    name: str | None = None
    shortname: str | None = None
