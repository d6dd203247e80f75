"""Exceptions raised by the notification queue and its delivery methods."""


class NotificationError(Exception):
    """Base class for notification engine errors."""


class NotificationValidationError(NotificationError, ValueError):
    """Caller supplied arguments the queue cannot accept. Nothing was written."""


class NotificationQueueError(NotificationError):
    """A store operation failed.

    When raised from queue_notifications(), ``queued`` and ``total`` say how
    many methods were left queued after compensation, out of how many were
    requested. ``queued`` is 0 when compensation succeeded.
    """

    def __init__(self, message: str, queued: int = 0, total: int = 0):
        super().__init__(message)
        self.queued = queued
        self.total = total


class NotificationDeliveryError(NotificationError):
    """A delivery method failed outright rather than per recipient."""

    def __init__(self, message: str, method: str | None = None):
        super().__init__(message)
        self.method = method
