"""
Notification engine for Newsagent.

This module handles:
- Queuing notifications for published articles, one per delivery method
- Claiming and delivering due notifications (notifications.dispatcher)
- Pluggable delivery methods (notifications.methods)
- Status queries for the composer and API layers
"""

from .errors import (
    NotificationDeliveryError,
    NotificationError,
    NotificationQueueError,
    NotificationValidationError,
)
from .queue import NotificationQueue, create_notification_queue

__all__ = [
    'NotificationQueue',
    'create_notification_queue',
    'NotificationError',
    'NotificationValidationError',
    'NotificationQueueError',
    'NotificationDeliveryError',
]
