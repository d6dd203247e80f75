"""Pluggable notification delivery methods."""

from .base import NotificationMethod
from .email import EmailMethod
from .registry import MethodRegistry

__all__ = [
    'NotificationMethod',
    'EmailMethod',
    'MethodRegistry',
]
