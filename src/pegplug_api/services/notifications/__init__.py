"""Notification service package."""

from .backend import (
    InMemoryNotificationBackend,
    LoggingNotificationBackend,
    NotificationBackend,
    NotificationPayload,
)
from .scheduler import NotificationScheduler, next_daily_reminder, reminder_time

__all__ = [
    "InMemoryNotificationBackend",
    "LoggingNotificationBackend",
    "NotificationBackend",
    "NotificationPayload",
    "NotificationScheduler",
    "next_daily_reminder",
    "reminder_time",
]
