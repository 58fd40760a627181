"""Notification dispatch for committed booking changes."""

from .dispatcher import (
    BackgroundNotificationDispatcher,
    InlineNotificationDispatcher,
    LoggingNotificationSink,
    NotificationDispatcher,
    NotificationSink,
    get_notification_dispatcher,
)

__all__ = [
    "BackgroundNotificationDispatcher",
    "InlineNotificationDispatcher",
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationSink",
    "get_notification_dispatcher",
]
