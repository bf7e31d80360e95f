"""Notification record value objects."""

from .notification import (
    DEFAULT_CALENDAR,
    ID_USER_INFO_KEY,
    LocalNotification,
    NotificationPayload,
    RepeatIntervalUnit,
)

__all__ = [
    "DEFAULT_CALENDAR",
    "ID_USER_INFO_KEY",
    "LocalNotification",
    "NotificationPayload",
    "RepeatIntervalUnit",
]
