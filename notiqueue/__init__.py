"""notiqueue: admission control for notifications on capacity limited platforms."""

from .cli import main as cli_main
from .config_loader import load_config
from .errors import AlreadyTrackedError, NotiQueueError, PersistenceError, PlatformError
from .records import LocalNotification, NotificationPayload, RepeatIntervalUnit
from .services import NotificationScheduler, ReconcileReport, UpdateHook

__all__ = [
    "AlreadyTrackedError",
    "LocalNotification",
    "NotiQueueError",
    "NotificationPayload",
    "NotificationScheduler",
    "PersistenceError",
    "PlatformError",
    "ReconcileReport",
    "RepeatIntervalUnit",
    "UpdateHook",
    "cli_main",
    "load_config",
    "config",
    "platforms",
    "records",
    "services",
    "storage",
]
