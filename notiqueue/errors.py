"""Exception hierarchy shared by the notiqueue components."""
from __future__ import annotations


class NotiQueueError(RuntimeError):
    """Generic notiqueue error."""


class AlreadyTrackedError(NotiQueueError):
    """Raised when a record that already carries an identifier is prepared again."""


class PersistenceError(NotiQueueError):
    """Raised when the queue cannot be written to or read from storage."""


class PlatformError(NotiQueueError):
    """Raised when the delivery platform rejects or fails a request."""


__all__ = ["AlreadyTrackedError", "NotiQueueError", "PersistenceError", "PlatformError"]
