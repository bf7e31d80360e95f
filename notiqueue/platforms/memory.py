"""In-process delivery platform used by tests and embedding applications."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence

from notiqueue.config import DEFAULT_CAPACITY
from notiqueue.errors import PlatformError
from notiqueue.records import LocalNotification

logger = logging.getLogger(__name__)


class InMemoryPlatform:
    """Keep pending notifications in a dictionary.

    Nothing fires on its own; call :meth:`fire` to simulate the platform
    delivering a notification.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._pending: Dict[str, LocalNotification] = {}
        self._lock = threading.Lock()

    def admit(self, record: LocalNotification) -> None:
        if record.notification_id is None:
            raise PlatformError("cannot admit a notification without identifier")
        with self._lock:
            if record.notification_id not in self._pending and len(self._pending) >= self.capacity:
                raise PlatformError(f"platform is full ({self.capacity} pending notifications)")
            self._pending[record.notification_id] = record

    def cancel(self, notification_id: str) -> None:
        with self._lock:
            self._pending.pop(notification_id, None)

    def cancel_all(self) -> None:
        with self._lock:
            self._pending.clear()

    def list_pending(self) -> Sequence[LocalNotification]:
        with self._lock:
            return list(self._pending.values())

    # ------------------------------------------------------------------
    def fire(self, notification_id: str) -> Optional[LocalNotification]:
        """Drop ``notification_id`` from the pending set as if it was delivered."""

        with self._lock:
            record = self._pending.pop(notification_id, None)
        if record is not None:
            logger.debug("fired notification %s", notification_id)
        return record

    def pending_ids(self) -> List[str]:
        with self._lock:
            return list(self._pending)
