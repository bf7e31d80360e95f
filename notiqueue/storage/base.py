"""Interface of the persistent store holding the wait queue."""
from __future__ import annotations

from typing import List, Protocol, Sequence

from notiqueue.records import LocalNotification


class QueueStore(Protocol):
    """Save and restore queued notifications.

    Implementations raise :class:`notiqueue.errors.PersistenceError` on
    failure and return an empty list when nothing was saved yet.
    """

    def save(self, records: Sequence[LocalNotification]) -> None:
        ...

    def load(self) -> List[LocalNotification]:
        ...
