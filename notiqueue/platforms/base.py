"""Interface of the delivery platform that actually fires notifications."""
from __future__ import annotations

from typing import Protocol, Sequence

from notiqueue.records import LocalNotification


class DeliveryPlatform(Protocol):
    """A platform holding at most ``capacity`` pending notifications.

    The platform fires admitted records on its own schedule.  Entries
    returned by :meth:`list_pending` must carry the notification identifier
    so they can be matched back to tracked records.
    """

    capacity: int

    def admit(self, record: LocalNotification) -> None:
        ...

    def cancel(self, notification_id: str) -> None:
        ...

    def cancel_all(self) -> None:
        ...

    def list_pending(self) -> Sequence[LocalNotification]:
        ...
