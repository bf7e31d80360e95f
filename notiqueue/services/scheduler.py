"""Admission control for notifications on a capacity limited platform.

The delivery platform can only hold ``capacity`` pending notifications.  The
scheduler admits records while there is room and keeps the overflow in a
queue sorted by :meth:`LocalNotification.sort_key`.  Callers invoke
:meth:`NotificationScheduler.reconcile` at regular points (process start,
after a notification fired) to detect delivered records, generate the next
occurrence of repeating ones and refill the free slots from the queue.
"""
from __future__ import annotations

import bisect
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from notiqueue.errors import AlreadyTrackedError, PersistenceError
from notiqueue.platforms.base import DeliveryPlatform
from notiqueue.records import LocalNotification
from notiqueue.storage.base import QueueStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TIMING_FIELDS = (
    "fire_date",
    "time_zone",
    "repeat_interval_unit",
    "repeat_interval_value",
    "repeat_calendar",
)


class UpdateHook(Protocol):
    """Gives the caller a last chance to adjust a record before admission.

    ``update`` may change payload fields only.  The timing fields listed in
    :data:`TIMING_FIELDS` must be returned unchanged; the scheduler logs a
    warning when they differ but does not undo the change.
    """

    def update(self, record: LocalNotification) -> LocalNotification:
        ...


@dataclass(slots=True)
class ReconcileReport:
    """Identifiers touched by a :meth:`NotificationScheduler.reconcile` pass."""

    fired: List[str] = field(default_factory=list)
    successors: List[str] = field(default_factory=list)
    adopted: List[str] = field(default_factory=list)
    admitted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "fired": list(self.fired),
            "successors": list(self.successors),
            "adopted": list(self.adopted),
            "admitted": list(self.admitted),
        }


class NotificationScheduler:
    """Track every notification and keep the delivery platform filled.

    All state lives behind a single re-entrant lock, so the public methods
    may be called from several threads, but there is no parallelism inside.
    The wait queue is restored from ``store`` on construction; call
    :meth:`save_queue` before shutting down.
    """

    def __init__(
        self,
        platform: DeliveryPlatform,
        store: QueueStore,
        update_hook: Optional[UpdateHook] = None,
        capacity: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        limit = platform.capacity if capacity is None else capacity
        if limit < 1:
            raise ValueError("capacity must be positive")
        if limit > platform.capacity:
            raise ValueError(
                f"capacity {limit} exceeds the platform limit of {platform.capacity}"
            )
        self._platform = platform
        self._store = store
        self._update_hook = update_hook
        self._capacity = limit
        self._clock = clock or _utcnow
        self._admitted: Dict[str, LocalNotification] = {}
        self._queue: List[LocalNotification] = []
        self._lock = threading.RLock()
        self._restore_queue()

    # ------------------------------------------------------------------
    # Counters and snapshots
    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def admitted_count(self) -> int:
        with self._lock:
            return len(self._admitted)

    @property
    def queued_count(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def total_count(self) -> int:
        with self._lock:
            return len(self._admitted) + len(self._queue)

    @property
    def admitted_notifications(self) -> Tuple[LocalNotification, ...]:
        """Records currently held by the platform, in fire order."""

        with self._lock:
            return tuple(sorted(self._admitted.values(), key=LocalNotification.sort_key))

    @property
    def queued_notifications(self) -> Tuple[LocalNotification, ...]:
        """Records waiting for a free platform slot, in queue order."""

        with self._lock:
            return tuple(self._queue)

    # ------------------------------------------------------------------
    # Scheduling
    def schedule_one(self, record: LocalNotification) -> Optional[str]:
        """Admit or queue ``record`` and return its new identifier.

        Returns ``None`` when the record already carries an identifier.
        """

        with self._lock:
            return self._schedule(record)

    def schedule_many(self, records: Iterable[LocalNotification]) -> List[Optional[str]]:
        """Schedule ``records`` in order; the result lines up with the input."""

        with self._lock:
            return [self._schedule(record) for record in records]

    def reconcile(self) -> ReconcileReport:
        """Detect fired notifications and refill free platform slots.

        Admitted records missing from the platform's pending list are treated
        as fired.  Repeating ones are replaced by their next occurrence, which
        joins the queue.  Pending platform entries that are not tracked (for
        instance after a restart) are adopted.  Finally the smallest queued
        records are admitted until the platform is full or the queue is empty.
        """

        with self._lock:
            report = ReconcileReport()
            now = self._clock()
            pending = list(self._platform.list_pending())
            pending_ids = {entry.notification_id for entry in pending}

            fired = [
                record
                for notification_id, record in self._admitted.items()
                if notification_id not in pending_ids
            ]
            # Successors are computed before any state changes so a failure
            # leaves every fired record tracked.
            successors = [(record, self._successor_of(record, now)) for record in fired]
            for record, prepared in successors:
                del self._admitted[record.notification_id]
                report.fired.append(record.notification_id)
                if prepared is None:
                    logger.info("notification %s fired", record.notification_id)
                    continue
                self._enqueue(prepared)
                report.successors.append(prepared.notification_id)
                logger.info(
                    "notification %s fired, next occurrence %s at %s",
                    record.notification_id,
                    prepared.notification_id,
                    prepared.fire_date.isoformat(),
                )

            self._adopt(pending, report)

            while self._has_free_slot() and self._queue:
                admitted = self._admit(self._queue[0])
                self._queue.pop(0)
                report.admitted.append(admitted.notification_id)

            if report.fired or report.admitted or report.adopted:
                logger.debug(
                    "reconciled: %d fired, %d adopted, %d admitted, %d still queued",
                    len(report.fired),
                    len(report.adopted),
                    len(report.admitted),
                    len(self._queue),
                )
            return report

    # ------------------------------------------------------------------
    # Cancellation and lookup
    def cancel(self, record: LocalNotification) -> bool:
        return self.cancel_by_identifier(record.notification_id)

    def cancel_by_identifier(self, notification_id: Optional[str]) -> bool:
        """Stop tracking ``notification_id``; unknown identifiers are ignored.

        Returns ``True`` when a record was removed.
        """

        if not notification_id:
            return False
        with self._lock:
            removed = False
            if notification_id in self._admitted:
                self._platform.cancel(notification_id)
                del self._admitted[notification_id]
                removed = True
            remaining = [record for record in self._queue if record.notification_id != notification_id]
            if len(remaining) != len(self._queue):
                self._queue = remaining
                removed = True
            if removed:
                logger.info("cancelled notification %s", notification_id)
            return removed

    def cancel_all(self) -> None:
        with self._lock:
            self._platform.cancel_all()
            count = len(self._admitted) + len(self._queue)
            self._admitted.clear()
            self._queue.clear()
            logger.info("cancelled all %d notifications", count)

    def lookup(self, notification_id: Optional[str]) -> Optional[LocalNotification]:
        """Return the tracked record for ``notification_id``.

        When several records share the identifier the one firing first wins.
        """

        if not notification_id:
            return None
        with self._lock:
            matches = [
                record
                for record in (*self._admitted.values(), *self._queue)
                if record.notification_id == notification_id
            ]
        if not matches:
            return None
        return min(matches, key=lambda record: record.fire_date)

    # ------------------------------------------------------------------
    # Persistence
    def save_queue(self) -> None:
        """Write the queue to the store; raises :class:`PersistenceError` on failure."""

        with self._lock:
            self._store.save(list(self._queue))
            logger.debug("saved %d queued notifications", len(self._queue))

    def _restore_queue(self) -> None:
        with self._lock:
            try:
                records = self._store.load()
            except PersistenceError as exc:
                logger.error("cannot restore notification queue, starting empty: %s", exc)
                return
            restored: List[LocalNotification] = []
            seen = set()
            for record in records:
                if record.notification_id is None or record.notification_id in seen:
                    logger.warning("dropping queued notification without unique identifier")
                    continue
                seen.add(record.notification_id)
                restored.append(replace(record, synchronized=False))
            restored.sort(key=LocalNotification.sort_key)
            self._queue = restored
            if restored:
                logger.info("restored %d queued notifications", len(restored))

    # ------------------------------------------------------------------
    # Debug helpers
    def describe(self, brief: bool = False) -> str:
        """Human readable dump of every tracked notification."""

        with self._lock:
            admitted = sorted(self._admitted.values(), key=LocalNotification.sort_key)
            queued = list(self._queue)
        lines = [
            f"{len(admitted)} admitted / {len(queued)} queued (capacity {self._capacity})"
        ]
        for record in (*admitted, *queued):
            lines.append(record.describe_brief() if brief else record.describe())
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal helpers, callers hold the lock
    def _has_free_slot(self) -> bool:
        return len(self._admitted) < self._capacity

    def _schedule(self, record: LocalNotification) -> Optional[str]:
        try:
            prepared, overdue = record.prepare_to_be_scheduled(self._clock())
        except AlreadyTrackedError:
            logger.debug("rejected notification %s: already tracked", record.notification_id)
            return None
        if overdue:
            logger.info(
                "notification %s fire date %s has passed, the platform will deliver it immediately",
                prepared.notification_id,
                prepared.fire_date.isoformat(),
            )
        if self._has_free_slot():
            self._admit(prepared)
        else:
            self._enqueue(prepared)
        return prepared.notification_id

    def _admit(self, record: LocalNotification) -> LocalNotification:
        admitted = replace(self._apply_hook(record), synchronized=True)
        self._platform.admit(admitted)
        self._admitted[admitted.notification_id] = admitted
        logger.debug("admitted notification %s", admitted.notification_id)
        return admitted

    @staticmethod
    def _successor_of(record: LocalNotification, now: datetime) -> Optional[LocalNotification]:
        successor = record.next_occurrence(now)
        if successor is None:
            return None
        prepared, _ = successor.prepare_to_be_scheduled(now)
        return prepared

    def _enqueue(self, record: LocalNotification) -> None:
        bisect.insort(self._queue, replace(record, synchronized=False), key=LocalNotification.sort_key)
        logger.debug("queued notification %s", record.notification_id)

    def _apply_hook(self, record: LocalNotification) -> LocalNotification:
        if self._update_hook is None:
            return record
        updated = self._update_hook.update(record)
        if updated.notification_id != record.notification_id:
            raise ValueError("update hook must not change the notification identifier")
        changed = [name for name in TIMING_FIELDS if getattr(updated, name) != getattr(record, name)]
        if changed:
            logger.warning(
                "update hook changed timing fields %s of notification %s",
                ", ".join(changed),
                record.notification_id,
            )
        return updated.with_platform_snapshot()

    def _adopt(self, pending: Sequence[LocalNotification], report: ReconcileReport) -> None:
        for entry in pending:
            notification_id = entry.notification_id
            if notification_id is None or notification_id in self._admitted:
                continue
            if not self._has_free_slot():
                logger.warning(
                    "platform holds untracked notification %s but no slot is free", notification_id
                )
                continue
            self._queue = [record for record in self._queue if record.notification_id != notification_id]
            self._admitted[notification_id] = replace(entry, synchronized=True)
            report.adopted.append(notification_id)
            logger.info("adopted notification %s from the platform", notification_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
