"""Notification records handled by :class:`notiqueue.services.NotificationScheduler`.

A :class:`LocalNotification` describes one occurrence of a notification: when
it should fire, how it repeats and the opaque alert payload handed to the
delivery platform.  Records are immutable; every change produces a new
instance through :func:`dataclasses.replace`.  The scheduler assigns the
identifier when the record is first admitted and never changes it afterwards.
Each repetition is a brand new record with its own identifier.
"""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone, tzinfo
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from notiqueue.errors import AlreadyTrackedError

ID_USER_INFO_KEY = "notiqueue.id"
DEFAULT_CALENDAR = "gregorian"
SUPPORTED_CALENDARS = frozenset({"gregorian", "iso8601"})


class RepeatIntervalUnit(str, enum.Enum):
    """Calendar unit used together with ``repeat_interval_value``.

    Units are never combined; a record repeats in exactly one unit.
    """

    NONE = "none"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


_RELATIVEDELTA_FIELDS = {
    RepeatIntervalUnit.MINUTE: "minutes",
    RepeatIntervalUnit.HOUR: "hours",
    RepeatIntervalUnit.DAY: "days",
    RepeatIntervalUnit.WEEK: "weeks",
    RepeatIntervalUnit.MONTH: "months",
    RepeatIntervalUnit.YEAR: "years",
}

# Minutes and hours are elapsed time, larger units follow the local wall clock.
_ABSOLUTE_UNITS = frozenset({RepeatIntervalUnit.MINUTE, RepeatIntervalUnit.HOUR})

# Upper bounds of one unit, including a daylight saving shift.
_LONGEST_UNIT = {
    RepeatIntervalUnit.MINUTE: timedelta(minutes=1),
    RepeatIntervalUnit.HOUR: timedelta(hours=1),
    RepeatIntervalUnit.DAY: timedelta(hours=25),
    RepeatIntervalUnit.WEEK: timedelta(days=7, hours=1),
    RepeatIntervalUnit.MONTH: timedelta(days=31, hours=1),
    RepeatIntervalUnit.YEAR: timedelta(days=366, hours=1),
}


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    """Alert content carried verbatim to the delivery platform."""

    alert_title: Optional[str] = None
    alert_body: Optional[str] = None
    alert_action: Optional[str] = None
    has_action: bool = True
    alert_launch_image: Optional[str] = None
    category: Optional[str] = None
    badge_number: int = 0
    sound_name: Optional[str] = None
    user_info: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_info", MappingProxyType(dict(self.user_info or {})))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_title": self.alert_title,
            "alert_body": self.alert_body,
            "alert_action": self.alert_action,
            "has_action": self.has_action,
            "alert_launch_image": self.alert_launch_image,
            "category": self.category,
            "badge_number": self.badge_number,
            "sound_name": self.sound_name,
            "user_info": dict(self.user_info),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NotificationPayload":
        return cls(
            alert_title=data.get("alert_title"),
            alert_body=data.get("alert_body"),
            alert_action=data.get("alert_action"),
            has_action=bool(data.get("has_action", True)),
            alert_launch_image=data.get("alert_launch_image"),
            category=data.get("category"),
            badge_number=int(data.get("badge_number", 0) or 0),
            sound_name=data.get("sound_name"),
            user_info=dict(data.get("user_info") or {}),
        )


@dataclass(frozen=True, slots=True, eq=False)
class LocalNotification:
    """A single notification occurrence.

    ``notification_id`` is ``None`` until the scheduler admits the record.
    ``synchronized`` is ``True`` while the record occupies a slot on the
    delivery platform and ``False`` while it waits in the scheduler queue.
    Equality and hashing only look at ``notification_id``.  A record that has
    not been admitted yet has no identifier and is only equal to itself, which
    keeps ``==`` reflexive.  ``time_zone`` is validated on construction.
    """

    fire_date: datetime
    time_zone: Optional[str] = None
    repeat_calendar: Optional[str] = None
    repeat_interval_unit: RepeatIntervalUnit = RepeatIntervalUnit.NONE
    repeat_interval_value: int = 1
    payload: NotificationPayload = field(default_factory=NotificationPayload)
    notification_id: Optional[str] = None
    synchronized: bool = False
    platform_payload: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if self.repeat_calendar is not None and self.repeat_calendar not in SUPPORTED_CALENDARS:
            raise ValueError(f"unsupported repeat calendar: {self.repeat_calendar!r}")
        object.__setattr__(self, "repeat_interval_unit", _coerce_unit(self.repeat_interval_unit))
        object.__setattr__(self, "repeat_interval_value", max(1, int(self.repeat_interval_value or 1)))
        zone = _resolve_zone(self.time_zone) if self.time_zone else timezone.utc
        if self.fire_date.tzinfo is None:
            object.__setattr__(self, "fire_date", self.fire_date.replace(tzinfo=zone))
        if not self.notification_id:
            object.__setattr__(self, "notification_id", None)

    # ------------------------------------------------------------------
    # Identity and ordering
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalNotification):
            return NotImplemented
        if self.notification_id is None or other.notification_id is None:
            return self is other
        return self.notification_id == other.notification_id

    def __hash__(self) -> int:
        return hash(self.notification_id)

    def sort_key(self) -> Tuple[datetime, str]:
        """Key matching :meth:`compare`, usable with ``sorted`` and ``bisect``."""

        return self.fire_date, (self.notification_id or "").casefold()

    def compare(self, other: "LocalNotification") -> int:
        """Order by fire date, then by case-insensitive identifier.

        Returns ``-1``, ``0`` or ``1``.
        """

        mine = self.sort_key()
        theirs = other.sort_key()
        if mine < theirs:
            return -1
        if mine > theirs:
            return 1
        return 0

    @property
    def calendar(self) -> str:
        return self.repeat_calendar or DEFAULT_CALENDAR

    @property
    def repeats(self) -> bool:
        return self.repeat_interval_unit is not RepeatIntervalUnit.NONE

    # ------------------------------------------------------------------
    # Recurrence
    def next_occurrence(self, now: Optional[datetime] = None) -> Optional["LocalNotification"]:
        """Return the first repetition that fires strictly after ``now``.

        Missed repetitions are skipped: the result is ``fire_date`` advanced
        by the smallest positive multiple of the repeat interval that lands
        in the future.  Returns ``None`` for records that do not repeat.
        """

        if not self.repeats:
            return None
        moment = now or _utcnow()
        steps = max(1, self._elapsed_steps(moment))
        candidate = self._advance(steps)
        while candidate <= moment:
            steps += 1
            candidate = self._advance(steps)
        return replace(
            self,
            fire_date=candidate,
            notification_id=None,
            synchronized=False,
            platform_payload=None,
        )

    def _elapsed_steps(self, moment: datetime) -> int:
        # Lower bound on the number of whole intervals between fire_date and moment.
        elapsed = moment - self.fire_date
        if elapsed <= timedelta(0):
            return 0
        return int(elapsed // (_LONGEST_UNIT[self.repeat_interval_unit] * self.repeat_interval_value))

    def _advance(self, steps: int) -> datetime:
        unit = self.repeat_interval_unit
        delta = relativedelta(**{_RELATIVEDELTA_FIELDS[unit]: steps * self.repeat_interval_value})
        zone = self._zone()
        if unit in _ABSOLUTE_UNITS:
            return (self.fire_date.astimezone(timezone.utc) + delta).astimezone(zone)
        return self.fire_date.astimezone(zone) + delta

    def _zone(self) -> tzinfo:
        if self.time_zone:
            return _resolve_zone(self.time_zone)
        return self.fire_date.tzinfo or timezone.utc

    # ------------------------------------------------------------------
    # Scheduling support
    def prepare_to_be_scheduled(
        self, now: Optional[datetime] = None
    ) -> Tuple["LocalNotification", bool]:
        """Assign a fresh identifier and snapshot the platform representation.

        Returns the prepared record together with a flag that is ``True`` when
        the fire date has already passed, meaning the platform will deliver it
        immediately.  Raises :class:`AlreadyTrackedError` when the record was
        prepared before.
        """

        if self.notification_id is not None:
            raise AlreadyTrackedError(f"notification {self.notification_id} is already scheduled")
        prepared = replace(self, notification_id=str(uuid.uuid4()), synchronized=False)
        moment = now or _utcnow()
        return prepared.with_platform_snapshot(), self.fire_date <= moment

    def with_platform_snapshot(self) -> "LocalNotification":
        """Return a copy whose ``platform_payload`` reflects the current fields."""

        data = self.to_dict()
        data.pop("synchronized")
        data.pop("platform_payload")
        data["payload"]["user_info"][ID_USER_INFO_KEY] = self.notification_id
        return replace(self, platform_payload=data)

    def copy(self, copy_id: bool = False) -> "LocalNotification":
        """Return a new record with the same content.

        The identifier and platform state are carried over only when
        ``copy_id`` is set.
        """

        if copy_id:
            return replace(self)
        return replace(self, notification_id=None, synchronized=False, platform_payload=None)

    # ------------------------------------------------------------------
    # Serialisation
    def to_dict(self) -> Dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "fire_date": self.fire_date.isoformat(),
            "time_zone": self.time_zone,
            "repeat_calendar": self.repeat_calendar,
            "repeat_interval_unit": self.repeat_interval_unit.value,
            "repeat_interval_value": self.repeat_interval_value,
            "payload": self.payload.to_dict(),
            "synchronized": self.synchronized,
            "platform_payload": dict(self.platform_payload) if self.platform_payload else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LocalNotification":
        fire_date = data["fire_date"]
        if not isinstance(fire_date, datetime):
            fire_date = isoparse(str(fire_date))
        platform_payload = data.get("platform_payload")
        return cls(
            fire_date=fire_date,
            time_zone=data.get("time_zone"),
            repeat_calendar=data.get("repeat_calendar"),
            repeat_interval_unit=data.get("repeat_interval_unit") or RepeatIntervalUnit.NONE,
            repeat_interval_value=int(data.get("repeat_interval_value", 1) or 1),
            payload=NotificationPayload.from_dict(data.get("payload") or {}),
            notification_id=data.get("notification_id"),
            synchronized=bool(data.get("synchronized", False)),
            platform_payload=dict(platform_payload) if platform_payload else None,
        )

    @classmethod
    def from_platform_dict(cls, data: Mapping[str, Any]) -> Optional["LocalNotification"]:
        """Rebuild a record from an entry reported by the delivery platform.

        Returns ``None`` when the entry was not produced by this package, i.e.
        when its user info lacks the notiqueue identifier.
        """

        payload = dict(data.get("payload") or {})
        user_info = dict(payload.get("user_info") or {})
        notification_id = user_info.pop(ID_USER_INFO_KEY, None)
        if not notification_id:
            return None
        payload["user_info"] = user_info
        record = cls.from_dict(
            {
                **data,
                "payload": payload,
                "notification_id": notification_id,
                "synchronized": True,
                "platform_payload": None,
            }
        )
        return replace(record, platform_payload=dict(data))

    # ------------------------------------------------------------------
    # Debug helpers
    def describe(self) -> str:
        payload = self.payload
        lines = [
            f"LocalNotification {self.notification_id or '<unscheduled>'}",
            f"  fire_date: {self.fire_date.isoformat()}",
            f"  time_zone: {self.time_zone or '<default>'}",
            f"  repeat: {self._describe_repeat()} ({self.calendar})",
            f"  synchronized: {self.synchronized}",
            f"  alert_title: {payload.alert_title!r}",
            f"  alert_body: {payload.alert_body!r}",
            f"  alert_action: {payload.alert_action!r} (has_action={payload.has_action})",
            f"  alert_launch_image: {payload.alert_launch_image!r}",
            f"  category: {payload.category!r}",
            f"  badge_number: {payload.badge_number}",
            f"  sound_name: {payload.sound_name!r}",
            f"  user_info: {dict(payload.user_info)!r}",
        ]
        return "\n".join(lines)

    def describe_brief(self) -> str:
        state = "S" if self.synchronized else "Q"
        return (
            f"[{state}] {self.notification_id or '<unscheduled>'} "
            f"{self.fire_date.isoformat()} {self._describe_repeat()} "
            f"{self.payload.alert_body or ''}"
        ).rstrip()

    def _describe_repeat(self) -> str:
        if not self.repeats:
            return "once"
        return f"every {self.repeat_interval_value} {self.repeat_interval_unit.value}"


def _coerce_unit(value: Any) -> RepeatIntervalUnit:
    if isinstance(value, RepeatIntervalUnit):
        return value
    if value is None:
        return RepeatIntervalUnit.NONE
    try:
        return RepeatIntervalUnit(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"unknown repeat interval unit: {value!r}") from exc


def _resolve_zone(name: str) -> tzinfo:
    if name.upper() in {"UTC", "Z"}:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown time zone: {name!r}") from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "DEFAULT_CALENDAR",
    "ID_USER_INFO_KEY",
    "LocalNotification",
    "NotificationPayload",
    "RepeatIntervalUnit",
    "SUPPORTED_CALENDARS",
]
