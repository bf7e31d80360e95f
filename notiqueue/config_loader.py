"""Utilities to load :mod:`notiqueue.config` structures from YAML files."""
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .config import (
    DEFAULT_CAPACITY,
    LoggingConfig,
    NotiQueueConfig,
    PlatformConfig,
    SchedulerConfig,
)

_DURATION_UNITS = {
    "s": _dt.timedelta(seconds=1),
    "m": _dt.timedelta(minutes=1),
    "h": _dt.timedelta(hours=1),
}


def load_config(path: Path) -> NotiQueueConfig:
    """Load a configuration file into :class:`NotiQueueConfig`.

    ``request_timeout`` accepts human friendly values such as ``"5s"``.  Fields
    omitted in the YAML file fall back to the defaults declared in
    :mod:`notiqueue.config`.
    """

    raw = _load_yaml(path)

    platform_section = raw.get("platform") or {}
    if "base_url" not in platform_section:
        raise ValueError("platform.base_url is required")
    platform = PlatformConfig(
        base_url=str(platform_section["base_url"]),
        request_timeout=_parse_duration(platform_section.get("request_timeout", 5.0)).total_seconds(),
        api_token=platform_section.get("api_token") or None,
        capacity=_parse_capacity(platform_section.get("capacity", DEFAULT_CAPACITY)),
    )

    scheduler_section = raw.get("scheduler") or {}
    capacity_value = scheduler_section.get("capacity")
    scheduler = SchedulerConfig(
        capacity=_parse_capacity(capacity_value) if capacity_value is not None else None,
        queue_path=Path(scheduler_section.get("queue_path", "./state/queue.json")),
    )

    logging_section = raw.get("logging") or {}
    logging_cfg = LoggingConfig(level=str(logging_section.get("level", "INFO")).upper())

    return NotiQueueConfig(platform=platform, scheduler=scheduler, logging=logging_cfg)


def _load_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, Mapping):
        raise ValueError("configuration root must be a mapping")
    return data


def _parse_capacity(value: Optional[Any]) -> int:
    capacity = int(value)
    if capacity < 1:
        raise ValueError(f"capacity must be at least 1, got {capacity}")
    return capacity


def _parse_duration(value: Any) -> _dt.timedelta:
    if isinstance(value, _dt.timedelta):
        return value
    if isinstance(value, (int, float)):
        return _dt.timedelta(seconds=float(value))
    if not isinstance(value, str):
        raise ValueError(f"unsupported duration value: {value!r}")
    value = value.strip()
    if value.isdigit():
        return _dt.timedelta(seconds=int(value))
    unit = value[-1].lower()
    if unit not in _DURATION_UNITS:
        raise ValueError(f"unknown duration unit: {value}")
    amount = float(value[:-1])
    base = _DURATION_UNITS[unit]
    return _dt.timedelta(seconds=base.total_seconds() * amount)
