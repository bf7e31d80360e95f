"""Configuration schema for a notiqueue deployment.

The dataclasses below describe how the scheduler talks to the delivery
platform, how large the platform's pending set is and where the wait queue is
persisted between runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_CAPACITY = 64


@dataclass(slots=True)
class PlatformConfig:
    """Connection parameters for the HTTP delivery platform."""

    base_url: str
    request_timeout: float = 5.0
    api_token: Optional[str] = None
    capacity: int = DEFAULT_CAPACITY


@dataclass(slots=True)
class SchedulerConfig:
    """Admission and persistence knobs for the scheduler."""

    capacity: Optional[int] = None
    queue_path: Path = field(default_factory=lambda: Path("./state/queue.json"))


@dataclass(slots=True)
class LoggingConfig:
    """Log verbosity used by the command line entry point."""

    level: str = "INFO"


@dataclass(slots=True)
class NotiQueueConfig:
    """Top-level configuration bundle."""

    platform: PlatformConfig
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
