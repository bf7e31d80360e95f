"""Persistence of the scheduler wait queue."""

from .base import QueueStore
from .json_store import JsonFileQueueStore

__all__ = ["JsonFileQueueStore", "QueueStore"]
