"""Service orchestration helpers."""

from .scheduler import NotificationScheduler, ReconcileReport, UpdateHook

__all__ = ["NotificationScheduler", "ReconcileReport", "UpdateHook"]
