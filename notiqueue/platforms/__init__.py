"""Delivery platform adapters."""

from .base import DeliveryPlatform
from .memory import InMemoryPlatform
from .rest_platform import HttpDeliveryPlatform

__all__ = ["DeliveryPlatform", "HttpDeliveryPlatform", "InMemoryPlatform"]
