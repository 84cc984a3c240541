"""Push notification delivery."""

from .dispatcher import DeliveryOutcome, DeliveryStatus, NotificationDispatcher

__all__ = ["DeliveryOutcome", "DeliveryStatus", "NotificationDispatcher"]
