"""Dispatch domain events and the in-process bus that carries them."""

from .bus import EventBus
from .schemas import BookingEvent, DeliveryEvent

__all__ = ["BookingEvent", "DeliveryEvent", "EventBus"]
