"""Delivery and booking lifecycles."""

from .bookings import BookingService
from .coordinator import DispatchCoordinator
from .tracking import generate_tracking_number

__all__ = ["BookingService", "DispatchCoordinator", "generate_tracking_number"]
