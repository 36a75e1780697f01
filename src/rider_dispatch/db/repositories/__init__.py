"""Repository layer for database CRUD operations."""

from .booking_repository import BookingRepository
from .delivery_repository import DeliveryRepository
from .earnings_repository import EarningsRepository
from .rider_repository import RiderRepository

__all__ = [
    "BookingRepository",
    "DeliveryRepository",
    "EarningsRepository",
    "RiderRepository",
]
