"""Database persistence module."""

from .database import init_database
from .schema import Base, Booking, DeliveryRequest, EarningsEntry, LedgerPosting, Rider
from .transaction import transaction, unavailable_on_db_error

__all__ = [
    "init_database",
    "Base",
    "Booking",
    "DeliveryRequest",
    "EarningsEntry",
    "LedgerPosting",
    "Rider",
    "transaction",
    "unavailable_on_db_error",
]
