"""Service booking state machine and models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .core.exceptions import InvalidTransitionError
from .delivery import quantize_money
from .geo.distance import Coordinates


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})
EDITABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def check_transition(current: BookingStatus, target: BookingStatus) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Cannot transition from terminal state {current.value}",
            {"current": current.value, "target": target.value},
        )
    if target not in VALID_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Invalid transition from {current.value} to {target.value}",
            {"current": current.value, "target": target.value},
        )


class ServiceLine(BaseModel):
    name: str = Field(min_length=1)
    category: str | None = None
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)


def services_total(services: list[ServiceLine]) -> Decimal:
    return quantize_money(sum((s.line_total for s in services), Decimal("0")))


class Booking(BaseModel):
    """Snapshot of a service booking."""

    id: str
    customer_id: str
    services: list[ServiceLine]
    total_amount: Decimal
    scheduled_at: datetime
    delivery_at: datetime | None = None
    address: str
    location: Coordinates | None = None
    contact_name: str | None = None
    contact_phone: str | None = None
    instructions: str | None = None
    status: BookingStatus = BookingStatus.PENDING
    payment_method: str = "cash"
    payment_status: str = "pending"
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingCreate(BaseModel):
    customer_id: str = Field(min_length=1)
    services: list[ServiceLine] = Field(min_length=1)
    scheduled_at: datetime
    delivery_at: datetime | None = None
    address: str = Field(min_length=1)
    lat: float | None = None
    lng: float | None = None
    contact_name: str | None = None
    contact_phone: str | None = Field(default=None, max_length=20)
    instructions: str | None = None
    payment_method: Literal["cash", "card", "upi", "wallet"] = "cash"

    @model_validator(mode="after")
    def validate_schedule(self) -> "BookingCreate":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        if self.delivery_at is not None and self.delivery_at <= self.scheduled_at:
            raise ValueError("delivery_at must be after scheduled_at")
        if services_total(self.services) <= 0:
            raise ValueError("Booking total must be greater than zero")
        return self


class BookingUpdate(BaseModel):
    """Partial edit of a booking; omitted fields are left unchanged."""

    services: list[ServiceLine] | None = Field(default=None, min_length=1)
    scheduled_at: datetime | None = None
    delivery_at: datetime | None = None
    address: str | None = Field(default=None, min_length=1)
    lat: float | None = None
    lng: float | None = None
    contact_name: str | None = None
    contact_phone: str | None = Field(default=None, max_length=20)
    instructions: str | None = None

    @model_validator(mode="after")
    def validate_pairs(self) -> "BookingUpdate":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        if self.services is not None and services_total(self.services) <= 0:
            raise ValueError("Booking total must be greater than zero")
        return self
