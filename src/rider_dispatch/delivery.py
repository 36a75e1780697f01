"""Delivery request state machine and models."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .core.exceptions import InvalidTransitionError
from .geo.distance import Coordinates

CENT = Decimal("0.01")


class DeliveryStatus(str, Enum):
    """Delivery request lifecycle states."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"

    def to_event_type(self) -> str:
        """Convert status to event type (e.g., 'delivery.assigned')."""
        return f"delivery.{self.value}"


class DeliveryType(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    SCHEDULED = "scheduled"
    SAME_DAY = "same_day"


VALID_TRANSITIONS: dict[DeliveryStatus, set[DeliveryStatus]] = {
    DeliveryStatus.PENDING: {DeliveryStatus.ASSIGNED, DeliveryStatus.CANCELLED},
    DeliveryStatus.ASSIGNED: {
        DeliveryStatus.PICKED_UP,
        DeliveryStatus.CANCELLED,
        DeliveryStatus.FAILED,
    },
    DeliveryStatus.PICKED_UP: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.FAILED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.FAILED},
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.CANCELLED: set(),
    DeliveryStatus.FAILED: set(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)

# Statuses advance_status may move a request into, keyed to their only predecessor
PROGRESS_STEPS: dict[DeliveryStatus, DeliveryStatus] = {
    DeliveryStatus.PICKED_UP: DeliveryStatus.ASSIGNED,
    DeliveryStatus.IN_TRANSIT: DeliveryStatus.PICKED_UP,
    DeliveryStatus.DELIVERED: DeliveryStatus.IN_TRANSIT,
}


def check_transition(current: DeliveryStatus, target: DeliveryStatus) -> None:
    """Raise unless current -> target is in the transition table."""
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


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class DeliveryRequest(BaseModel):
    """Snapshot of a delivery request."""

    id: str
    tracking_number: str
    customer_id: str
    rider_id: str | None = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    delivery_type: DeliveryType = DeliveryType.STANDARD
    pickup_address: str
    pickup_location: Coordinates
    pickup_contact_name: str | None = None
    pickup_contact_phone: str | None = None
    pickup_instructions: str | None = None
    delivery_address: str
    delivery_location: Coordinates
    delivery_contact_name: str | None = None
    delivery_contact_phone: str | None = None
    delivery_instructions: str | None = None
    package_description: str | None = None
    package_weight_kg: float | None = None
    package_value: Decimal | None = None
    fragile: bool = False
    base_fee: Decimal
    distance_fee: Decimal = Decimal("0.00")
    express_fee: Decimal = Decimal("0.00")
    total_amount: Decimal
    rider_earnings: Decimal = Decimal("0.00")
    payment_method: str = "cash"
    payment_status: str = "pending"
    distance_km: float | None = None
    estimated_duration_minutes: int | None = None
    assignment_eta_minutes: int | None = None
    cancellation_reason: str | None = None
    failure_reason: str | None = None
    requested_pickup_time: datetime | None = None
    actual_pickup_time: datetime | None = None
    actual_delivery_time: datetime | None = None
    assigned_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class DeliveryRequestCreate(BaseModel):
    """Payload for creating a delivery request.

    Coordinates may be omitted when a geocoder is configured; the addresses
    are then resolved at creation time.
    """

    customer_id: str = Field(min_length=1)
    delivery_type: DeliveryType = DeliveryType.STANDARD
    pickup_address: str = Field(min_length=1)
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    pickup_contact_name: str | None = None
    pickup_contact_phone: str | None = Field(default=None, max_length=20)
    pickup_instructions: str | None = None
    delivery_address: str = Field(min_length=1)
    delivery_lat: float | None = None
    delivery_lng: float | None = None
    delivery_contact_name: str | None = None
    delivery_contact_phone: str | None = Field(default=None, max_length=20)
    delivery_instructions: str | None = None
    package_description: str | None = None
    package_weight_kg: float | None = Field(default=None, ge=0)
    package_value: Decimal | None = Field(default=None, ge=0)
    fragile: bool = False
    base_fee: Decimal = Field(ge=0)
    distance_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    express_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_amount: Decimal | None = Field(default=None, ge=0)
    rider_earnings: Decimal | None = Field(default=None, ge=0)
    payment_method: Literal["cash", "card", "upi", "wallet"] = "cash"
    distance_km: float | None = Field(default=None, ge=0)
    requested_pickup_time: datetime | None = None

    @model_validator(mode="after")
    def validate_coordinate_pairs(self) -> "DeliveryRequestCreate":
        for prefix in ("pickup", "delivery"):
            lat = getattr(self, f"{prefix}_lat")
            lng = getattr(self, f"{prefix}_lng")
            if (lat is None) != (lng is None):
                raise ValueError(f"{prefix}_lat and {prefix}_lng must be provided together")
        return self

    @property
    def fee_subtotal(self) -> Decimal:
        return quantize_money(self.base_fee + self.distance_fee + self.express_fee)

    def resolved_total(self) -> Decimal:
        if self.total_amount is not None:
            return quantize_money(self.total_amount)
        return self.fee_subtotal

    def resolved_rider_earnings(self, commission_rate: Decimal) -> Decimal:
        """Rider share of the total: explicit value, or total less platform commission."""
        if self.rider_earnings is not None:
            return quantize_money(self.rider_earnings)
        share = Decimal("1") - (commission_rate / Decimal("100"))
        return quantize_money(self.resolved_total() * share)


class Assignment(BaseModel):
    """Result of a successful rider assignment."""

    delivery_id: str
    rider_id: str
    eta_minutes: int
    distance_km: float
