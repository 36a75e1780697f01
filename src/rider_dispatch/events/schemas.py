from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

DeliveryEventType = Literal[
    "delivery.created",
    "delivery.assigned",
    "delivery.picked_up",
    "delivery.in_transit",
    "delivery.delivered",
    "delivery.cancelled",
    "delivery.failed",
]


class DeliveryEvent(BaseModel):
    """Event for delivery request status changes"""

    event_id: UUID = Field(default_factory=uuid4)
    event_type: DeliveryEventType
    delivery_id: str
    tracking_number: str
    timestamp: datetime
    customer_id: str
    rider_id: str | None = None
    rider_earnings: Decimal = Decimal("0.00")
    eta_minutes: int | None = None
    delivered_at: datetime | None = Field(
        default=None, description="Actual delivery time, set on delivery.delivered"
    )
    reason: str | None = None
    correlation_id: str | None = Field(
        default=None, description="Primary correlation ID (the delivery id)"
    )


class BookingEvent(BaseModel):
    """Event for booking status changes"""

    event_id: UUID = Field(default_factory=uuid4)
    event_type: Literal[
        "booking.created",
        "booking.confirmed",
        "booking.in_progress",
        "booking.completed",
        "booking.cancelled",
        "booking.updated",
    ]
    booking_id: str
    customer_id: str
    timestamp: datetime
    scheduled_at: datetime
    reason: str | None = None
