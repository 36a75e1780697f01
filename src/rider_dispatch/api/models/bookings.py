from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ...booking import Booking, BookingStatus, ServiceLine


class BookingResponse(BaseModel):
    id: str
    customer_id: str
    services: list[ServiceLine]
    total_amount: Decimal
    scheduled_at: datetime
    delivery_at: datetime | None
    address: str
    lat: float | None
    lng: float | None
    contact_name: str | None
    contact_phone: str | None
    instructions: str | None
    status: BookingStatus
    payment_method: str
    cancellation_reason: str | None
    cancelled_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingResponse":
        return cls(
            **booking.model_dump(
                exclude={"location", "payment_status", "created_at", "updated_at"}
            ),
            lat=booking.location.lat if booking.location else None,
            lng=booking.location.lng if booking.location else None,
        )


class BookingStatusRequest(BaseModel):
    status: BookingStatus


class BookingCancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)
