"""Booking repository."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ...booking import Booking as BookingDomain
from ...booking import BookingCreate, BookingStatus, ServiceLine, services_total
from ...geo.distance import Coordinates
from ..schema import Booking
from ..utils import ensure_utc, from_cents, to_cents, utc_now


def _dump_services(services: list[ServiceLine]) -> str:
    return json.dumps([s.model_dump(mode="json") for s in services])


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        booking_id: str,
        payload: BookingCreate,
        location: Coordinates | None,
    ) -> None:
        booking = Booking(
            id=booking_id,
            customer_id=payload.customer_id,
            services_json=_dump_services(payload.services),
            total_amount_cents=to_cents(services_total(payload.services)),
            scheduled_at=ensure_utc(payload.scheduled_at),
            delivery_at=ensure_utc(payload.delivery_at),
            address=payload.address,
            location=location.as_storage() if location else None,
            contact_name=payload.contact_name,
            contact_phone=payload.contact_phone,
            instructions=payload.instructions,
            status=BookingStatus.PENDING.value,
            payment_method=payload.payment_method,
        )
        self.session.add(booking)
        self.session.flush()

    def get(self, booking_id: str) -> BookingDomain | None:
        booking = self.session.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            return None
        return self._to_domain(booking)

    def list_by_customer(self, customer_id: str) -> list[BookingDomain]:
        stmt = (
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .order_by(Booking.scheduled_at.desc())
        )
        return [self._to_domain(b) for b in self.session.execute(stmt).scalars().all()]

    def transition(
        self,
        booking_id: str,
        from_status: BookingStatus,
        to_status: BookingStatus,
        **fields: Any,
    ) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == from_status.value)
            .values(status=to_status.value, updated_at=utc_now(), **fields)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def update_details(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        expected_scheduled_at: datetime,
        **fields: Any,
    ) -> bool:
        """Apply an edit only if status and schedule are still what the caller checked."""
        if "services" in fields:
            services = fields.pop("services")
            fields["services_json"] = _dump_services(services)
            fields["total_amount_cents"] = to_cents(services_total(services))
        if "location" in fields:
            location = fields.pop("location")
            fields["location"] = location.as_storage() if location else None
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == expected_status.value)
            .where(Booking.scheduled_at == expected_scheduled_at)
            .values(updated_at=utc_now(), **fields)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def _to_domain(self, booking: Booking) -> BookingDomain:
        scheduled_at = ensure_utc(booking.scheduled_at)
        assert scheduled_at is not None
        return BookingDomain(
            id=booking.id,
            customer_id=booking.customer_id,
            services=[ServiceLine(**s) for s in json.loads(booking.services_json)],
            total_amount=from_cents(booking.total_amount_cents),
            scheduled_at=scheduled_at,
            delivery_at=ensure_utc(booking.delivery_at),
            address=booking.address,
            location=Coordinates.from_storage(booking.location) if booking.location else None,
            contact_name=booking.contact_name,
            contact_phone=booking.contact_phone,
            instructions=booking.instructions,
            status=BookingStatus(booking.status),
            payment_method=booking.payment_method,
            payment_status=booking.payment_status,
            cancellation_reason=booking.cancellation_reason,
            cancelled_at=ensure_utc(booking.cancelled_at),
            completed_at=ensure_utc(booking.completed_at),
            created_at=ensure_utc(booking.created_at),
            updated_at=ensure_utc(booking.updated_at),
        )
