"""Customer service bookings with time-gated edits and cancellation."""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import sessionmaker

from ..booking import (
    EDITABLE_STATUSES,
    Booking,
    BookingCreate,
    BookingStatus,
    BookingUpdate,
    check_transition,
)
from ..core.exceptions import (
    BookingNotFoundError,
    CancelWindowClosedError,
    EditWindowClosedError,
    InvalidStateError,
    InvalidTransitionError,
    UnavailableError,
    ValidationError,
)
from ..db.repositories import BookingRepository
from ..db.transaction import transaction, unavailable_on_db_error
from ..db.utils import ensure_utc, utc_now
from ..dispatch_logging import log_context
from ..events import BookingEvent, EventBus
from ..geo.distance import validate_coordinates
from ..settings import BookingSettings

logger = logging.getLogger(__name__)


class BookingService:
    """Booking lifecycle: pending -> confirmed -> in_progress -> completed.

    Pending and confirmed bookings can be cancelled until the cancel lead
    window opens before the scheduled time, and edited until the (longer)
    edit lead window opens.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Any],
        settings: BookingSettings | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._settings = settings or BookingSettings()
        self._event_bus = event_bus
        self._clock = clock

    @property
    def cancel_lead(self) -> timedelta:
        return timedelta(hours=self._settings.cancel_lead_hours)

    @property
    def edit_lead(self) -> timedelta:
        return timedelta(hours=self._settings.edit_lead_hours)

    def create_booking(self, payload: BookingCreate) -> Booking:
        scheduled_at = ensure_utc(payload.scheduled_at)
        assert scheduled_at is not None
        if scheduled_at <= self._clock():
            raise ValidationError(
                "Booking must be scheduled in the future",
                {"scheduled_at": scheduled_at.isoformat()},
            )
        location = (
            validate_coordinates(payload.lat, payload.lng)
            if payload.lat is not None and payload.lng is not None
            else None
        )

        booking_id = str(uuid.uuid4())
        with (
            unavailable_on_db_error(UnavailableError, "create booking"),
            self._session_factory() as session,
            transaction(session),
        ):
            BookingRepository(session).create(booking_id, payload, location)

        booking = self.get_booking(booking_id)
        logger.info("Created booking %s for %s", booking_id, scheduled_at.isoformat())
        self._publish(booking, "booking.created")
        return booking

    def get_booking(self, booking_id: str) -> Booking:
        with (
            unavailable_on_db_error(UnavailableError, "get booking"),
            self._session_factory() as session,
        ):
            booking = BookingRepository(session).get(booking_id)
        if booking is None:
            raise BookingNotFoundError(
                f"Booking not found: {booking_id}", {"booking_id": booking_id}
            )
        return booking

    def list_for_customer(self, customer_id: str) -> list[Booking]:
        with (
            unavailable_on_db_error(UnavailableError, "list bookings"),
            self._session_factory() as session,
        ):
            return BookingRepository(session).list_by_customer(customer_id)

    def advance_booking(self, booking_id: str, target: BookingStatus | str) -> Booking:
        """Move a booking forward: confirm, start or complete it.

        Cancellation has its own time-gated path, see cancel_booking.
        """
        try:
            target = BookingStatus(target)
        except ValueError as e:
            raise InvalidTransitionError(
                f"Unknown booking status: {target}", {"target": str(target)}
            ) from e
        if target == BookingStatus.CANCELLED:
            raise InvalidTransitionError(
                "Use cancel_booking to cancel a booking", {"booking_id": booking_id}
            )

        with log_context(booking_id=booking_id):
            current = self.get_booking(booking_id)
            check_transition(current.status, target)

            fields: dict[str, Any] = {}
            if target == BookingStatus.COMPLETED:
                fields["completed_at"] = self._clock()
            self._transition(current, target, **fields)

            booking = self.get_booking(booking_id)
            logger.info("Booking %s is now %s", booking_id, target.value)
            self._publish(booking, f"booking.{target.value}")
        return booking

    def cancel_booking(self, booking_id: str, reason: str | None = None) -> Booking:
        """Cancel a pending or confirmed booking.

        Raises:
            CancelWindowClosedError: If the scheduled time is within the cancel lead window
            InvalidStateError: If the booking is already in progress or closed
        """
        with log_context(booking_id=booking_id):
            current = self.get_booking(booking_id)
            check_transition(current.status, BookingStatus.CANCELLED)

            now = self._clock()
            if current.scheduled_at - now <= self.cancel_lead:
                raise CancelWindowClosedError(
                    f"Bookings cannot be cancelled within {self._settings.cancel_lead_hours:g} "
                    "hours of the scheduled time",
                    {"booking_id": booking_id, "scheduled_at": current.scheduled_at.isoformat()},
                )

            self._transition(
                current,
                BookingStatus.CANCELLED,
                cancellation_reason=reason,
                cancelled_at=now,
            )
            booking = self.get_booking(booking_id)
            logger.info("Booking %s cancelled", booking_id)
            self._publish(booking, "booking.cancelled", reason)
        return booking

    def edit_booking(self, booking_id: str, changes: BookingUpdate) -> Booking:
        """Apply a partial edit to a pending or confirmed booking.

        Both the current and the new scheduled time must be outside the edit
        lead window.

        Raises:
            EditWindowClosedError: If the booking is too close to its scheduled time
            InvalidStateError: If the booking is no longer editable
        """
        with log_context(booking_id=booking_id):
            current = self.get_booking(booking_id)
            if current.status not in EDITABLE_STATUSES:
                raise InvalidStateError(
                    f"Booking {booking_id} cannot be edited in status {current.status.value}",
                    {"booking_id": booking_id, "status": current.status.value},
                )

            now = self._clock()
            if current.scheduled_at - now <= self.edit_lead:
                raise EditWindowClosedError(
                    f"Bookings cannot be edited within {self._settings.edit_lead_hours:g} "
                    "hours of the scheduled time",
                    {"booking_id": booking_id, "scheduled_at": current.scheduled_at.isoformat()},
                )

            fields = self._edit_fields(current, changes, now)
            if not fields:
                return current

            with (
                unavailable_on_db_error(UnavailableError, "edit booking"),
                self._session_factory() as session,
                transaction(session),
            ):
                if not BookingRepository(session).update_details(
                    booking_id, current.status, current.scheduled_at, **fields
                ):
                    raise InvalidStateError(
                        f"Booking {booking_id} changed while editing",
                        {"booking_id": booking_id},
                    )

            booking = self.get_booking(booking_id)
            logger.info("Booking %s updated: %s", booking_id, ", ".join(sorted(fields)))
            self._publish(booking, "booking.updated")
        return booking

    def _edit_fields(
        self,
        current: Booking,
        changes: BookingUpdate,
        now: datetime,
    ) -> dict[str, Any]:
        fields = changes.model_dump(exclude_unset=True, exclude={"lat", "lng", "services"})
        if changes.services is not None:
            fields["services"] = changes.services
        if changes.lat is not None and changes.lng is not None:
            fields["location"] = validate_coordinates(changes.lat, changes.lng)

        if "scheduled_at" in fields:
            new_time = ensure_utc(fields["scheduled_at"])
            if new_time is None:
                raise ValidationError("scheduled_at cannot be cleared")
            if new_time - now <= self.edit_lead:
                raise EditWindowClosedError(
                    "New scheduled time falls inside the edit lead window",
                    {"scheduled_at": new_time.isoformat()},
                )
            fields["scheduled_at"] = new_time
        if "delivery_at" in fields:
            fields["delivery_at"] = ensure_utc(fields["delivery_at"])

        scheduled = fields.get("scheduled_at", current.scheduled_at)
        delivery_at = fields.get("delivery_at", current.delivery_at)
        if delivery_at is not None and delivery_at <= scheduled:
            raise ValidationError("delivery_at must be after scheduled_at")
        return fields

    def _transition(self, current: Booking, target: BookingStatus, **fields: Any) -> None:
        with (
            unavailable_on_db_error(UnavailableError, f"{target.value} booking"),
            self._session_factory() as session,
            transaction(session),
        ):
            if not BookingRepository(session).transition(
                current.id, current.status, target, **fields
            ):
                raise InvalidStateError(
                    f"Booking {current.id} changed status concurrently",
                    {"booking_id": current.id, "expected": current.status.value},
                )

    def _publish(self, booking: Booking, event_type: str, reason: str | None = None) -> None:
        if self._event_bus is None:
            return
        self._event_bus.publish(
            BookingEvent(
                event_type=event_type,  # type: ignore[arg-type]
                booking_id=booking.id,
                customer_id=booking.customer_id,
                timestamp=self._clock(),
                scheduled_at=booking.scheduled_at,
                reason=reason,
            )
        )
