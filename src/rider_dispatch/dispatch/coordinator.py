"""Delivery request lifecycle: creation, atomic assignment and status changes."""

import logging
import uuid
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..core.exceptions import (
    AlreadyAssignedError,
    DeliveryNotFoundError,
    InvalidPayloadError,
    InvalidStateError,
    InvalidTransitionError,
    NoRiderAvailableError,
    TrackingNumberExhaustedError,
    UnavailableError,
    ValidationError,
)
from ..core.retry import RetryConfig, with_retry_sync
from ..db.repositories import DeliveryRepository
from ..db.transaction import transaction, unavailable_on_db_error
from ..db.utils import utc_now
from ..delivery import (
    PROGRESS_STEPS,
    Assignment,
    DeliveryRequest,
    DeliveryRequestCreate,
    DeliveryStatus,
    check_transition,
)
from ..dispatch_logging import log_delivery_context
from ..events import DeliveryEvent, EventBus
from ..geo.distance import Coordinates, distance_km, validate_coordinates
from ..geo.eta import eta_minutes
from ..geo.geocoding import Geocoder
from ..matching import Candidate, MatchEngine, RiderDirectory
from ..settings import DispatchSettings
from .tracking import generate_tracking_number, random_suffix

logger = logging.getLogger(__name__)

CLOSABLE_BY_CANCEL = frozenset({DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED})


class _RiderTaken(Exception):
    """Candidate was claimed elsewhere between ranking and reservation."""


class DispatchCoordinator:
    """Owns the delivery request state machine.

    All status changes are compare-and-set updates keyed on the expected
    prior status, so concurrent callers can never both win the same step.
    Events are published only after the owning transaction has committed.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Any],
        match_engine: MatchEngine,
        directory: RiderDirectory,
        event_bus: EventBus | None = None,
        settings: DispatchSettings | None = None,
        retry_config: RetryConfig | None = None,
        geocoder: Geocoder | None = None,
        suffix_factory: Callable[[], str] = random_suffix,
    ):
        self._session_factory = session_factory
        self._match_engine = match_engine
        self._directory = directory
        self._event_bus = event_bus
        self._settings = settings or DispatchSettings()
        self._retry_config = retry_config or RetryConfig()
        self._geocoder = geocoder
        self._suffix_factory = suffix_factory

    # --- Creation ---

    def create_delivery_request(
        self,
        payload: DeliveryRequestCreate | dict[str, Any],
    ) -> DeliveryRequest:
        """Validate and store a new pending delivery request.

        Raises:
            InvalidPayloadError: If the payload is malformed
            InvalidCoordinateError: If coordinates are out of range
            AddressNotFoundError: If an address without coordinates cannot be geocoded
            TrackingNumberExhaustedError: If no unique tracking number could be allocated
        """
        if not isinstance(payload, DeliveryRequestCreate):
            try:
                payload = DeliveryRequestCreate.model_validate(payload)
            except PydanticValidationError as e:
                raise InvalidPayloadError(
                    "Invalid delivery request payload",
                    {"errors": e.errors(include_url=False, include_context=False)},
                ) from e

        pickup = self._resolve_location(
            payload.pickup_address, payload.pickup_lat, payload.pickup_lng
        )
        dropoff = self._resolve_location(
            payload.delivery_address, payload.delivery_lat, payload.delivery_lng
        )
        total = payload.resolved_total()
        rider_earnings = payload.resolved_rider_earnings(self._settings.default_commission_rate)
        if rider_earnings > total:
            raise InvalidPayloadError(
                "Rider earnings cannot exceed the total amount",
                {"rider_earnings": str(rider_earnings), "total_amount": str(total)},
            )
        trip_km = (
            payload.distance_km
            if payload.distance_km is not None
            else round(distance_km(pickup, dropoff), 2)
        )

        delivery_id = str(uuid.uuid4())
        with log_delivery_context(delivery_id):
            tracking_number = self._insert_with_tracking_number(
                delivery_id, payload, pickup, dropoff, total, rider_earnings, trip_km
            )
            logger.info("Created delivery request %s (%s)", delivery_id, tracking_number)
            delivery = self.get(delivery_id)
            self._publish(delivery, "delivery.created")
        return delivery

    def _resolve_location(self, address: str, lat: float | None, lng: float | None) -> Coordinates:
        if lat is not None and lng is not None:
            return validate_coordinates(lat, lng)
        if self._geocoder is None:
            raise InvalidPayloadError(
                "Coordinates are required when no geocoder is configured",
                {"address": address},
            )
        point = self._geocoder.geocode(address)
        return validate_coordinates(point.lat, point.lng)

    def _insert_with_tracking_number(
        self,
        delivery_id: str,
        payload: DeliveryRequestCreate,
        pickup: Coordinates,
        dropoff: Coordinates,
        total: Decimal,
        rider_earnings: Decimal,
        trip_km: float,
    ) -> str:
        attempts = self._settings.tracking_max_attempts
        for attempt in range(1, attempts + 1):
            tracking_number = generate_tracking_number(
                self._settings.tracking_prefix, suffix_factory=self._suffix_factory
            )
            try:
                with (
                    unavailable_on_db_error(UnavailableError, "create delivery request"),
                    self._session_factory() as session,
                    transaction(session),
                ):
                    DeliveryRepository(session).create(
                        delivery_id,
                        tracking_number,
                        payload,
                        pickup,
                        dropoff,
                        total,
                        rider_earnings,
                        trip_km,
                    )
                return tracking_number
            except IntegrityError as e:
                if "tracking_number" not in str(e.orig):
                    raise
                logger.warning(
                    "Tracking number collision on %s (attempt %d/%d)",
                    tracking_number,
                    attempt,
                    attempts,
                )

        raise TrackingNumberExhaustedError(
            f"Could not allocate a unique tracking number after {attempts} attempts",
            {"attempts": attempts},
        )

    # --- Reads ---

    def get(self, delivery_id: str) -> DeliveryRequest:
        with (
            unavailable_on_db_error(UnavailableError, "get delivery request"),
            self._session_factory() as session,
        ):
            delivery = DeliveryRepository(session).get(delivery_id)
        if delivery is None:
            raise DeliveryNotFoundError(
                f"Delivery request not found: {delivery_id}", {"delivery_id": delivery_id}
            )
        return delivery

    def get_by_tracking_number(self, tracking_number: str) -> DeliveryRequest:
        with (
            unavailable_on_db_error(UnavailableError, "get delivery by tracking number"),
            self._session_factory() as session,
        ):
            delivery = DeliveryRepository(session).get_by_tracking_number(tracking_number)
        if delivery is None:
            raise DeliveryNotFoundError(
                f"No delivery with tracking number {tracking_number}",
                {"tracking_number": tracking_number},
            )
        return delivery

    def list_for_customer(self, customer_id: str) -> list[DeliveryRequest]:
        with (
            unavailable_on_db_error(UnavailableError, "list customer deliveries"),
            self._session_factory() as session,
        ):
            return DeliveryRepository(session).list_by_customer(customer_id)

    def list_for_rider(self, rider_id: str) -> list[DeliveryRequest]:
        with (
            unavailable_on_db_error(UnavailableError, "list rider deliveries"),
            self._session_factory() as session,
        ):
            return DeliveryRepository(session).list_by_rider(rider_id)

    # --- Assignment ---

    def assign_rider(self, delivery_id: str, max_radius_km: float | None = None) -> Assignment:
        """Assign the best available rider to a pending request.

        Candidates are tried in rank order. For each one a single transaction
        flips the request pending -> assigned and reserves the rider; if the
        rider was taken meanwhile the transaction rolls back and the next
        candidate is tried. The request is therefore either fully assigned or
        left pending.

        Raises:
            AlreadyAssignedError: If the request already has a rider
            InvalidStateError: If the request is not pending
            NoRiderAvailableError: If no candidate could be reserved
            UnavailableError: If storage stayed unavailable through all retries
        """
        with log_delivery_context(delivery_id):
            delivery = self.get(delivery_id)
            self._ensure_assignable(delivery)

            candidates = with_retry_sync(
                lambda: self._match_engine.find_candidates(delivery.pickup_location, max_radius_km),
                self._retry_config,
                "find candidates",
            )
            if not candidates:
                logger.info("No riders nearby for delivery %s", delivery_id)
                raise NoRiderAvailableError(
                    "No riders nearby", {"delivery_id": delivery_id, "candidates": 0}
                )

            trip_km = (
                delivery.distance_km
                if delivery.distance_km is not None
                else distance_km(delivery.pickup_location, delivery.delivery_location)
            )
            for candidate in candidates:
                claimed = with_retry_sync(
                    lambda c=candidate: self._try_claim(delivery, c, trip_km),  # type: ignore[misc]
                    self._retry_config,
                    "claim rider",
                )
                if not claimed:
                    logger.info("Rider %s was taken, trying next candidate", candidate.rider_id)
                    continue

                logger.info(
                    "Assigned rider %s to delivery %s (%.2f km, eta %d min)",
                    candidate.rider_id,
                    delivery_id,
                    candidate.distance_km,
                    candidate.eta_minutes,
                )
                self._publish(self.get(delivery_id), "delivery.assigned", candidate.eta_minutes)
                return Assignment(
                    delivery_id=delivery_id,
                    rider_id=candidate.rider_id,
                    eta_minutes=candidate.eta_minutes,
                    distance_km=round(candidate.distance_km, 2),
                )

            raise NoRiderAvailableError(
                "No riders nearby",
                {"delivery_id": delivery_id, "candidates": len(candidates)},
            )

    def _ensure_assignable(self, delivery: DeliveryRequest) -> None:
        if delivery.status == DeliveryStatus.PENDING and delivery.rider_id is None:
            return
        if delivery.rider_id is not None and not delivery.is_terminal:
            raise AlreadyAssignedError(
                f"Delivery {delivery.id} is already assigned to rider {delivery.rider_id}",
                {"delivery_id": delivery.id, "rider_id": delivery.rider_id},
            )
        raise InvalidStateError(
            f"Delivery {delivery.id} is {delivery.status.value}, not pending",
            {"delivery_id": delivery.id, "status": delivery.status.value},
        )

    def _try_claim(self, delivery: DeliveryRequest, candidate: Candidate, trip_km: float) -> bool:
        duration = candidate.eta_minutes + eta_minutes(trip_km, candidate.vehicle_class)
        try:
            with (
                unavailable_on_db_error(UnavailableError, "claim rider"),
                self._session_factory() as session,
                transaction(session),
            ):
                claimed = DeliveryRepository(session).claim(
                    delivery.id, candidate.rider_id, candidate.eta_minutes, duration
                )
                if not claimed:
                    # Lost the race; report what the winner left behind
                    current = DeliveryRepository(session).get(delivery.id)
                    if current is None:
                        raise DeliveryNotFoundError(
                            f"Delivery request not found: {delivery.id}",
                            {"delivery_id": delivery.id},
                        )
                    self._ensure_assignable(current)
                    raise InvalidStateError(
                        f"Delivery {delivery.id} changed while assigning",
                        {"delivery_id": delivery.id},
                    )
                if not self._directory.reserve(session, candidate.rider_id, delivery.id):
                    raise _RiderTaken(candidate.rider_id)
        except _RiderTaken:
            return False
        return True

    # --- Progress ---

    def advance_status(self, delivery_id: str, target: DeliveryStatus | str) -> DeliveryRequest:
        """Move an assigned request one step forward.

        Only picked_up, in_transit and delivered are reachable here, each
        from its immediate predecessor. Reaching delivered stamps the delivery
        time, frees the rider and emits the completion event for the ledger.

        Raises:
            InvalidTransitionError: If target is not the next step
            DeliveryNotFoundError: If the request does not exist
        """
        target = self._parse_status(target)
        if target not in PROGRESS_STEPS:
            raise InvalidTransitionError(
                f"{target.value} is not reachable through advance_status",
                {"delivery_id": delivery_id, "target": target.value},
            )
        expected = PROGRESS_STEPS[target]

        with log_delivery_context(delivery_id):
            current = self.get(delivery_id)
            check_transition(current.status, target)
            if current.status != expected:
                raise InvalidTransitionError(
                    f"Invalid transition from {current.status.value} to {target.value}",
                    {"current": current.status.value, "target": target.value},
                )

            now = utc_now()
            fields: dict[str, Any] = {}
            if target == DeliveryStatus.PICKED_UP:
                fields["actual_pickup_time"] = now
            elif target == DeliveryStatus.DELIVERED:
                fields["actual_delivery_time"] = now
                fields["completed_at"] = now

            with (
                unavailable_on_db_error(UnavailableError, "advance delivery status"),
                self._session_factory() as session,
                transaction(session),
            ):
                if not DeliveryRepository(session).transition(
                    delivery_id, expected, target, **fields
                ):
                    raise InvalidTransitionError(
                        f"Delivery {delivery_id} is no longer {expected.value}",
                        {"delivery_id": delivery_id, "expected": expected.value},
                    )
                if target == DeliveryStatus.DELIVERED and current.rider_id:
                    self._directory.release(session, current.rider_id, delivery_id)

            updated = self.get(delivery_id)
            logger.info("Delivery %s is now %s", delivery_id, target.value)
            self._publish(updated, target.to_event_type())
        return updated

    def cancel_request(self, delivery_id: str, reason: str) -> DeliveryRequest:
        """Cancel a request that has not been picked up yet.

        Raises:
            InvalidStateError: If the request is past assigned or already closed
        """
        with log_delivery_context(delivery_id):
            current = self.get(delivery_id)
            if current.status not in CLOSABLE_BY_CANCEL:
                raise InvalidStateError(
                    f"Cannot cancel delivery {delivery_id} in status {current.status.value}",
                    {"delivery_id": delivery_id, "status": current.status.value},
                )
            return self._close(current, DeliveryStatus.CANCELLED, cancellation_reason=reason)

    def fail_request(self, delivery_id: str, reason: str) -> DeliveryRequest:
        """Mark an in-flight request as failed for manual resolution."""
        with log_delivery_context(delivery_id):
            current = self.get(delivery_id)
            return self._close(current, DeliveryStatus.FAILED, failure_reason=reason)

    def _close(
        self,
        current: DeliveryRequest,
        target: DeliveryStatus,
        **fields: Any,
    ) -> DeliveryRequest:
        check_transition(current.status, target)
        if not any(fields.values()):
            raise ValidationError("A reason is required", {"delivery_id": current.id})

        with (
            unavailable_on_db_error(UnavailableError, f"{target.value} delivery"),
            self._session_factory() as session,
            transaction(session),
        ):
            if not DeliveryRepository(session).transition(
                current.id, current.status, target, **fields
            ):
                raise InvalidStateError(
                    f"Delivery {current.id} changed status concurrently",
                    {"delivery_id": current.id, "expected": current.status.value},
                )
            if current.rider_id:
                self._directory.release(session, current.rider_id, current.id)

        updated = self.get(current.id)
        logger.info("Delivery %s %s: %s", current.id, target.value, next(iter(fields.values())))
        self._publish(updated, target.to_event_type())
        return updated

    # --- Helpers ---

    @staticmethod
    def _parse_status(value: DeliveryStatus | str) -> DeliveryStatus:
        try:
            return DeliveryStatus(value)
        except ValueError as e:
            raise InvalidTransitionError(
                f"Unknown delivery status: {value}", {"target": str(value)}
            ) from e

    def _publish(
        self,
        delivery: DeliveryRequest,
        event_type: str,
        eta: int | None = None,
    ) -> None:
        if self._event_bus is None:
            return
        event = DeliveryEvent(
            event_type=event_type,  # type: ignore[arg-type]
            delivery_id=delivery.id,
            tracking_number=delivery.tracking_number,
            timestamp=utc_now(),
            customer_id=delivery.customer_id,
            rider_id=delivery.rider_id,
            rider_earnings=delivery.rider_earnings,
            eta_minutes=eta,
            delivered_at=delivery.actual_delivery_time,
            reason=delivery.cancellation_reason or delivery.failure_reason,
            correlation_id=delivery.id,
        )
        self._event_bus.publish(event)
