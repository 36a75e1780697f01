"""Rider directory: live location, availability and eligibility lookups."""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from ..core.exceptions import DirectoryUnavailableError, RiderNotFoundError
from ..db.repositories import RiderRepository
from ..db.transaction import transaction, unavailable_on_db_error
from ..geo.distance import Coordinates, validate_coordinates
from ..geo.spatial_index import cell_for
from ..rider import Rider, RiderFilter, RiderRegistration, RiderStatus

logger = logging.getLogger(__name__)


class RiderDirectory:
    """Owns rider records.

    Location and availability are written by the rider's own heartbeat calls.
    Delivery counters and earnings are written only through record_completion
    and record_cancellation, which the earnings ledger calls inside its own
    transaction.
    """

    def __init__(self, session_factory: sessionmaker[Any], h3_resolution: int = 7):
        self._session_factory = session_factory
        self._h3_resolution = h3_resolution

    @property
    def h3_resolution(self) -> int:
        return self._h3_resolution

    def register(self, registration: RiderRegistration) -> Rider:
        rider_id = str(uuid.uuid4())
        with (
            unavailable_on_db_error(DirectoryUnavailableError, "register rider"),
            self._session_factory() as session,
        ):
            with transaction(session):
                RiderRepository(session).create(rider_id, registration)
            rider = RiderRepository(session).get(rider_id)
        assert rider is not None
        logger.info("Registered rider %s (%s)", rider_id, registration.vehicle_class.value)
        return rider

    def get(self, rider_id: str) -> Rider:
        with (
            unavailable_on_db_error(DirectoryUnavailableError, "get rider"),
            self._session_factory() as session,
        ):
            rider = RiderRepository(session).get(rider_id)
        if rider is None:
            raise RiderNotFoundError(f"Rider not found: {rider_id}", {"rider_id": rider_id})
        return rider

    def set_location(self, rider_id: str, coordinates: Coordinates) -> bool:
        """Update a rider's location.

        The location-changed timestamp is written only when the coordinates
        differ from the stored ones.

        Returns:
            True if a new location was written, False if it was unchanged

        Raises:
            InvalidCoordinateError: If the coordinates are invalid
            RiderNotFoundError: If the rider does not exist
            DirectoryUnavailableError: If storage timed out
        """
        point = validate_coordinates(coordinates.lat, coordinates.lng)
        with (
            unavailable_on_db_error(DirectoryUnavailableError, "set rider location"),
            self._session_factory() as session,
        ):
            with transaction(session):
                repo = RiderRepository(session)
                changed = repo.set_location(rider_id, point, cell_for(point, self._h3_resolution))
                if not changed and not repo.exists(rider_id):
                    raise RiderNotFoundError(
                        f"Rider not found: {rider_id}", {"rider_id": rider_id}
                    )
        if changed:
            logger.debug("Rider %s moved to %s", rider_id, point.as_storage())
        return changed

    def set_online(
        self,
        rider_id: str,
        is_online: bool,
        coordinates: Coordinates | None = None,
    ) -> Rider:
        """Toggle availability, optionally updating location in the same transaction."""
        point = (
            validate_coordinates(coordinates.lat, coordinates.lng)
            if coordinates is not None
            else None
        )
        with (
            unavailable_on_db_error(DirectoryUnavailableError, "set rider online"),
            self._session_factory() as session,
        ):
            with transaction(session):
                repo = RiderRepository(session)
                if not repo.set_online(rider_id, is_online):
                    raise RiderNotFoundError(
                        f"Rider not found: {rider_id}", {"rider_id": rider_id}
                    )
                if point is not None:
                    repo.set_location(rider_id, point, cell_for(point, self._h3_resolution))
            rider = RiderRepository(session).get(rider_id)
        assert rider is not None
        logger.info("Rider %s is now %s", rider_id, "online" if is_online else "offline")
        return rider

    def set_status(self, rider_id: str, status: RiderStatus) -> Rider:
        """Change account status. Deactivating or suspending also takes the rider offline."""
        with (
            unavailable_on_db_error(DirectoryUnavailableError, "set rider status"),
            self._session_factory() as session,
        ):
            with transaction(session):
                if not RiderRepository(session).set_status(rider_id, status):
                    raise RiderNotFoundError(
                        f"Rider not found: {rider_id}", {"rider_id": rider_id}
                    )
            rider = RiderRepository(session).get(rider_id)
        assert rider is not None
        logger.info("Rider %s status set to %s", rider_id, status.value)
        return rider

    def list_eligible(self, rider_filter: RiderFilter | None = None) -> list[Rider]:
        """Snapshot of riders matching the filter.

        Defaults to online, active, located riders without an active delivery.
        The snapshot may be stale by the time the caller acts on it.
        """
        with (
            unavailable_on_db_error(DirectoryUnavailableError, "list eligible riders"),
            self._session_factory() as session,
        ):
            return RiderRepository(session).list_eligible(rider_filter or RiderFilter())

    def reserve(self, session: Session, rider_id: str, delivery_id: str) -> bool:
        """Claim a rider for a delivery inside the caller's transaction."""
        return RiderRepository(session).reserve(rider_id, delivery_id)

    def release(self, session: Session, rider_id: str, delivery_id: str) -> bool:
        return RiderRepository(session).release(rider_id, delivery_id)

    def record_completion(
        self,
        session: Session,
        rider_id: str,
        amount_cents: int,
        month_year: str,
        now: datetime,
    ) -> None:
        """Count a completed delivery and add its earnings. Ledger use only."""
        repo = RiderRepository(session)
        if not repo.increment_completion(rider_id, amount_cents, month_year, now):
            raise RiderNotFoundError(f"Rider not found: {rider_id}", {"rider_id": rider_id})

    def record_cancellation(self, session: Session, rider_id: str, now: datetime) -> None:
        """Count a cancelled or failed delivery. Ledger use only."""
        if not RiderRepository(session).increment_cancellation(rider_id, now):
            raise RiderNotFoundError(f"Rider not found: {rider_id}", {"rider_id": rider_id})

    def record_earnings(
        self,
        session: Session,
        rider_id: str,
        amount_cents: int,
        month_year: str,
    ) -> None:
        """Add an ad hoc earning (tip, bonus) to the rider totals. Ledger use only."""
        if not RiderRepository(session).increment_earnings(rider_id, amount_cents, month_year):
            raise RiderNotFoundError(f"Rider not found: {rider_id}", {"rider_id": rider_id})
