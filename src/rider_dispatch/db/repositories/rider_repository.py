"""Rider repository: profile reads and atomic conditional updates."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from ...earnings import month_bucket
from ...geo.distance import Coordinates
from ...geo.eta import VehicleClass
from ...rider import Rider as RiderDomain
from ...rider import RiderFilter, RiderRegistration, RiderStatus
from ..schema import Rider
from ..utils import ensure_utc, from_cents, utc_now

BASIS_POINTS = Decimal("100")


class RiderRepository:
    """Repository for rider rows.

    Every mutation is a single UPDATE statement whose WHERE clause carries
    the precondition, so concurrent callers never overwrite each other.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(self, rider_id: str, registration: RiderRegistration) -> None:
        rider = Rider(
            id=rider_id,
            full_name=registration.full_name,
            phone=registration.phone,
            email=registration.email,
            vehicle_class=registration.vehicle_class.value,
            rating=registration.rating,
            status=RiderStatus.PENDING.value,
            is_online=False,
            service_radius_km=registration.service_radius_km,
            commission_rate_bp=int(registration.commission_rate * BASIS_POINTS),
        )
        self.session.add(rider)
        self.session.flush()

    def get(self, rider_id: str) -> RiderDomain | None:
        rider = self.session.get(Rider, rider_id, populate_existing=True)
        if rider is None:
            return None
        return self._to_domain(rider)

    def exists(self, rider_id: str) -> bool:
        stmt = select(Rider.id).where(Rider.id == rider_id)
        return self.session.execute(stmt).first() is not None

    def set_location(
        self,
        rider_id: str,
        location: Coordinates,
        h3_cell: str,
        now: datetime | None = None,
    ) -> bool:
        """Store a new location; returns False when it equals the stored one."""
        encoded = location.as_storage()
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .where((Rider.location.is_(None)) | (Rider.location != encoded))
            .values(location=encoded, h3_cell=h3_cell, last_location_update=now or utc_now())
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def set_online(self, rider_id: str, is_online: bool, now: datetime | None = None) -> bool:
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .values(is_online=is_online, last_active_at=now or utc_now())
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def set_status(self, rider_id: str, status: RiderStatus, now: datetime | None = None) -> bool:
        values: dict[str, object] = {"status": status.value}
        if status in (RiderStatus.APPROVED, RiderStatus.ACTIVE):
            values["approved_at"] = case(
                (Rider.approved_at.is_(None), now or utc_now()),
                else_=Rider.approved_at,
            )
        if status in (RiderStatus.INACTIVE, RiderStatus.SUSPENDED):
            values["is_online"] = False
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def list_eligible(self, rider_filter: RiderFilter) -> list[RiderDomain]:
        stmt = select(Rider)
        if rider_filter.online_only:
            stmt = stmt.where(Rider.is_online.is_(True))
        if rider_filter.status is not None:
            stmt = stmt.where(Rider.status == rider_filter.status.value)
        if rider_filter.require_location:
            stmt = stmt.where(Rider.location.is_not(None))
        if rider_filter.exclude_busy:
            stmt = stmt.where(Rider.active_delivery_id.is_(None))
        if rider_filter.cells is not None:
            stmt = stmt.where(Rider.h3_cell.in_(rider_filter.cells))
        if rider_filter.vehicle_classes:
            stmt = stmt.where(
                Rider.vehicle_class.in_([v.value for v in rider_filter.vehicle_classes])
            )
        stmt = stmt.order_by(Rider.id).execution_options(populate_existing=True)
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def reserve(self, rider_id: str, delivery_id: str) -> bool:
        """Claim an idle, online, active rider for a delivery."""
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .where(Rider.active_delivery_id.is_(None))
            .where(Rider.is_online.is_(True))
            .where(Rider.status == RiderStatus.ACTIVE.value)
            .values(active_delivery_id=delivery_id, last_active_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def release(self, rider_id: str, delivery_id: str) -> bool:
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .where(Rider.active_delivery_id == delivery_id)
            .values(active_delivery_id=None)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def increment_completion(
        self,
        rider_id: str,
        amount_cents: int,
        month_year: str,
        now: datetime | None = None,
    ) -> bool:
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .values(
                total_deliveries=Rider.total_deliveries + 1,
                completed_deliveries=Rider.completed_deliveries + 1,
                last_active_at=now or utc_now(),
                **self._earnings_increment(amount_cents, month_year),
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def increment_cancellation(self, rider_id: str, now: datetime | None = None) -> bool:
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .values(
                total_deliveries=Rider.total_deliveries + 1,
                cancelled_deliveries=Rider.cancelled_deliveries + 1,
                last_active_at=now or utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def increment_earnings(self, rider_id: str, amount_cents: int, month_year: str) -> bool:
        stmt = (
            update(Rider)
            .where(Rider.id == rider_id)
            .values(**self._earnings_increment(amount_cents, month_year))
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def _earnings_increment(self, amount_cents: int, month_year: str) -> dict[str, object]:
        # YYYY-MM buckets order lexically. A later month restarts the monthly
        # counter; a back-dated posting only moves the lifetime total.
        newer = Rider.earnings_month.is_(None) | (Rider.earnings_month < month_year)
        return {
            "earnings_total_cents": Rider.earnings_total_cents + amount_cents,
            "earnings_this_month_cents": case(
                (
                    Rider.earnings_month == month_year,
                    Rider.earnings_this_month_cents + amount_cents,
                ),
                (newer, amount_cents),
                else_=Rider.earnings_this_month_cents,
            ),
            "earnings_month": case((newer, month_year), else_=Rider.earnings_month),
        }

    @staticmethod
    def _this_month(rider: Rider) -> Decimal:
        """Monthly earnings, or zero once the stored month has passed."""
        if rider.earnings_month != month_bucket(utc_now().date()):
            return Decimal("0.00")
        return from_cents(rider.earnings_this_month_cents)

    def _to_domain(self, rider: Rider) -> RiderDomain:
        return RiderDomain(
            id=rider.id,
            full_name=rider.full_name,
            phone=rider.phone,
            email=rider.email,
            vehicle_class=VehicleClass(rider.vehicle_class),
            rating=rider.rating,
            status=RiderStatus(rider.status),
            is_online=rider.is_online,
            location=Coordinates.from_storage(rider.location) if rider.location else None,
            service_radius_km=rider.service_radius_km,
            commission_rate=Decimal(rider.commission_rate_bp) / BASIS_POINTS,
            earnings_total=from_cents(rider.earnings_total_cents),
            earnings_this_month=self._this_month(rider),
            total_deliveries=rider.total_deliveries,
            completed_deliveries=rider.completed_deliveries,
            cancelled_deliveries=rider.cancelled_deliveries,
            active_delivery_id=rider.active_delivery_id,
            last_location_update=ensure_utc(rider.last_location_update),
            last_active_at=ensure_utc(rider.last_active_at),
            approved_at=ensure_utc(rider.approved_at),
            created_at=ensure_utc(rider.created_at),
        )
