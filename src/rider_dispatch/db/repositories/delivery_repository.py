"""Delivery request repository with compare-and-set status updates."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from ...delivery import DeliveryRequest as DeliveryDomain
from ...delivery import DeliveryRequestCreate, DeliveryStatus, DeliveryType
from ...geo.distance import Coordinates
from ..schema import DeliveryRequest, LedgerPosting
from ..utils import ensure_utc, from_cents, to_cents, utc_now

TERMINAL_STATES = {
    DeliveryStatus.DELIVERED.value,
    DeliveryStatus.CANCELLED.value,
    DeliveryStatus.FAILED.value,
}


class DeliveryRepository:
    """Repository for delivery request rows."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        delivery_id: str,
        tracking_number: str,
        payload: DeliveryRequestCreate,
        pickup: Coordinates,
        dropoff: Coordinates,
        total_amount: Decimal,
        rider_earnings: Decimal,
        distance_km: float,
    ) -> None:
        """Insert a pending request. Flushes so a duplicate tracking number fails here."""
        delivery = DeliveryRequest(
            id=delivery_id,
            tracking_number=tracking_number,
            customer_id=payload.customer_id,
            status=DeliveryStatus.PENDING.value,
            delivery_type=payload.delivery_type.value,
            pickup_address=payload.pickup_address,
            pickup_location=pickup.as_storage(),
            pickup_contact_name=payload.pickup_contact_name,
            pickup_contact_phone=payload.pickup_contact_phone,
            pickup_instructions=payload.pickup_instructions,
            delivery_address=payload.delivery_address,
            delivery_location=dropoff.as_storage(),
            delivery_contact_name=payload.delivery_contact_name,
            delivery_contact_phone=payload.delivery_contact_phone,
            delivery_instructions=payload.delivery_instructions,
            package_description=payload.package_description,
            package_weight_kg=payload.package_weight_kg,
            package_value_cents=(
                to_cents(payload.package_value) if payload.package_value is not None else None
            ),
            fragile=payload.fragile,
            base_fee_cents=to_cents(payload.base_fee),
            distance_fee_cents=to_cents(payload.distance_fee),
            express_fee_cents=to_cents(payload.express_fee),
            total_amount_cents=to_cents(total_amount),
            rider_earnings_cents=to_cents(rider_earnings),
            payment_method=payload.payment_method,
            distance_km=distance_km,
            requested_pickup_time=ensure_utc(payload.requested_pickup_time),
        )
        self.session.add(delivery)
        self.session.flush()

    def get(self, delivery_id: str) -> DeliveryDomain | None:
        delivery = self.session.get(DeliveryRequest, delivery_id, populate_existing=True)
        if delivery is None:
            return None
        return self._to_domain(delivery)

    def get_by_tracking_number(self, tracking_number: str) -> DeliveryDomain | None:
        stmt = (
            select(DeliveryRequest)
            .where(DeliveryRequest.tracking_number == tracking_number)
            .execution_options(populate_existing=True)
        )
        delivery = self.session.execute(stmt).scalar_one_or_none()
        if delivery is None:
            return None
        return self._to_domain(delivery)

    def list_by_customer(self, customer_id: str) -> list[DeliveryDomain]:
        stmt = (
            select(DeliveryRequest)
            .where(DeliveryRequest.customer_id == customer_id)
            .order_by(DeliveryRequest.created_at.desc())
        )
        return [self._to_domain(d) for d in self.session.execute(stmt).scalars().all()]

    def list_by_rider(self, rider_id: str) -> list[DeliveryDomain]:
        stmt = (
            select(DeliveryRequest)
            .where(DeliveryRequest.rider_id == rider_id)
            .order_by(DeliveryRequest.created_at.desc())
        )
        return [self._to_domain(d) for d in self.session.execute(stmt).scalars().all()]

    def claim(
        self,
        delivery_id: str,
        rider_id: str,
        eta_minutes: int,
        estimated_duration_minutes: int,
        now: datetime | None = None,
    ) -> bool:
        """pending -> assigned, only if nobody else got there first."""
        stmt = (
            update(DeliveryRequest)
            .where(DeliveryRequest.id == delivery_id)
            .where(DeliveryRequest.status == DeliveryStatus.PENDING.value)
            .where(DeliveryRequest.rider_id.is_(None))
            .values(
                status=DeliveryStatus.ASSIGNED.value,
                rider_id=rider_id,
                assignment_eta_minutes=eta_minutes,
                estimated_duration_minutes=estimated_duration_minutes,
                assigned_at=now or utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def transition(
        self,
        delivery_id: str,
        from_status: DeliveryStatus,
        to_status: DeliveryStatus,
        **fields: Any,
    ) -> bool:
        """Move from_status -> to_status, writing extra columns in the same statement."""
        stmt = (
            update(DeliveryRequest)
            .where(DeliveryRequest.id == delivery_id)
            .where(DeliveryRequest.status == from_status.value)
            .values(status=to_status.value, updated_at=utc_now(), **fields)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def list_unposted_terminal(self, limit: int = 500) -> list[DeliveryDomain]:
        """Terminal requests with a rider that the ledger has not processed yet."""
        posted = exists().where(LedgerPosting.delivery_request_id == DeliveryRequest.id)
        stmt = (
            select(DeliveryRequest)
            .where(DeliveryRequest.status.in_(TERMINAL_STATES))
            .where(DeliveryRequest.rider_id.is_not(None))
            .where(~posted)
            .order_by(DeliveryRequest.updated_at)
            .limit(limit)
        )
        return [self._to_domain(d) for d in self.session.execute(stmt).scalars().all()]

    def _to_domain(self, delivery: DeliveryRequest) -> DeliveryDomain:
        """Convert ORM model to domain model."""
        return DeliveryDomain(
            id=delivery.id,
            tracking_number=delivery.tracking_number,
            customer_id=delivery.customer_id,
            rider_id=delivery.rider_id,
            status=DeliveryStatus(delivery.status),
            delivery_type=DeliveryType(delivery.delivery_type),
            pickup_address=delivery.pickup_address,
            pickup_location=Coordinates.from_storage(delivery.pickup_location),
            pickup_contact_name=delivery.pickup_contact_name,
            pickup_contact_phone=delivery.pickup_contact_phone,
            pickup_instructions=delivery.pickup_instructions,
            delivery_address=delivery.delivery_address,
            delivery_location=Coordinates.from_storage(delivery.delivery_location),
            delivery_contact_name=delivery.delivery_contact_name,
            delivery_contact_phone=delivery.delivery_contact_phone,
            delivery_instructions=delivery.delivery_instructions,
            package_description=delivery.package_description,
            package_weight_kg=delivery.package_weight_kg,
            package_value=(
                from_cents(delivery.package_value_cents)
                if delivery.package_value_cents is not None
                else None
            ),
            fragile=delivery.fragile,
            base_fee=from_cents(delivery.base_fee_cents),
            distance_fee=from_cents(delivery.distance_fee_cents),
            express_fee=from_cents(delivery.express_fee_cents),
            total_amount=from_cents(delivery.total_amount_cents),
            rider_earnings=from_cents(delivery.rider_earnings_cents),
            payment_method=delivery.payment_method,
            payment_status=delivery.payment_status,
            distance_km=delivery.distance_km,
            estimated_duration_minutes=delivery.estimated_duration_minutes,
            assignment_eta_minutes=delivery.assignment_eta_minutes,
            cancellation_reason=delivery.cancellation_reason,
            failure_reason=delivery.failure_reason,
            requested_pickup_time=ensure_utc(delivery.requested_pickup_time),
            actual_pickup_time=ensure_utc(delivery.actual_pickup_time),
            actual_delivery_time=ensure_utc(delivery.actual_delivery_time),
            assigned_at=ensure_utc(delivery.assigned_at),
            completed_at=ensure_utc(delivery.completed_at),
            created_at=ensure_utc(delivery.created_at),
        )
