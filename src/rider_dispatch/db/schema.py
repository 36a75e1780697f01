"""SQLAlchemy ORM models for dispatch persistence.

Locations are stored as "lat,lng" strings and money as integer cents so that
counter updates can be expressed as exact SQL increments.
"""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .utils import utc_now


class Base(DeclarativeBase):
    pass


class Rider(Base):
    __tablename__ = "riders"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vehicle_class: Mapped[str] = mapped_column(String(20), nullable=False)
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    is_online: Mapped[bool] = mapped_column(Boolean, default=False)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    h3_cell: Mapped[str | None] = mapped_column(String, nullable=True)
    service_radius_km: Mapped[float] = mapped_column(Float, default=10.0)
    commission_rate_bp: Mapped[int] = mapped_column(Integer, default=1500)
    earnings_total_cents: Mapped[int] = mapped_column(Integer, default=0)
    earnings_this_month_cents: Mapped[int] = mapped_column(Integer, default=0)
    earnings_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    total_deliveries: Mapped[int] = mapped_column(Integer, default=0)
    completed_deliveries: Mapped[int] = mapped_column(Integer, default=0)
    cancelled_deliveries: Mapped[int] = mapped_column(Integer, default=0)
    active_delivery_id: Mapped[str | None] = mapped_column(String, nullable=True)
    last_location_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    __table_args__ = (
        CheckConstraint("service_radius_km > 0", name="ck_rider_service_radius"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_rider_rating"),
        CheckConstraint(
            "completed_deliveries + cancelled_deliveries <= total_deliveries",
            name="ck_rider_delivery_counts",
        ),
        CheckConstraint("earnings_total_cents >= 0", name="ck_rider_earnings_total"),
        Index("idx_rider_dispatch", "is_online", "status"),
        Index("idx_rider_h3_cell", "h3_cell"),
    )


class DeliveryRequest(Base):
    __tablename__ = "delivery_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tracking_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    customer_id: Mapped[str] = mapped_column(String, nullable=False)
    rider_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("riders.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    delivery_type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")

    pickup_address: Mapped[str] = mapped_column(Text, nullable=False)
    pickup_location: Mapped[str] = mapped_column(String, nullable=False)
    pickup_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pickup_contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    pickup_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_location: Mapped[str] = mapped_column(String, nullable=False)
    delivery_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    delivery_contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    delivery_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    package_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    package_weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    package_value_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fragile: Mapped[bool] = mapped_column(Boolean, default=False)

    base_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    distance_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    express_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    rider_earnings_cents: Mapped[int] = mapped_column(Integer, default=0)
    payment_method: Mapped[str] = mapped_column(String(20), default="cash")
    payment_status: Mapped[str] = mapped_column(String(20), default="pending")

    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assignment_eta_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    requested_pickup_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_pickup_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_delivery_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'assigned', 'picked_up', 'in_transit', "
            "'delivered', 'cancelled', 'failed')",
            name="ck_delivery_status",
        ),
        CheckConstraint(
            "base_fee_cents >= 0 AND distance_fee_cents >= 0 AND express_fee_cents >= 0 "
            "AND total_amount_cents >= 0 AND rider_earnings_cents >= 0",
            name="ck_delivery_fees",
        ),
        Index("idx_delivery_status", "status"),
        Index("idx_delivery_rider", "rider_id"),
        Index("idx_delivery_customer", "customer_id"),
    )


class EarningsEntry(Base):
    __tablename__ = "earnings_entries"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    rider_id: Mapped[str] = mapped_column(
        String, ForeignKey("riders.id", ondelete="CASCADE"), nullable=False
    )
    delivery_request_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("delivery_requests.id", ondelete="SET NULL"), nullable=True
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    earning_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    earned_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, default=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_batch_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: utc_now())

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_earnings_amount"),
        CheckConstraint(
            "earning_type IN ('delivery_fee', 'tip', 'bonus', 'incentive', 'adjustment')",
            name="ck_earnings_type",
        ),
        Index("idx_earnings_rider_month", "rider_id", "month_year"),
        Index("idx_earnings_unpaid", "paid"),
    )


class LedgerPosting(Base):
    """One row per delivery request the ledger has processed."""

    __tablename__ = "ledger_postings"

    delivery_request_id: Mapped[str] = mapped_column(String, primary_key=True)
    rider_id: Mapped[str] = mapped_column(String, nullable=False)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    earnings_entry_id: Mapped[str | None] = mapped_column(String, nullable=True)
    posted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: utc_now())


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    customer_id: Mapped[str] = mapped_column(String, nullable=False)
    services_json: Mapped[str] = mapped_column(Text, nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivery_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_method: Mapped[str] = mapped_column(String(20), default="cash")
    payment_status: Mapped[str] = mapped_column(String(20), default="pending")
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    __table_args__ = (
        CheckConstraint("total_amount_cents > 0", name="ck_booking_total"),
        Index("idx_booking_customer", "customer_id"),
        Index("idx_booking_status", "status"),
    )


class ServiceMetadata(Base):
    __tablename__ = "service_metadata"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )
