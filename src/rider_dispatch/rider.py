"""Rider account models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .geo.distance import Coordinates
from .geo.eta import VehicleClass

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
EMAIL_PATTERN = r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"


class RiderStatus(str, Enum):
    """Rider account lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Rider(BaseModel):
    """Point-in-time snapshot of a rider record."""

    id: str
    full_name: str
    phone: str
    email: str | None = None
    vehicle_class: VehicleClass
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    status: RiderStatus = RiderStatus.PENDING
    is_online: bool = False
    location: Coordinates | None = None
    service_radius_km: float = Field(default=10.0, gt=0.0)
    commission_rate: Decimal = Decimal("15.00")
    earnings_total: Decimal = Decimal("0.00")
    earnings_this_month: Decimal = Decimal("0.00")
    total_deliveries: int = 0
    completed_deliveries: int = 0
    cancelled_deliveries: int = 0
    active_delivery_id: str | None = None
    last_location_update: datetime | None = None
    last_active_at: datetime | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_dispatchable(self) -> bool:
        return (
            self.is_online
            and self.status == RiderStatus.ACTIVE
            and self.location is not None
            and self.active_delivery_id is None
        )


class RiderRegistration(BaseModel):
    """Payload accepted when a rider signs up."""

    full_name: str = Field(min_length=2, max_length=255)
    phone: str = Field(pattern=PHONE_PATTERN, max_length=20)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    vehicle_class: VehicleClass
    service_radius_km: float = Field(default=10.0, gt=0.0, le=100.0)
    commission_rate: Decimal = Field(default=Decimal("15.00"), ge=0, le=100)
    rating: float = Field(default=0.0, ge=0.0, le=5.0)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        stripped = v.strip()
        if len(stripped) < 2:
            raise ValueError("Full name must have at least 2 non-blank characters")
        return stripped


class RiderFilter(BaseModel):
    """Eligibility filter for dispatch candidate lookups."""

    online_only: bool = True
    status: RiderStatus | None = RiderStatus.ACTIVE
    require_location: bool = True
    exclude_busy: bool = True
    cells: set[str] | None = None
    vehicle_classes: set[VehicleClass] | None = None
