from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from ...geo.eta import VehicleClass
from ...rider import Rider, RiderStatus


class RiderResponse(BaseModel):
    id: str
    full_name: str
    phone: str
    email: str | None
    vehicle_class: VehicleClass
    rating: float
    status: RiderStatus
    is_online: bool
    lat: float | None
    lng: float | None
    service_radius_km: float
    commission_rate: Decimal
    earnings_total: Decimal
    earnings_this_month: Decimal
    total_deliveries: int
    completed_deliveries: int
    cancelled_deliveries: int
    active_delivery_id: str | None
    last_location_update: datetime | None
    last_active_at: datetime | None

    @classmethod
    def from_domain(cls, rider: Rider) -> "RiderResponse":
        return cls(
            **rider.model_dump(exclude={"location", "approved_at", "created_at"}),
            lat=rider.location.lat if rider.location else None,
            lng=rider.location.lng if rider.location else None,
        )


class NearbyRiderResponse(BaseModel):
    rider_id: str
    full_name: str
    vehicle_class: VehicleClass
    rating: float
    lat: float
    lng: float
    distance_km: float
    eta_minutes: int


class RiderStatusRequest(BaseModel):
    status: RiderStatus


class LocationUpdateRequest(BaseModel):
    lat: float
    lng: float


class LocationUpdateResponse(BaseModel):
    rider_id: str
    updated: bool


class OnlineToggleRequest(BaseModel):
    is_online: bool
    lat: float | None = None
    lng: float | None = None

    @model_validator(mode="after")
    def validate_pair(self) -> "OnlineToggleRequest":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        return self


class AdjustmentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    earning_type: str = Field(..., pattern="^(tip|bonus|incentive|adjustment)$")
    description: str | None = Field(None, max_length=500)
