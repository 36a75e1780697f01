from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ...delivery import DeliveryRequest, DeliveryStatus, DeliveryType


class DeliveryCreatedResponse(BaseModel):
    id: str
    tracking_number: str


class DeliveryResponse(BaseModel):
    id: str
    tracking_number: str
    customer_id: str
    rider_id: str | None
    status: DeliveryStatus
    delivery_type: DeliveryType
    pickup_address: str
    pickup_lat: float
    pickup_lng: float
    delivery_address: str
    delivery_lat: float
    delivery_lng: float
    package_description: str | None
    fragile: bool
    total_amount: Decimal
    rider_earnings: Decimal
    payment_method: str
    payment_status: str
    distance_km: float | None
    estimated_duration_minutes: int | None
    assignment_eta_minutes: int | None
    cancellation_reason: str | None
    failure_reason: str | None
    assigned_at: datetime | None
    actual_pickup_time: datetime | None
    actual_delivery_time: datetime | None
    completed_at: datetime | None
    created_at: datetime | None

    @classmethod
    def from_domain(cls, delivery: DeliveryRequest) -> "DeliveryResponse":
        return cls(
            **delivery.model_dump(
                exclude={"pickup_location", "delivery_location"},
            ),
            pickup_lat=delivery.pickup_location.lat,
            pickup_lng=delivery.pickup_location.lng,
            delivery_lat=delivery.delivery_location.lat,
            delivery_lng=delivery.delivery_location.lng,
        )


class AssignRequest(BaseModel):
    max_radius_km: float | None = Field(None, gt=0)


class AssignmentResponse(BaseModel):
    rider_id: str
    eta_minutes: int
    distance_km: float


class StatusUpdateRequest(BaseModel):
    status: DeliveryStatus


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
