from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ...delivery import DeliveryRequestCreate
from ..auth import verify_api_key
from ..dependencies import CoordinatorDep
from ..models.deliveries import (
    AssignmentResponse,
    AssignRequest,
    DeliveryCreatedResponse,
    DeliveryResponse,
    ReasonRequest,
    StatusUpdateRequest,
)

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("", response_model=list[DeliveryResponse])
def list_customer_deliveries(
    customer_id: Annotated[str, Query(min_length=1)], coordinator: CoordinatorDep
) -> list[DeliveryResponse]:
    """A customer's delivery requests, newest first."""
    return [DeliveryResponse.from_domain(d) for d in coordinator.list_for_customer(customer_id)]


@router.post("", response_model=DeliveryCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_delivery(
    body: DeliveryRequestCreate, coordinator: CoordinatorDep
) -> DeliveryCreatedResponse:
    """Create a pending delivery request and allocate its tracking number."""
    delivery = coordinator.create_delivery_request(body)
    return DeliveryCreatedResponse(id=delivery.id, tracking_number=delivery.tracking_number)


@router.get("/tracking/{tracking_number}", response_model=DeliveryResponse)
def get_delivery_by_tracking_number(
    tracking_number: str, coordinator: CoordinatorDep
) -> DeliveryResponse:
    return DeliveryResponse.from_domain(coordinator.get_by_tracking_number(tracking_number))


@router.get("/{delivery_id}", response_model=DeliveryResponse)
def get_delivery(delivery_id: str, coordinator: CoordinatorDep) -> DeliveryResponse:
    return DeliveryResponse.from_domain(coordinator.get(delivery_id))


@router.post("/{delivery_id}/assign", response_model=AssignmentResponse)
def assign_rider(
    delivery_id: str,
    coordinator: CoordinatorDep,
    body: AssignRequest | None = None,
) -> AssignmentResponse:
    """Assign the nearest available rider.

    Returns 409 with code no_rider_available when nobody qualifies; the
    request stays pending and can be retried.
    """
    radius = body.max_radius_km if body else None
    assignment = coordinator.assign_rider(delivery_id, radius)
    return AssignmentResponse(
        rider_id=assignment.rider_id,
        eta_minutes=assignment.eta_minutes,
        distance_km=assignment.distance_km,
    )


@router.post("/{delivery_id}/status", response_model=DeliveryResponse)
def advance_status(
    delivery_id: str, body: StatusUpdateRequest, coordinator: CoordinatorDep
) -> DeliveryResponse:
    return DeliveryResponse.from_domain(coordinator.advance_status(delivery_id, body.status))


@router.post("/{delivery_id}/cancel", response_model=DeliveryResponse)
def cancel_delivery(
    delivery_id: str, body: ReasonRequest, coordinator: CoordinatorDep
) -> DeliveryResponse:
    return DeliveryResponse.from_domain(coordinator.cancel_request(delivery_id, body.reason))


@router.post("/{delivery_id}/fail", response_model=DeliveryResponse)
def fail_delivery(
    delivery_id: str, body: ReasonRequest, coordinator: CoordinatorDep
) -> DeliveryResponse:
    return DeliveryResponse.from_domain(coordinator.fail_request(delivery_id, body.reason))
