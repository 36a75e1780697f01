from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ...geo.distance import Coordinates
from ...rider import RiderRegistration
from ..auth import verify_api_key
from ..dependencies import CoordinatorDep, DirectoryDep, MatchEngineDep
from ..models.deliveries import DeliveryResponse
from ..models.riders import (
    LocationUpdateRequest,
    LocationUpdateResponse,
    NearbyRiderResponse,
    OnlineToggleRequest,
    RiderResponse,
    RiderStatusRequest,
)

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/nearby", response_model=list[NearbyRiderResponse])
def find_nearby_riders(
    match_engine: MatchEngineDep,
    lat: Annotated[float, Query()],
    lng: Annotated[float, Query()],
    radius_km: Annotated[float | None, Query(gt=0)] = None,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[NearbyRiderResponse]:
    """Ranked riders who can reach the given point, nearest first."""
    candidates = match_engine.find_candidates(Coordinates(lat, lng), radius_km, limit)
    return [
        NearbyRiderResponse(
            rider_id=c.rider_id,
            full_name=c.full_name,
            vehicle_class=c.vehicle_class,
            rating=c.rating,
            lat=c.location.lat,
            lng=c.location.lng,
            distance_km=round(c.distance_km, 2),
            eta_minutes=c.eta_minutes,
        )
        for c in candidates
    ]


@router.post("", response_model=RiderResponse, status_code=status.HTTP_201_CREATED)
def register_rider(body: RiderRegistration, directory: DirectoryDep) -> RiderResponse:
    return RiderResponse.from_domain(directory.register(body))


@router.get("/{rider_id}", response_model=RiderResponse)
def get_rider(rider_id: str, directory: DirectoryDep) -> RiderResponse:
    return RiderResponse.from_domain(directory.get(rider_id))


@router.get("/{rider_id}/deliveries", response_model=list[DeliveryResponse])
def list_rider_deliveries(
    rider_id: str, directory: DirectoryDep, coordinator: CoordinatorDep
) -> list[DeliveryResponse]:
    """Delivery requests assigned to the rider, newest first."""
    directory.get(rider_id)
    return [DeliveryResponse.from_domain(d) for d in coordinator.list_for_rider(rider_id)]


@router.put("/{rider_id}/status", response_model=RiderResponse)
def set_rider_status(
    rider_id: str, body: RiderStatusRequest, directory: DirectoryDep
) -> RiderResponse:
    return RiderResponse.from_domain(directory.set_status(rider_id, body.status))


@router.post("/{rider_id}/location", response_model=LocationUpdateResponse)
def set_rider_location(
    rider_id: str, body: LocationUpdateRequest, directory: DirectoryDep
) -> LocationUpdateResponse:
    """Heartbeat location update; updated is false when the position did not change."""
    updated = directory.set_location(rider_id, Coordinates(body.lat, body.lng))
    return LocationUpdateResponse(rider_id=rider_id, updated=updated)


@router.post("/{rider_id}/online", response_model=RiderResponse)
def set_rider_online(
    rider_id: str, body: OnlineToggleRequest, directory: DirectoryDep
) -> RiderResponse:
    location = (
        Coordinates(body.lat, body.lng) if body.lat is not None and body.lng is not None else None
    )
    return RiderResponse.from_domain(directory.set_online(rider_id, body.is_online, location))
