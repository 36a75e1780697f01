from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ...booking import BookingCreate, BookingUpdate
from ..auth import verify_api_key
from ..dependencies import BookingServiceDep
from ..models.bookings import BookingCancelRequest, BookingResponse, BookingStatusRequest

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("", response_model=list[BookingResponse])
def list_customer_bookings(
    customer_id: Annotated[str, Query(min_length=1)], bookings: BookingServiceDep
) -> list[BookingResponse]:
    return [BookingResponse.from_domain(b) for b in bookings.list_for_customer(customer_id)]


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(body: BookingCreate, bookings: BookingServiceDep) -> BookingResponse:
    return BookingResponse.from_domain(bookings.create_booking(body))


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: str, bookings: BookingServiceDep) -> BookingResponse:
    return BookingResponse.from_domain(bookings.get_booking(booking_id))


@router.patch("/{booking_id}", response_model=BookingResponse)
def edit_booking(
    booking_id: str, body: BookingUpdate, bookings: BookingServiceDep
) -> BookingResponse:
    """Partial edit; rejected with 409 once inside the edit window."""
    return BookingResponse.from_domain(bookings.edit_booking(booking_id, body))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str, body: BookingCancelRequest, bookings: BookingServiceDep
) -> BookingResponse:
    return BookingResponse.from_domain(bookings.cancel_booking(booking_id, body.reason))


@router.post("/{booking_id}/status", response_model=BookingResponse)
def advance_booking(
    booking_id: str, body: BookingStatusRequest, bookings: BookingServiceDep
) -> BookingResponse:
    return BookingResponse.from_domain(bookings.advance_booking(booking_id, body.status))
