"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from ..dispatch import BookingService, DispatchCoordinator
from ..ledger import EarningsLedger
from ..matching import MatchEngine, RiderDirectory


def get_coordinator(request: Request) -> DispatchCoordinator:
    """Retrieve DispatchCoordinator from app state."""
    return request.app.state.coordinator  # type: ignore[no-any-return]


def get_directory(request: Request) -> RiderDirectory:
    """Retrieve RiderDirectory from app state."""
    return request.app.state.directory  # type: ignore[no-any-return]


def get_match_engine(request: Request) -> MatchEngine:
    return request.app.state.match_engine  # type: ignore[no-any-return]


def get_ledger(request: Request) -> EarningsLedger:
    return request.app.state.ledger  # type: ignore[no-any-return]


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.bookings  # type: ignore[no-any-return]


CoordinatorDep = Annotated[DispatchCoordinator, Depends(get_coordinator)]
DirectoryDep = Annotated[RiderDirectory, Depends(get_directory)]
MatchEngineDep = Annotated[MatchEngine, Depends(get_match_engine)]
LedgerDep = Annotated[EarningsLedger, Depends(get_ledger)]
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
