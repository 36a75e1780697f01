"""FastAPI application factory for the dispatch service."""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.exceptions import (
    AlreadyAssignedError,
    CancelWindowClosedError,
    ConfigurationError,
    DispatchError,
    EditWindowClosedError,
    InvalidTransitionError,
    NoRiderAvailableError,
    NotFoundError,
    StateError,
    TrackingNumberExhaustedError,
    TransientError,
    ValidationError,
)
from ..dispatch import BookingService, DispatchCoordinator
from ..ledger import EarningsLedger
from ..matching import MatchEngine, RiderDirectory
from ..settings import Settings
from .auth import verify_api_key
from .middleware.security_headers import SecurityHeadersMiddleware
from .routes import bookings, deliveries, earnings, riders

logger = logging.getLogger(__name__)

RETRY_LATER = "Service temporarily unavailable, try again"

# Most specific first; the first matching class wins
ERROR_RESPONSES: list[tuple[type[DispatchError], int, str]] = [
    (NoRiderAvailableError, 409, "no_rider_available"),
    (AlreadyAssignedError, 409, "already_assigned"),
    (InvalidTransitionError, 409, "invalid_transition"),
    (EditWindowClosedError, 409, "edit_window_closed"),
    (CancelWindowClosedError, 409, "cancel_window_closed"),
    (StateError, 409, "invalid_state"),
    (ValidationError, 422, "validation_error"),
    (NotFoundError, 404, "not_found"),
    (TrackingNumberExhaustedError, 503, "tracking_number_exhausted"),
    (TransientError, 503, "unavailable"),
    (ConfigurationError, 500, "configuration_error"),
]


def error_response(exc: DispatchError) -> JSONResponse:
    """Translate a dispatch error into its HTTP response."""
    for error_cls, status_code, code in ERROR_RESPONSES:
        if isinstance(exc, error_cls):
            break
    else:
        status_code, code = 500, "internal_error"

    detail = RETRY_LATER if status_code == 503 else exc.message
    body: dict[str, object] = {"detail": detail, "code": code}
    if status_code < 500 and exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    coordinator: DispatchCoordinator,
    directory: RiderDirectory,
    match_engine: MatchEngine,
    ledger: EarningsLedger,
    bookings_service: BookingService,
    settings: Settings,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        coordinator: DispatchCoordinator for delivery requests
        directory: RiderDirectory for rider records
        match_engine: MatchEngine for nearby rider lookups
        ledger: EarningsLedger for rider earnings
        bookings_service: BookingService for service bookings
        settings: Loaded service settings
    """
    app = FastAPI(
        title="Rider Dispatch API",
        version=__version__,
        description="Delivery requests, rider matching, bookings and rider earnings",
    )

    # Set dependencies immediately so they're available for testing
    app.state.coordinator = coordinator
    app.state.directory = directory
    app.state.match_engine = match_engine
    app.state.ledger = ledger
    app.state.bookings = bookings_service
    app.state.settings = settings
    app.state.api_key = settings.api.key

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
        response = error_response(exc)
        if response.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return response

    origins = settings.cors.origins.split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(deliveries.router, prefix="/deliveries", tags=["deliveries"])
    app.include_router(riders.router, prefix="/riders", tags=["riders"])
    app.include_router(earnings.router, tags=["earnings"])
    app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        return {"status": "healthy"}

    @app.get("/auth/validate")
    async def validate_api_key_endpoint(
        _: str = Depends(verify_api_key),
    ) -> dict[str, str]:
        """Returns 200 if the X-API-Key header is valid, 401 otherwise."""
        return {"status": "authenticated"}

    return app
