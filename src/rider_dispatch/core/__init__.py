"""Core utilities: exception hierarchy and retry helpers."""

from .exceptions import (
    AddressNotFoundError,
    AlreadyAssignedError,
    BookingNotFoundError,
    CancelWindowClosedError,
    ConfigurationError,
    DeliveryNotFoundError,
    DirectoryUnavailableError,
    DispatchError,
    EditWindowClosedError,
    InvalidCoordinateError,
    InvalidPayloadError,
    InvalidStateError,
    InvalidTransitionError,
    LedgerUnavailableError,
    NoRiderAvailableError,
    NotFoundError,
    PermanentError,
    RiderNotFoundError,
    StateError,
    TrackingNumberExhaustedError,
    TransientError,
    UnavailableError,
    ValidationError,
)
from .retry import RetryConfig, with_retry_sync

__all__ = [
    "AddressNotFoundError",
    "AlreadyAssignedError",
    "BookingNotFoundError",
    "CancelWindowClosedError",
    "ConfigurationError",
    "DeliveryNotFoundError",
    "DirectoryUnavailableError",
    "DispatchError",
    "EditWindowClosedError",
    "InvalidCoordinateError",
    "InvalidPayloadError",
    "InvalidStateError",
    "InvalidTransitionError",
    "LedgerUnavailableError",
    "NoRiderAvailableError",
    "NotFoundError",
    "PermanentError",
    "RetryConfig",
    "RiderNotFoundError",
    "StateError",
    "TrackingNumberExhaustedError",
    "TransientError",
    "UnavailableError",
    "ValidationError",
    "with_retry_sync",
]
