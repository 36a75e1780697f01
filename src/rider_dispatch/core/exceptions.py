"""Standardized exception hierarchy for the dispatch service."""

from typing import Any


class DispatchError(Exception):
    """Base exception for all dispatch errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(DispatchError):
    """Errors that may succeed on retry."""

    pass


class UnavailableError(TransientError):
    """Backing store timed out or refused the operation."""

    pass


class DirectoryUnavailableError(UnavailableError):
    """Rider directory reads or writes could not complete."""

    pass


class LedgerUnavailableError(UnavailableError):
    """Earnings ledger writes could not complete."""

    pass


class PermanentError(DispatchError):
    """Errors that will not succeed on retry."""

    pass


class ValidationError(PermanentError):
    """Invalid input or data format."""

    pass


class InvalidCoordinateError(ValidationError):
    """Coordinates are NaN, infinite or out of range."""

    pass


class InvalidPayloadError(ValidationError):
    """Request payload failed validation."""

    pass


class NotFoundError(PermanentError):
    """Requested entity does not exist."""

    pass


class RiderNotFoundError(NotFoundError):
    pass


class DeliveryNotFoundError(NotFoundError):
    pass


class BookingNotFoundError(NotFoundError):
    pass


class AddressNotFoundError(NotFoundError):
    """Geocoder could not resolve an address."""

    pass


class StateError(PermanentError):
    """Operation not allowed in the entity's current state."""

    pass


class InvalidStateError(StateError):
    """Entity is not in a state that permits the operation."""

    pass


class InvalidTransitionError(InvalidStateError):
    """Requested status is not adjacent to the current status."""

    pass


class AlreadyAssignedError(InvalidStateError):
    """Delivery request already has a rider."""

    pass


class EditWindowClosedError(StateError):
    """Booking is too close to its scheduled time to edit."""

    pass


class CancelWindowClosedError(StateError):
    """Booking is too close to its scheduled time to cancel."""

    pass


class TrackingNumberExhaustedError(PermanentError):
    """Could not allocate a unique tracking number within the attempt limit."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass


class NoRiderAvailableError(DispatchError):
    """No eligible rider could be assigned. A business outcome, not a fault."""

    pass
