"""Tests for the exception hierarchy."""

import pytest

from rider_dispatch.core.exceptions import (
    AlreadyAssignedError,
    CancelWindowClosedError,
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


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test that exception classes follow the correct inheritance."""

    def test_unavailable_errors_are_transient(self):
        assert issubclass(UnavailableError, TransientError)
        assert issubclass(DirectoryUnavailableError, UnavailableError)
        assert issubclass(LedgerUnavailableError, UnavailableError)

    def test_validation_errors_are_permanent(self):
        assert issubclass(ValidationError, PermanentError)
        assert issubclass(InvalidCoordinateError, ValidationError)
        assert issubclass(InvalidPayloadError, ValidationError)

    def test_state_errors(self):
        assert issubclass(InvalidTransitionError, InvalidStateError)
        assert issubclass(AlreadyAssignedError, InvalidStateError)
        assert issubclass(InvalidStateError, StateError)
        assert issubclass(EditWindowClosedError, StateError)
        assert issubclass(CancelWindowClosedError, StateError)
        assert not issubclass(EditWindowClosedError, InvalidStateError)

    def test_not_found_errors(self):
        assert issubclass(RiderNotFoundError, NotFoundError)
        assert issubclass(NotFoundError, PermanentError)

    def test_tracking_exhaustion_is_permanent(self):
        assert issubclass(TrackingNumberExhaustedError, PermanentError)

    def test_no_rider_available_is_a_business_outcome(self):
        assert issubclass(NoRiderAvailableError, DispatchError)
        assert not issubclass(NoRiderAvailableError, TransientError)
        assert not issubclass(NoRiderAvailableError, PermanentError)


@pytest.mark.unit
class TestExceptionAttributes:
    """Test exception message and details handling."""

    def test_stores_message(self):
        err = DispatchError("test message")
        assert err.message == "test message"
        assert str(err) == "test message"

    def test_default_details_is_empty_dict(self):
        assert DispatchError("test").details == {}

    def test_subclass_keeps_details(self):
        err = RiderNotFoundError("missing", details={"rider_id": "r1"})
        assert err.message == "missing"
        assert err.details == {"rider_id": "r1"}


@pytest.mark.unit
class TestExceptionCatching:
    def test_catch_unavailable_as_transient(self):
        with pytest.raises(TransientError):
            raise LedgerUnavailableError("locked")

    def test_catch_transition_as_invalid_state(self):
        with pytest.raises(InvalidStateError):
            raise InvalidTransitionError("picked_up -> cancelled")
