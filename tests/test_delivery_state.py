from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from rider_dispatch.booking import BookingStatus
from rider_dispatch.booking import check_transition as check_booking_transition
from rider_dispatch.core.exceptions import InvalidStateError, InvalidTransitionError
from rider_dispatch.delivery import (
    PROGRESS_STEPS,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    DeliveryRequestCreate,
    DeliveryStatus,
    check_transition,
)


@pytest.mark.unit
@pytest.mark.critical
class TestDeliveryTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED),
            (DeliveryStatus.PENDING, DeliveryStatus.CANCELLED),
            (DeliveryStatus.ASSIGNED, DeliveryStatus.PICKED_UP),
            (DeliveryStatus.ASSIGNED, DeliveryStatus.CANCELLED),
            (DeliveryStatus.ASSIGNED, DeliveryStatus.FAILED),
            (DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT),
            (DeliveryStatus.PICKED_UP, DeliveryStatus.FAILED),
            (DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED),
            (DeliveryStatus.IN_TRANSIT, DeliveryStatus.FAILED),
        ],
    )
    def test_valid_transitions(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP),
            (DeliveryStatus.PENDING, DeliveryStatus.DELIVERED),
            (DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED),
            (DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED),
            (DeliveryStatus.ASSIGNED, DeliveryStatus.DELIVERED),
        ],
    )
    def test_invalid_transitions(self, current, target):
        with pytest.raises(InvalidTransitionError):
            check_transition(current, target)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, terminal):
        assert VALID_TRANSITIONS[terminal] == set()
        with pytest.raises(InvalidTransitionError, match="terminal"):
            check_transition(terminal, DeliveryStatus.PENDING)

    def test_transition_error_is_invalid_state(self):
        with pytest.raises(InvalidStateError):
            check_transition(DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED)

    def test_progress_steps_follow_table(self):
        for target, predecessor in PROGRESS_STEPS.items():
            assert target in VALID_TRANSITIONS[predecessor]

    def test_event_type(self):
        assert DeliveryStatus.DELIVERED.to_event_type() == "delivery.delivered"


@pytest.mark.unit
class TestBookingTransitions:
    def test_happy_path(self):
        check_booking_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED)
        check_booking_transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)
        check_booking_transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED)

    def test_in_progress_cannot_cancel(self):
        with pytest.raises(InvalidTransitionError):
            check_booking_transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED)

    def test_completed_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            check_booking_transition(BookingStatus.COMPLETED, BookingStatus.CANCELLED)


@pytest.mark.unit
class TestDeliveryRequestCreate:
    def _payload(self, **overrides):
        data = {
            "customer_id": "cust-1",
            "pickup_address": "12 Janpath",
            "pickup_lat": 28.6315,
            "pickup_lng": 77.2167,
            "delivery_address": "4 Rajpath",
            "delivery_lat": 28.6129,
            "delivery_lng": 77.2295,
            "base_fee": "100.00",
            "distance_fee": "20.50",
            "express_fee": "10.00",
        }
        data.update(overrides)
        return DeliveryRequestCreate(**data)

    def test_total_defaults_to_fee_sum(self):
        assert self._payload().resolved_total() == Decimal("130.50")

    def test_explicit_total_wins(self):
        assert self._payload(total_amount="150").resolved_total() == Decimal("150.00")

    def test_rider_earnings_from_commission(self):
        # 200.00 less 15% commission
        payload = self._payload(total_amount="200.00")
        assert payload.resolved_rider_earnings(Decimal("15.00")) == Decimal("170.00")

    def test_explicit_rider_earnings(self):
        payload = self._payload(rider_earnings="120.00")
        assert payload.resolved_rider_earnings(Decimal("15.00")) == Decimal("120.00")

    def test_half_lat_pair_rejected(self):
        with pytest.raises(PydanticValidationError, match="provided together"):
            self._payload(pickup_lng=None)

    def test_negative_fee_rejected(self):
        with pytest.raises(PydanticValidationError):
            self._payload(base_fee="-1")

    def test_unknown_payment_method_rejected(self):
        with pytest.raises(PydanticValidationError):
            self._payload(payment_method="cheque")
