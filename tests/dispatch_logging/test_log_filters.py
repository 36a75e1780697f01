import json
import logging

import pytest

from rider_dispatch.dispatch_logging import (
    ContextFilter,
    DefaultCorrelationFilter,
    JSONFormatter,
    LogContext,
    PIIFilter,
    log_context,
    log_delivery_context,
)


def _record(msg: str) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, None, None)


@pytest.fixture(autouse=True)
def clean_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.mark.unit
class TestPIIFilter:
    def test_masks_email(self):
        record = _record("Registered rider asha.verma@example.com")

        PIIFilter().filter(record)

        assert record.msg == "Registered rider [EMAIL]"

    @pytest.mark.parametrize("phone", ["+919876543210", "+91 98765 43210", "9876543210"])
    def test_masks_phone(self, phone):
        record = _record(f"Calling customer at {phone}")

        PIIFilter().filter(record)

        assert phone not in record.msg
        assert "[PHONE]" in record.msg

    def test_short_numbers_untouched(self):
        record = _record("Assigned rider in 4 min over 2.10 km")

        PIIFilter().filter(record)

        assert record.msg == "Assigned rider in 4 min over 2.10 km"


@pytest.mark.unit
class TestContextFilter:
    def test_context_fields_injected(self):
        record = _record("Assigned")
        with log_delivery_context("delivery-1", rider_id="rider-9"):
            ContextFilter().filter(record)

        assert record.delivery_id == "delivery-1"
        assert record.rider_id == "rider-9"
        assert record.correlation_id == "delivery-1"

    def test_nested_context_restored(self):
        with log_context(booking_id="b-1"):
            with log_context(booking_id="b-2"):
                assert LogContext.get()["booking_id"] == "b-2"
            assert LogContext.get()["booking_id"] == "b-1"

        assert LogContext.get() == {}

    def test_default_correlation_id(self):
        record = _record("No context")

        DefaultCorrelationFilter().filter(record)

        assert record.correlation_id == "-"


@pytest.mark.unit
def test_json_formatter_includes_context():
    record = _record("Posted earnings")
    record.delivery_id = "delivery-1"

    payload = json.loads(JSONFormatter(environment="test").format(record))

    assert payload["message"] == "Posted earnings"
    assert payload["delivery_id"] == "delivery-1"
    assert payload["env"] == "test"
