"""Tests for retry utilities."""

from unittest.mock import MagicMock

import pytest

from rider_dispatch.core.exceptions import (
    DirectoryUnavailableError,
    TransientError,
    ValidationError,
)
from rider_dispatch.core.retry import RetryConfig, with_retry_sync


@pytest.mark.unit
@pytest.mark.critical
class TestRetryConfig:
    """Test RetryConfig defaults and customization."""

    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.2
        assert config.multiplier == 2.0
        assert config.max_delay == 5.0
        assert config.retryable_exceptions == (TransientError,)

    def test_delay_grows_exponentially(self):
        config = RetryConfig(base_delay=0.5, multiplier=2.0, max_delay=30.0)
        assert config.delay_for(0) == 0.5
        assert config.delay_for(1) == 1.0
        assert config.delay_for(2) == 2.0

    def test_delay_is_capped(self):
        config = RetryConfig(base_delay=1.0, multiplier=10.0, max_delay=5.0)
        assert config.delay_for(3) == 5.0


@pytest.mark.unit
@pytest.mark.critical
class TestWithRetrySync:
    """Test sync retry functionality."""

    def test_succeeds_on_first_attempt(self):
        operation = MagicMock(return_value="success")
        sleep = MagicMock()

        assert with_retry_sync(operation, sleep=sleep) == "success"
        assert operation.call_count == 1
        sleep.assert_not_called()

    def test_succeeds_after_transient_failures(self):
        call_count = 0

        def flaky_operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise DirectoryUnavailableError("database is locked")
            return "success"

        sleep = MagicMock()
        result = with_retry_sync(flaky_operation, RetryConfig(base_delay=0.1), sleep=sleep)

        assert result == "success"
        assert call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.1, 0.2]

    def test_raises_after_max_attempts(self):
        operation = MagicMock(side_effect=DirectoryUnavailableError("locked"))

        with pytest.raises(DirectoryUnavailableError):
            with_retry_sync(operation, RetryConfig(max_attempts=4), sleep=MagicMock())

        assert operation.call_count == 4

    def test_permanent_error_not_retried(self):
        operation = MagicMock(side_effect=ValidationError("bad input"))

        with pytest.raises(ValidationError):
            with_retry_sync(operation, sleep=MagicMock())

        assert operation.call_count == 1

    def test_logs_retries(self, caplog):
        operation = MagicMock(side_effect=[DirectoryUnavailableError("locked"), "ok"])

        with caplog.at_level("WARNING"):
            with_retry_sync(operation, operation_name="find candidates", sleep=MagicMock())

        assert "find candidates failed (attempt 1/3)" in caplog.text
