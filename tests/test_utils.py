"""
Tests for the shared utilities: results, retries, error rendering and log filtering.
"""

import logging

import pytest

from seat_reservation_engine.middleware.error_handler import ErrorHandlerMiddleware
from seat_reservation_engine.utils.exceptions import (
    ConcurrencyError,
    HoldNotFoundError,
    PersistenceFailureError,
    ReservationExpiredError,
    SeatUnavailableError,
    TooManySeatsError,
)
from seat_reservation_engine.utils.logging_config import SensitiveDataFilter
from seat_reservation_engine.utils.result import Err, Ok
from seat_reservation_engine.utils.retry import RetryConfig, retry_async


class TestResult:

    def test_ok_unwraps(self):
        assert Ok(3).unwrap() == 3
        assert Ok(3).is_ok

    def test_err_unwrap_raises_the_error(self):
        error = HoldNotFoundError("session-x")

        with pytest.raises(HoldNotFoundError):
            Err(error).unwrap()
        assert not Err(error).is_ok


class TestRetry:

    async def test_retries_transient_errors(self):
        attempts = []

        async def flaky(value):
            attempts.append(value)
            if len(attempts) < 3:
                raise ConcurrencyError("deadlock detected")
            return value * 2

        config = RetryConfig(max_attempts=3, base_delay=0.001, jitter=False)
        result = await retry_async(flaky, config, 21, retryable_exceptions=(ConcurrencyError,))

        assert result == 42
        assert attempts == [21, 21, 21]

    async def test_gives_up_after_max_attempts(self):
        async def always_fails():
            raise ConcurrencyError("serialization failure")

        config = RetryConfig(max_attempts=2, base_delay=0.001)
        with pytest.raises(ConcurrencyError):
            await retry_async(always_fails, config, retryable_exceptions=(ConcurrencyError,))

    async def test_non_retryable_errors_propagate_at_once(self):
        attempts = []

        async def broken():
            attempts.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await retry_async(
                broken,
                RetryConfig(max_attempts=5, base_delay=0.001),
                retryable_exceptions=(Exception,),
                non_retryable_exceptions=(ValueError,),
            )
        assert attempts == [1]


class TestErrorMapping:

    @pytest.mark.parametrize("error, status_code", [
        (SeatUnavailableError(["s1"]), 409),
        (HoldNotFoundError("t"), 410),
        (ReservationExpiredError("t", "ref"), 410),
        (TooManySeatsError(9, 8), 422),
        (PersistenceFailureError("confirm_reservation", "connection reset"), 503),
    ])
    def test_status_codes(self, error, status_code):
        assert ErrorHandlerMiddleware.status_code_for(error) == status_code

    def test_persistence_failure_suggests_retry(self):
        body = PersistenceFailureError("create_holds", "timeout").to_dict()

        assert body["error_code"] == "PERSISTENCE_FAILURE"
        assert body["retry_after"] == 5


class TestSensitiveDataFilter:

    def make_record(self, msg, **extra):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_masks_emails_and_secrets(self):
        record = self.make_record("payer ada@example.com signed with whsec_abcdef123456")

        SensitiveDataFilter().filter(record)

        assert "ada@example.com" not in record.msg
        assert "whsec_abcdef123456" not in record.msg

    def test_masks_sensitive_keys(self):
        record = self.make_record("details", event_details={"api_key": "k", "seat_count": 2})

        SensitiveDataFilter().filter(record)

        assert record.event_details["api_key"] == "***MASKED***"
        assert record.event_details["seat_count"] == 2
