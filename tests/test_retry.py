"""Tests for retry policies and the retry decorator."""

import logging
from dataclasses import FrozenInstanceError
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from exam_parser.utils.retry import (
    FIXED_BACKOFF,
    NON_RETRYABLE_STATUS_CODES,
    RATE_LIMIT_BACKOFF,
    RETRYABLE_STATUS_CODES,
    RetryPolicy,
    _extract_status_code,
    _should_retry_exception,
    retry_with_backoff,
)


class MockHTTPException(Exception):
    """Mock HTTP exception with status code."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


FAST = RetryPolicy(max_attempts=3, base_delay=0.01, exponential=True, max_jitter=0.0)


# Tests for _extract_status_code


def test_extract_status_code_from_attribute():
    assert _extract_status_code(MockHTTPException("Server error", 500)) == 500


def test_extract_status_code_from_code_attribute():
    """google-genai APIError exposes the status as ``code``."""
    exception = Exception("Error")
    exception.code = 429  # type: ignore
    assert _extract_status_code(exception) == 429


def test_extract_status_code_from_response():
    exception = Exception("Error")
    exception.response = MagicMock()  # type: ignore
    exception.response.status_code = 503  # type: ignore
    assert _extract_status_code(exception) == 503


def test_extract_status_code_none():
    assert _extract_status_code(Exception("Generic error")) is None


# Tests for _should_retry_exception


def test_should_retry_non_retryable_status():
    for status_code in NON_RETRYABLE_STATUS_CODES:
        exception = MockHTTPException(f"Error {status_code}", status_code)
        assert _should_retry_exception(exception, (Exception,)) is False


def test_should_retry_retryable_status():
    for status_code in RETRYABLE_STATUS_CODES:
        exception = MockHTTPException(f"Error {status_code}", status_code)
        assert _should_retry_exception(exception, ()) is True


def test_should_retry_network_errors():
    assert _should_retry_exception(Exception("Connection timeout"), ()) is True
    assert _should_retry_exception(Exception("Connection reset by peer"), ()) is True


def test_should_not_retry_non_matching_exception():
    assert _should_retry_exception(ValueError("Some error"), (TypeError,)) is False
    assert _should_retry_exception(ValueError("Some error"), (ValueError,)) is True


# Tests for RetryPolicy


def test_policy_is_immutable():
    with pytest.raises(FrozenInstanceError):
        FIXED_BACKOFF.max_attempts = 10  # type: ignore[misc]


def test_fixed_backoff_delays_are_constant():
    assert [FIXED_BACKOFF.delay_for(attempt) for attempt in (1, 2, 3)] == [1.0, 1.0, 1.0]


def test_exponential_delays_double():
    policy = RetryPolicy(max_attempts=4, base_delay=1.0, exponential=True, max_jitter=0.0)
    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_jitter_is_bounded():
    policy = RetryPolicy(base_delay=1.0, exponential=False, max_jitter=1.0)
    for _ in range(20):
        assert 1.0 <= policy.delay_for(1) < 2.0


def test_rate_limit_backoff_only_retries_transient_errors():
    """Arbitrary exceptions are not retried by the rate-limit policy."""
    assert RATE_LIMIT_BACKOFF.retryable_exceptions == ()
    assert _should_retry_exception(ValueError("bad output"), RATE_LIMIT_BACKOFF.retryable_exceptions) is False


# Tests for retry_with_backoff decorator (sync functions)


def test_retry_successful_on_first_attempt():
    call_count = 0

    @retry_with_backoff(FAST)
    def succeeds():
        nonlocal call_count
        call_count += 1
        return "success"

    assert succeeds() == "success"
    assert call_count == 1


def test_retry_eventually_succeeds():
    call_count = 0

    @retry_with_backoff(FAST)
    def succeeds_on_third_attempt():
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            raise MockHTTPException("Server error", 500)
        return "success"

    assert succeeds_on_third_attempt() == "success"
    assert call_count == 3


def test_retry_max_attempts_exceeded():
    call_count = 0

    @retry_with_backoff(FAST)
    def always_fails():
        nonlocal call_count
        call_count += 1
        raise MockHTTPException("Server error", 500)

    with pytest.raises(MockHTTPException):
        always_fails()

    assert call_count == 3  # max_attempts includes the first call


def test_retry_non_retryable_error():
    call_count = 0

    @retry_with_backoff(FAST)
    def bad_request():
        nonlocal call_count
        call_count += 1
        raise MockHTTPException("Bad request", 400)

    with pytest.raises(MockHTTPException):
        bad_request()

    assert call_count == 1


def test_retry_exponential_backoff_sleeps():
    policy = RetryPolicy(max_attempts=4, base_delay=1.0, exponential=True, max_jitter=0.0)

    @retry_with_backoff(policy)
    def always_fails():
        raise MockHTTPException("Server error", 500)

    with patch("exam_parser.utils.retry.time.sleep") as mock_sleep:
        with pytest.raises(MockHTTPException):
            always_fails()

        delays = [call[0][0] for call in mock_sleep.call_args_list]

    # No sleep after the final attempt
    assert delays == [1.0, 2.0, 4.0]


def test_retry_logs_attempts(caplog):
    caplog.set_level(logging.WARNING)

    @retry_with_backoff(FAST)
    def always_fails():
        raise MockHTTPException("Server error", 500)

    with pytest.raises(MockHTTPException):
        always_fails()

    assert "attempt 1/3" in caplog.text
    assert "attempt 2/3" in caplog.text
    assert "Retrying in" in caplog.text
    assert "failed after 3 attempts" in caplog.text


# Tests for retry_with_backoff decorator (async functions)


@pytest.mark.asyncio
async def test_retry_async_eventually_succeeds():
    call_count = 0

    @retry_with_backoff(FAST)
    async def async_succeeds_on_second_attempt():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise MockHTTPException("Rate limit", 429)
        return "success"

    assert await async_succeeds_on_second_attempt() == "success"
    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_async_uses_asyncio_sleep():
    @retry_with_backoff(FIXED_BACKOFF)
    async def async_always_fails():
        raise ValueError("malformed output")

    with patch("exam_parser.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(ValueError):
            await async_always_fails()

    assert [call[0][0] for call in mock_sleep.call_args_list] == [1.0, 1.0]


@pytest.mark.asyncio
async def test_retry_async_non_retryable_error():
    call_count = 0

    @retry_with_backoff(FAST)
    async def async_unauthorized():
        nonlocal call_count
        call_count += 1
        raise MockHTTPException("Unauthorized", 401)

    with pytest.raises(MockHTTPException):
        await async_unauthorized()

    assert call_count == 1
