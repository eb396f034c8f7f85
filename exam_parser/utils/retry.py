"""Retry policies for Gemini API calls.

This module provides a small ``RetryPolicy`` value plus a decorator that
applies it to sync or async callables. Two policies are used:

- ``RATE_LIMIT_BACKOFF``: exponential backoff with jitter for transient
  API failures (429 / 5xx / network errors)
- ``FIXED_BACKOFF``: three attempts one second apart, used by AI structured
  extraction where malformed model output is worth a second try
"""

import asyncio
import functools
import inspect
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Set, Type, TypeVar, cast

# Configure logging
logger = logging.getLogger(__name__)

# Type variable for generic function decoration
F = TypeVar("F", bound=Callable[..., Any])

# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES: Set[int] = {
    429,  # Rate limit
    500,  # Server error
    503,  # Service unavailable
}

# HTTP status codes that should NOT trigger retry
NON_RETRYABLE_STATUS_CODES: Set[int] = {
    400,  # Bad request
    401,  # Unauthorized
    403,  # Forbidden
    404,  # Not found
    422,  # Unprocessable entity
}


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try a call and how long to wait in between.

    Attributes:
        max_attempts: Total attempts including the first call
        base_delay: Delay in seconds before the second attempt
        exponential: Double the delay after every failed attempt
        max_jitter: Upper bound of random seconds added to each delay
        retryable_exceptions: Exception types eligible for retry
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    exponential: bool = True
    max_jitter: float = 1.0
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        delay = self.base_delay * (2 ** (attempt - 1)) if self.exponential else self.base_delay
        if self.max_jitter > 0:
            delay += random.random() * self.max_jitter
        return delay


# Only status codes and network errors are retried, never arbitrary exceptions
RATE_LIMIT_BACKOFF = RetryPolicy(
    max_attempts=4, base_delay=1.0, exponential=True, max_jitter=1.0, retryable_exceptions=()
)
FIXED_BACKOFF = RetryPolicy(max_attempts=3, base_delay=1.0, exponential=False, max_jitter=0.0)


def retry_with_backoff(policy: Optional[RetryPolicy] = None) -> Callable[[F], F]:
    """Decorator that retries a function according to a RetryPolicy.

    Retries on:
    - 429 (rate limit)
    - 500 (server error)
    - 503 (service unavailable)
    - Network timeouts and connection errors
    - Any exception matching ``policy.retryable_exceptions``

    Does NOT retry on:
    - 400, 401, 403, 404, 422

    Async functions wait with ``asyncio.sleep`` so the event loop keeps
    running between attempts.

    Args:
        policy: Retry policy (default: RATE_LIMIT_BACKOFF)

    Returns:
        Decorated function with retry logic
    """
    active = policy or RATE_LIMIT_BACKOFF

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, active.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not _should_continue(func, e, attempt, active):
                        raise
                    delay = active.delay_for(attempt)
                    _log_retry(func, e, attempt, active, delay)
                    await asyncio.sleep(delay)

            # Should never reach here, but satisfy type checker
            raise RuntimeError("Unexpected retry loop exit")

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, active.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not _should_continue(func, e, attempt, active):
                        raise
                    delay = active.delay_for(attempt)
                    _log_retry(func, e, attempt, active, delay)
                    time.sleep(delay)

            raise RuntimeError("Unexpected retry loop exit")

        # Return appropriate wrapper based on whether function is async
        if inspect.iscoroutinefunction(func):
            return cast(F, async_wrapper)
        return cast(F, sync_wrapper)

    return decorator


def _should_continue(func: Callable[..., Any], exception: Exception, attempt: int, policy: RetryPolicy) -> bool:
    if not _should_retry_exception(exception, policy.retryable_exceptions):
        return False
    if attempt >= policy.max_attempts:
        logger.error(
            "%s failed after %d attempts: %s", func.__name__, policy.max_attempts, exception
        )
        return False
    return True


def _log_retry(func: Callable[..., Any], exception: Exception, attempt: int, policy: RetryPolicy, delay: float) -> None:
    logger.warning(
        "%s attempt %d/%d failed: %s. Retrying in %.2fs...",
        func.__name__, attempt, policy.max_attempts, exception, delay,
    )


def _should_retry_exception(
    exception: Exception, retryable_exceptions: tuple[Type[Exception], ...]
) -> bool:
    """Determine if an exception should trigger a retry.

    Args:
        exception: The exception that was raised
        retryable_exceptions: Tuple of exception types to retry

    Returns:
        True if the exception should trigger retry, False otherwise
    """
    status_code = _extract_status_code(exception)

    if status_code:
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
        if status_code in RETRYABLE_STATUS_CODES:
            return True

    # Check for common network errors
    exception_str = str(exception).lower()
    network_errors = [
        "timeout",
        "timed out",
        "connection reset",
        "connection refused",
        "network",
    ]

    for error in network_errors:
        if error in exception_str:
            return True

    return isinstance(exception, retryable_exceptions)


def _extract_status_code(exception: Exception) -> int | None:
    """Extract HTTP status code from exception.

    google-genai ``APIError`` exposes ``code``; HTTP client errors expose
    ``status_code`` or ``response.status_code``.
    """
    if hasattr(exception, "status_code"):
        value = getattr(exception, "status_code")
        if isinstance(value, int):
            return value

    if hasattr(exception, "code"):
        code = getattr(exception, "code")
        if isinstance(code, int):
            return code

    if hasattr(exception, "response"):
        response = getattr(exception, "response")
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status

    return None
