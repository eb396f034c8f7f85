"""Rate limiting for the parse endpoint using slowapi."""

import json
from typing import List

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from exam_parser.config import get_settings

DEFAULT_LIMITS = ["200/minute"]
DEFAULT_RETRY_AFTER_SECONDS = 60


def _trusted_proxies() -> List[str]:
    raw = get_settings().trusted_proxies
    return [ip.strip() for ip in raw.split(",") if ip.strip()]


def get_client_ip(request: Request) -> str:
    """
    Get the client IP address used as the rate-limit key.

    X-Forwarded-For is only honoured when the direct peer is a configured
    trusted proxy, otherwise any client could spoof its key.
    """
    direct_ip: str = get_remote_address(request)

    if direct_ip in _trusted_proxies():
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

    return direct_ip


def parse_rate_limit() -> str:
    """Limit string for POST /api/parse, read from settings on each request."""
    return get_settings().parse_rate_limit


# In-memory storage; limits are per process
limiter = Limiter(key_func=get_client_ip, default_limits=DEFAULT_LIMITS)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Return 429 Too Many Requests with Retry-After and X-RateLimit-* headers.
    """
    retry_after = getattr(exc, "retry_after", DEFAULT_RETRY_AFTER_SECONDS)

    error_body = {
        "detail": "Rate limit exceeded",
        "message": f"Too many requests. Please retry after {retry_after} seconds.",
        "retry_after": retry_after,
    }

    response = Response(
        content=json.dumps(error_body),
        status_code=429,
        media_type="application/json",
    )
    response.headers["Retry-After"] = str(retry_after)
    response.headers["X-RateLimit-Remaining"] = "0"
    if getattr(exc, "detail", None):
        response.headers["X-RateLimit-Limit"] = exc.detail

    return response


def get_limiter() -> Limiter:
    return limiter
