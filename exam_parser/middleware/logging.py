"""Structured JSON request logging."""

import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Response headers set by the parse endpoint, copied into the log line
_CONTEXT_HEADERS = {
    "X-Processing-Method": ("processing_method", str),
    "X-Question-Count": ("question_count", int),
    "X-Section-Counts": ("section_counts", str),
}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _response_context(response: Response) -> Dict[str, Any]:
    context: Dict[str, Any] = {}
    for header, (field, convert) in _CONTEXT_HEADERS.items():
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            context[field] = convert(value)
        except ValueError:
            context[field] = value
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one JSON line per request and tags the response with X-Request-ID.

    The request id is taken from the incoming X-Request-ID header when the
    client sends one, otherwise a UUID4 is generated. Exam content never
    reaches the log: bodies are not read here.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        entry: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "user_ip": request.client.host if request.client else "unknown",
        }

        try:
            response = await call_next(request)
        except Exception as e:
            entry.update(
                status_code=500,
                processing_time_ms=_elapsed_ms(started),
                error=str(e),
                error_type=type(e).__name__,
            )
            logger.error(json.dumps(entry), exc_info=True)
            raise

        entry.update(status_code=response.status_code, processing_time_ms=_elapsed_ms(started))
        entry.update(_response_context(response))
        logger.info(json.dumps(entry))

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")
