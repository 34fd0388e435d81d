"""API middleware and logging filters for request correlation."""

import logging
import re
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Context variable for request ID - accessible from anywhere in the request
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Magic link tokens travel in the query string; never let them reach the logs
TOKEN_PARAM_RE = re.compile(r"(token=)[^&\s\"]+")

# Probes hit these constantly
QUIET_PATHS = ("/api/health",)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


def redact_tokens(value: str) -> str:
    """Mask token query parameters in a URL or request line."""
    return TOKEN_PARAM_RE.sub(r"\1[redacted]", value)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that adds a unique request ID to each request.

    An incoming X-Request-ID header is reused, otherwise a UUID is generated.
    The ID is echoed in the response headers and kept in a context variable
    for log records.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs request outcome with timing.

    Only the path is logged, so query-string tokens stay out of the logs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PATHS):
            return await call_next(request)

        request_id = get_request_id() or "-"
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{request.method} {path} failed after {duration_ms:.1f}ms: {e}",
                extra={"request_id": request_id, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"{request.method} {path} completed {response.status_code} in {duration_ms:.1f}ms",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


class RequestContextFilter(logging.Filter):
    """Logging filter that adds request_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class TokenRedactingFilter(logging.Filter):
    """Logging filter that masks magic link tokens in uvicorn access logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_tokens(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True
