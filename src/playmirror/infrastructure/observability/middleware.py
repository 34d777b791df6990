"""Middleware for observability: correlation ids and request logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from playmirror.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Every request gets a correlation id (taken from the X-Correlation-ID header or generated) that
# all logs of the request inherit, including the ones written by a sync it triggers. It's echoed
# back in the response header.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Sets the correlation id and logs each request with its duration."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process request and log details."""
        set_correlation_id(request.headers.get(CORRELATION_HEADER))
        method = request.method
        path = request.url.path

        logger.info(f"→ {method} {path}", extra={"method": method, "path": path})
        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {method} {path}",
                extra={"method": method, "path": path, "error_type": type(e).__name__},
            )
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        status_mark = "✓" if response.status_code < 400 else "✗"
        logger.info(
            f"{status_mark} {method} {path} → {response.status_code} ({duration_ms}ms)",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response
