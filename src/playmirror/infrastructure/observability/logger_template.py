"""Shared logger helpers.

USAGE:
    logger = logging.getLogger(__name__)

    async with log_operation(logger, "catalog.force_sync"):
        await sync_everything()
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any


# Logs {operation}.started / .completed / .failed with duration_ms. Failures are logged and
# re-raised, never swallowed. CancelledError is a BaseException and passes straight through.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncGenerator[None, None]:
    """Context manager for logging operation start/end with automatic timing.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "catalog.force_sync")
        **context: Additional fields to include in logs
    """
    start = time.monotonic()
    logger.info(f"{operation}.started", extra=context)

    try:
        yield
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info(f"{operation}.completed", extra={**context, "duration_ms": duration_ms})
