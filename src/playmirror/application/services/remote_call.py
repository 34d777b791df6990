"""Bridge callback-style remote operations into plain awaitables."""

import asyncio
import logging
from collections.abc import Callable

from playmirror.domain.exceptions import RemoteTimeoutError
from playmirror.domain.ports import CompletionCallback
from playmirror.infrastructure.observability import LogMessages

logger = logging.getLogger(__name__)


# Hey future me - this replaces the old "sleep 100ms and check a flag" loop. The callback resolves
# a one-shot future and we await that future directly, so a fast remote call returns immediately
# and there is no polling latency. The timeout is ONLY a cancellation boundary: when it fires we
# stop waiting and whatever the callback delivers later is dropped (logged at DEBUG).
#
# The callback can be called from another thread (an SDK's network thread). set_result() on a
# future is NOT thread-safe, so we always hop back onto the loop via call_soon_threadsafe.
async def await_callback[T](
    start: Callable[[CompletionCallback[T]], None],
    timeout: float,
    operation: str,
) -> T:
    """Start a callback-style operation and wait for its single completion.

    Args:
        start: Function that kicks off the operation and arranges for the
            given callback to be called once with (result, None) or (None, error)
        timeout: Seconds to wait for the callback before giving up
        operation: Name used in errors and logs

    Returns:
        The result delivered to the callback

    Raises:
        RemoteTimeoutError: The callback did not fire within timeout
        Exception: Whatever error the callback delivered
        asyncio.CancelledError: The awaiting task was cancelled
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def _settle(result: T | None, error: Exception | None) -> None:
        # Runs on the loop thread. First call wins, anything later is ignored.
        if future.done():
            logger.debug(f"Ignoring late completion of {operation}")
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)  # type: ignore[arg-type]

    def callback(result: T | None, error: Exception | None) -> None:
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(_settle, result, error)

    try:
        start(callback)
    except Exception:
        # Failing to even start the call is the same outcome as the callback reporting an error
        future.cancel()
        raise

    try:
        return await asyncio.wait_for(future, timeout=timeout)
    except TimeoutError as e:
        if not future.cancelled():
            # The remote side itself reported a TimeoutError through the callback
            raise
        logger.warning(LogMessages.remote_timeout(operation, timeout))
        raise RemoteTimeoutError(operation, timeout) from e
