"""Per-key deduplication of concurrent async work."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class _Flight[V]:
    task: asyncio.Future[V]
    waiters: int = 0


# Hey future me - this is what stops two screens opening at once from firing two identical
# playlist refreshes. The first caller for a key starts the work, every caller that arrives while
# it's running awaits the SAME task and gets the same result (or the same exception).
#
# Cancellation rules:
# - a waiter that gets cancelled just leaves, the shared task keeps running for the others
# - when the LAST waiter leaves, the task is cancelled too (nobody wants the result anymore)
# - a key is released as soon as its task settles, so the next call starts fresh work
class SingleFlight[K, V]:
    """Run at most one in-flight task per key and share its outcome."""

    def __init__(self) -> None:
        """Initialize with no flights."""
        self._flights: dict[K, _Flight[V]] = {}

    def in_flight(self, key: K) -> bool:
        """Check whether work for key is currently running."""
        return key in self._flights

    async def do(self, key: K, factory: Callable[[], Awaitable[V]]) -> V:
        """Run factory() for key, or join the run already in progress.

        Args:
            key: Deduplication key
            factory: Zero-argument callable producing the awaitable to run

        Returns:
            The shared result
        """
        flight = self._flights.get(key)
        if flight is None:
            task = asyncio.ensure_future(factory())
            flight = _Flight(task=task)
            self._flights[key] = flight
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        else:
            logger.debug(f"Joining in-flight work for {key!r}")

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    def _release(self, key: K, task: asyncio.Future[V]) -> None:
        flight = self._flights.get(key)
        if flight is not None and flight.task is task:
            del self._flights[key]
        # Reading exception() marks it retrieved even if every waiter already left
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"In-flight work for {key!r} failed: {task.exception()!r}")
