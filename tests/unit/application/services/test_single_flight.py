"""Tests for per-key deduplication of concurrent work."""

import asyncio

import pytest

from playmirror.application.services import SingleFlight


class TestSingleFlight:
    """Tests for SingleFlight.do."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_run(self) -> None:
        """Two callers for the same key get the same result from one execution."""
        flights: SingleFlight[str, int] = SingleFlight()
        runs = 0
        release = asyncio.Event()

        async def work() -> int:
            nonlocal runs
            runs += 1
            await release.wait()
            return 42

        first = asyncio.create_task(flights.do("collections", work))
        second = asyncio.create_task(flights.do("collections", work))
        await asyncio.sleep(0)
        assert flights.in_flight("collections")

        release.set()
        results = await asyncio.gather(first, second)

        assert results == [42, 42]
        assert runs == 1

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self) -> None:
        flights: SingleFlight[str, str] = SingleFlight()

        async def work(value: str) -> str:
            await asyncio.sleep(0)
            return value

        results = await asyncio.gather(
            flights.do("tracks:A", lambda: work("A")),
            flights.do("tracks:B", lambda: work("B")),
        )

        assert results == ["A", "B"]

    @pytest.mark.asyncio
    async def test_exception_is_shared(self) -> None:
        """Every waiter sees the same failure."""
        flights: SingleFlight[str, int] = SingleFlight()
        release = asyncio.Event()

        async def work() -> int:
            await release.wait()
            raise RuntimeError("remote down")

        first = asyncio.create_task(flights.do("k", work))
        second = asyncio.create_task(flights.do("k", work))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert results[0] is results[1]

    @pytest.mark.asyncio
    async def test_key_released_after_completion(self) -> None:
        """Once a run settles the next call starts fresh work."""
        flights: SingleFlight[str, int] = SingleFlight()
        runs = 0

        async def work() -> int:
            nonlocal runs
            runs += 1
            return runs

        assert await flights.do("k", work) == 1
        assert not flights.in_flight("k")
        assert await flights.do("k", work) == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_work(self) -> None:
        """One waiter leaving early leaves the other waiter's result intact."""
        flights: SingleFlight[str, str] = SingleFlight()
        release = asyncio.Event()

        async def work() -> str:
            await release.wait()
            return "done"

        leaver = asyncio.create_task(flights.do("k", work))
        stayer = asyncio.create_task(flights.do("k", work))
        await asyncio.sleep(0)

        leaver.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leaver

        release.set()
        assert await stayer == "done"

    @pytest.mark.asyncio
    async def test_last_waiter_cancelling_cancels_work(self) -> None:
        """Nobody left waiting means the shared task is cancelled and the key freed."""
        flights: SingleFlight[str, str] = SingleFlight()
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def work() -> str:
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return "never"

        waiter = asyncio.create_task(flights.do("k", work))
        await started.wait()
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        await asyncio.wait_for(cancelled.wait(), timeout=1.0)
        await asyncio.sleep(0)
        assert not flights.in_flight("k")
