"""Unit tests for the timeout, retry and bounded-gather helpers."""

from __future__ import annotations

import asyncio

import pytest

from bookrouter.utils.concurrency import retry_once, throttled_gather, with_timeout
from bookrouter.utils.errors import CatalogError, EmbeddingError


class TestWithTimeout:
    @pytest.mark.asyncio()
    async def test_returns_result(self) -> None:
        async def _quick() -> str:
            return "done"

        assert await with_timeout(_quick(), 1.0) == "done"

    @pytest.mark.asyncio()
    async def test_times_out(self) -> None:
        with pytest.raises(asyncio.TimeoutError):
            await with_timeout(asyncio.sleep(1), 0.01)


class TestRetryOnce:
    @pytest.mark.asyncio()
    async def test_second_attempt_succeeds(self) -> None:
        calls: list[int] = []

        async def _flaky() -> str:
            calls.append(1)
            if len(calls) == 1:
                raise CatalogError("blip")
            return "ok"

        assert await retry_once(_flaky, backoff=0.0, retry_on=(CatalogError,)) == "ok"
        assert len(calls) == 2

    @pytest.mark.asyncio()
    async def test_retries_at_most_once(self) -> None:
        calls: list[int] = []

        async def _down() -> None:
            calls.append(1)
            raise CatalogError(f"attempt {len(calls)}")

        with pytest.raises(CatalogError, match="attempt 2"):
            await retry_once(_down, backoff=0.0, retry_on=(CatalogError,))
        assert len(calls) == 2

    @pytest.mark.asyncio()
    async def test_other_errors_are_not_retried(self) -> None:
        calls: list[int] = []

        async def _broken() -> None:
            calls.append(1)
            raise EmbeddingError("bad key")

        with pytest.raises(EmbeddingError):
            await retry_once(_broken, backoff=0.0, retry_on=(CatalogError,))
        assert len(calls) == 1


class TestThrottledGather:
    @pytest.mark.asyncio()
    async def test_preserves_order_and_bounds_concurrency(self) -> None:
        in_flight = 0
        peak = 0

        async def _job(n: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01 * (5 - n))
            in_flight -= 1
            return n

        results = await throttled_gather([_job(n) for n in range(5)], limit=2)

        assert results == [0, 1, 2, 3, 4]
        assert peak <= 2

    @pytest.mark.asyncio()
    async def test_exceptions_are_returned(self) -> None:
        async def _fail() -> None:
            raise CatalogError("nope")

        async def _ok() -> str:
            return "ok"

        results = await throttled_gather([_fail(), _ok()])

        assert isinstance(results[0], CatalogError)
        assert results[1] == "ok"
