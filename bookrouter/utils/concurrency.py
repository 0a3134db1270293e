"""Shared concurrency primitives for the recommendation pipeline.

Three helpers cover every outbound call the router makes:

1. **with_timeout** -- wraps ``asyncio.wait_for`` so each network call
   carries a hard deadline.  Timeouts surface as ``asyncio.TimeoutError``
   and the calling stage converts them into a degradation.

2. **retry_once** -- at most one retry with a fixed backoff, reserved for
   idempotent reads (embedding generation, catalog queries).  Nothing in the
   pipeline retries more than once.

3. **throttled_gather** -- ``asyncio.gather`` with a semaphore, used when a
   stage fans out to many lookups at once (verifying world proposals against
   the metadata service).

Cancellation is never intercepted: ``asyncio.CancelledError`` propagates
through all three helpers so an abandoned request aborts its in-flight calls.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from bookrouter.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def with_timeout(awaitable: Awaitable[_T], seconds: float) -> _T:
    """Await *awaitable* but give up after *seconds*.

    Raises
    ------
    asyncio.TimeoutError
        When the deadline passes; the underlying task is cancelled.
    """
    return await asyncio.wait_for(awaitable, timeout=seconds)


async def retry_once(
    fn: Callable[[], Awaitable[_T]],
    *,
    backoff: float = 0.25,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    operation: str = "read",
) -> _T:
    """Call *fn*; on a matching failure wait *backoff* seconds and call it once more.

    Parameters
    ----------
    fn:
        Zero-argument factory returning a fresh awaitable per attempt.
    backoff:
        Seconds to sleep between the first and second attempt.
    retry_on:
        Exception types that trigger the retry.  Anything else propagates
        immediately.
    operation:
        Name used in the retry log event.

    Returns
    -------
    _T
        The result of whichever attempt succeeded.  The second attempt's
        exception propagates unchanged.
    """
    try:
        return await fn()
    except retry_on as exc:
        _logger.info("retrying_read", operation=operation, error=str(exc), backoff=backoff)
        await asyncio.sleep(backoff)
        return await fn()


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    limit: int = 5,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with at most *limit* in flight.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional shared semaphore.  A fresh one sized *limit* is created per
        call when omitted, so no state leaks between requests.
    limit:
        Concurrency bound used when *semaphore* is not given.
    return_exceptions:
        Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(limit)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
