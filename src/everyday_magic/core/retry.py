"""Retry-with-backoff wrapper for fallible async operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

#: Multiplier applied to the delay after each failed attempt.
BACKOFF_FACTOR = 1.5


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 0.5,
    *,
    should_retry: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await *operation*, retrying failures with exponential backoff.

    The first retry waits *delay* seconds; every further retry waits
    ``BACKOFF_FACTOR`` times longer than the previous one.  After the last
    attempt the final exception propagates unchanged.

    Args:
        operation: Zero-argument callable returning a fresh awaitable on each
            call.
        attempts: Total number of attempts (``1`` means no retries).
        delay: Seconds to wait before the first retry.
        should_retry: Optional predicate; when it returns ``False`` for an
            exception, that exception propagates immediately.
        sleep: Awaitable sleep function, injectable for tests.

    Returns:
        The result of the first successful attempt.

    Raises:
        ValueError: If *attempts* is less than 1.
        Exception: Whatever the last attempt raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    wait = delay
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts or (should_retry is not None and not should_retry(exc)):
                raise
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.2fs.",
                attempt,
                attempts,
                exc,
                wait,
            )
            await sleep(wait)
            wait *= BACKOFF_FACTOR

    raise AssertionError("unreachable")  # pragma: no cover
