"""Sequential batch runner for rate-limited upstream calls.

A convenience for scripted bulk work, not a delivery guarantee: each call that
is refused by the limiter is retried exactly once, after waiting for the next
window boundary. Any other error, or a second refusal, propagates.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from geckodash.exceptions import RateLimited
from geckodash.logging import get_logger
from geckodash.ratelimit import RateLimiter

logger = get_logger(__name__)

T = TypeVar("T")


async def batch_api_calls(
    calls: list[Callable[[], Awaitable[T]]],
    limiter: RateLimiter,
    progress_callback: Callable[[int, int], Awaitable[None]] | None = None,
) -> list[T]:
    """Run zero-argument coroutine factories one at a time, in order.

    Args:
        calls: Factories, each producing one upstream request when called.
        limiter: The limiter the requests draw from; used to wait for reset.
        progress_callback: Awaited with (completed, total) after each call.

    Returns:
        Results in the same order as ``calls``.
    """
    results: list[T] = []
    total = len(calls)

    for i, call in enumerate(calls, 1):
        try:
            result = await call()
        except RateLimited:
            logger.info("batch_call_rate_limited", call=i, total=total)
            await limiter.wait_for_reset()
            result = await call()

        results.append(result)
        if progress_callback is not None:
            await progress_callback(i, total)

    return results
