"""Fixed-window limiter for upstream market-data calls.

Every outbound GeckoTerminal request must first win a slot from
``RateLimiter.try_consume``. The check and the increment straddle an await
(load state, then save it), so two coroutines could both see the last free
slot if nothing serialized them. All consumers therefore queue on one
``asyncio.Lock`` per limiter instance.

Rollover is lazy: there is no timer. The first call that lands in a new
window resets the counter.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from geckodash.logging import get_logger
from geckodash.ratelimit.state import (
    RateLimiterState,
    RateLimiterStateStore,
    StateUnreadable,
)

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitStatus:
    """Read-only snapshot of the call budget."""

    current: int
    max: int
    reset_time: int  # epoch ms of the next window boundary

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "max": self.max,
            "resetTime": self.reset_time,
        }


class RateLimiter:
    """Shared call budget of ``max_calls`` per aligned ``window_ms`` window.

    Usage:
        limiter = RateLimiter(FileStateStore("data/rateLimiter.json"))
        if not await limiter.try_consume():
            raise RateLimited()

    Persistence failure policy: an unreadable or corrupt state file falls back
    to the last state this instance held in memory, and only to a fresh
    default state when it holds none. A failed save keeps the consumed slot in
    memory, and the memory copy is used instead of the stored one until a save
    succeeds again. Neither case hands out more calls than this process has seen
    consumed.
    """

    def __init__(
        self,
        store: RateLimiterStateStore,
        max_calls: int = 30,
        window_ms: int = 60_000,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        self._store = store
        self._max_calls = max_calls
        self._window_ms = window_ms
        self._clock = clock
        self._lock = asyncio.Lock()
        self._cached: RateLimiterState | None = None
        # Set while the store rejects writes; the persisted copy is stale then.
        self._save_failed = False

    @property
    def max_calls(self) -> int:
        return self._max_calls

    @property
    def window_ms(self) -> int:
        return self._window_ms

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def try_consume(self) -> bool:
        """Take one call from the current window's budget.

        Returns:
            True if the call may proceed, False if the budget is exhausted.
            A False result leaves the persisted state untouched.
        """
        async with self._lock:
            state = await self._load()
            now = self._clock()

            if state.global_start_time is None:
                state.global_start_time = now
                state.last_reset = now
            elif state.window_index(now) != state.window_index(state.last_reset):
                logger.debug(
                    "rate_limit_window_rollover",
                    previous_count=state.call_count,
                    window=state.window_index(now),
                )
                state.call_count = 0
                state.last_reset = now

            if state.call_count >= state.max_calls:
                logger.warning(
                    "rate_limit_denied",
                    call_count=state.call_count,
                    max_calls=state.max_calls,
                )
                return False

            state.call_count += 1
            await self._save(state)
            return True

    async def get_status(self) -> RateLimitStatus:
        """Report usage in the current window without mutating any state."""
        state = await self._load()
        now = self._clock()

        if state.global_start_time is None:
            return RateLimitStatus(
                current=0,
                max=state.max_calls,
                reset_time=now + state.window_ms,
            )

        window = state.window_index(now)
        current = state.call_count
        if window != state.window_index(state.last_reset):
            current = 0
        return RateLimitStatus(
            current=current,
            max=state.max_calls,
            reset_time=state.global_start_time + (window + 1) * state.window_ms,
        )

    async def reset(self) -> None:
        """Discard all counting, including the window anchor."""
        async with self._lock:
            await self._save(self._default_state())
        logger.info("rate_limiter_reset")

    async def wait_for_reset(self) -> None:
        """Sleep until the next window boundary."""
        status = await self.get_status()
        delay_ms = status.reset_time - self._clock()
        if delay_ms > 0:
            logger.info("waiting_for_rate_limit_reset", delay_ms=delay_ms)
            await asyncio.sleep(delay_ms / 1000)

    # ──────────────────────────────────────────────
    # State persistence
    # ──────────────────────────────────────────────

    def _default_state(self) -> RateLimiterState:
        return RateLimiterState(
            window_ms=self._window_ms,
            max_calls=self._max_calls,
            last_reset=self._clock(),
        )

    async def _load(self) -> RateLimiterState:
        """Load state, applying this instance's configured limits.

        Returns a private copy; callers may mutate it freely. While saves are
        failing the in-memory state wins over whatever the store still holds.
        """
        if self._save_failed and self._cached is not None:
            return self._configured(self._cached)

        try:
            state = await self._store.load()
        except StateUnreadable as e:
            logger.warning(
                "rate_limiter_state_unreadable",
                error=str(e),
                fallback="memory" if self._cached is not None else "default",
            )
            state = None

        if state is None:
            state = self._cached if self._cached is not None else self._default_state()

        return self._configured(state)

    def _configured(self, state: RateLimiterState) -> RateLimiterState:
        return replace(
            state,
            max_calls=self._max_calls,
            window_ms=self._window_ms,
            call_count=min(state.call_count, self._max_calls),
        )

    async def _save(self, state: RateLimiterState) -> None:
        self._cached = replace(state)
        try:
            await self._store.save(state)
        except OSError as e:
            self._save_failed = True
            logger.error("rate_limiter_state_write_failed", error=str(e))
            return
        if self._save_failed:
            logger.info("rate_limiter_state_write_recovered")
        self._save_failed = False
