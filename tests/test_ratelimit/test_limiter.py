"""Tests for RateLimiter and its state stores.

All tests drive the limiter with a fake clock; none of them sleep.
"""

import asyncio
import json
from dataclasses import replace

import pytest

from conftest import FakeClock
from geckodash.ratelimit import (
    FileStateStore,
    MemoryStateStore,
    RateLimiter,
    RateLimiterState,
    RateLimiterStateStore,
)


class FailingSaveStore(RateLimiterStateStore):
    """Reads as empty and fails every write, like a read-only disk."""

    async def load(self) -> RateLimiterState | None:
        return None

    async def save(self, state: RateLimiterState) -> None:
        raise OSError("read-only file system")


class StaleFileStore(RateLimiterStateStore):
    """Keeps returning one persisted state while every write fails, like a full disk."""

    def __init__(self, state: RateLimiterState) -> None:
        self.state = state
        self.fail_writes = True
        self.saved: list[RateLimiterState] = []

    async def load(self) -> RateLimiterState | None:
        return RateLimiterState.from_dict(self.state.to_dict())

    async def save(self, state: RateLimiterState) -> None:
        if self.fail_writes:
            raise OSError("No space left on device")
        self.saved.append(state)
        self.state = state


# ---------------------------------------------------------------------------
# Budget enforcement
# ---------------------------------------------------------------------------


class TestTryConsume:
    """Tests for the per-window call budget."""

    @pytest.mark.asyncio
    async def test_allows_exactly_max_calls(self, limiter: RateLimiter) -> None:
        results = [await limiter.try_consume() for _ in range(31)]
        assert results[:30] == [True] * 30
        assert results[30] is False

    @pytest.mark.asyncio
    async def test_denial_leaves_persisted_state_untouched(self, clock: FakeClock) -> None:
        store = MemoryStateStore()
        limiter = RateLimiter(store, max_calls=2, clock=clock)
        await limiter.try_consume()
        await limiter.try_consume()
        before = await store.load()

        clock.advance(10)
        assert await limiter.try_consume() is False
        assert await store.load() == before

    @pytest.mark.asyncio
    async def test_concurrent_consumers_never_exceed_budget(self, tmp_path, clock: FakeClock) -> None:
        limiter = RateLimiter(FileStateStore(str(tmp_path / "rl.json")), clock=clock)
        results = await asyncio.gather(*(limiter.try_consume() for _ in range(50)))
        assert sum(results) == 30

    @pytest.mark.asyncio
    async def test_zero_budget_denies_everything(self, clock: FakeClock) -> None:
        limiter = RateLimiter(MemoryStateStore(), max_calls=0, clock=clock)
        assert await limiter.try_consume() is False

    def test_rejects_invalid_limits(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(MemoryStateStore(), max_calls=-1)
        with pytest.raises(ValueError):
            RateLimiter(MemoryStateStore(), window_ms=0)


class TestWindows:
    """Tests for window anchoring and lazy rollover."""

    @pytest.mark.asyncio
    async def test_rollover_restores_budget(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(30):
            await limiter.try_consume()
        assert await limiter.try_consume() is False

        clock.advance(60_000)
        assert await limiter.try_consume() is True
        status = await limiter.get_status()
        assert status.current == 1

    @pytest.mark.asyncio
    async def test_last_millisecond_is_same_window(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(30):
            await limiter.try_consume()
        clock.advance(59_999)
        assert await limiter.try_consume() is False

    @pytest.mark.asyncio
    async def test_boundaries_anchor_at_first_call(self, limiter: RateLimiter, clock: FakeClock) -> None:
        start = clock.now
        await limiter.try_consume()
        clock.advance(150_000)  # two and a half windows later
        await limiter.try_consume()

        status = await limiter.get_status()
        assert status.reset_time == start + 3 * 60_000

    def test_window_index_requires_anchor(self) -> None:
        state = RateLimiterState(window_ms=60_000, max_calls=30, last_reset=0)
        with pytest.raises(ValueError):
            state.window_index(1_000)

        state.global_start_time = 1_000
        assert state.window_index(121_000) == 2


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestGetStatus:
    """Tests for the read-only budget snapshot."""

    @pytest.mark.asyncio
    async def test_fresh_limiter(self, limiter: RateLimiter, clock: FakeClock) -> None:
        status = await limiter.get_status()
        assert status.current == 0
        assert status.max == 30
        assert status.reset_time == clock.now + 60_000

    @pytest.mark.asyncio
    async def test_does_not_consume(self, limiter: RateLimiter) -> None:
        await limiter.try_consume()
        for _ in range(5):
            status = await limiter.get_status()
        assert status.current == 1

    @pytest.mark.asyncio
    async def test_reports_zero_after_window_passes(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(4):
            await limiter.try_consume()
        clock.advance(61_000)
        status = await limiter.get_status()
        assert status.current == 0
        assert status.reset_time > clock.now

    def test_to_dict_keys(self) -> None:
        from geckodash.ratelimit import RateLimitStatus

        assert RateLimitStatus(current=3, max=30, reset_time=123).to_dict() == {
            "current": 3,
            "max": 30,
            "resetTime": 123,
        }

    @pytest.mark.asyncio
    async def test_reset_discards_count(self, limiter: RateLimiter) -> None:
        for _ in range(10):
            await limiter.try_consume()
        await limiter.reset()
        status = await limiter.get_status()
        assert status.current == 0


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestFileStateStore:
    """Tests for the JSON state file and its failure policy."""

    @pytest.mark.asyncio
    async def test_writes_camel_case_document(self, tmp_path, clock: FakeClock) -> None:
        path = tmp_path / "nested" / "rateLimiter.json"
        limiter = RateLimiter(FileStateStore(str(path)), clock=clock)
        await limiter.try_consume()

        data = json.loads(path.read_text())
        assert data == {
            "windowMs": 60_000,
            "maxCalls": 30,
            "globalStartTime": clock.now,
            "lastReset": clock.now,
            "callCount": 1,
        }

    @pytest.mark.asyncio
    async def test_instances_share_budget_through_file(self, tmp_path, clock: FakeClock) -> None:
        path = str(tmp_path / "rl.json")
        first = RateLimiter(FileStateStore(path), max_calls=3, clock=clock)
        second = RateLimiter(FileStateStore(path), max_calls=3, clock=clock)

        assert await first.try_consume() is True
        assert await first.try_consume() is True
        assert await second.try_consume() is True
        assert await second.try_consume() is False

    @pytest.mark.asyncio
    async def test_corrupt_file_falls_back_to_memory(self, tmp_path, clock: FakeClock) -> None:
        path = tmp_path / "rl.json"
        limiter = RateLimiter(FileStateStore(str(path)), max_calls=6, clock=clock)
        for _ in range(5):
            await limiter.try_consume()

        path.write_text("{not json")
        assert await limiter.try_consume() is True
        assert await limiter.try_consume() is False

    @pytest.mark.asyncio
    async def test_corrupt_file_without_memory_starts_fresh(self, tmp_path, clock: FakeClock) -> None:
        path = tmp_path / "rl.json"
        path.write_text('{"windowMs": "abc"}')
        limiter = RateLimiter(FileStateStore(str(path)), clock=clock)

        assert await limiter.try_consume() is True
        status = await limiter.get_status()
        assert status.current == 1

    @pytest.mark.asyncio
    async def test_failed_write_keeps_slot_in_memory(self, clock: FakeClock) -> None:
        limiter = RateLimiter(FailingSaveStore(), max_calls=2, clock=clock)
        assert await limiter.try_consume() is True
        assert await limiter.try_consume() is True
        assert await limiter.try_consume() is False

    @pytest.mark.asyncio
    async def test_unwritable_but_readable_file_uses_memory_count(self, clock: FakeClock) -> None:
        persisted = RateLimiterState(
            window_ms=60_000,
            max_calls=3,
            last_reset=clock.now,
            call_count=1,
            global_start_time=clock.now,
        )
        limiter = RateLimiter(StaleFileStore(persisted), max_calls=3, clock=clock)

        granted = sum([await limiter.try_consume() for _ in range(10)])

        assert granted == 2
        assert (await limiter.get_status()).current == 3

    @pytest.mark.asyncio
    async def test_successful_write_returns_to_persisted_state(self, clock: FakeClock) -> None:
        persisted = RateLimiterState(
            window_ms=60_000,
            max_calls=5,
            last_reset=clock.now,
            call_count=1,
            global_start_time=clock.now,
        )
        store = StaleFileStore(persisted)
        limiter = RateLimiter(store, max_calls=5, clock=clock)

        assert await limiter.try_consume() is True
        store.fail_writes = False
        assert await limiter.try_consume() is True

        assert store.saved[-1].call_count == 3
        store.state = replace(store.state, call_count=5)
        assert await limiter.try_consume() is False

    @pytest.mark.asyncio
    async def test_configured_limits_override_persisted(self, tmp_path, clock: FakeClock) -> None:
        path = str(tmp_path / "rl.json")
        generous = RateLimiter(FileStateStore(path), max_calls=100, clock=clock)
        for _ in range(40):
            await generous.try_consume()

        strict = RateLimiter(FileStateStore(path), max_calls=30, clock=clock)
        status = await strict.get_status()
        assert status.max == 30
        assert status.current == 30
        assert await strict.try_consume() is False
