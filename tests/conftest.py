"""Shared test fixtures for the token dashboard."""

import pytest

from geckodash.config import GeckoSettings
from geckodash.data import FlatFileStore, StorageConfig
from geckodash.models import OHLCVPoint
from geckodash.ratelimit import MemoryStateStore, RateLimiter


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_point(timestamp: int, close: float = 1.0, volume: float = 10.0) -> OHLCVPoint:
    """Candle whose open/high/low bracket ``close``."""
    return OHLCVPoint(
        timestamp=timestamp,
        open=close,
        high=close + 0.5,
        low=close - 0.5,
        close=close,
        volume=volume,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    """In-memory limiter with the default 30 calls per minute."""
    return RateLimiter(MemoryStateStore(), clock=clock)


@pytest.fixture
def gecko_settings() -> GeckoSettings:
    return GeckoSettings(base_url="https://gecko.test/api/v2", ohlcv_limit=1000)


@pytest.fixture
def store(tmp_path) -> FlatFileStore:
    """Flat-file store rooted in a fresh temporary directory."""
    return FlatFileStore(StorageConfig(data_path=str(tmp_path / "data")))
