"""Shared data models for the token dashboard.

Prices and volumes are floats: they come from the API as JSON numbers and go
straight back out to the charting frontend, with no arithmetic in between.
"""

from dataclasses import dataclass
from enum import Enum

from geckodash.exceptions import UnknownTimeframeError


class Timeframe(str, Enum):
    """Candle interval identifiers used throughout the dashboard."""

    M1 = "M1"
    M5 = "M5"
    M15 = "M15"
    H1 = "H1"
    H4 = "H4"
    H12 = "H12"
    D1 = "D1"

    @classmethod
    def parse(cls, value: str) -> "Timeframe":
        """Return the Timeframe for ``value``, raising UnknownTimeframeError otherwise."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownTimeframeError(value) from None

    @property
    def interval_seconds(self) -> int:
        return _INTERVAL_SECONDS[self]

    @property
    def api_unit(self) -> str:
        """GeckoTerminal OHLCV path unit: minute, hour or day."""
        return _API_MAPPING[self][0]

    @property
    def api_aggregate(self) -> int:
        """GeckoTerminal ``aggregate`` query parameter for this interval."""
        return _API_MAPPING[self][1]


_INTERVAL_SECONDS: dict[Timeframe, int] = {
    Timeframe.M1: 60,
    Timeframe.M5: 300,
    Timeframe.M15: 900,
    Timeframe.H1: 3600,
    Timeframe.H4: 14400,
    Timeframe.H12: 43200,
    Timeframe.D1: 86400,
}

_API_MAPPING: dict[Timeframe, tuple[str, int]] = {
    Timeframe.M1: ("minute", 1),
    Timeframe.M5: ("minute", 5),
    Timeframe.M15: ("minute", 15),
    Timeframe.H1: ("hour", 1),
    Timeframe.H4: ("hour", 4),
    Timeframe.H12: ("hour", 12),
    Timeframe.D1: ("day", 1),
}


@dataclass
class OHLCVPoint:
    """A single candle as delivered by the API (or synthesized by gap filling)."""

    timestamp: int  # Unix seconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    readable_timestamp: str | None = None

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "timestamp": self.timestamp,
            "readable_timestamp": self.readable_timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
