"""Upstream call budget -- fixed-window limiter with pluggable state storage."""

from geckodash.ratelimit.limiter import RateLimiter, RateLimitStatus
from geckodash.ratelimit.state import (
    FileStateStore,
    MemoryStateStore,
    RateLimiterState,
    RateLimiterStateStore,
    StateUnreadable,
)

__all__ = [
    "FileStateStore",
    "MemoryStateStore",
    "RateLimitStatus",
    "RateLimiter",
    "RateLimiterState",
    "RateLimiterStateStore",
    "StateUnreadable",
]
