"""Rate limiter state and its persistence backends.

The state document uses camelCase keys (``windowMs``, ``callCount``, ...) so
existing ``rateLimiter.json`` files keep working.
"""

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import aiofiles
import aiofiles.os


@dataclass
class RateLimiterState:
    """Counter for one fixed-window call budget.

    Windows are anchored at ``global_start_time`` (epoch ms of the first call
    ever made), so boundaries sit at ``global_start_time + k * window_ms`` and
    survive process restarts.
    """

    window_ms: int
    max_calls: int
    last_reset: int
    call_count: int = 0
    global_start_time: int | None = None

    def window_index(self, at_ms: int) -> int:
        """Index of the window ``at_ms`` falls into.

        Raises:
            ValueError: If no call has anchored the windows yet.
        """
        if self.global_start_time is None:
            raise ValueError("window_index needs globalStartTime to be set")
        return (at_ms - self.global_start_time) // self.window_ms

    def to_dict(self) -> dict:
        return {
            "windowMs": self.window_ms,
            "maxCalls": self.max_calls,
            "globalStartTime": self.global_start_time,
            "lastReset": self.last_reset,
            "callCount": self.call_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RateLimiterState":
        """Build state from a persisted document.

        Raises:
            KeyError, TypeError, ValueError: If the document is incomplete or
                carries values of the wrong type.
        """
        start = data["globalStartTime"]
        return cls(
            window_ms=int(data["windowMs"]),
            max_calls=int(data["maxCalls"]),
            last_reset=int(data["lastReset"]),
            call_count=int(data["callCount"]),
            global_start_time=int(start) if start is not None else None,
        )


class StateUnreadable(Exception):
    """Raised by a state store when persisted state exists but cannot be used."""


class RateLimiterStateStore(ABC):
    """Where the limiter keeps its state between calls."""

    @abstractmethod
    async def load(self) -> RateLimiterState | None:
        """Return the persisted state, or None if nothing was persisted yet.

        Raises:
            StateUnreadable: If persisted state exists but is corrupt or the
                read failed.
        """
        ...

    @abstractmethod
    async def save(self, state: RateLimiterState) -> None:
        """Persist ``state``. Raises OSError on write failure."""
        ...


class MemoryStateStore(RateLimiterStateStore):
    """Process-local state store; each instance is an independent limiter."""

    def __init__(self) -> None:
        self._data: dict | None = None

    async def load(self) -> RateLimiterState | None:
        if self._data is None:
            return None
        return RateLimiterState.from_dict(self._data)

    async def save(self, state: RateLimiterState) -> None:
        self._data = state.to_dict()


class FileStateStore(RateLimiterStateStore):
    """JSON file state store, shared best-effort by processes using the same path."""

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    async def load(self) -> RateLimiterState | None:
        try:
            async with aiofiles.open(self._path, encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateUnreadable(str(e)) from e

        try:
            return RateLimiterState.from_dict(json.loads(raw))
        except (KeyError, TypeError, ValueError) as e:
            raise StateUnreadable(f"corrupt state file: {e}") from e

    async def save(self, state: RateLimiterState) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            await aiofiles.os.makedirs(directory, exist_ok=True)
        async with aiofiles.open(self._path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(state.to_dict(), indent=2))
