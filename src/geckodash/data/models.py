"""Persisted record types for the flat-file store.

Field names follow Python conventions; ``to_dict``/``from_dict`` map them to
the JSON document keys (``CA``, ``PA``, ``dataPath``, ...) so backups exported
by earlier versions of the dashboard import unchanged.
"""

from dataclasses import dataclass, replace


@dataclass
class Token:
    """A watched token. Unique on ``ca``."""

    ca: str
    network: str
    name: str
    symbol: str
    pa: str  # pool used as the price source
    image_url: str | None = None
    created_at: str | None = None  # ISO-8601 UTC
    updated_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "CA": self.ca,
            "network": self.network,
            "name": self.name,
            "symbol": self.symbol,
            "image_url": self.image_url,
            "PA": self.pa,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Token":
        """Build a Token from its JSON document.

        Raises:
            KeyError: If a required key is missing.
            TypeError: If ``data`` is not a mapping.
            ValueError: If a required key holds an empty value.
        """
        token = cls(
            ca=str(data["CA"]),
            network=str(data["network"]),
            name=str(data["name"]),
            symbol=str(data["symbol"]),
            pa=str(data["PA"]),
            image_url=data.get("image_url"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
        if not token.ca or not token.pa:
            raise ValueError("token CA and PA must be non-empty")
        return token


@dataclass
class OHLCVRow:
    """One stored candle. Unique on ``(ca, timestamp, timeframe)``."""

    ca: str
    symbol: str
    timestamp: int  # Unix seconds
    timeframe: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    readable_timestamp: str | None = None
    created_at: str | None = None

    @property
    def key(self) -> tuple[str, int, str]:
        return (self.ca, self.timestamp, self.timeframe)

    def to_dict(self) -> dict:
        return {
            "CA": self.ca,
            "symbol": self.symbol,
            "timestamp": self.timestamp,
            "readable_timestamp": self.readable_timestamp,
            "timeframe": self.timeframe,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OHLCVRow":
        """Build a row from its JSON document.

        Raises:
            KeyError, TypeError, ValueError: If the document is incomplete or
                a numeric field does not parse.
        """
        return cls(
            ca=str(data["CA"]),
            symbol=str(data["symbol"]),
            timestamp=int(data["timestamp"]),
            timeframe=str(data["timeframe"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
            readable_timestamp=data.get("readable_timestamp"),
            created_at=data.get("created_at"),
        )


@dataclass
class StorageConfig:
    """Where the store keeps its JSON documents."""

    data_path: str
    tokens_file: str = "tokens.json"
    ohlcv_file: str = "ohlcv.json"
    settings_file: str = "storage-settings.json"

    def to_dict(self) -> dict:
        return {
            "dataPath": self.data_path,
            "tokensFile": self.tokens_file,
            "ohlcvFile": self.ohlcv_file,
            "settingsFile": self.settings_file,
        }

    def merged(self, data: dict) -> "StorageConfig":
        """Return a copy overridden by the non-empty string values in ``data``."""
        changes = {}
        for key, attr in (
            ("dataPath", "data_path"),
            ("tokensFile", "tokens_file"),
            ("ohlcvFile", "ohlcv_file"),
            ("settingsFile", "settings_file"),
        ):
            value = data.get(key)
            if isinstance(value, str) and value:
                changes[attr] = value
        return replace(self, **changes)
