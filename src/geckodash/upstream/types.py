"""Parsed upstream results handed to the rest of the dashboard."""

from dataclasses import dataclass, field

# Sub-timeframes GeckoTerminal reports price change, volume and tx counts for
POOL_SUB_TIMEFRAMES = ("m5", "m15", "m30", "h1", "h6", "h24")

TRENDING_DURATIONS = ("5m", "1h", "6h", "24h")


@dataclass
class TokenMetadata:
    """Token identity resolved from the API, plus the pool used for pricing."""

    ca: str
    network: str
    name: str
    symbol: str
    pa: str
    image_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "CA": self.ca,
            "network": self.network,
            "name": self.name,
            "symbol": self.symbol,
            "image_url": self.image_url,
            "PA": self.pa,
        }


@dataclass
class TxCounts:
    """Transaction counts for one sub-timeframe."""

    buys: int = 0
    sells: int = 0
    buyers: int | None = None
    sellers: int | None = None

    def to_dict(self) -> dict:
        return {
            "buys": self.buys,
            "sells": self.sells,
            "buyers": self.buyers,
            "sellers": self.sellers,
        }


@dataclass
class TrendingPool:
    """Summary of one trending pool.

    ``price_change_percentage`` and ``volume_usd`` are keyed by sub-timeframe
    (see POOL_SUB_TIMEFRAMES) and keep the API's decimal strings; missing
    sub-timeframes map to None. ``price_change_display`` holds the same
    changes as unsigned compact labels ("1.4K", "-" when missing).
    """

    id: str
    network: str
    name: str
    address: str
    base_token_price_usd: str | None = None
    market_cap_usd: str | None = None
    fdv_usd: str | None = None
    price_change_percentage: dict[str, str | None] = field(default_factory=dict)
    price_change_display: dict[str, str] = field(default_factory=dict)
    volume_usd: dict[str, str | None] = field(default_factory=dict)
    transactions: dict[str, TxCounts] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "network": self.network,
            "name": self.name,
            "address": self.address,
            "base_token_price_usd": self.base_token_price_usd,
            "market_cap_usd": self.market_cap_usd,
            "fdv_usd": self.fdv_usd,
            "price_change_percentage": dict(self.price_change_percentage),
            "price_change_display": dict(self.price_change_display),
            "volume_usd": dict(self.volume_usd),
            "transactions": {k: v.to_dict() for k, v in self.transactions.items()},
        }


@dataclass
class TokenMarketData:
    """Display-formatted market figures for a token ("-" when unknown)."""

    mc: str
    fdv: str
    h24_volume: str

    def to_dict(self) -> dict:
        return {"mc": self.mc, "fdv": self.fdv, "h24Volume": self.h24_volume}
