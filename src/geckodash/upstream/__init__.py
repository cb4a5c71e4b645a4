"""Upstream market-data layer -- GeckoTerminal integration via aiohttp."""

from geckodash.upstream.batch import batch_api_calls
from geckodash.upstream.client import MarketDataClient
from geckodash.upstream.gecko_client import GeckoTerminalClient
from geckodash.upstream.types import (
    TRENDING_DURATIONS,
    TokenMarketData,
    TokenMetadata,
    TrendingPool,
    TxCounts,
)

__all__ = [
    "GeckoTerminalClient",
    "MarketDataClient",
    "TRENDING_DURATIONS",
    "TokenMarketData",
    "TokenMetadata",
    "TrendingPool",
    "TxCounts",
    "batch_api_calls",
]
