"""Abstract market-data client interface.

Token management and the HTTP routes depend only on this interface, keeping
GeckoTerminal-specific URLs and payload shapes in the concrete client.

Every method of an implementation spends one rate-limiter slot per request
and raises ``RateLimited`` without touching the network when none is left.
"""

from abc import ABC, abstractmethod

from geckodash.models import OHLCVPoint, Timeframe
from geckodash.upstream.types import TokenMarketData, TokenMetadata, TrendingPool


class MarketDataClient(ABC):
    """Abstract base class for market-data API clients."""

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""
        ...

    @abstractmethod
    async def fetch_token_metadata(self, network: str, address: str) -> TokenMetadata:
        """Resolve a contract address to its metadata and top pool.

        Raises UpstreamError when the token has no pool.
        """
        ...

    @abstractmethod
    async def fetch_ohlcv(
        self, network: str, pool_address: str, timeframe: Timeframe | str
    ) -> list[OHLCVPoint]:
        """Fetch raw candles for a pool, in the order the API delivers them."""
        ...

    @abstractmethod
    async def fetch_trending_pools(
        self, network: str, duration: str = "1h"
    ) -> list[TrendingPool]:
        """Fetch the first page of trending pools for a network."""
        ...

    @abstractmethod
    async def fetch_token_market_data(
        self, network: str, address: str
    ) -> TokenMarketData:
        """Fetch market cap, FDV and 24h volume for a token, display-formatted."""
        ...
