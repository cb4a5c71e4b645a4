"""GeckoTerminal API client via aiohttp.

Each public method performs exactly one GET request, gated by the shared
RateLimiter. Failures surface as two error kinds only:

- RateLimited: the limiter refused the slot; no request was sent.
- UpstreamError: non-2xx status (status carried through), or a transport,
  decoding or payload-shape failure (status 0).

GeckoTerminal OHLCV lists are REVERSE-SORTED (newest first) and skip
intervals without trades. This client returns them as delivered; gap filling
and ordering belong to ``geckodash.timeseries``.
"""

import asyncio
import time
from typing import TypeVar

import aiohttp
import pydantic

from geckodash.config import GeckoSettings
from geckodash.exceptions import RateLimited, UpstreamError, ValidationError
from geckodash.formatters import format_number, format_price_change, format_volume_number
from geckodash.logging import get_logger
from geckodash.models import OHLCVPoint, Timeframe
from geckodash.ratelimit import RateLimiter
from geckodash.upstream.client import MarketDataClient
from geckodash.upstream.schemas import OHLCVResponse, TokenResponse, TrendingPoolsResponse
from geckodash.upstream.types import (
    POOL_SUB_TIMEFRAMES,
    TRENDING_DURATIONS,
    TokenMarketData,
    TokenMetadata,
    TrendingPool,
    TxCounts,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def _parse(model: type[ModelT], payload: object, endpoint: str) -> ModelT:
    """Validate ``payload`` against ``model`` or raise UpstreamError(0, ...)."""
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        logger.warning(
            "malformed_upstream_response",
            endpoint=endpoint,
            errors=e.error_count(),
        )
        raise UpstreamError(
            0, f"Malformed upstream response: {e.error_count()} invalid field(s)"
        ) from e


def _split_resource_id(resource_id: str) -> tuple[str, str]:
    """Split a GeckoTerminal id ``<network>_<address>`` into its parts."""
    network, _, address = resource_id.partition("_")
    return network, address


class GeckoTerminalClient(MarketDataClient):
    """Concrete market-data client for the GeckoTerminal public API.

    Usage:
        client = GeckoTerminalClient(settings.gecko, limiter)
        try:
            token = await client.fetch_token_metadata("base", "0x...")
        finally:
            await client.close()
    """

    def __init__(
        self,
        settings: GeckoSettings,
        limiter: RateLimiter,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings
        self._limiter = limiter
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()
        self._headers = {
            "Accept": "application/json",
            "User-Agent": settings.user_agent,
        }

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or lazily create the HTTP session."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self._settings.request_timeout),
                )
                self._owns_session = True
                logger.debug("gecko_session_created")
            return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        async with self._session_lock:
            if self._owns_session and self._session is not None and not self._session.closed:
                await self._session.close()
                logger.info("gecko_session_closed")
            self._session = None

    # ──────────────────────────────────────────────
    # Request core
    # ──────────────────────────────────────────────

    async def _request(self, endpoint: str, params: dict[str, str] | None = None) -> object:
        """Spend one limiter slot and GET ``endpoint``, returning decoded JSON."""
        if not await self._limiter.try_consume():
            raise RateLimited()

        session = await self._get_session()
        url = f"{self._settings.base_url}{endpoint}"
        started = time.monotonic()

        try:
            async with session.get(url, params=params, headers=self._headers) as response:
                if not 200 <= response.status < 300:
                    logger.warning(
                        "upstream_request_failed",
                        endpoint=endpoint,
                        status=response.status,
                        reason=response.reason,
                    )
                    raise UpstreamError(
                        response.status, f"API request failed: {response.reason}"
                    )
                payload = await response.json()
        except UpstreamError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            detail = str(e) or type(e).__name__
            logger.warning("upstream_network_error", endpoint=endpoint, error=detail)
            raise UpstreamError(0, f"Network error: {detail}") from e

        logger.debug(
            "upstream_request_ok",
            endpoint=endpoint,
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return payload

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def fetch_token_metadata(self, network: str, address: str) -> TokenMetadata:
        """Resolve token metadata and its top pool address.

        The returned network comes from the resource id, which is the API's
        canonical spelling of the network name.
        """
        endpoint = f"/networks/{network.lower()}/tokens/{address}"
        body = _parse(TokenResponse, await self._request(endpoint), endpoint)

        pools = body.data.relationships.top_pools.data
        if not pools:
            raise UpstreamError(0, "No pool found for this token")

        network_from_id, _ = _split_resource_id(body.data.id)
        _, pool_address = _split_resource_id(pools[0].id)
        attributes = body.data.attributes

        metadata = TokenMetadata(
            ca=attributes.address,
            network=network_from_id,
            name=attributes.name,
            symbol=attributes.symbol,
            image_url=attributes.image_url,
            pa=pool_address,
        )
        logger.info(
            "token_metadata_fetched",
            symbol=metadata.symbol,
            network=metadata.network,
            pool=metadata.pa,
        )
        return metadata

    async def fetch_ohlcv(
        self, network: str, pool_address: str, timeframe: Timeframe | str
    ) -> list[OHLCVPoint]:
        """Fetch up to ``ohlcv_limit`` USD candles ending now.

        The timeframe is validated before a limiter slot is spent.
        """
        if not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.parse(timeframe)

        endpoint = f"/networks/{network.lower()}/pools/{pool_address}/ohlcv/{timeframe.api_unit}"
        params = {
            "aggregate": str(timeframe.api_aggregate),
            "before_timestamp": str(int(time.time())),
            "limit": str(self._settings.ohlcv_limit),
            "currency": "usd",
        }
        body = _parse(
            OHLCVResponse, await self._request(endpoint, params), endpoint
        )

        points = [
            OHLCVPoint(
                timestamp=ts,
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=volume,
            )
            for ts, open_, high, low, close, volume in body.data.attributes.ohlcv_list
        ]
        logger.debug(
            "ohlcv_fetched",
            pool=pool_address,
            timeframe=timeframe.value,
            count=len(points),
        )
        return points

    async def fetch_trending_pools(
        self, network: str, duration: str = "1h"
    ) -> list[TrendingPool]:
        """Fetch page 1 of trending pools for ``network`` over ``duration``."""
        if duration not in TRENDING_DURATIONS:
            raise ValidationError(
                f"Duration must be one of: {', '.join(TRENDING_DURATIONS)}"
            )

        endpoint = f"/networks/{network.lower()}/trending_pools"
        body = _parse(
            TrendingPoolsResponse,
            await self._request(endpoint, {"page": "1", "duration": duration}),
            endpoint,
        )

        pools = []
        for resource in body.data:
            attrs = resource.attributes
            pools.append(
                TrendingPool(
                    id=resource.id,
                    network=network.lower(),
                    name=attrs.name,
                    address=attrs.address,
                    base_token_price_usd=attrs.base_token_price_usd,
                    market_cap_usd=attrs.market_cap_usd,
                    fdv_usd=attrs.fdv_usd,
                    price_change_percentage={
                        tf: attrs.price_change_percentage.get(tf)
                        for tf in POOL_SUB_TIMEFRAMES
                    },
                    price_change_display={
                        tf: format_price_change(attrs.price_change_percentage.get(tf))
                        for tf in POOL_SUB_TIMEFRAMES
                    },
                    volume_usd={tf: attrs.volume_usd.get(tf) for tf in POOL_SUB_TIMEFRAMES},
                    transactions={
                        tf: TxCounts(**counts.model_dump())
                        for tf, counts in attrs.transactions.items()
                        if tf in POOL_SUB_TIMEFRAMES
                    },
                )
            )

        logger.info(
            "trending_pools_fetched",
            network=network.lower(),
            duration=duration,
            count=len(pools),
        )
        return pools

    async def fetch_token_market_data(
        self, network: str, address: str
    ) -> TokenMarketData:
        """Fetch market cap, FDV and 24h volume, formatted for display."""
        endpoint = f"/networks/{network.lower()}/tokens/{address}"
        body = _parse(TokenResponse, await self._request(endpoint), endpoint)
        attributes = body.data.attributes
        return TokenMarketData(
            mc=format_number(attributes.market_cap_usd),
            fdv=format_number(attributes.fdv_usd),
            h24_volume=format_volume_number(attributes.volume_usd.get("h24")),
        )
