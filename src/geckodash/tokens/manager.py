"""Token lifecycle: resolve, persist, refresh and read back for charts.

Combines the market-data client with the flat-file store. Upstream calls are
made strictly one at a time so a bulk add or refresh never spends more than
one limiter slot concurrently; a slot denied mid-batch fails that token only.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from geckodash.data import FlatFileStore, OHLCVRow, Token
from geckodash.exceptions import DashboardError, StorageError
from geckodash.logging import get_logger
from geckodash.models import Timeframe
from geckodash.timeseries import fill_time_series_gaps
from geckodash.upstream import MarketDataClient

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]

_ADDRESS_SEPARATORS = re.compile(r"[,\s]+")


def parse_contract_addresses(text: str) -> list[str]:
    """Split free-form user input on commas and whitespace, dropping blanks."""
    return [part for part in _ADDRESS_SEPARATORS.split(text.strip()) if part]


@dataclass
class AddTokensResult:
    """Outcome of a bulk add: tokens now watched, and addresses that failed."""

    succeeded: list[Token] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)  # {"address", "error"}

    def to_dict(self) -> dict:
        return {
            "success": [t.to_dict() for t in self.succeeded],
            "failed": list(self.failed),
        }


@dataclass
class RefreshResult:
    """Outcome of a refresh: symbols refreshed, and symbols that failed."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)  # {"symbol", "error"}

    def to_dict(self) -> dict:
        return {"success": list(self.succeeded), "failed": list(self.failed)}


class TokenManager:
    """Orchestrates the watched-token list and its stored OHLCV history.

    Usage:
        manager = TokenManager(client, store)
        result = await manager.add_tokens(["0xabc..."], "base", "M5")
        candles = await manager.get_chart_data("0xabc...", "M5")
    """

    def __init__(
        self,
        client: MarketDataClient,
        store: FlatFileStore,
        retention: int = 1000,
    ) -> None:
        self._client = client
        self._store = store
        self._retention = retention

    async def add_tokens(
        self,
        addresses: list[str],
        network: str,
        timeframe: Timeframe | str,
        progress_callback: ProgressCallback | None = None,
    ) -> AddTokensResult:
        """Resolve and persist each address, then seed its OHLCV history.

        Addresses already in the store count as succeeded without an upstream
        call. A failed initial OHLCV fetch is logged but does not fail the
        token; the next refresh fills it in.

        Raises:
            UnknownTimeframeError: If ``timeframe`` is not a known identifier.
        """
        if not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.parse(timeframe)

        result = AddTokensResult()
        total = len(addresses)

        for i, raw in enumerate(addresses, 1):
            address = raw.strip()
            if not address:
                continue

            try:
                existing = await self._store.get_token(address)
                if existing is not None:
                    result.succeeded.append(existing)
                else:
                    token = await self._resolve_and_store(address, network)
                    result.succeeded.append(token)
                    try:
                        await self.fetch_and_store_ohlcv(token, timeframe)
                    except DashboardError as e:
                        logger.warning(
                            "initial_ohlcv_fetch_failed",
                            ca=token.ca,
                            timeframe=timeframe.value,
                            error=str(e),
                        )
            except DashboardError as e:
                logger.warning("token_add_failed", address=address, error=str(e))
                result.failed.append({"address": address, "error": str(e)})

            if progress_callback is not None:
                progress_callback(i, total, address)

        logger.info(
            "tokens_added",
            network=network,
            succeeded=len(result.succeeded),
            failed=len(result.failed),
        )
        return result

    async def _resolve_and_store(self, address: str, network: str) -> Token:
        metadata = await self._client.fetch_token_metadata(network, address)
        token = Token(
            ca=metadata.ca,
            network=metadata.network,
            name=metadata.name,
            symbol=metadata.symbol,
            pa=metadata.pa,
            image_url=metadata.image_url,
        )
        if not await self._store.upsert_token(token):
            raise StorageError("Failed to insert token into database")
        return token

    async def fetch_and_store_ohlcv(self, token: Token, timeframe: Timeframe | str) -> int:
        """Fetch, gap-fill and persist candles for one token; returns rows written.

        Older rows beyond the retention limit are pruned after a successful write.

        Raises:
            RateLimited, UpstreamError: From the market-data client.
            StorageError: If the rows could not be written.
        """
        if not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.parse(timeframe)

        raw = await self._client.fetch_ohlcv(token.network, token.pa, timeframe)
        points = fill_time_series_gaps(raw, timeframe)

        rows = [
            OHLCVRow(
                ca=token.ca,
                symbol=token.symbol,
                timestamp=p.timestamp,
                timeframe=timeframe.value,
                open=p.open,
                high=p.high,
                low=p.low,
                close=p.close,
                volume=p.volume,
                readable_timestamp=p.readable_timestamp,
            )
            for p in points
        ]
        if not await self._store.upsert_ohlcv_batch(rows):
            raise StorageError("Failed to store OHLCV data")
        await self._store.prune_ohlcv(token.ca, timeframe.value, keep=self._retention)

        logger.debug(
            "ohlcv_stored",
            ca=token.ca,
            timeframe=timeframe.value,
            fetched=len(raw),
            stored=len(rows),
        )
        return len(rows)

    async def refresh_all_tokens_ohlcv(
        self,
        timeframe: Timeframe | str,
        progress_callback: ProgressCallback | None = None,
    ) -> RefreshResult:
        """Re-fetch candles for every watched token, one after another.

        A failure (including a denied limiter slot) is recorded against that
        token and the loop moves on.
        """
        if not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.parse(timeframe)

        tokens = await self._store.list_tokens()
        result = RefreshResult()

        for i, token in enumerate(tokens, 1):
            try:
                await self.fetch_and_store_ohlcv(token, timeframe)
                result.succeeded.append(token.symbol)
            except DashboardError as e:
                logger.warning("token_refresh_failed", ca=token.ca, error=str(e))
                result.failed.append({"symbol": token.symbol, "error": str(e)})

            if progress_callback is not None:
                progress_callback(i, len(tokens), token.symbol)

        logger.info(
            "tokens_refreshed",
            timeframe=timeframe.value,
            succeeded=len(result.succeeded),
            failed=len(result.failed),
        )
        return result

    # ──────────────────────────────────────────────
    # Read side
    # ──────────────────────────────────────────────

    async def get_chart_data(self, ca: str, timeframe: Timeframe | str) -> list[dict]:
        """Stored candles for charting, ascending by time."""
        if not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.parse(timeframe)

        rows = await self._store.list_ohlcv(ca, timeframe.value, limit=self._retention)
        return [
            {
                "time": r.timestamp,
                "open": r.open,
                "high": r.high,
                "low": r.low,
                "close": r.close,
                "volume": r.volume,
            }
            for r in sorted(rows, key=lambda r: r.timestamp)
        ]

    async def get_tokens_with_latest_data(self, timeframe: Timeframe | str) -> list[dict]:
        """Every watched token, with the close and volume of its newest candle."""
        if not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.parse(timeframe)

        tokens = []
        for token in await self._store.list_tokens():
            latest = await self._store.list_ohlcv(token.ca, timeframe.value, limit=1)
            entry = token.to_dict()
            entry["latestPrice"] = latest[0].close if latest else None
            entry["latestVolume"] = latest[0].volume if latest else None
            tokens.append(entry)
        return tokens

    async def remove_token(self, ca: str) -> bool:
        return await self._store.delete_token(ca)
