"""Tests for TokenManager.

All tests use a mocked market-data client and a real flat-file store in a
temporary directory.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import make_point
from geckodash.data import FlatFileStore
from geckodash.exceptions import RateLimited, UnknownTimeframeError, UpstreamError
from geckodash.tokens import TokenManager, parse_contract_addresses
from geckodash.upstream import MarketDataClient, TokenMetadata


def metadata_for(address: str, symbol: str = "ALP") -> TokenMetadata:
    return TokenMetadata(
        ca=address,
        network="base",
        name=f"{symbol} Token",
        symbol=symbol,
        pa=f"pool-{address}",
    )


@pytest.fixture
def mock_client() -> AsyncMock:
    client = AsyncMock(spec=MarketDataClient)
    client.fetch_token_metadata.side_effect = lambda network, address: metadata_for(address)
    # Newest first, one M5 interval missing between each pair
    client.fetch_ohlcv.return_value = [
        make_point(1_700_001_200, close=1.2),
        make_point(1_700_000_600, close=1.1),
        make_point(1_700_000_000, close=1.0),
    ]
    return client


@pytest.fixture
def manager(mock_client: AsyncMock, store: FlatFileStore) -> TokenManager:
    return TokenManager(mock_client, store)


# ---------------------------------------------------------------------------
# add_tokens
# ---------------------------------------------------------------------------


class TestAddTokens:
    @pytest.mark.asyncio
    async def test_adds_token_with_gap_filled_history(
        self, manager: TokenManager, store: FlatFileStore, mock_client: AsyncMock
    ) -> None:
        result = await manager.add_tokens(["0xABC"], "base", "M5")

        assert [t.ca for t in result.succeeded] == ["0xABC"]
        assert result.failed == []
        mock_client.fetch_ohlcv.assert_awaited_once()
        args = mock_client.fetch_ohlcv.await_args.args
        assert args[:2] == ("base", "pool-0xABC")

        rows = await store.list_ohlcv("0xABC", "M5")
        assert len(rows) == 5
        synthetic = [r for r in rows if r.volume == 0.0]
        assert sorted(r.timestamp for r in synthetic) == [1_700_000_300, 1_700_000_900]
        assert all(r.readable_timestamp for r in rows)

    @pytest.mark.asyncio
    async def test_existing_token_counts_as_success_without_api_call(
        self, manager: TokenManager, mock_client: AsyncMock
    ) -> None:
        await manager.add_tokens(["0xABC"], "base", "M5")
        mock_client.reset_mock()

        result = await manager.add_tokens(["0xABC"], "base", "M5")

        assert [t.ca for t in result.succeeded] == ["0xABC"]
        mock_client.fetch_token_metadata.assert_not_awaited()
        mock_client.fetch_ohlcv.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_failure(
        self, manager: TokenManager, store: FlatFileStore, mock_client: AsyncMock
    ) -> None:
        def resolve(network: str, address: str) -> TokenMetadata:
            if address == "0xBAD":
                raise UpstreamError(404, "API request failed: Not Found")
            return metadata_for(address)

        mock_client.fetch_token_metadata.side_effect = resolve

        result = await manager.add_tokens(["0xONE", "0xBAD", "0xTWO"], "base", "M5")

        assert [t.ca for t in result.succeeded] == ["0xONE", "0xTWO"]
        assert result.failed == [{"address": "0xBAD", "error": "API request failed: Not Found"}]
        assert sorted(t.ca for t in await store.list_tokens()) == ["0xONE", "0xTWO"]

    @pytest.mark.asyncio
    async def test_rate_limited_token_fails_alone(
        self, manager: TokenManager, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_token_metadata.side_effect = [metadata_for("0xONE"), RateLimited()]

        result = await manager.add_tokens(["0xONE", "0xTWO"], "base", "M5")

        assert [t.ca for t in result.succeeded] == ["0xONE"]
        assert result.failed == [{"address": "0xTWO", "error": "Rate limit exceeded"}]

    @pytest.mark.asyncio
    async def test_failed_history_fetch_keeps_token(
        self, manager: TokenManager, store: FlatFileStore, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_ohlcv.side_effect = RateLimited()

        result = await manager.add_tokens(["0xABC"], "base", "M5")

        assert [t.ca for t in result.succeeded] == ["0xABC"]
        assert await store.get_token("0xABC") is not None
        assert await store.list_ohlcv("0xABC", "M5") == []

    @pytest.mark.asyncio
    async def test_blank_addresses_skipped_and_trimmed(
        self, manager: TokenManager, mock_client: AsyncMock
    ) -> None:
        progress: list[tuple] = []

        result = await manager.add_tokens(
            ["  0xABC  ", "", "   "], "base", "M5", lambda *args: progress.append(args)
        )

        assert [t.ca for t in result.succeeded] == ["0xABC"]
        mock_client.fetch_token_metadata.assert_awaited_once_with("base", "0xABC")
        assert progress == [(1, 3, "0xABC")]

    @pytest.mark.asyncio
    async def test_unknown_timeframe_rejected_up_front(
        self, manager: TokenManager, mock_client: AsyncMock
    ) -> None:
        with pytest.raises(UnknownTimeframeError):
            await manager.add_tokens(["0xABC"], "base", "M3")
        mock_client.fetch_token_metadata.assert_not_awaited()


# ---------------------------------------------------------------------------
# refresh / read side
# ---------------------------------------------------------------------------


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refreshes_sequentially_and_reports_failures(
        self, manager: TokenManager, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_token_metadata.side_effect = [
            metadata_for("0xONE", "ONE"),
            metadata_for("0xTWO", "TWO"),
        ]
        await manager.add_tokens(["0xONE", "0xTWO"], "base", "M5")

        history = mock_client.fetch_ohlcv.return_value
        mock_client.fetch_ohlcv.side_effect = [history, UpstreamError(0, "Network error: reset")]
        progress: list[str] = []

        result = await manager.refresh_all_tokens_ohlcv(
            "M5", lambda done, total, symbol: progress.append(f"{done}/{total} {symbol}")
        )

        assert result.to_dict() == {
            "success": ["ONE"],
            "failed": [{"symbol": "TWO", "error": "Network error: reset"}],
        }
        assert progress == ["1/2 ONE", "2/2 TWO"]

    @pytest.mark.asyncio
    async def test_refresh_with_no_tokens(self, manager: TokenManager) -> None:
        result = await manager.refresh_all_tokens_ohlcv("H1")
        assert result.succeeded == []
        assert result.failed == []

    @pytest.mark.asyncio
    async def test_retention_applied_after_store(
        self, mock_client: AsyncMock, store: FlatFileStore
    ) -> None:
        manager = TokenManager(mock_client, store, retention=2)

        await manager.add_tokens(["0xABC"], "base", "M5")

        rows = await store.list_ohlcv("0xABC", "M5")
        assert [r.timestamp for r in rows] == [1_700_001_200, 1_700_000_900]


class TestReadSide:
    @pytest.mark.asyncio
    async def test_chart_data_ascending(self, manager: TokenManager) -> None:
        await manager.add_tokens(["0xABC"], "base", "M5")

        data = await manager.get_chart_data("0xABC", "M5")

        times = [d["time"] for d in data]
        assert times == sorted(times)
        assert set(data[0]) == {"time", "open", "high", "low", "close", "volume"}

    @pytest.mark.asyncio
    async def test_tokens_with_latest_data(self, manager: TokenManager) -> None:
        await manager.add_tokens(["0xABC"], "base", "M5")

        tokens = await manager.get_tokens_with_latest_data("M5")

        assert tokens[0]["CA"] == "0xABC"
        assert tokens[0]["latestPrice"] == 1.2
        assert tokens[0]["latestVolume"] == 10.0

    @pytest.mark.asyncio
    async def test_latest_data_missing_for_other_timeframe(self, manager: TokenManager) -> None:
        await manager.add_tokens(["0xABC"], "base", "M5")

        tokens = await manager.get_tokens_with_latest_data("H1")

        assert tokens[0]["latestPrice"] is None

    @pytest.mark.asyncio
    async def test_remove_token(self, manager: TokenManager, store: FlatFileStore) -> None:
        await manager.add_tokens(["0xABC"], "base", "M5")

        assert await manager.remove_token("0xABC") is True
        assert await store.list_tokens() == []
        assert await manager.get_chart_data("0xABC", "M5") == []


class TestParseContractAddresses:
    def test_mixed_separators(self) -> None:
        text = "0xA, 0xB\n0xC\t0xD,,0xE"
        assert parse_contract_addresses(text) == ["0xA", "0xB", "0xC", "0xD", "0xE"]

    def test_blank_input(self) -> None:
        assert parse_contract_addresses("   \n ") == []
