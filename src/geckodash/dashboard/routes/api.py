"""JSON API endpoints: upstream proxies, rate-limit status, and watched tokens."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from geckodash.exceptions import StorageError, ValidationError
from geckodash.models import Timeframe
from geckodash.timeseries import fill_time_series_gaps
from geckodash.tokens import parse_contract_addresses
from geckodash.upstream import TRENDING_DURATIONS

log = structlog.get_logger(__name__)

router = APIRouter()


async def read_json_body(request: Request) -> dict[str, Any]:
    """Decode the request body as a JSON object or raise ValidationError."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    return body


# ----------------------------------------------------------------
# Upstream proxies
# ----------------------------------------------------------------


@router.post("/gecko-ohlcv")
async def gecko_ohlcv(request: Request) -> JSONResponse:
    """Fetch a pool's candles straight from GeckoTerminal, gap-filled and ascending."""
    body = await read_json_body(request)
    network = body.get("network")
    pool_address = body.get("poolAddress")
    timeframe = body.get("timeframe")
    if not network or not pool_address or not timeframe:
        raise ValidationError("Network, poolAddress, and timeframe parameters are required")

    timeframe = Timeframe.parse(timeframe)
    points = await request.app.state.client.fetch_ohlcv(network, pool_address, timeframe)
    filled = fill_time_series_gaps(points, timeframe)

    return JSONResponse(content={"success": True, "data": [p.to_dict() for p in filled]})


@router.post("/gecko-token")
async def gecko_token(request: Request) -> JSONResponse:
    body = await read_json_body(request)
    network = body.get("network")
    address = body.get("address")
    if not network or not address:
        raise ValidationError("Network and address parameters are required")

    metadata = await request.app.state.client.fetch_token_metadata(network, address)
    return JSONResponse(content={"success": True, "data": metadata.to_dict()})


@router.post("/token-market-data")
async def token_market_data(request: Request) -> JSONResponse:
    body = await read_json_body(request)
    network = body.get("network")
    ca = body.get("ca")
    if not network or not ca:
        raise ValidationError("Network and ca parameters are required")

    market = await request.app.state.client.fetch_token_market_data(network, ca)
    return JSONResponse(content={"success": True, "data": market.to_dict()})


def _selected_networks(networks: Any) -> list[str]:
    """Accept ``{"base": true, "solana": false}`` or ``["base"]``."""
    if isinstance(networks, dict):
        return [name for name, enabled in networks.items() if enabled]
    if isinstance(networks, list):
        return [name for name in networks if isinstance(name, str) and name]
    raise ValidationError("Networks parameter is required and must be an object")


@router.post("/trending-tokens")
async def trending_tokens(request: Request) -> JSONResponse:
    """Trending pools for each selected network, fetched one network at a time."""
    body = await read_json_body(request)
    selected = _selected_networks(body.get("networks"))
    duration = body.get("duration")
    if duration not in TRENDING_DURATIONS:
        raise ValidationError(
            "Duration parameter is required and must be one of: "
            + ", ".join(TRENDING_DURATIONS)
        )
    if not selected:
        raise ValidationError("At least one network must be selected")

    client = request.app.state.client
    results = []
    for network in selected:
        pools = await client.fetch_trending_pools(network, duration)
        results.append({"network": network, "data": [p.to_dict() for p in pools]})

    log.info("trending_tokens_served", networks=selected, duration=duration)
    return JSONResponse(content={
        "success": True,
        "data": results,
        "apiCallsUsed": len(selected),
    })


@router.get("/rate-limit")
async def rate_limit(request: Request) -> JSONResponse:
    """Current call budget; never consumes a slot."""
    status = await request.app.state.limiter.get_status()
    return JSONResponse(content=status.to_dict())


# ----------------------------------------------------------------
# Watched tokens
# ----------------------------------------------------------------


@router.get("/chart-data")
async def chart_data(request: Request) -> JSONResponse:
    ca = request.query_params.get("CA")
    timeframe = request.query_params.get("timeframe")
    if not ca or not timeframe:
        raise ValidationError("Contract address and timeframe are required")

    data = await request.app.state.token_manager.get_chart_data(ca, timeframe)
    return JSONResponse(content={"data": data})


@router.get("/tokens")
async def list_tokens(request: Request) -> JSONResponse:
    """All watched tokens; with ``timeframe``, each carries its latest close and volume."""
    timeframe = request.query_params.get("timeframe")
    if timeframe:
        tokens = await request.app.state.token_manager.get_tokens_with_latest_data(timeframe)
    else:
        tokens = [t.to_dict() for t in await request.app.state.store.list_tokens()]
    return JSONResponse(content={"tokens": tokens})


@router.post("/tokens")
async def add_tokens(request: Request) -> JSONResponse:
    """Add tokens by contract address; ``addresses`` is a list or free text."""
    body = await read_json_body(request)
    addresses = body.get("addresses")
    network = body.get("network")
    timeframe = body.get("timeframe")

    if isinstance(addresses, str):
        addresses = parse_contract_addresses(addresses)
    if (
        not addresses
        or not isinstance(addresses, list)
        or not all(isinstance(a, str) for a in addresses)
        or not network
        or not timeframe
    ):
        raise ValidationError("Invalid request data")

    result = await request.app.state.token_manager.add_tokens(addresses, network, timeframe)
    return JSONResponse(content=result.to_dict())


@router.delete("/tokens")
async def delete_token(request: Request) -> JSONResponse:
    ca = request.query_params.get("CA")
    if not ca:
        raise ValidationError("Contract address is required")

    if not await request.app.state.token_manager.remove_token(ca):
        raise StorageError("Failed to delete token")
    return JSONResponse(content={"success": True})


@router.post("/refresh")
async def refresh(request: Request) -> JSONResponse:
    """Re-fetch candles for every watched token, reporting per-token progress."""
    body = await read_json_body(request)
    timeframe = body.get("timeframe")
    if not timeframe:
        raise ValidationError("Timeframe is required")

    progress_updates: list[str] = []

    def on_progress(completed: int, total: int, symbol: str) -> None:
        progress_updates.append(f"Refreshing {completed}/{total}: {symbol}")

    result = await request.app.state.token_manager.refresh_all_tokens_ohlcv(
        timeframe, on_progress
    )
    return JSONResponse(content={
        "success": True,
        "result": result.to_dict(),
        "progressUpdates": progress_updates,
    })
