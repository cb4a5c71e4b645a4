"""Validated shapes of the GeckoTerminal JSON:API responses we consume.

Only the fields the dashboard reads are declared; anything else in the
payload is ignored. A payload missing a declared required field fails
validation, and the client turns that into an UpstreamError instead of letting
a half-parsed response reach the store.
"""

from pydantic import BaseModel, Field


class ResourceRef(BaseModel):
    """JSON:API relationship pointer. GeckoTerminal ids are ``<network>_<address>``."""

    id: str
    type: str


class RelationshipList(BaseModel):
    data: list[ResourceRef] = Field(default_factory=list)


# ──────────────────────────────────────────────
# GET /networks/{network}/tokens/{address}
# ──────────────────────────────────────────────


class TokenAttributes(BaseModel):
    address: str
    name: str
    symbol: str
    image_url: str | None = None
    market_cap_usd: str | None = None
    fdv_usd: str | None = None
    volume_usd: dict[str, str | None] = Field(default_factory=dict)


class TokenRelationships(BaseModel):
    top_pools: RelationshipList = Field(default_factory=RelationshipList)


class TokenResource(BaseModel):
    id: str
    type: str
    attributes: TokenAttributes
    relationships: TokenRelationships = Field(default_factory=TokenRelationships)


class TokenResponse(BaseModel):
    data: TokenResource


# ──────────────────────────────────────────────
# GET /networks/{network}/pools/{pool}/ohlcv/{unit}
# ──────────────────────────────────────────────


class OHLCVAttributes(BaseModel):
    # [timestamp, open, high, low, close, volume], newest first
    ohlcv_list: list[tuple[int, float, float, float, float, float]]


class OHLCVResource(BaseModel):
    id: str | None = None
    type: str | None = None
    attributes: OHLCVAttributes


class OHLCVResponse(BaseModel):
    data: OHLCVResource


# ──────────────────────────────────────────────
# GET /networks/{network}/trending_pools
# ──────────────────────────────────────────────


class TransactionCounts(BaseModel):
    buys: int = 0
    sells: int = 0
    buyers: int | None = None
    sellers: int | None = None


class PoolAttributes(BaseModel):
    name: str
    address: str
    base_token_price_usd: str | None = None
    market_cap_usd: str | None = None
    fdv_usd: str | None = None
    reserve_in_usd: str | None = None
    pool_created_at: str | None = None
    price_change_percentage: dict[str, str | None]
    transactions: dict[str, TransactionCounts]
    volume_usd: dict[str, str | None]


class PoolResource(BaseModel):
    id: str
    type: str
    attributes: PoolAttributes


class TrendingPoolsResponse(BaseModel):
    data: list[PoolResource]
