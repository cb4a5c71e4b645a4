"""Watched-token management."""

from geckodash.tokens.manager import (
    AddTokensResult,
    RefreshResult,
    TokenManager,
    parse_contract_addresses,
)

__all__ = [
    "AddTokensResult",
    "RefreshResult",
    "TokenManager",
    "parse_contract_addresses",
]
