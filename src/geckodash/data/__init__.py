"""Flat-file persistence for tokens and OHLCV history."""

from geckodash.data.json_store import FlatFileStore, format_size
from geckodash.data.models import OHLCVRow, StorageConfig, Token

__all__ = [
    "FlatFileStore",
    "OHLCVRow",
    "StorageConfig",
    "Token",
    "format_size",
]
