"""Flat-file JSON store for watched tokens and their OHLCV history.

Provides FlatFileStore with typed methods over three JSON documents in one
directory: the token list, the OHLCV rows, and the store's own settings.

Every read-modify-write holds a single asyncio.Lock, so concurrent requests in
one process never interleave their writes. The lock does not protect against
other processes writing the same directory.

Reads are forgiving: a missing or corrupt document reads as an empty list.
Writes report failure as False and log; they never raise.
"""

import asyncio
import json
import os
from datetime import datetime, timezone

import aiofiles
import aiofiles.os

from geckodash.config import StorageSettings
from geckodash.data.models import OHLCVRow, StorageConfig, Token
from geckodash.logging import get_logger

logger = get_logger(__name__)

EXPORT_VERSION = "1.0"


def _utc_now_iso() -> str:
    """Current time as ISO-8601 UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_size(size_bytes: int) -> str:
    """Human-readable size: 'X.XX KB' below one megabyte, 'X.XX MB' above."""
    kb = size_bytes / 1024
    if kb < 1024:
        return f"{kb:.2f} KB"
    return f"{kb / 1024:.2f} MB"


class FlatFileStore:
    """Async JSON-document store for tokens and OHLCV rows.

    Usage:
        store = FlatFileStore.from_settings(settings.storage)
        await store.load_config()
        await store.upsert_token(token)
        rows = await store.list_ohlcv(token.ca, "M5")
    """

    def __init__(self, config: StorageConfig, retention: int = 1000) -> None:
        self._config = config
        self._retention = retention
        self._lock = asyncio.Lock()
        # Fixed at construction so a relocated store is found again on restart.
        self._settings_path = os.path.join(config.data_path, config.settings_file)

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "FlatFileStore":
        config = StorageConfig(
            data_path=settings.data_path,
            tokens_file=settings.tokens_file,
            ohlcv_file=settings.ohlcv_file,
            settings_file=settings.settings_file,
        )
        return cls(config, retention=settings.ohlcv_retention)

    @property
    def retention(self) -> int:
        return self._retention

    @property
    def tokens_path(self) -> str:
        return os.path.join(self._config.data_path, self._config.tokens_file)

    @property
    def ohlcv_path(self) -> str:
        return os.path.join(self._config.data_path, self._config.ohlcv_file)

    @property
    def settings_path(self) -> str:
        return self._settings_path

    # ──────────────────────────────────────────────
    # File primitives
    # ──────────────────────────────────────────────

    async def _read_json(self, path: str) -> object | None:
        """Decode a JSON document; None when missing or unreadable."""
        if not await aiofiles.os.path.exists(path):
            return None
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                return json.loads(await f.read())
        except (OSError, ValueError) as e:
            logger.warning("storage_read_failed", path=path, error=str(e))
            return None

    async def _read_list(self, path: str) -> list[dict]:
        data = await self._read_json(path)
        if not isinstance(data, list):
            if data is not None:
                logger.warning("storage_document_not_a_list", path=path)
            return []
        return [item for item in data if isinstance(item, dict)]

    async def _write_json(self, path: str, data: object) -> bool:
        try:
            await aiofiles.os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, indent=2))
        except (OSError, TypeError, ValueError) as e:
            logger.error("storage_write_failed", path=path, error=str(e))
            return False
        return True

    async def _read_tokens(self) -> list[Token]:
        tokens = []
        for item in await self._read_list(self.tokens_path):
            try:
                tokens.append(Token.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("storage_token_skipped", ca=item.get("CA"))
        return tokens

    async def _read_ohlcv(self) -> list[OHLCVRow]:
        rows = []
        skipped = 0
        for item in await self._read_list(self.ohlcv_path):
            try:
                rows.append(OHLCVRow.from_dict(item))
            except (KeyError, TypeError, ValueError):
                skipped += 1
        if skipped:
            logger.warning("storage_ohlcv_rows_skipped", count=skipped)
        return rows

    async def _write_tokens(self, tokens: list[Token]) -> bool:
        return await self._write_json(self.tokens_path, [t.to_dict() for t in tokens])

    async def _write_ohlcv(self, rows: list[OHLCVRow]) -> bool:
        return await self._write_json(self.ohlcv_path, [r.to_dict() for r in rows])

    # ──────────────────────────────────────────────
    # Tokens
    # ──────────────────────────────────────────────

    async def list_tokens(self) -> list[Token]:
        async with self._lock:
            return await self._read_tokens()

    async def get_token(self, ca: str) -> Token | None:
        async with self._lock:
            tokens = await self._read_tokens()
        return next((t for t in tokens if t.ca == ca), None)

    async def upsert_token(self, token: Token) -> bool:
        """Insert or replace a token by CA.

        An existing token keeps its original ``created_at``; ``updated_at`` is
        always set to now.
        """
        now = _utc_now_iso()
        async with self._lock:
            tokens = await self._read_tokens()
            for i, existing in enumerate(tokens):
                if existing.ca == token.ca:
                    token.created_at = existing.created_at or now
                    token.updated_at = now
                    tokens[i] = token
                    break
            else:
                token.created_at = now
                token.updated_at = now
                tokens.append(token)
            ok = await self._write_tokens(tokens)

        if ok:
            logger.debug("token_upserted", ca=token.ca, symbol=token.symbol)
        return ok

    async def delete_token(self, ca: str) -> bool:
        """Remove a token and every OHLCV row stored for it."""
        async with self._lock:
            tokens = [t for t in await self._read_tokens() if t.ca != ca]
            rows = [r for r in await self._read_ohlcv() if r.ca != ca]
            tokens_ok = await self._write_tokens(tokens)
            ohlcv_ok = await self._write_ohlcv(rows)

        logger.info("token_deleted", ca=ca, ok=tokens_ok and ohlcv_ok)
        return tokens_ok and ohlcv_ok

    # ──────────────────────────────────────────────
    # OHLCV
    # ──────────────────────────────────────────────

    async def list_ohlcv(self, ca: str, timeframe: str, limit: int = 1000) -> list[OHLCVRow]:
        """Rows for one token and timeframe, newest first, at most ``limit``."""
        async with self._lock:
            rows = await self._read_ohlcv()
        matching = [r for r in rows if r.ca == ca and r.timeframe == timeframe]
        matching.sort(key=lambda r: r.timestamp, reverse=True)
        return matching[:limit]

    async def upsert_ohlcv_batch(self, rows: list[OHLCVRow]) -> bool:
        """Insert rows, replacing any stored row with the same (CA, timestamp, timeframe)."""
        if not rows:
            return True

        now = _utc_now_iso()
        async with self._lock:
            stored = await self._read_ohlcv()
            index = {row.key: i for i, row in enumerate(stored)}
            for row in rows:
                row.created_at = now
                position = index.get(row.key)
                if position is None:
                    index[row.key] = len(stored)
                    stored.append(row)
                else:
                    stored[position] = row
            ok = await self._write_ohlcv(stored)

        logger.debug("ohlcv_upserted", count=len(rows), total=len(stored), ok=ok)
        return ok

    async def prune_ohlcv(self, ca: str, timeframe: str, keep: int | None = None) -> bool:
        """Keep only the newest ``keep`` rows for one token and timeframe."""
        keep = self._retention if keep is None else keep
        async with self._lock:
            stored = await self._read_ohlcv()
            matching = sorted(
                (r for r in stored if r.ca == ca and r.timeframe == timeframe),
                key=lambda r: r.timestamp,
                reverse=True,
            )
            if len(matching) <= keep:
                return True

            dropped = {r.key for r in matching[keep:]}
            kept = [r for r in stored if r.key not in dropped]
            ok = await self._write_ohlcv(kept)

        logger.debug("ohlcv_pruned", ca=ca, timeframe=timeframe, removed=len(dropped), ok=ok)
        return ok

    # ──────────────────────────────────────────────
    # Backup
    # ──────────────────────────────────────────────

    async def export_all(self) -> dict:
        """Everything the store holds, as one JSON-ready document."""
        async with self._lock:
            tokens = await self._read_tokens()
            rows = await self._read_ohlcv()
        return {
            "tokens": [t.to_dict() for t in tokens],
            "ohlcv": [r.to_dict() for r in rows],
            "config": self._config.to_dict(),
            "exportDate": _utc_now_iso(),
            "version": EXPORT_VERSION,
        }

    async def import_all(
        self,
        tokens: list[Token] | None = None,
        ohlcv: list[OHLCVRow] | None = None,
    ) -> bool:
        """Replace whichever documents are given; the others are left untouched."""
        async with self._lock:
            ok = True
            if tokens is not None:
                ok = await self._write_tokens(tokens) and ok
            if ohlcv is not None:
                ok = await self._write_ohlcv(ohlcv) and ok

        logger.info(
            "storage_imported",
            tokens=None if tokens is None else len(tokens),
            ohlcv=None if ohlcv is None else len(ohlcv),
            ok=ok,
        )
        return ok

    async def get_stats(self) -> dict:
        async with self._lock:
            tokens = await self._read_list(self.tokens_path)
            rows = await self._read_list(self.ohlcv_path)
            total = 0
            for path in (self.tokens_path, self.ohlcv_path):
                try:
                    total += (await aiofiles.os.stat(path)).st_size
                except OSError:
                    continue

        return {
            "tokensCount": len(tokens),
            "ohlcvCount": len(rows),
            "totalSizeBytes": total,
            "totalSize": format_size(total),
        }

    # ──────────────────────────────────────────────
    # Store settings
    # ──────────────────────────────────────────────

    def get_config(self) -> StorageConfig:
        return self._config

    async def update_config(
        self,
        data_path: str | None = None,
        tokens_file: str | None = None,
        ohlcv_file: str | None = None,
    ) -> bool:
        """Point the store at new locations and persist them.

        The override is written to the settings file in the startup
        directory. Existing documents are not moved; the new directory starts
        from whatever it already contains.
        """
        candidate = self._config.merged(
            {"dataPath": data_path, "tokensFile": tokens_file, "ohlcvFile": ohlcv_file}
        )
        async with self._lock:
            previous = self._config
            self._config = candidate
            ok = await self._write_json(self.settings_path, candidate.to_dict())
            if not ok:
                self._config = previous

        logger.info("storage_config_updated", data_path=self._config.data_path, ok=ok)
        return ok

    async def load_config(self) -> StorageConfig:
        """Apply the persisted settings override, if one exists."""
        async with self._lock:
            data = await self._read_json(self.settings_path)
            if isinstance(data, dict):
                self._config = self._config.merged(data)
                logger.info("storage_config_loaded", data_path=self._config.data_path)
        return self._config
