"""Storage administration endpoints: location, backup and statistics."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from geckodash.dashboard.routes.api import read_json_body
from geckodash.data import OHLCVRow, Token
from geckodash.exceptions import StorageError, ValidationError

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/config")
async def get_config(request: Request) -> JSONResponse:
    return JSONResponse(content={"config": request.app.state.store.get_config().to_dict()})


@router.post("/config")
async def update_config(request: Request) -> JSONResponse:
    """Relocate the store. Existing files are not migrated."""
    body = await read_json_body(request)
    data_path = body.get("dataPath")
    if not data_path or not isinstance(data_path, str):
        raise ValidationError("Data path is required")

    store = request.app.state.store
    ok = await store.update_config(
        data_path=data_path,
        tokens_file=body.get("tokensFile") or None,
        ohlcv_file=body.get("ohlcvFile") or None,
    )
    if not ok:
        raise StorageError("Failed to update storage configuration")

    return JSONResponse(content={
        "success": True,
        "config": store.get_config().to_dict(),
        "message": "Storage configuration updated successfully",
    })


@router.get("/export")
async def export_data(request: Request) -> Response:
    data = await request.app.state.store.export_all()
    filename = f"crypto-dashboard-export-{datetime.now(timezone.utc):%Y-%m-%d}.json"
    return Response(
        content=json.dumps(data, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _parse_records(items: object, model: type, label: str) -> list | None:
    if items is None:
        return None
    if not isinstance(items, list):
        raise ValidationError(f"Import field '{label}' must be a list")
    try:
        return [model.from_dict(item) for item in items]
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {label} record in import file: {e}") from None


@router.post("/import")
async def import_data(request: Request, file: UploadFile | None = None) -> JSONResponse:
    """Replace tokens and/or OHLCV rows from an uploaded export file."""
    if file is None:
        raise ValidationError("No file provided")

    try:
        payload = json.loads(await file.read())
    except ValueError:
        raise ValidationError("Invalid JSON file") from None

    if not isinstance(payload, dict) or (
        not payload.get("tokens") and not payload.get("ohlcv")
    ):
        raise ValidationError("Import file must contain tokens or ohlcv data")

    tokens = _parse_records(payload.get("tokens"), Token, "tokens")
    ohlcv = _parse_records(payload.get("ohlcv"), OHLCVRow, "ohlcv")

    store = request.app.state.store
    if not await store.import_all(tokens=tokens, ohlcv=ohlcv):
        raise StorageError("Failed to import data")

    log.info("storage_import_served", filename=file.filename)
    return JSONResponse(content={
        "success": True,
        "message": "Data imported successfully",
        "stats": await store.get_stats(),
    })


@router.get("/stats")
async def get_stats(request: Request) -> JSONResponse:
    return JSONResponse(content={"stats": await request.app.state.store.get_stats()})
