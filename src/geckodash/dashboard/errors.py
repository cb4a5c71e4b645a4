"""Exception handlers turning dashboard errors into JSON error envelopes.

Every failure response has the shape ``{"error": str}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from geckodash.exceptions import RateLimited, StorageError, UpstreamError, ValidationError

log = structlog.get_logger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait before making more requests."


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(content={"error": str(exc)}, status_code=400)


async def _rate_limited(request: Request, exc: RateLimited) -> JSONResponse:
    log.info("request_rate_limited")
    return JSONResponse(content={"error": RATE_LIMIT_MESSAGE}, status_code=429)


async def _upstream_error(request: Request, exc: UpstreamError) -> JSONResponse:
    log.warning("upstream_error_response", status=exc.status, error=exc.message)
    return JSONResponse(
        content={"error": f"API Error: {exc.message}"},
        status_code=exc.status or 500,
    )


async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
    log.error("storage_error_response", error=str(exc))
    return JSONResponse(content={"error": str(exc)}, status_code=500)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_request_error", error=str(exc))
    return JSONResponse(content={"error": "Internal server error"}, status_code=500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RateLimited, _rate_limited)
    app.add_exception_handler(UpstreamError, _upstream_error)
    app.add_exception_handler(StorageError, _storage_error)
    app.add_exception_handler(Exception, _unhandled_error)
