"""FastAPI dashboard application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request

from geckodash.dashboard.errors import register_error_handlers
from geckodash.dashboard.routes import api, storage
from geckodash.logging import bind_request_context


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Route handlers read their collaborators from ``app.state``: ``limiter``,
    ``client``, ``store`` and ``token_manager``. main.py wires them in its
    lifespan; tests set them directly.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application with error handlers and routes.
    """
    app = FastAPI(
        title="GeckoTerminal Token Dashboard",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = bind_request_context(request.method, request.url.path)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    register_error_handlers(app)

    app.include_router(api.router, prefix="/api")
    app.include_router(storage.router, prefix="/api/storage")

    return app
