"""Entry point for the GeckoTerminal token dashboard.

Wires all components together and serves the FastAPI app via uvicorn's
programmatic API. Components are built before the server starts and
attached to ``app.state`` in the lifespan, which also restores the persisted
storage location on startup and closes the HTTP session on shutdown.

Component wiring order (in _build_components):
1. RateLimiter (file-backed call budget)
2. GeckoTerminalClient (upstream API, gated by the limiter)
3. FlatFileStore (tokens and OHLCV documents)
4. TokenManager (client + store orchestration)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from geckodash.config import AppSettings
from geckodash.data import FlatFileStore
from geckodash.logging import get_logger, setup_logging
from geckodash.ratelimit import FileStateStore, RateLimiter
from geckodash.tokens import TokenManager
from geckodash.upstream import GeckoTerminalClient


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all dashboard components from settings.

    Note: Does NOT open any connection or read any file -- the HTTP session
    is created lazily on the first request, and the storage settings file is
    read in the lifespan.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    limiter = RateLimiter(
        FileStateStore(settings.rate_limit.state_path),
        max_calls=settings.rate_limit.max_calls,
        window_ms=settings.rate_limit.window_ms,
    )
    client = GeckoTerminalClient(settings.gecko, limiter)
    store = FlatFileStore.from_settings(settings.storage)
    token_manager = TokenManager(
        client, store, retention=settings.storage.ohlcv_retention
    )

    return {
        "limiter": limiter,
        "client": client,
        "store": store,
        "token_manager": token_manager,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state and applies the persisted
    storage location override.

    On shutdown: closes the upstream HTTP session.
    """
    logger = get_logger("geckodash.main")
    components = app.state.components

    # Store all components on app.state for route handler access
    app.state.limiter = components["limiter"]
    app.state.client = components["client"]
    app.state.store = components["store"]
    app.state.token_manager = components["token_manager"]

    config = await components["store"].load_config()
    logger.info("lifespan_started", data_path=config.data_path)

    yield

    await components["client"].close()
    logger.info("geckodash_stopped")


async def run() -> None:
    """Run the dashboard server until interrupted."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("geckodash.main")

    # 3. Build all components
    components = _build_components(settings)

    from geckodash.dashboard.app import create_dashboard_app

    app = create_dashboard_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_dashboard",
        host=settings.dashboard.host,
        port=settings.dashboard.port,
        max_calls=settings.rate_limit.max_calls,
        window_ms=settings.rate_limit.window_ms,
    )

    config = uvicorn.Config(
        app,
        host=settings.dashboard.host,
        port=settings.dashboard.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
