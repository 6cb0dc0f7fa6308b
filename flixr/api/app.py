"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI

from flixr import __version__
from flixr.api.errors import register_exception_handlers
from flixr.api.middleware import setup_middleware
from flixr.api.routes import create_routes
from flixr.community.store import InMemoryReviewStore, ReviewStore
from flixr.core.config import Settings, settings
from flixr.observability import setup_telemetry, shutdown_telemetry
from flixr.observability.logging import LogEvents, configure_logging, get_logger
from flixr.utils.client_factory import create_client


def create_app(
    app_settings: Settings | None = None,
    redis: Any | None = None,
    http_client: httpx.AsyncClient | None = None,
    reviews: ReviewStore | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    The cache, upstream client and caching client are built once in the
    lifespan and shared by every request. Collaborators may be injected,
    which is how tests swap in a fake Redis and a mock transport.

    Args:
        app_settings: Settings (defaults to the global settings)
        redis: Pre-built Redis client for the cache backend
        http_client: Pre-built httpx client for upstream calls
        reviews: Community review store (defaults to in-memory)

    Returns:
        Configured FastAPI app
    """
    cfg = app_settings or settings
    configure_logging(level=cfg.log_level, is_production=cfg.is_production)
    review_store = reviews or InMemoryReviewStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build shared clients on startup, close them on shutdown."""
        client = create_client(cfg, redis=redis, http_client=http_client)
        app.state.client = client
        app.state.reviews = review_store
        app.include_router(create_routes(client, review_store, cfg.api_admin_key))

        get_logger(__name__).info(
            LogEvents.SERVER_STARTED,
            upstream=cfg.tmdb_base_url,
            cache_enabled=client.cache.enabled,
        )

        yield

        await client.close()
        shutdown_telemetry()
        get_logger(__name__).info(LogEvents.SERVER_SHUTDOWN)

    app = FastAPI(
        title="Flixr",
        description="Movie and TV metadata API with a caching proxy in front of TMDB",
        version=__version__,
        lifespan=lifespan,
    )

    setup_telemetry(app)
    setup_middleware(app, cfg)
    register_exception_handlers(app)

    return app
