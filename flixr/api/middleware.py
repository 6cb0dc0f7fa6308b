"""Middleware for FastAPI application."""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from flixr.api.ratelimit import RateLimitMiddleware
from flixr.core.config import Settings
from flixr.observability.logging import (
    LogEvents,
    bind_context,
    clear_context,
    get_logger,
)

logger = logging.getLogger(__name__)
access_logger = get_logger("flixr.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests and responses with a per-request id."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Log request and response details."""
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        clear_context()
        bind_context(request_id=request_id)
        start_time = time.time()

        access_logger.info(
            LogEvents.REQUEST_RECEIVED,
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else "unknown",
        )

        try:
            response = await call_next(request)
            latency = time.time() - start_time
            access_logger.info(
                LogEvents.REQUEST_COMPLETED,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                latency_ms=round(latency * 1000, 1),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not settings.is_production else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def setup_middleware(
    app: FastAPI, settings: Settings, rate_limit_redis: Any | None = None
) -> None:
    """Configure all middleware in correct order.

    Middleware Order (applied bottom-to-top):
        1. CORS - handles cross-origin requests
        2. Rate limiting - prevents abuse (optional)
        3. Logging - records request/response
    """
    setup_cors(app, settings)

    app.add_middleware(LoggingMiddleware)
    if settings.api_rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            redis_url=settings.redis_url,
            rate_limit=settings.api_rate_limit,
            redis=rate_limit_redis,
        )

    logger.info("All middleware configured successfully")
