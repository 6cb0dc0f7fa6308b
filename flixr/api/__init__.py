"""FastAPI application for the Flixr backend."""

from flixr.api.app import create_app
from flixr.api.routes import create_routes
from flixr.api.validation import (
    CacheStatsResponse,
    ErrorResponse,
    HealthResponse,
    InvalidateRequest,
    InvalidateResponse,
)

__all__ = [
    "create_app",
    "create_routes",
    "CacheStatsResponse",
    "ErrorResponse",
    "HealthResponse",
    "InvalidateRequest",
    "InvalidateResponse",
]
