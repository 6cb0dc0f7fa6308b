"""Request parsing helpers and response schemas for the Flixr API.

Routes validate every input here before calling the caching client; the
client never re-validates.
"""

import math
from typing import Any

from pydantic import BaseModel, Field

from flixr.core.exceptions import ValidationError
from flixr.tmdb.routes import TIME_WINDOWS

# Filters forwarded to /discover/movie; anything else is ignored
DISCOVER_FILTERS: tuple[str, ...] = (
    "sort_by",
    "with_genres",
    "year",
    "vote_average.gte",
    "primary_release_year",
    "with_keywords",
)


def parse_page(value: str | None) -> int:
    """Parse a page number leniently.

    Missing, non-numeric, non-finite or < 1 values all become 1.

    Example:
        >>> parse_page("3")
        3
        >>> parse_page("abc")
        1
        >>> parse_page("0")
        1
    """
    if value is None:
        return 1
    try:
        page = float(value.strip())
    except ValueError:
        return 1
    if not math.isfinite(page) or page < 1:
        return 1
    return int(page)


def require_query(value: str | None, name: str = "q") -> str:
    """Return the stripped search text or raise if it is missing."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"Missing {name} param", details={"param": name})
    return text


def parse_item_id(value: str, kind: str = "movie") -> int:
    """Provider ids are positive integers."""
    if not value.isdigit() or int(value) < 1:
        raise ValidationError(f"Invalid {kind} id", details={"id": value})
    return int(value)


def parse_time_window(value: str) -> str:
    if value not in TIME_WINDOWS:
        raise ValidationError(
            "time_window must be day or week", details={"time_window": value}
        )
    return value


def discover_params(query: dict[str, str]) -> dict[str, Any]:
    """Keep only whitelisted discover filters."""
    return {name: query[name] for name in DISCOVER_FILTERS if name in query}


class HealthResponse(BaseModel):
    """Response schema for health endpoints."""

    status: str = Field(..., description="Health status (healthy, degraded)")
    timestamp: str = Field(..., description="ISO timestamp")
    cache: str | None = Field(
        None, description="Cache backend status (up, down, disabled)"
    )


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: str = Field(..., description="Error message")
    detail: str | None = Field(None, description="Error details")
    code: str | None = Field(None, description="Error code")


class InvalidateRequest(BaseModel):
    """Request schema for POST /api/admin/cache/invalidate."""

    pattern: str = Field(
        ..., description="Glob pattern, e.g. tmdb:popular:*", min_length=1
    )


class InvalidateResponse(BaseModel):
    """Response schema for POST /api/admin/cache/invalidate."""

    pattern: str = Field(..., description="Pattern that was applied")
    removed: int = Field(..., description="Number of cache entries removed", ge=0)


class CacheStatsResponse(BaseModel):
    """Response schema for GET /api/admin/cache/stats."""

    cache: dict[str, Any] = Field(..., description="Cache backend counters")
    client: dict[str, Any] = Field(..., description="Caching client counters")
    in_flight: int = Field(..., description="Upstream fetches currently running")
