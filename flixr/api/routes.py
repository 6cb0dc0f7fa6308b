"""FastAPI route handlers for the Flixr API.

Handlers are thin: validate input, call the caching client, and return the
upstream payload unchanged. Client failures surface as exceptions mapped
to HTTP statuses by ``flixr.api.errors``.
"""

import asyncio
import logging
import secrets
from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from flixr.api.validation import (
    CacheStatsResponse,
    ErrorResponse,
    HealthResponse,
    InvalidateRequest,
    InvalidateResponse,
    discover_params,
    parse_item_id,
    parse_page,
    parse_time_window,
    require_query,
)
from flixr.community.store import ReviewStore
from flixr.core.exceptions import FlixrError, ValidationError
from flixr.tmdb import routes as tmdb_routes
from flixr.tmdb.client import TMDBClient

logger = logging.getLogger(__name__)

# Trending changes slowly, so it is kept longer than the default
TRENDING_TTL = 43_200

MOVIE_DETAILS_APPEND = "credits,videos,images"
TV_DETAILS_APPEND = "credits,videos,recommendations,external_ids"
PERSON_DETAILS_APPEND = "combined_credits,images,external_ids"
SEASON_APPEND = "credits"
COMMUNITY_SAMPLE_SIZE = 10

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


async def gather_settled(*calls: Awaitable[Any]) -> list[Any]:
    """Run calls concurrently; a failed call yields None instead of raising.

    Only Flixr errors are absorbed. Anything else is re-raised.
    """
    results = await asyncio.gather(*calls, return_exceptions=True)
    settled: list[Any] = []
    for result in results:
        if isinstance(result, FlixrError):
            logger.warning(f"Partial result dropped: {result.message}")
            settled.append(None)
        elif isinstance(result, BaseException):
            raise result
        else:
            settled.append(result)
    return settled


def _results(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        return list(payload.get("results") or [])
    return []


def create_routes(
    client: TMDBClient, reviews: ReviewStore, admin_key: str = ""
) -> APIRouter:
    """Create and configure API routes.

    Args:
        client: Caching TMDB client
        reviews: Community review store used by the aggregate endpoints
        admin_key: Key required in X-Admin-Key for /api/admin (empty = open)

    Returns:
        Configured APIRouter
    """
    api_router = APIRouter()
    api_router.include_router(_common_routes(client))
    api_router.include_router(_movie_routes(client, reviews))
    api_router.include_router(_tv_routes(client, reviews))
    api_router.include_router(_people_routes(client))
    api_router.include_router(_company_routes(client))
    api_router.include_router(_admin_routes(client, admin_key))
    api_router.include_router(_health_routes(client))
    return api_router


async def _aggregate(
    client: TMDBClient,
    reviews: ReviewStore,
    media_type: str,
    item_id: int,
    append: str,
) -> dict[str, Any]:
    """Upstream details merged with community stats and the latest reviews."""
    tmdb = await client.get_details(media_type, item_id, append)
    stats = await reviews.get_stats(item_id, media_type)
    latest = await reviews.latest(item_id, media_type, limit=COMMUNITY_SAMPLE_SIZE)
    return {
        "tmdb": tmdb,
        "community": {
            "avg_rating": stats.avg_rating,
            "review_count": stats.review_count,
            "reviews": [review.model_dump(mode="json") for review in latest],
        },
    }


def _common_routes(client: TMDBClient) -> APIRouter:
    router = APIRouter(prefix="/api/common", tags=["common"])

    @router.get("/search", responses=ERROR_RESPONSES)
    async def search(q: str | None = None, page: str | None = None) -> Any:
        """Multi search across movies, TV shows and people."""
        return await client.search_multi(require_query(q), parse_page(page))

    @router.get("/trending")
    async def trending(time_window: str | None = None) -> dict[str, Any]:
        """Two pages each of trending movies and TV, merged per media type.

        Unknown time windows fall back to ``week``. Pages that fail are
        skipped.
        """
        window = "day" if time_window == "day" else "week"
        movies1, movies2, tvs1, tvs2 = await gather_settled(
            client.fetch_raw(
                tmdb_routes.trending("movie", window), {"page": 1}, TRENDING_TTL
            ),
            client.fetch_raw(
                tmdb_routes.trending("movie", window), {"page": 2}, TRENDING_TTL
            ),
            client.fetch_raw(
                tmdb_routes.trending("tv", window), {"page": 1}, TRENDING_TTL
            ),
            client.fetch_raw(
                tmdb_routes.trending("tv", window), {"page": 2}, TRENDING_TTL
            ),
        )
        return {
            "data": {
                "movies": {"results": _results(movies1) + _results(movies2)},
                "tvs": {"results": _results(tvs1) + _results(tvs2)},
            }
        }

    return router


def _movie_routes(client: TMDBClient, reviews: ReviewStore) -> APIRouter:
    router = APIRouter(prefix="/api/movies", tags=["movies"], responses=ERROR_RESPONSES)

    @router.get("/search")
    async def search(q: str | None = None, page: str | None = None) -> Any:
        return await client.fetch_raw(
            tmdb_routes.search("movie"),
            {"query": require_query(q), "page": parse_page(page)},
        )

    @router.get("/popular")
    async def popular(page: str | None = None) -> Any:
        return await client.get_popular("movie", parse_page(page))

    for listing in ("top_rated", "now_playing", "upcoming"):
        _add_listing_route(router, client, "movie", listing)

    @router.get("/trending/{time_window}")
    async def trending(time_window: str, page: str | None = None) -> Any:
        return await client.fetch_raw(
            tmdb_routes.trending("movie", parse_time_window(time_window)),
            {"page": parse_page(page)},
        )

    @router.get("/discover")
    async def discover(request: Request, page: str | None = None) -> Any:
        """Discover movies using whitelisted filters."""
        params = discover_params(dict(request.query_params))
        params["page"] = parse_page(page)
        return await client.fetch_raw(tmdb_routes.discover("movie"), params)

    @router.get("/genres")
    async def genres() -> Any:
        return await client.fetch_raw(tmdb_routes.genre_list("movie"))

    @router.get("/{movie_id}")
    async def details(movie_id: str, append: str | None = None) -> dict[str, Any]:
        """Movie details plus the first page of upstream reviews."""
        item_id = parse_item_id(movie_id, "movie")
        movie, movie_reviews = await gather_settled(
            client.get_details("movie", item_id, append or MOVIE_DETAILS_APPEND),
            client.fetch_raw(
                tmdb_routes.title_resource("movie", item_id, "reviews"), {"page": 1}
            ),
        )
        return {"movie": movie, "reviews": movie_reviews}

    for resource in ("reviews", "recommendations", "similar"):
        _add_title_resource_route(router, client, "movie", resource, paged=True)
    for resource in ("credits", "videos", "external_ids", "images"):
        _add_title_resource_route(router, client, "movie", resource, paged=False)

    @router.get("/{movie_id}/aggregate")
    async def aggregate(movie_id: str, append: str | None = None) -> dict[str, Any]:
        """Upstream details plus community rating and sample reviews."""
        return await _aggregate(
            client,
            reviews,
            "movie",
            parse_item_id(movie_id, "movie"),
            append or MOVIE_DETAILS_APPEND,
        )

    return router


def _tv_routes(client: TMDBClient, reviews: ReviewStore) -> APIRouter:
    router = APIRouter(prefix="/api/tv", tags=["tv"], responses=ERROR_RESPONSES)

    @router.get("/search")
    async def search(q: str | None = None, page: str | None = None) -> Any:
        """Multi search, so results include people and movies too."""
        return await client.search_multi(require_query(q), parse_page(page))

    @router.get("/popular")
    async def popular(page: str | None = None) -> Any:
        return await client.get_popular("tv", parse_page(page))

    for listing in ("top_rated", "airing_today", "on_the_air"):
        _add_listing_route(router, client, "tv", listing)

    @router.get("/{tv_id}")
    async def details(tv_id: str, append: str | None = None) -> dict[str, Any]:
        """Show details plus upstream reviews."""
        item_id = parse_item_id(tv_id, "tv")
        show, show_reviews = await gather_settled(
            client.get_details("tv", item_id, append or TV_DETAILS_APPEND),
            client.fetch_raw(tmdb_routes.title_resource("tv", item_id, "reviews")),
        )
        return {"show": show, "reviews": show_reviews}

    for resource in ("recommendations", "similar"):
        _add_title_resource_route(router, client, "tv", resource, paged=True)
    for resource in ("credits", "videos", "external_ids"):
        _add_title_resource_route(router, client, "tv", resource, paged=False)

    @router.get("/{tv_id}/season/{season_number}")
    async def season(
        tv_id: str, season_number: str, append: str | None = None
    ) -> Any:
        item_id = parse_item_id(tv_id, "tv")
        if not season_number.isdigit():
            raise ValidationError(
                "Invalid season number", details={"season_number": season_number}
            )
        return await client.fetch_raw(
            tmdb_routes.tv_season(item_id, int(season_number)),
            {"append_to_response": append or SEASON_APPEND},
        )

    @router.get("/{tv_id}/aggregate")
    async def aggregate(tv_id: str, append: str | None = None) -> dict[str, Any]:
        return await _aggregate(
            client,
            reviews,
            "tv",
            parse_item_id(tv_id, "tv"),
            append or TV_DETAILS_APPEND,
        )

    return router


def _people_routes(client: TMDBClient) -> APIRouter:
    router = APIRouter(prefix="/api/people", tags=["people"], responses=ERROR_RESPONSES)

    @router.get("/search")
    async def search(q: str | None = None, page: str | None = None) -> Any:
        return await client.fetch_raw(
            tmdb_routes.search("person"),
            {"query": require_query(q), "page": parse_page(page)},
        )

    @router.get("/popular")
    async def popular(page: str | None = None) -> Any:
        return await client.fetch_raw(
            tmdb_routes.popular_people(), {"page": parse_page(page)}
        )

    @router.get("/{person_id}")
    async def details(person_id: str, append: str | None = None) -> Any:
        return await client.fetch_raw(
            tmdb_routes.person(parse_item_id(person_id, "person")),
            {"append_to_response": append or PERSON_DETAILS_APPEND},
        )

    @router.get("/{person_id}/credits")
    async def credits(person_id: str) -> Any:
        """Combined movie and TV credits."""
        return await client.fetch_raw(
            tmdb_routes.person(parse_item_id(person_id, "person"), "combined_credits")
        )

    @router.get("/{person_id}/images")
    async def images(person_id: str) -> Any:
        return await client.fetch_raw(
            tmdb_routes.person(parse_item_id(person_id, "person"), "images")
        )

    @router.get("/{person_id}/external")
    async def external(person_id: str) -> Any:
        """External ids (IMDb, Instagram, ...)."""
        return await client.fetch_raw(
            tmdb_routes.person(parse_item_id(person_id, "person"), "external_ids")
        )

    return router


def _company_routes(client: TMDBClient) -> APIRouter:
    router = APIRouter(prefix="/api/companies", tags=["companies"])

    @router.get("/{company_id}", responses=ERROR_RESPONSES)
    async def company_details(company_id: str) -> dict[str, Any]:
        """Company details, alternative names and logos; each part may be null."""
        item_id = parse_item_id(company_id, "company")
        details, alternative_names, images = await gather_settled(
            client.fetch_raw(tmdb_routes.company(item_id)),
            client.fetch_raw(tmdb_routes.company(item_id, "alternative_names")),
            client.fetch_raw(tmdb_routes.company(item_id, "images")),
        )
        return {
            "data": {
                "details": details,
                "alternative_names": alternative_names,
                "images": images,
            }
        }

    return router


def _admin_routes(client: TMDBClient, admin_key: str) -> APIRouter:
    async def verify_admin_key(
        x_admin_key: str | None = Header(default=None),
    ) -> None:
        if not admin_key:
            return
        if not x_admin_key or not secrets.compare_digest(x_admin_key, admin_key):
            logger.warning("Rejected admin request with missing or invalid key")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key"
            )

    router = APIRouter(
        prefix="/api/admin",
        tags=["admin"],
        dependencies=[Depends(verify_admin_key)],
    )

    @router.post("/cache/invalidate", response_model=InvalidateResponse)
    async def invalidate(request: InvalidateRequest) -> InvalidateResponse:
        """Delete cached upstream responses matching a glob pattern."""
        removed = await client.invalidate(request.pattern)
        return InvalidateResponse(pattern=request.pattern, removed=removed)

    @router.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats() -> CacheStatsResponse:
        return CacheStatsResponse(
            cache=client.cache.get_stats().model_dump(),
            client=client.get_stats().model_dump(),
            in_flight=client.in_flight(),
        )

    return router


def _health_routes(client: TMDBClient) -> APIRouter:
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/live", response_model=HealthResponse)
    async def health_live() -> HealthResponse:
        """Liveness probe for Kubernetes."""
        return HealthResponse(
            status="healthy", timestamp=datetime.now(timezone.utc).isoformat()
        )

    @router.get("/ready", response_model=HealthResponse)
    async def health_ready() -> HealthResponse:
        """Readiness probe for Kubernetes.

        Stays 200 when the cache is down: requests still succeed in
        degraded mode.
        """
        if not client.cache.enabled:
            cache_status = "disabled"
        elif await client.cache.ping():
            cache_status = "up"
        else:
            cache_status = "down"

        return HealthResponse(
            status="degraded" if cache_status == "down" else "healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            cache=cache_status,
        )

    return router


def _add_listing_route(
    router: APIRouter, client: TMDBClient, media_type: str, listing: str
) -> None:
    path = tmdb_routes.listing(media_type, listing)

    async def endpoint(page: str | None = None) -> Any:
        return await client.fetch_raw(path, {"page": parse_page(page)})

    endpoint.__name__ = f"{media_type}_{listing}"
    router.add_api_route(f"/{listing}", endpoint, methods=["GET"])


def _add_title_resource_route(
    router: APIRouter, client: TMDBClient, media_type: str, resource: str, paged: bool
) -> None:
    """Register GET /{item_id}/{resource} for a movie or TV sub-resource."""

    if paged:

        async def endpoint(item_id: str, page: str | None = None) -> Any:
            path = tmdb_routes.title_resource(
                media_type, parse_item_id(item_id, media_type), resource
            )
            return await client.fetch_raw(path, {"page": parse_page(page)})

    else:

        async def endpoint(item_id: str) -> Any:  # type: ignore[misc]
            path = tmdb_routes.title_resource(
                media_type, parse_item_id(item_id, media_type), resource
            )
            return await client.fetch_raw(path)

    endpoint.__name__ = f"{media_type}_{resource}"
    router.add_api_route(f"/{{item_id}}/{resource}", endpoint, methods=["GET"])
