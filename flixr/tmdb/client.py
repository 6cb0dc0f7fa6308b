"""Caching request client for the upstream metadata provider.

Every operation resolves to one logical request (category, path, params).
The client derives a deterministic cache key, serves hits straight from
the cache backend, and on a miss fetches upstream, stores the payload with
the resolved TTL, and returns the live payload.

Failure handling:
    - Cache backend unavailable: degraded mode. The lookup counts as a miss
      and the write-back is skipped. The request still succeeds.
    - Stored value unreadable: treated as a miss and overwritten.
    - Upstream failure: UpstreamError propagates. Nothing is cached.

Concurrent misses for the same key share one upstream fetch. The fetch
runs in its own task, so a caller that gets cancelled does not abort it
and the result still lands in the cache for later callers.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from flixr.cache.service import CacheService
from flixr.core.exceptions import CacheBackendError, SerializationError, UpstreamError
from flixr.observability.logging import LogEvents, get_logger
from flixr.observability.metrics import record_cache_lookup, record_coalesced
from flixr.tmdb import routes
from flixr.tmdb.keys import (
    build_cache_key,
    deserialize_payload,
    normalize_params,
    normalize_path,
    serialize_payload,
)
from flixr.tmdb.ttl import TTLPolicy

logger = get_logger(__name__)

CATEGORY_SEARCH = "search"
CATEGORY_DETAILS = "details"
CATEGORY_POPULAR = "popular"
CATEGORY_RAW = "raw"

DEFAULT_APPEND = "credits,videos"


class ClientStats(BaseModel):
    """Counters for the caching client (cache-level counters live in CacheStats).

    Attributes:
        upstream_calls: Upstream fetches started
        upstream_errors: Upstream fetches that failed
        coalesced: Callers that joined an in-flight fetch
        degraded: Lookups served while the cache backend was unavailable
        unreadable: Cached values that failed to deserialize
    """

    upstream_calls: int = Field(default=0, description="Upstream fetches started")
    upstream_errors: int = Field(default=0, description="Upstream fetches failed")
    coalesced: int = Field(default=0, description="Joined in-flight fetches")
    degraded: int = Field(default=0, description="Lookups in degraded mode")
    unreadable: int = Field(default=0, description="Unreadable cached values")


class TMDBClient:
    """Caching client in front of the TMDB v3 API.

    Built once per process with its collaborators injected.

    Example:
        >>> client = TMDBClient(cache, upstream, TTLPolicy())
        >>> page = await client.fetch_raw("/movie/top_rated", {"page": 1})
        >>> page["page"]
        1
    """

    def __init__(
        self,
        cache: CacheService,
        upstream: Any,
        ttl_policy: TTLPolicy | None = None,
        namespace: str = "tmdb",
    ):
        """Initialize the client.

        Args:
            cache: Cache backend service
            upstream: Object with ``async get(path, params)`` (UpstreamClient)
            ttl_policy: TTL policy (defaults to TTLPolicy())
            namespace: Cache key prefix
        """
        self.cache = cache
        self.upstream = upstream
        self.ttl_policy = ttl_policy or TTLPolicy()
        self.namespace = namespace
        self.stats = ClientStats()
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    # Named operations

    async def search_multi(self, query: str, page: int = 1) -> Any:
        """Search movies, TV shows and people in one call."""
        return await self.request(
            CATEGORY_SEARCH, routes.SEARCH_MULTI, {"query": query, "page": page}
        )

    async def get_details(
        self, media_type: str, item_id: int | str, append: str | None = DEFAULT_APPEND
    ) -> Any:
        """Details of one movie or TV show.

        Args:
            media_type: "movie" or "tv"
            item_id: Provider id
            append: Comma-separated sub-resources for ``append_to_response``
        """
        return await self.request(
            CATEGORY_DETAILS,
            routes.details(media_type, item_id),
            {"append_to_response": append},
        )

    async def get_popular(self, media_type: str, page: int = 1) -> Any:
        """Popular listing for movies or TV."""
        return await self.request(
            CATEGORY_POPULAR, routes.popular(media_type), {"page": page}
        )

    async def fetch_raw(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        ttl: int | None = None,
    ) -> Any:
        """Generic cached passthrough for any upstream path.

        Args:
            path: Upstream-relative path (no host, no credential)
            params: Flat query parameters; None and blank values are dropped
            ttl: TTL override in seconds (still clamped to the floor)
        """
        return await self.request(CATEGORY_RAW, path, params, ttl=ttl)

    # Core mechanism

    def build_key(
        self, category: str, path: str, params: Mapping[str, Any] | None = None
    ) -> str:
        """Cache key this client uses for a logical request."""
        return build_cache_key(self.namespace, category, path, params)

    async def request(
        self,
        category: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        ttl: int | None = None,
    ) -> Any:
        """Serve a logical request from cache or upstream.

        Raises:
            UpstreamError: Cache miss and the upstream call failed
        """
        path = normalize_path(path)
        normalized = normalize_params(params)
        key = build_cache_key(self.namespace, category, path, normalized)

        cache_available = True
        try:
            stored = await self.cache.get(key)
        except CacheBackendError as e:
            cache_available = False
            stored = None
            self.stats.degraded += 1
            record_cache_lookup(category, "degraded")
            if e.details.get("circuit_open"):
                logger.debug(LogEvents.CACHE_DEGRADED, key=key, reason="circuit_open")
            else:
                logger.warning(LogEvents.CACHE_DEGRADED, key=key, error=str(e))

        if stored is not None:
            try:
                payload = deserialize_payload(stored)
            except SerializationError as e:
                self.stats.unreadable += 1
                record_cache_lookup(category, "unreadable")
                logger.warning(LogEvents.CACHE_UNREADABLE, key=key, error=str(e))
            else:
                record_cache_lookup(category, "hit")
                logger.debug(LogEvents.CACHE_HIT, key=key)
                return payload
        elif cache_available:
            record_cache_lookup(category, "miss")
            logger.debug(LogEvents.CACHE_MISS, key=key)

        return await self._fetch_once(
            key, category, path, normalized, ttl, store=cache_available
        )

    async def _fetch_once(
        self,
        key: str,
        category: str,
        path: str,
        params: dict[str, Any],
        ttl: int | None,
        store: bool,
    ) -> Any:
        """Join the in-flight fetch for key, or start one."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._fetch_and_store(key, category, path, params, ttl, store)
            )
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._release(key, done))
        else:
            self.stats.coalesced += 1
            record_coalesced(category)
            logger.debug(LogEvents.REQUEST_COALESCED, key=key)

        # Shielded so a cancelled caller leaves the fetch running
        return await asyncio.shield(task)

    def _release(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved when every caller has gone away
        if not task.cancelled():
            task.exception()

    async def _fetch_and_store(
        self,
        key: str,
        category: str,
        path: str,
        params: dict[str, Any],
        ttl: int | None,
        store: bool,
    ) -> Any:
        self.stats.upstream_calls += 1
        logger.debug(LogEvents.UPSTREAM_REQUEST, path=path, category=category)
        try:
            payload = await self.upstream.get(path, params)
        except UpstreamError as e:
            self.stats.upstream_errors += 1
            logger.warning(
                LogEvents.UPSTREAM_FAILED,
                path=path,
                status_code=e.status_code,
                timed_out=e.timed_out,
            )
            raise

        if store:
            await self._store(key, category, payload, ttl)
        return payload

    async def _store(
        self, key: str, category: str, payload: Any, ttl: int | None
    ) -> None:
        """Write a fresh payload back; failures only cost the cache entry."""
        effective_ttl = self.ttl_policy.resolve(category, ttl)
        try:
            await self.cache.set(key, serialize_payload(payload), effective_ttl)
        except SerializationError as e:
            logger.warning(LogEvents.CACHE_WRITE_FAILED, key=key, error=str(e))
        except CacheBackendError as e:
            self.stats.degraded += 1
            logger.warning(LogEvents.CACHE_WRITE_FAILED, key=key, error=str(e))

    # Administration

    async def invalidate(self, pattern: str) -> int:
        """Delete every cached entry whose key matches a glob pattern.

        Best-effort: a key may be repopulated right after removal. Returns 0
        (and logs) when the backend is unavailable.

        Args:
            pattern: Glob pattern, e.g. ``tmdb:popular:*``

        Returns:
            Number of entries removed
        """
        try:
            removed = await self.cache.delete_pattern(pattern)
        except CacheBackendError as e:
            logger.warning(LogEvents.CACHE_DEGRADED, pattern=pattern, error=str(e))
            return 0
        logger.info(LogEvents.CACHE_INVALIDATED, pattern=pattern, removed=removed)
        return removed

    async def close(self) -> None:
        """Close the upstream connection pool and the cache connection."""
        close_upstream = getattr(self.upstream, "close", None)
        if close_upstream is not None:
            await close_upstream()
        await self.cache.close()

    def in_flight(self) -> int:
        """Number of upstream fetches currently running."""
        return len(self._in_flight)

    def get_stats(self) -> ClientStats:
        return self.stats
