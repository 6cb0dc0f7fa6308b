"""Cache backend for upstream metadata responses.

This module wraps a shared Redis instance behind the narrow set of
primitives the caching request client consumes: read, write with expiry,
and pattern invalidation. It is designed with fail-safe patterns so the
service keeps answering requests when Redis is unavailable.

Key Features:
    - Text (JSON) values with per-key TTL managed by Redis
    - Circuit breaker for automatic failure recovery
    - Typed CacheBackendError for degraded-mode handling by callers
    - Cursor-based SCAN invalidation
    - Performance statistics tracking

Usage:
    >>> from flixr.cache import CacheService, CacheConfig
    >>>
    >>> cache = CacheService(CacheConfig(redis_url="redis://localhost:6379/0"))
    >>> await cache.set("tmdb:raw:/genre/movie/list:{}", '{"genres": []}', ttl=3600)
    >>> await cache.get("tmdb:raw:/genre/movie/list:{}")
    '{"genres": []}'
    >>> await cache.delete_pattern("tmdb:raw:*")
    1
"""

from flixr.cache.models import CacheConfig, CacheStats
from flixr.cache.service import CacheCircuitBreaker, CacheService

__all__ = [
    "CacheService",
    "CacheConfig",
    "CacheStats",
    "CacheCircuitBreaker",
]
