"""Factory for creating TMDBClient instances."""

import logging
from typing import Any

import httpx

from flixr.cache.models import CacheConfig
from flixr.cache.service import CacheService
from flixr.core.config import Settings, settings
from flixr.tmdb.client import TMDBClient
from flixr.tmdb.ttl import TTLPolicy
from flixr.tmdb.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def create_client(
    app_settings: Settings | None = None,
    redis: Any | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> TMDBClient:
    """Create a TMDBClient with its cache backend and upstream client.

    Args:
        app_settings: Settings to build from (defaults to global settings)
        redis: Pre-built Redis client (built from settings if None)
        http_client: Pre-built httpx client (built from settings if None)

    Returns:
        Configured TMDBClient; call ``close()`` when done
    """
    cfg = app_settings or settings
    cache = CacheService(CacheConfig.from_settings(cfg), redis=redis)
    upstream = UpstreamClient.from_settings(cfg, http_client=http_client)
    ttl_policy = TTLPolicy.from_settings(cfg)
    logger.debug(
        f"TTL policy: default={ttl_policy.default}s floor={ttl_policy.minimum}s "
        f"categories={ttl_policy.categories}"
    )
    return TMDBClient(
        cache=cache,
        upstream=upstream,
        ttl_policy=ttl_policy,
        namespace=cfg.cache_namespace,
    )
