"""TMDB access: upstream HTTP client, cache keys, TTL policy and the caching client."""

from flixr.tmdb.client import ClientStats, TMDBClient
from flixr.tmdb.keys import build_cache_key, canonicalize, normalize_params
from flixr.tmdb.ttl import TTLPolicy
from flixr.tmdb.upstream import UpstreamClient

__all__ = [
    "TMDBClient",
    "ClientStats",
    "UpstreamClient",
    "TTLPolicy",
    "build_cache_key",
    "canonicalize",
    "normalize_params",
]
