"""Flixr - movie and TV metadata backend with a caching TMDB client.

The core is a caching request client: each upstream request maps to a
deterministic cache key, hits are served from Redis, misses are fetched
once (concurrent identical misses share one fetch) and stored with a
per-category TTL.

Basic usage:
    >>> from flixr import create_client
    >>> client = create_client()
    >>> page = await client.get_popular("movie", page=1)
    >>> await client.invalidate("tmdb:popular:*")
"""

from dotenv import load_dotenv

load_dotenv()

__version__ = "0.1.0"

from flixr.core import (
    CacheBackendError,
    ConfigurationError,
    FlixrError,
    RateLimitError,
    SerializationError,
    UpstreamError,
    ValidationError,
    settings,
)
from flixr.tmdb import TMDBClient, TTLPolicy, UpstreamClient
from flixr.utils.client_factory import create_client

__all__ = [
    # Main interface
    "TMDBClient",
    "UpstreamClient",
    "TTLPolicy",
    "create_client",
    # Configuration
    "settings",
    # Exceptions
    "FlixrError",
    "ValidationError",
    "UpstreamError",
    "CacheBackendError",
    "SerializationError",
    "ConfigurationError",
    "RateLimitError",
    "__version__",
]
