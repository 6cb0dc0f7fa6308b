"""Core infrastructure for the Flixr backend."""

from flixr.core.config import Settings, load_ttl_config, settings
from flixr.core.exceptions import (
    CacheBackendError,
    ConfigurationError,
    FlixrError,
    RateLimitError,
    SerializationError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    # Configuration
    "Settings",
    "settings",
    "load_ttl_config",
    # Exceptions
    "FlixrError",
    "ValidationError",
    "UpstreamError",
    "CacheBackendError",
    "SerializationError",
    "ConfigurationError",
    "RateLimitError",
]
