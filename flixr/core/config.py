"""Configuration management for Flixr.

This module provides centralized configuration loading from environment
variables with validation and type safety. Cache TTL tuning can also be
supplied through an optional ``flixr.yaml`` file.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from flixr.core.exceptions import ConfigurationError

# Per-category TTL defaults (seconds) used when neither flixr.yaml nor the
# environment provides a value.
DEFAULT_CATEGORY_TTLS: dict[str, int] = {
    "search": 900,
    "details": 21600,
    "popular": 3600,
}


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Upstream metadata provider (TMDB)
    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="Upstream base URL (no trailing slash)",
        validation_alias=AliasChoices("tmdb_base_url", "tmdb_base"),
    )
    tmdb_api_key: str = Field(default="", description="Upstream API credential")
    tmdb_include_adult: bool = Field(
        default=False, description="Value of the constant adult content flag"
    )
    tmdb_timeout: float = Field(
        default=10.0, description="Upstream request timeout seconds", ge=0.5, le=120.0
    )
    tmdb_max_connections: int = Field(
        default=100, description="Upstream connection pool size", ge=1, le=1000
    )

    # Redis Cache
    redis_host: str = Field(default="127.0.0.1", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port", ge=1, le=65535)
    redis_db: int = Field(default=0, description="Redis database index", ge=0)
    redis_password: str = Field(default="", description="Redis password")
    redis_cache_enabled: bool = Field(
        default=True, description="Enable upstream response caching"
    )
    redis_timeout: float = Field(
        default=0.5,
        description="Redis socket timeout seconds (keep well below tmdb_timeout)",
        gt=0.0,
        le=5.0,
    )
    redis_circuit_breaker_threshold: int = Field(
        default=5, description="Failures before opening circuit", ge=1, le=20
    )
    redis_circuit_breaker_timeout: int = Field(
        default=30,
        description="Seconds before retrying an open circuit",
        ge=1,
        le=3600,
    )

    # Cache policy
    cache_namespace: str = Field(default="tmdb", description="Cache key prefix")
    cache_ttl_seconds: int = Field(
        default=3600, description="Global default TTL seconds (1 hour)", ge=1
    )
    cache_min_ttl_seconds: int = Field(
        default=60, description="Minimum TTL floor seconds", ge=1
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=4000, description="API port", ge=1, le=65535)
    api_rate_limit: int = Field(
        default=120, description="Requests per minute per client", ge=1, le=10000
    )
    api_rate_limit_enabled: bool = Field(
        default=True, description="Enable Redis sliding-window rate limiting"
    )
    api_admin_key: str = Field(
        default="", description="Key required by /api/admin/* (empty = open)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(
        default="development", description="Environment (development, production)"
    )

    # OpenTelemetry Configuration
    otel_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry instrumentation"
    )
    otel_service_name: str = Field(
        default="flixr-api", description="Service name for telemetry"
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317", description="OTLP gRPC endpoint"
    )
    otel_exporter_otlp_headers: str = Field(
        default="", description="OTLP headers (e.g., 'api-key=xxx')"
    )
    otel_traces_enabled: bool = Field(
        default=True, description="Enable trace collection"
    )
    otel_metrics_enabled: bool = Field(
        default=True, description="Enable metrics collection"
    )

    @model_validator(mode="after")
    def validate_ttl_floor(self) -> "Settings":
        """Validate the default TTL is not below the floor."""
        if self.cache_ttl_seconds < self.cache_min_ttl_seconds:
            raise ValueError(
                f"cache_ttl_seconds ({self.cache_ttl_seconds}) must be >= "
                f"cache_min_ttl_seconds ({self.cache_min_ttl_seconds})"
            )
        return self

    @property
    def redis_url(self) -> str:
        """Redis connection URL assembled from host, port and db."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"


def load_ttl_config(
    config_path: Path | None = None, base: Settings | None = None
) -> dict[str, Any]:
    """Load the cache TTL policy from flixr.yaml.

    Precedence for ``default`` and ``minimum``:
        1. Explicitly set Settings fields (CACHE_TTL_SECONDS, CACHE_MIN_TTL_SECONDS)
        2. YAML config (flixr.yaml cache.ttl)
        3. Settings field defaults

    Category TTLs come from the YAML config, falling back to
    DEFAULT_CATEGORY_TTLS.

    Args:
        config_path: Explicit YAML path (defaults to ./flixr.yaml)
        base: Settings to take env values from (defaults to global settings)

    Returns:
        Dict with ``default``, ``minimum`` and ``categories`` keys

    Raises:
        ConfigurationError: If the merged default TTL is below the floor

    Example:
        >>> config = load_ttl_config()
        >>> config["minimum"]
        60
        >>> config["categories"]["search"]
        900
    """
    base = base or settings
    result: dict[str, Any] = {
        "default": base.cache_ttl_seconds,
        "minimum": base.cache_min_ttl_seconds,
        "categories": dict(DEFAULT_CATEGORY_TTLS),
    }

    ttl_section = _read_ttl_section(config_path or Path("flixr.yaml"))
    _merge_yaml_ttls(result, ttl_section, base)

    if result["default"] < result["minimum"]:
        raise ConfigurationError(
            f"Default cache TTL ({result['default']}s) must be >= "
            f"minimum TTL ({result['minimum']}s)"
        )
    return result


def _read_ttl_section(path: Path) -> dict[str, Any]:
    """Return the ``cache.ttl`` mapping from a YAML file, or {} if unusable."""
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}

    if not isinstance(config, dict):
        return {}
    cache_section = config.get("cache", {})
    if not isinstance(cache_section, dict):
        return {}
    ttl_section = cache_section.get("ttl", {})
    if not isinstance(ttl_section, dict):
        return {}
    return ttl_section


def _merge_yaml_ttls(
    result: dict[str, Any], ttl_section: dict[str, Any], base: Settings
) -> None:
    # Explicitly set env or init values beat the file
    if isinstance(ttl_section.get("default"), int) and (
        "cache_ttl_seconds" not in base.model_fields_set
    ):
        result["default"] = ttl_section["default"]
    if isinstance(ttl_section.get("minimum"), int) and (
        "cache_min_ttl_seconds" not in base.model_fields_set
    ):
        result["minimum"] = ttl_section["minimum"]
    categories = ttl_section.get("categories", {})
    if isinstance(categories, dict):
        for category, seconds in categories.items():
            if isinstance(seconds, int):
                result["categories"][str(category)] = seconds


# Global settings instance
settings = Settings()
