"""Cache configuration and statistics models."""

from pydantic import BaseModel, Field

from flixr.core.config import Settings


class CacheConfig(BaseModel):
    """Configuration for the Redis cache backend.

    Attributes:
        enabled: Whether caching is enabled
        redis_url: Redis connection URL
        timeout: Socket timeout in seconds, much shorter than upstream calls
        circuit_breaker_threshold: Failures before opening circuit
        circuit_breaker_timeout: Seconds before attempting recovery
        scan_count: Batch size hint for SCAN during invalidation
    """

    enabled: bool = Field(default=True, description="Enable/disable caching")
    redis_url: str = Field(
        default="redis://127.0.0.1:6379/0", description="Redis connection URL"
    )
    timeout: float = Field(default=0.5, description="Redis socket timeout (seconds)")
    circuit_breaker_threshold: int = Field(
        default=5, description="Failures before opening circuit"
    )
    circuit_breaker_timeout: int = Field(
        default=30, description="Circuit breaker timeout (seconds)"
    )
    scan_count: int = Field(default=100, description="SCAN batch size hint")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheConfig":
        """Build cache configuration from application settings."""
        return cls(
            enabled=settings.redis_cache_enabled,
            redis_url=settings.redis_url,
            timeout=settings.redis_timeout,
            circuit_breaker_threshold=settings.redis_circuit_breaker_threshold,
            circuit_breaker_timeout=settings.redis_circuit_breaker_timeout,
        )


class CacheStats(BaseModel):
    """Cache performance statistics.

    Attributes:
        hits: Number of successful cache hits
        misses: Number of cache misses (including unreadable entries)
        errors: Number of cache backend errors
        writes: Number of entries stored
        invalidated: Number of keys removed by invalidation
        hit_rate: Cache hit rate (hits / lookups) as a percentage
        circuit_state: Current circuit breaker state
    """

    hits: int = Field(default=0, description="Cache hits")
    misses: int = Field(default=0, description="Cache misses")
    errors: int = Field(default=0, description="Cache errors")
    writes: int = Field(default=0, description="Entries written")
    invalidated: int = Field(default=0, description="Keys removed by invalidation")
    hit_rate: float = Field(default=0.0, description="Hit rate percentage")
    circuit_state: str = Field(
        default="closed", description="Circuit breaker state (closed/open/half_open)"
    )

    def update_hit_rate(self) -> None:
        """Recalculate hit rate based on current stats."""
        total = self.hits + self.misses
        self.hit_rate = (self.hits / total * 100) if total > 0 else 0.0
