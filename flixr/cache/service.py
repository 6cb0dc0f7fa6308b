"""Redis cache backend with circuit breaker pattern."""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from redis.asyncio import Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from flixr.cache.models import CacheConfig, CacheStats
from flixr.core.exceptions import CacheBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheCircuitBreaker:
    """Circuit breaker for cache failures with automatic recovery.

    States:
        closed: Normal operation, cache requests allowed
        open: Circuit tripped, cache bypassed entirely
        half_open: Testing recovery, single request allowed

    Pattern:
        closed -> (failures >= threshold) -> open
        open -> (timeout expired) -> half_open
        half_open -> (success) -> closed
        half_open -> (failure) -> open
    """

    def __init__(self, failure_threshold: int = 5, timeout: int = 30):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening circuit
            timeout: Seconds before attempting recovery from open state
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.state = "closed"  # closed, open, half_open
        self.last_failure_time: float | None = None

    def on_success(self) -> None:
        """Record successful operation."""
        if self.state == "half_open":
            logger.info("Circuit breaker recovered, closing circuit")
        self.state = "closed"
        self.failure_count = 0

    def on_failure(self) -> None:
        """Record failed operation and potentially open circuit."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == "half_open" or self.failure_count >= self.failure_threshold:
            if self.state != "open":
                logger.warning(
                    f"Circuit breaker opened after {self.failure_count} failures"
                )
            self.state = "open"

    def can_attempt(self) -> bool:
        """Check if cache operation should be attempted.

        Returns:
            True if operation should proceed, False if circuit open
        """
        if self.state == "closed":
            return True

        if self.state == "open":
            if (
                self.last_failure_time
                and time.time() - self.last_failure_time > self.timeout
            ):
                logger.info("Circuit breaker timeout expired, entering half-open state")
                self.state = "half_open"
                return True
            return False

        # half_open state: allow single attempt
        return True

    def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        self.state = "closed"
        self.failure_count = 0
        self.last_failure_time = None


class CacheService:
    """Text key-value cache on Redis with per-key expiry.

    Exposes the four primitives the caching client needs: ``get``,
    ``set`` (SETEX), and pattern deletion (SCAN + DEL). Backend failures
    surface as :class:`CacheBackendError` so the caller can degrade to a
    direct upstream fetch. The service never raises anything else for
    connectivity problems.

    Design Philosophy:
        Cache is an OPTIONAL optimization. Requests succeed when Redis is
        unavailable, only slower and without write-back.
    """

    def __init__(self, config: CacheConfig, redis: "Redis[str] | None" = None):
        """Initialize cache service.

        Args:
            config: Cache configuration
            redis: Pre-built Redis-compatible client (built from config if None)
        """
        self.config = config
        self.redis: Redis[str] | None = None
        self.circuit_breaker = CacheCircuitBreaker(
            failure_threshold=config.circuit_breaker_threshold,
            timeout=config.circuit_breaker_timeout,
        )
        self.stats = CacheStats()

        if not config.enabled:
            logger.info("Cache service disabled by configuration")
            return

        if redis is not None:
            self.redis = redis
        else:
            self.redis = Redis.from_url(
                config.redis_url,
                socket_timeout=config.timeout,
                socket_connect_timeout=config.timeout,
                retry_on_timeout=False,
                max_connections=50,
                decode_responses=True,
            )
        logger.info(f"Cache service initialized with Redis at {config.redis_url}")

    @property
    def enabled(self) -> bool:
        """Whether a backend is configured."""
        return self.config.enabled and self.redis is not None

    async def _call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run one backend call through the circuit breaker.

        Raises:
            CacheBackendError: Circuit open, connection/timeout failure, or
                any other Redis error
        """
        if not self.circuit_breaker.can_attempt():
            raise CacheBackendError(
                f"Cache {operation} skipped: circuit open",
                details={"operation": operation, "circuit_open": True},
            )

        try:
            result = await func()
        except (ConnectionError, TimeoutError) as e:
            self.stats.errors += 1
            self.circuit_breaker.on_failure()
            raise CacheBackendError(
                f"Cache {operation} failed (connection): {e}",
                details={"operation": operation},
            ) from e
        except RedisError as e:
            # Command-level errors do not say anything about availability
            self.stats.errors += 1
            raise CacheBackendError(
                f"Cache {operation} failed: {e}", details={"operation": operation}
            ) from e

        self.circuit_breaker.on_success()
        return result

    async def get(self, key: str) -> str | None:
        """Read the serialized value stored under key.

        Returns:
            Stored text, or None on miss or when caching is disabled

        Raises:
            CacheBackendError: Backend unavailable
        """
        if not self.enabled:
            return None

        assert self.redis is not None
        redis = self.redis
        data = await self._call("get", lambda: redis.get(key))

        if data is None:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
        self.stats.update_hit_rate()

        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    async def set(self, key: str, value: str, ttl: int) -> bool:
        """Store value under key with expiry (SETEX semantics).

        Returns:
            True if written, False when caching is disabled

        Raises:
            CacheBackendError: Backend unavailable
        """
        if not self.enabled:
            return False

        assert self.redis is not None
        redis = self.redis
        await self._call("set", lambda: redis.set(key, value, ex=ttl))
        self.stats.writes += 1
        logger.debug(f"Cached {key} (ttl={ttl}s)")
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Uses cursor-based SCAN so large keyspaces are not blocked. Not
        transactional: concurrent writers may recreate a key right after
        it is removed.

        Returns:
            Number of keys removed (0 when nothing matched)

        Raises:
            CacheBackendError: Backend unavailable
        """
        if not self.enabled:
            return 0

        assert self.redis is not None
        redis = self.redis

        async def _scan_and_delete() -> int:
            removed = 0
            cursor: Any = 0
            while True:
                cursor, keys = await redis.scan(
                    cursor=cursor, match=pattern, count=self.config.scan_count
                )
                if keys:
                    removed += await redis.delete(*keys)
                if cursor == 0:
                    break
            return removed

        removed = await self._call("invalidate", _scan_and_delete)
        self.stats.invalidated += removed
        logger.info(f"Invalidated {removed} cache keys matching {pattern!r}")
        return removed

    async def count_keys(self, pattern: str) -> int:
        """Count keys matching a glob pattern (SCAN, no deletion).

        Raises:
            CacheBackendError: Backend unavailable
        """
        if not self.enabled:
            return 0

        assert self.redis is not None
        redis = self.redis

        async def _scan_and_count() -> int:
            total = 0
            cursor: Any = 0
            while True:
                cursor, keys = await redis.scan(
                    cursor=cursor, match=pattern, count=self.config.scan_count
                )
                total += len(keys)
                if cursor == 0:
                    break
            return total

        return await self._call("count", _scan_and_count)

    async def ping(self) -> bool:
        """Check backend reachability without raising."""
        if not self.enabled:
            return False

        assert self.redis is not None
        redis = self.redis
        try:
            await self._call("ping", lambda: redis.ping())
        except CacheBackendError as e:
            logger.warning(f"Cache ping failed: {e}")
            return False
        return True

    async def close(self) -> None:
        """Close Redis connection gracefully."""
        if self.redis:
            await self.redis.aclose()
            logger.info("Cache service closed")

    def get_stats(self) -> CacheStats:
        """Get current cache statistics.

        Returns:
            CacheStats with hit/miss/error counts and circuit state
        """
        self.stats.circuit_state = self.circuit_breaker.state
        return self.stats
