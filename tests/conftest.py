"""Pytest configuration and fixtures for Flixr tests."""

import asyncio
import copy
from fnmatch import fnmatchcase
from typing import Any

import pytest
from redis.exceptions import ConnectionError

from flixr.cache import CacheConfig, CacheService
from flixr.core.config import Settings
from flixr.tmdb.client import TMDBClient
from flixr.tmdb.ttl import TTLPolicy

# =============================================================================
# FAKE BACKENDS
# =============================================================================


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` with decode_responses=True.

    Implements the commands CacheService uses. SCAN pages through a snapshot
    taken at cursor 0, so deleting between pages does not skip keys (as with
    real Redis).
    """

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False
        self.scan_calls = 0
        self._scan_snapshot: list[str] = []

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def scan(
        self, cursor: int = 0, match: str | None = None, count: int | None = None
    ) -> tuple[int, list[str]]:
        self.scan_calls += 1
        if cursor == 0:
            self._scan_snapshot = sorted(
                k for k in self.store if match is None or fnmatchcase(k, match)
            )
        size = count or 10
        batch = self._scan_snapshot[cursor : cursor + size]
        next_cursor = cursor + size
        if next_cursor >= len(self._scan_snapshot):
            next_cursor = 0
        return next_cursor, batch

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


class UnreachableRedis(FakeRedis):
    """Redis whose every command fails as if the server refused the connection."""

    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    def _fail(self) -> None:
        self.attempts += 1
        raise ConnectionError("Error 111 connecting to 127.0.0.1:6379. Connection refused.")

    async def get(self, key: str) -> str | None:
        self._fail()
        return None

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._fail()
        return False

    async def scan(
        self, cursor: int = 0, match: str | None = None, count: int | None = None
    ) -> tuple[int, list[str]]:
        self._fail()
        return 0, []

    async def delete(self, *keys: str) -> int:
        self._fail()
        return 0

    async def ping(self) -> bool:
        self._fail()
        return False


class FakeUpstream:
    """Upstream client double that records calls.

    ``responses`` maps a path to a payload, an exception to raise, or a
    callable taking the params and returning a payload. Unknown paths echo
    the request.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.responses: dict[str, Any] = responses or {}
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append((path, dict(params or {})))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if path in self.responses:
            value = self.responses[path]
            if isinstance(value, Exception):
                raise value
            if callable(value):
                return value(dict(params or {}))
            return copy.deepcopy(value)
        return {"path": path, "params": dict(params or {})}

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def unreachable_redis() -> UnreachableRedis:
    return UnreachableRedis()


@pytest.fixture
def cache_config() -> CacheConfig:
    """Cache configuration for testing."""
    return CacheConfig(
        enabled=True,
        redis_url="redis://localhost:6379/0",
        circuit_breaker_threshold=3,
        circuit_breaker_timeout=300,
        scan_count=2,
    )


@pytest.fixture
def cache_service(cache_config, fake_redis) -> CacheService:
    return CacheService(cache_config, redis=fake_redis)


@pytest.fixture
def ttl_policy() -> TTLPolicy:
    return TTLPolicy(
        default=3600,
        minimum=60,
        categories={"search": 900, "details": 21600, "popular": 3600},
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def tmdb_client(cache_service, upstream, ttl_policy) -> TMDBClient:
    """Caching client wired to the in-memory Redis and the fake upstream."""
    return TMDBClient(cache_service, upstream, ttl_policy, namespace="tmdb")


@pytest.fixture
def test_settings() -> Settings:
    """Settings for app-level tests: no rate limiting, no telemetry."""
    return Settings(
        tmdb_base_url="https://tmdb.test/3",
        tmdb_api_key="test-key",
        redis_cache_enabled=True,
        api_rate_limit_enabled=False,
        api_admin_key="",
        otel_enabled=False,
        environment="development",
    )
