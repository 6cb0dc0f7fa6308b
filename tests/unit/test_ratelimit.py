"""Unit tests for rate limiting middleware.

Tests cover:
- Initialization with defaults and custom values
- Health check exemptions
- Redis unavailable (fail-open)
- Rate limit exceeded and within bounds
- Client identification (X-Forwarded-For vs peer address)
"""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status
from redis.exceptions import ConnectionError, TimeoutError

from flixr.api.ratelimit import KEY_PREFIX, RateLimitMiddleware


def make_redis(count: int = 0, oldest: float | None = None) -> MagicMock:
    """Mock Redis whose pipeline reports ``count`` requests in the window."""
    redis = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, count])
    redis.pipeline.return_value = pipe
    redis.zadd = AsyncMock()
    redis.expire = AsyncMock()
    redis.zrange = AsyncMock(
        return_value=[(b"old", oldest)] if oldest is not None else []
    )
    redis.aclose = AsyncMock()
    return redis


def make_request(path: str = "/api/movies/popular", forwarded: str | None = None):
    request = MagicMock()
    request.url.path = path
    request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
    request.client = MagicMock()
    request.client.host = "192.168.1.1"
    return request


@pytest.fixture
def mock_settings():
    """Create mock settings."""
    with patch("flixr.api.ratelimit.settings") as mock:
        mock.redis_url = "redis://localhost:6379"
        mock.api_rate_limit = 100
        mock.redis_timeout = 0.5
        yield mock


@pytest.fixture
def mock_call_next():
    response = MagicMock()
    response.status_code = 200
    response.headers = {}
    return AsyncMock(return_value=response)


class TestRateLimitInit:
    """Construction and defaults."""

    def test_init_with_defaults(self, mock_settings):
        """Test initialization with default values from settings."""
        with patch("flixr.api.ratelimit.Redis") as mock_redis_class:
            mock_redis_class.from_url.return_value = MagicMock()

            middleware = RateLimitMiddleware(MagicMock())

            assert middleware.rate_limit == 100
            assert middleware.window_seconds == 60
            assert middleware.redis_url == "redis://localhost:6379"
            mock_redis_class.from_url.assert_called_once()

    def test_init_with_injected_redis(self, mock_settings):
        redis = make_redis()
        with patch("flixr.api.ratelimit.Redis") as mock_redis_class:
            middleware = RateLimitMiddleware(
                MagicMock(), rate_limit=5, window_seconds=30, redis=redis
            )

            mock_redis_class.from_url.assert_not_called()
        assert middleware.redis is redis
        assert middleware.rate_limit == 5
        assert middleware.window_seconds == 30

    def test_init_bad_url(self, mock_settings):
        """Test a malformed URL leaves the limiter disabled."""
        with patch("flixr.api.ratelimit.Redis") as mock_redis_class:
            mock_redis_class.from_url.side_effect = ValueError("bad url")

            middleware = RateLimitMiddleware(MagicMock())

            assert middleware.redis is None


class TestRateLimitDispatch:
    """Request handling."""

    async def test_health_check_exempt(self, mock_settings, mock_call_next):
        redis = make_redis(count=1000)
        middleware = RateLimitMiddleware(MagicMock(), redis=redis)
        request = make_request("/health/ready")

        response = await middleware.dispatch(request, mock_call_next)

        mock_call_next.assert_called_once_with(request)
        redis.pipeline.assert_not_called()
        assert response.status_code == 200

    async def test_no_redis_fail_open(self, mock_settings, mock_call_next):
        with patch("flixr.api.ratelimit.Redis") as mock_redis_class:
            mock_redis_class.from_url.side_effect = ValueError("bad url")
            middleware = RateLimitMiddleware(MagicMock())

        response = await middleware.dispatch(make_request(), mock_call_next)

        assert response.status_code == 200

    async def test_within_limit(self, mock_settings, mock_call_next):
        """Test request passes and rate limit headers are added."""
        redis = make_redis(count=5)
        middleware = RateLimitMiddleware(MagicMock(), rate_limit=100, redis=redis)

        response = await middleware.dispatch(make_request(), mock_call_next)

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "94"
        redis.zadd.assert_awaited_once()
        redis.expire.assert_awaited_once_with(f"{KEY_PREFIX}192.168.1.1", 70)

    async def test_limit_exceeded(self, mock_settings, mock_call_next):
        """Test 429 returned with Retry-After when the window is full."""
        redis = make_redis(count=100, oldest=time.time() - 30)
        middleware = RateLimitMiddleware(MagicMock(), rate_limit=100, redis=redis)

        response = await middleware.dispatch(make_request(), mock_call_next)

        mock_call_next.assert_not_called()
        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        retry_after = int(response.headers["Retry-After"])
        assert 29 <= retry_after <= 31
        assert response.headers["X-RateLimit-Remaining"] == "0"

    async def test_limit_exceeded_without_oldest_entry(self, mock_settings, mock_call_next):
        redis = make_redis(count=100)
        middleware = RateLimitMiddleware(MagicMock(), rate_limit=100, redis=redis)

        response = await middleware.dispatch(make_request(), mock_call_next)

        assert response.headers["Retry-After"] == "60"

    @pytest.mark.parametrize("error", [ConnectionError("lost"), TimeoutError("slow")])
    async def test_redis_error_fail_open(self, mock_settings, mock_call_next, error):
        """Test requests pass through when Redis fails mid-request."""
        redis = make_redis()
        redis.pipeline.side_effect = error
        middleware = RateLimitMiddleware(MagicMock(), redis=redis)

        response = await middleware.dispatch(make_request(), mock_call_next)

        mock_call_next.assert_called_once()
        assert response.status_code == 200

    async def test_close(self, mock_settings):
        redis = make_redis()
        middleware = RateLimitMiddleware(MagicMock(), redis=redis)

        await middleware.close()

        redis.aclose.assert_awaited_once()


class TestRateLimitClientIdentification:
    """Tests for client identification in rate limiting."""

    def test_forwarded_for_first_hop(self, mock_settings):
        middleware = RateLimitMiddleware(MagicMock(), redis=make_redis())

        client_id = middleware._get_client_id(
            make_request(forwarded="10.0.0.1, 10.0.0.2, 10.0.0.3")
        )

        assert client_id == "10.0.0.1"

    def test_peer_address(self, mock_settings):
        middleware = RateLimitMiddleware(MagicMock(), redis=make_redis())

        assert middleware._get_client_id(make_request()) == "192.168.1.1"

    def test_no_client(self, mock_settings):
        middleware = RateLimitMiddleware(MagicMock(), redis=make_redis())
        request = make_request()
        request.client = None

        assert middleware._get_client_id(request) == "unknown"
