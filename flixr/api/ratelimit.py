"""Rate limiting middleware using Redis sliding window algorithm.

Algorithm:
    - Sliding window counter using sorted sets (ZSET)
    - Window size: 1 minute (60 seconds)
    - Limit: Configurable (default 120 requests/minute/client)
    - Client identification: first X-Forwarded-For hop, else peer address

The limiter shares the cache Redis instance but uses its own key prefix,
so cache invalidation patterns under the cache namespace never touch it.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from flixr.core.config import settings
from flixr.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)

KEY_PREFIX = "flixr:ratelimit:"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting middleware with sliding window.

    Falls back to allowing requests if Redis is unavailable (fail-open).

    Example:
        >>> app.add_middleware(
        ...     RateLimitMiddleware,
        ...     redis_url="redis://localhost:6379",
        ...     rate_limit=120  # requests per minute
        ... )
    """

    def __init__(
        self,
        app: Callable[..., Any],
        redis_url: str | None = None,
        rate_limit: int | None = None,
        window_seconds: int = 60,
        redis: "Redis[bytes] | None" = None,
    ):
        """Initialize rate limiting middleware.

        Args:
            app: ASGI application
            redis_url: Redis connection URL (defaults to settings)
            rate_limit: Requests per window (defaults to settings)
            window_seconds: Time window in seconds (default 60 = 1 minute)
            redis: Pre-built Redis client (built from redis_url if None)
        """
        super().__init__(app)
        self.redis_url = redis_url or settings.redis_url
        self.rate_limit = rate_limit or settings.api_rate_limit
        self.window_seconds = window_seconds
        self.redis: Redis[bytes] | None = redis

        if self.redis is None:
            try:
                self.redis = Redis.from_url(
                    self.redis_url,
                    socket_timeout=settings.redis_timeout,
                    socket_connect_timeout=settings.redis_timeout,
                    retry_on_timeout=False,
                    max_connections=10,
                    decode_responses=False,
                )
            except (RedisError, ValueError) as e:
                logger.error(f"Failed to initialize Redis for rate limiting: {e}")
                self.redis = None

        logger.info(f"Rate limiter initialized with {self.rate_limit}/min limit")

    async def dispatch(
        self, request: Request, call_next: Callable[..., Awaitable[Response]]
    ) -> Response:
        """Process request and enforce rate limits.

        Returns:
            HTTP response or 429 Too Many Requests

        Note:
            Fails open (allows requests) if Redis unavailable.
            Health checks are exempt from rate limiting.
        """
        if request.url.path.startswith("/health/"):
            return await call_next(request)

        if not self.redis:
            return await call_next(request)

        client_id = self._get_client_id(request)

        try:
            allowed, current_count, retry_after = await self._check_rate_limit(
                client_id
            )
        except RedisError as e:
            logger.error(f"Redis error in rate limiter, allowing request: {e}")
            return await call_next(request)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {client_id}: "
                f"{current_count}/{self.rate_limit} requests in {self.window_seconds}s"
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": f"Rate limit exceeded: {self.rate_limit} requests per minute",
                    "detail": None,
                    "code": RateLimitError.code,
                    "retry_after": retry_after,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self.rate_limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(time.time()) + retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rate_limit)
        response.headers["X-RateLimit-Remaining"] = str(
            max(0, self.rate_limit - current_count)
        )
        response.headers["X-RateLimit-Reset"] = str(
            int(time.time()) + self.window_seconds
        )
        return response

    async def _check_rate_limit(self, client_id: str) -> tuple[bool, int, int]:
        """Check if client is within rate limit using sliding window.

        Args:
            client_id: Client identifier (IP)

        Returns:
            Tuple of (allowed, current_count, retry_after_seconds)

        Algorithm:
            1. Remove expired entries (older than window)
            2. Count requests in current window
            3. If under limit, add current request and allow
            4. If over limit, deny and calculate retry time
        """
        if not self.redis:
            return (True, 0, 0)

        now = time.time()
        window_start = now - self.window_seconds
        key = f"{KEY_PREFIX}{client_id}"

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(key, 0, window_start)
        pipe.zcount(key, window_start, now)
        results = await pipe.execute()
        current_count = int(results[1])

        if current_count < self.rate_limit:
            await self.redis.zadd(key, {str(now): now})
            # Window plus a buffer so idle clients' keys are cleaned up
            await self.redis.expire(key, self.window_seconds + 10)
            return (True, current_count + 1, 0)

        oldest_entries = await self.redis.zrange(key, 0, 0, withscores=True)
        if oldest_entries:
            oldest_timestamp = float(oldest_entries[0][1])
            retry_after = int(oldest_timestamp + self.window_seconds - now) + 1
        else:
            retry_after = self.window_seconds

        return (False, current_count, retry_after)

    def _get_client_id(self, request: Request) -> str:
        """Extract the client address, honouring X-Forwarded-For from proxies."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        return request.client.host if request.client else "unknown"

    async def close(self) -> None:
        """Close Redis connection gracefully."""
        if self.redis:
            await self.redis.aclose()
            logger.info("Rate limiter Redis connection closed")
