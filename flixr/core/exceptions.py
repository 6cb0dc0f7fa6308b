"""Exception hierarchy for the Flixr backend.

This module defines custom exceptions for the failure modes of the
caching request client and the HTTP layer in front of it.
"""

from typing import Any


class FlixrError(Exception):
    """Base exception for all Flixr errors."""

    code: str = "FLIXR_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(FlixrError):
    """Request validation failed (missing or malformed parameter).

    Raised by the route layer before the client is invoked, never by the
    client itself.
    """

    code: str = "VALIDATION_ERROR"


class UpstreamError(FlixrError):
    """Metadata provider call failed (status, timeout, network, bad body)."""

    code: str = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        path: str | None = None,
        timed_out: bool = False,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.path = path
        self.timed_out = timed_out


class CacheBackendError(FlixrError):
    """Cache store unreachable (connection refused, timeout, circuit open).

    Never surfaced to API callers: the client treats it as a miss and skips
    the write-back.
    """

    code: str = "CACHE_BACKEND_ERROR"


class SerializationError(FlixrError):
    """Cached value could not be serialized or deserialized."""

    code: str = "SERIALIZATION_ERROR"


class ConfigurationError(FlixrError):
    """Configuration error (missing env vars, invalid settings)."""

    code: str = "CONFIGURATION_ERROR"


class RateLimitError(FlixrError):
    """Rate limit exceeded for a client."""

    code: str = "RATE_LIMIT_EXCEEDED"
