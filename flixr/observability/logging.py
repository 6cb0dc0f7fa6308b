"""Structured logging configuration for Flixr.

This module provides structured logging using structlog. Logs are output
as JSON in production for log aggregators and as colored console lines in
development. Standard library loggers (``logging.getLogger(__name__)``)
used across the package are routed through the same handler.

Configuration:
    Set via environment variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - LOG_FORMAT: json, console (default: json in production, console in dev)
    - ENVIRONMENT: development, production (affects format default)

Usage:
    >>> from flixr.observability.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("cache_hit", key="tmdb:popular:/movie/popular:{\"page\":1}")

Standard Events:
    Cache:
        - cache_hit: Payload served from cache
        - cache_miss: Key absent, fetching upstream
        - cache_degraded: Cache backend unavailable, bypassing it
        - cache_unreadable: Stored value failed to deserialize
        - cache_invalidated: Keys removed by pattern

    Upstream:
        - upstream_request: Metadata provider called
        - upstream_failed: Provider call failed
        - request_coalesced: Caller joined an in-flight fetch
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.types import Processor

# Module-level flag to track initialization
_configured = False


def configure_logging(
    level: str | None = None,
    log_format: str | None = None,
    is_production: bool | None = None,
) -> None:
    """Configure structured logging for the application.

    Should be called once at application startup. Safe to call multiple times
    (subsequent calls are no-ops).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default from LOG_LEVEL env.
        log_format: Output format (json, console). Default based on environment.
        is_production: Override production detection. Default from ENVIRONMENT env.
    """
    global _configured
    if _configured:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    if is_production is None:
        is_production = os.getenv("ENVIRONMENT", "development").lower() == "production"

    if log_format is None:
        log_format = os.getenv("LOG_FORMAT", "json" if is_production else "console")

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    # Standard library records go through the same renderer
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Auto-configures logging on first call if not already configured.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Configured structlog BoundLogger instance.
    """
    if not _configured:
        configure_logging()

    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Useful for adding request_id or client address to every entry logged
    while handling one request.

    Example:
        >>> bind_context(request_id="abc123")
        >>> logger.info("cache_hit")  # Includes request_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables.

    Call at the end of a request/task to prevent context leakage.
    """
    structlog.contextvars.clear_contextvars()


class LogEvents:
    """Standard event names for structured logging."""

    # Cache events
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    CACHE_DEGRADED = "cache_degraded"
    CACHE_UNREADABLE = "cache_unreadable"
    CACHE_WRITE_FAILED = "cache_write_failed"
    CACHE_INVALIDATED = "cache_invalidated"

    # Upstream events
    UPSTREAM_REQUEST = "upstream_request"
    UPSTREAM_FAILED = "upstream_failed"
    REQUEST_COALESCED = "request_coalesced"

    # API events
    REQUEST_RECEIVED = "request_received"
    REQUEST_COMPLETED = "request_completed"

    # Lifecycle events
    SERVER_STARTED = "server_started"
    SERVER_SHUTDOWN = "server_shutdown"
