"""OpenTelemetry metrics for the caching request client.

Metrics:
    - flixr.cache.lookups: Counter of cache lookups by category and result
      (hit, miss, degraded, unreadable)
    - flixr.cache.coalesced: Counter of callers that joined an in-flight fetch
    - flixr.upstream.requests: Counter of upstream calls by outcome
    - flixr.upstream.latency: Histogram of upstream latency in milliseconds
"""

import logging

from opentelemetry import metrics

from flixr.core.config import settings

logger = logging.getLogger(__name__)

# Global meter instance
_meter: metrics.Meter | None = None

# Metric instruments (created on first access)
_cache_lookups_counter: metrics.Counter | None = None
_cache_coalesced_counter: metrics.Counter | None = None
_upstream_requests_counter: metrics.Counter | None = None
_upstream_latency_histogram: metrics.Histogram | None = None


def _metrics_enabled() -> bool:
    return settings.otel_enabled and settings.otel_metrics_enabled


def get_meter(name: str = "flixr") -> metrics.Meter:
    """Get OpenTelemetry meter instance.

    Args:
        name: Meter name

    Returns:
        Meter instance (no-op if telemetry disabled)
    """
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(name)
    return _meter


def _ensure_instruments() -> None:
    """Lazy initialization of metric instruments."""
    global _cache_lookups_counter
    global _cache_coalesced_counter
    global _upstream_requests_counter
    global _upstream_latency_histogram

    meter = get_meter()

    if _cache_lookups_counter is None:
        _cache_lookups_counter = meter.create_counter(
            name="flixr.cache.lookups",
            description="Cache lookups by result",
            unit="1",
        )

    if _cache_coalesced_counter is None:
        _cache_coalesced_counter = meter.create_counter(
            name="flixr.cache.coalesced",
            description="Requests that joined an in-flight upstream fetch",
            unit="1",
        )

    if _upstream_requests_counter is None:
        _upstream_requests_counter = meter.create_counter(
            name="flixr.upstream.requests",
            description="Upstream metadata provider requests",
            unit="1",
        )

    if _upstream_latency_histogram is None:
        _upstream_latency_histogram = meter.create_histogram(
            name="flixr.upstream.latency",
            description="Upstream request latency",
            unit="ms",
        )


def record_cache_lookup(category: str, result: str) -> None:
    """Record one cache lookup.

    Args:
        category: Request category tag
        result: hit, miss, degraded or unreadable
    """
    if not _metrics_enabled():
        return

    _ensure_instruments()
    if _cache_lookups_counter:
        _cache_lookups_counter.add(1, {"category": category, "result": result})


def record_coalesced(category: str) -> None:
    """Record a caller that awaited an existing in-flight fetch."""
    if not _metrics_enabled():
        return

    _ensure_instruments()
    if _cache_coalesced_counter:
        _cache_coalesced_counter.add(1, {"category": category})


def record_upstream_request(
    outcome: str, latency_ms: float, status_code: int | None = None
) -> None:
    """Record an upstream call.

    Args:
        outcome: success, error or timeout
        latency_ms: Wall-clock latency in milliseconds
        status_code: HTTP status when a response was received
    """
    if not _metrics_enabled():
        return

    _ensure_instruments()
    attributes: dict[str, str | int] = {"outcome": outcome}
    if status_code is not None:
        attributes["status_code"] = status_code

    if _upstream_requests_counter:
        _upstream_requests_counter.add(1, attributes)
    if _upstream_latency_histogram:
        _upstream_latency_histogram.record(latency_ms, {"outcome": outcome})

    logger.debug(f"Recorded upstream request metric: {outcome} ({latency_ms:.1f}ms)")
