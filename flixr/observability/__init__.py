"""Observability for Flixr: structured logging plus OpenTelemetry.

Exports to OTLP-compatible backends (Jaeger, Tempo, Prometheus, etc.).

Instrumented Components:
    - FastAPI requests (auto-instrumentation)
    - Redis operations (auto-instrumentation)
    - Cache lookups by result and coalesced requests
    - Upstream request outcomes and latency
"""

from flixr.observability.logging import (
    LogEvents,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from flixr.observability.metrics import (
    get_meter,
    record_cache_lookup,
    record_coalesced,
    record_upstream_request,
)
from flixr.observability.setup import setup_telemetry, shutdown_telemetry
from flixr.observability.tracing import get_tracer, trace_operation

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "LogEvents",
    "setup_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "get_meter",
    "trace_operation",
    "record_cache_lookup",
    "record_coalesced",
    "record_upstream_request",
]
