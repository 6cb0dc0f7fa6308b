"""OpenTelemetry setup and initialization.

Configures OTLP exporters, trace providers, and metric providers
based on configuration settings.
"""

import logging
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from flixr import __version__
from flixr.core.config import settings

logger = logging.getLogger(__name__)

_instrumented = False


def _parse_headers(raw: str) -> dict[str, str] | None:
    """Parse ``k=v,k2=v2`` OTLP headers."""
    if not raw:
        return None
    return dict(item.split("=", 1) for item in raw.split(",") if "=" in item)


def setup_telemetry(app: Any | None = None) -> None:
    """Initialize OpenTelemetry instrumentation.

    Args:
        app: FastAPI application instance for auto-instrumentation

    Note:
        Only initializes if otel_enabled=True in configuration.
        Safe to call multiple times (idempotent).
    """
    global _instrumented

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled by configuration")
        return

    if _instrumented:
        logger.debug("OpenTelemetry already initialized")
        return

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment,
        }
    )
    headers = _parse_headers(settings.otel_exporter_otlp_headers)

    if settings.otel_traces_enabled:
        trace_provider = TracerProvider(resource=resource)
        trace_provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=settings.otel_exporter_otlp_endpoint, headers=headers
                )
            )
        )
        trace.set_tracer_provider(trace_provider)
        logger.info(
            f"OpenTelemetry tracing initialized: {settings.otel_exporter_otlp_endpoint}"
        )

    if settings.otel_metrics_enabled:
        metric_reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(
                endpoint=settings.otel_exporter_otlp_endpoint, headers=headers
            ),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(
            MeterProvider(resource=resource, metric_readers=[metric_reader])
        )
        logger.info(
            f"OpenTelemetry metrics initialized: {settings.otel_exporter_otlp_endpoint}"
        )

    if app:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI auto-instrumentation enabled")

    # Cache reads and writes show up as child spans of the request
    RedisInstrumentor().instrument()
    logger.info("Redis auto-instrumentation enabled")

    _instrumented = True


def shutdown_telemetry() -> None:
    """Flush pending spans and metrics, then shut the providers down."""
    if not settings.otel_enabled:
        return

    if settings.otel_traces_enabled:
        trace_provider = trace.get_tracer_provider()
        if hasattr(trace_provider, "shutdown"):
            trace_provider.shutdown()

    if settings.otel_metrics_enabled:
        meter_provider = metrics.get_meter_provider()
        if hasattr(meter_provider, "shutdown"):
            meter_provider.shutdown()

    logger.info("OpenTelemetry shutdown complete")
