"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for view assembly, listings and degraded aggregates

Tracing is configured once at import of main.py; the engine and the app are
instrumented as they are created.
"""
import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Counter, Histogram
from sqlalchemy.ext.asyncio import AsyncEngine

from content_api.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
VIEW_ASSEMBLY_LATENCY = Histogram(
    "view_assembly_latency_seconds",
    "Time to assemble one denormalized view, sub-lookups included",
    ["view"],  # 'user' | 'post' | 'comment'
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

FEED_LATENCY = Histogram(
    "feed_latency_seconds",
    "End-to-end latency of building one feed page",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

LISTING_REQUESTS_TOTAL = Counter(
    "listing_requests_total",
    "Paged listings served",
    ["listing"],  # 'posts' | 'drafts' | 'feed' | 'followers' | ...
)

AGGREGATE_DEGRADED_TOTAL = Counter(
    "aggregate_degraded_total",
    "Aggregate sub-lookups that failed and were served as zero/empty",
    ["aggregate"],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def _span_exporter():
    try:
        return OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
    except Exception as exc:
        logger.warning("OTLP exporter unavailable (%s), spans stay local", exc)
        return None


def setup_tracing() -> TracerProvider:
    """Install the global TracerProvider; export only when OTEL_ENABLED is set."""
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.service_name,
                "deployment.environment": settings.environment,
            }
        )
    )

    exporter = _span_exporter() if settings.otel_enabled else None
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info("Exporting traces to %s", settings.otel_exporter_otlp_endpoint)

    trace.set_tracer_provider(provider)
    return provider


def instrument_engine(engine: AsyncEngine) -> None:
    """Emit a span per SQL statement issued through the engine."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
