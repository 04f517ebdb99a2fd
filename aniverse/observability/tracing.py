"""
OpenTelemetry tracing for the relay.

Spans cover inbound HTTP requests, ledger queries and the manual
`generate_portrait` span opened by the generation workflow. Everything is
exported over OTLP/gRPC and is off unless TRACING_ENABLED is set.
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from aniverse.config import settings

# Comma-separated paths skipped by the FastAPI instrumentation
UNTRACED_URLS = "/metrics"


def setup_tracing() -> None:
    """Install the OTLP tracer provider tagged with service name and version."""
    if not settings.tracing_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.api_version,
        }
    )

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: Any) -> None:
    """Trace every route except the metrics scrape endpoint."""
    if not settings.tracing_enabled:
        return

    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace ledger queries issued through the async engine."""
    if not settings.tracing_enabled:
        return

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def get_tracer(name: str) -> Tracer:
    return trace.get_tracer(name)


def set_span_error(span: Span, error: Exception) -> None:
    """Flag a failed generation on its span."""
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)
