from __future__ import annotations

import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.flask import FlaskInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import parse_bool

_provider_installed = False


def _build_provider() -> TracerProvider:
    resource = Resource.create(
        {
            "service.name": os.environ.get("FRAMENOTE_OTEL_SERVICE_NAME", "framenote-review-api"),
            "service.version": os.environ.get("FRAMENOTE_VERSION", "0.1.0-dev"),
            "deployment.environment": os.environ.get("FRAMENOTE_ENV", "production"),
        }
    )
    provider = TracerProvider(resource=resource)
    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True) if endpoint else ConsoleSpanExporter()
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def configure_tracing(app) -> bool:
    """Instrument the app (and outbound requests) when FRAMENOTE_OTEL_ENABLED is set."""
    global _provider_installed
    if not parse_bool(os.environ.get("FRAMENOTE_OTEL_ENABLED", "false")):
        return False

    # The global provider can only be set once per process.
    if not _provider_installed:
        trace.set_tracer_provider(_build_provider())
        RequestsInstrumentor().instrument()
        _provider_installed = True
    FlaskInstrumentor().instrument_app(app)
    return True
