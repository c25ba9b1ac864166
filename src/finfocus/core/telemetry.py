"""Initializes OpenTelemetry tracing for plugin RPC calls."""

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

# Environment variable for the OTel collector endpoint. When unset, spans go to
# the no-op tracer provider and telemetry costs nothing.
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")


def initialize_telemetry(endpoint: str = None) -> bool:
    """
    Configures the TracerProvider for OpenTelemetry, exporting via OTLP/HTTP.

    Returns True when a provider was installed, False when no endpoint is configured.
    """
    endpoint = endpoint or OTEL_EXPORTER_OTLP_ENDPOINT
    if not endpoint:
        return False

    resource = Resource(attributes={SERVICE_NAME: "finfocus-core"})
    tracer_provider = TracerProvider(resource=resource)
    span_exporter = OTLPSpanExporter(endpoint=f"{endpoint.rstrip('/')}/v1/traces")
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)
    logger.info(f"OpenTelemetry initialized. Exporting to: {endpoint}")
    return True


tracer = trace.get_tracer("finfocus.tracer")
