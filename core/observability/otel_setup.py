"""
OpenTelemetry setup.

Traces for reconciliation pipelines (one span per remote phase).
Degrades to no-op spans when the SDK is not installed.
"""
from __future__ import annotations
from contextlib import contextmanager, nullcontext
from typing import Any, Iterator, Optional
import os


def setup_otel(
    service_name: str = "recargo-service",
    endpoint: Optional[str] = None,
):
    """Initialize OpenTelemetry with OTLP exporter."""
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.sdk.resources import Resource

        resource = Resource.create({"service.name": service_name})
        provider = TracerProvider(resource=resource)

        otlp_endpoint = endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        if otlp_endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
            provider.add_span_processor(BatchSpanProcessor(exporter))

        trace.set_tracer_provider(provider)
        return trace.get_tracer(service_name)

    except ImportError:
        # Graceful degradation if OTEL not installed
        return None


@contextmanager
def phase_span(tracer, phase: str, order_id: str, **attributes: Any) -> Iterator[Any]:
    """Span around one remote phase of a reconciliation."""
    if tracer is None:
        with nullcontext() as span:
            yield span
        return
    with tracer.start_as_current_span(
        f"recargo.{phase}",
        attributes={"recargo.order_id": order_id, **attributes},
    ) as span:
        yield span
