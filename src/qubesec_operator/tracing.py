"""OpenTelemetry spans around reconciliation passes and provider calls.

Tracing is configured once at operator startup from the standard ``OTEL_*``
environment variables. Until then, or when ``OTEL_TRACES_ENABLED=false``,
``trace_span`` is a no-op so handlers can be exercised without a collector.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer

from .constants import CONTROLLER_NAME

logger = logging.getLogger(__name__)

_DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"

_tracer: Tracer | None = None


def _build_provider(service_name: str) -> TracerProvider:
    resource = Resource.create({
        "service.name": service_name,
        "service.version": os.getenv("OTEL_SERVICE_VERSION", "unknown"),
    })
    provider = TracerProvider(resource=resource)
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", _DEFAULT_OTLP_ENDPOINT)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    return provider


def initialize_tracing() -> bool:
    """Install the OTLP tracer provider; returns whether tracing is active.

    A misconfigured exporter is logged and leaves tracing off rather than
    stopping the operator.
    """
    global _tracer

    if os.getenv("OTEL_TRACES_ENABLED", "true").lower() == "false":
        logger.info("Tracing disabled by OTEL_TRACES_ENABLED")
        return False

    service_name = os.getenv("OTEL_SERVICE_NAME", CONTROLLER_NAME)
    try:
        trace.set_tracer_provider(_build_provider(service_name))
    except Exception as e:
        logger.warning(f"Failed to initialize tracing: {e}")
        return False

    _tracer = trace.get_tracer(service_name)
    return True


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span | None]:
    """Run the block inside a span named ``name``.

    ``kind`` is recorded as ``resource.kind``. Exceptions leaving the block
    mark the span as failed and propagate unchanged.
    """
    if _tracer is None:
        yield None
        return

    span_attributes = dict(attributes or {})
    if kind:
        span_attributes["resource.kind"] = kind

    with _tracer.start_as_current_span(name, attributes=span_attributes, record_exception=True) as span:
        yield span


def add_span_attribute(key: str, value: Any) -> None:
    """Attach ``key=value`` to the active span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
