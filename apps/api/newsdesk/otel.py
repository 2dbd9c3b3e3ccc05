from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Span

from newsdesk.context import get_correlation_id, normalize_correlation_id
from newsdesk.core.config import Settings


_provider: TracerProvider | None = None
_exporters_attached = False

access_tracer = trace.get_tracer("newsdesk.access")


def _tracer_provider(settings: Settings) -> TracerProvider:
    global _provider

    if _provider is None:
        _provider = TracerProvider(
            resource=Resource.create(
                {
                    "service.name": settings.otel_service_name,
                    "service.version": settings.app_version,
                    "deployment.environment": settings.app_env,
                }
            )
        )
        trace.set_tracer_provider(_provider)
    return _provider


def configure_tracing(settings: Settings) -> TracerProvider | None:
    """Install the process tracer provider and its exporters once."""

    global _exporters_attached

    if not settings.otel_enabled:
        return None

    provider = _tracer_provider(settings)
    if _exporters_attached:
        return provider

    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _exporters_attached = True
    return provider


def capture_spans(settings: Settings) -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _tracer_provider(settings).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@contextmanager
def access_span(name: str, user_id: str) -> Iterator[Span]:
    """Span around an access-store load, tagged with the user and correlation id."""

    attributes: dict[str, Any] = {"user_id": user_id}
    correlation_id = get_correlation_id()
    if correlation_id:
        attributes["correlation_id"] = correlation_id
    with access_tracer.start_as_current_span(name, attributes=attributes) as span:
        yield span


def correlation_request_hook(span: Span | None, scope: dict[str, Any]) -> None:
    if span is None or not span.is_recording():
        return
    headers = dict(scope.get("headers", []))
    for header in (b"x-correlation-id", b"x-request-id"):
        raw = headers.get(header)
        correlation_id = normalize_correlation_id(raw.decode("latin-1")) if raw else None
        if correlation_id:
            span.set_attribute("correlation_id", correlation_id)
            return
