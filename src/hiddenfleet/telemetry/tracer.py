"""Tracers for the engine and reconciler, and the SDK provider behind them."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace import Tracer

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import TelemetryConfig


_TRACERS: dict[str, Tracer] = {}
_TRACER_PROVIDER: TracerProvider | None = None


def get_tracer(name: str = "hiddenfleet") -> Tracer:
    """Return the tracer for instrumentation scope ``name``.

    Tracers handed out before :func:`init_tracing` are API proxies; they start
    recording once the SDK provider is installed.
    """
    tracer = _TRACERS.get(name)
    if tracer is None:
        tracer = _TRACERS[name] = trace.get_tracer(name)
    return tracer


def init_tracing(config: TelemetryConfig) -> TracerProvider:
    """Install an SDK provider exporting over OTLP, or to stderr without an endpoint."""
    global _TRACER_PROVIDER

    provider = TracerProvider(resource=config.resource())
    if config.otlp_traces_endpoint:
        exporter = OTLPSpanExporter(endpoint=config.otlp_traces_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        # stdout is reserved for CLI output.
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

    trace.set_tracer_provider(provider)
    _TRACER_PROVIDER = provider
    return provider


def shutdown_tracing() -> None:
    """Flush batched spans and release the provider."""
    global _TRACER_PROVIDER
    if _TRACER_PROVIDER is not None:
        _TRACER_PROVIDER.shutdown()
        _TRACER_PROVIDER = None
