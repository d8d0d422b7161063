"""Meters, ad-hoc counters and the SDK meter provider."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Counter, Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

EXPORT_INTERVAL_MILLIS = 5000

_METERS: dict[str, Meter] = {}
_METER_PROVIDER: MeterProvider | None = None
_COUNTERS: dict[str, Counter] = {}

MetricAttributes = Mapping[str, str | bool | int | float]


def get_meter(name: str = "hiddenfleet") -> Meter:
    meter = _METERS.get(name)
    if meter is None:
        meter = _METERS[name] = otel_metrics.get_meter(name)
    return meter


def init_metrics(config: TelemetryConfig) -> MeterProvider:
    """Install an SDK meter provider; without an endpoint nothing is exported."""
    global _METER_PROVIDER

    readers = []
    if config.otlp_metrics_endpoint:
        exporter = OTLPMetricExporter(endpoint=config.otlp_metrics_endpoint, insecure=True)
        readers.append(
            PeriodicExportingMetricReader(exporter, export_interval_millis=EXPORT_INTERVAL_MILLIS)
        )

    provider = MeterProvider(resource=config.resource(), metric_readers=readers)
    otel_metrics.set_meter_provider(provider)
    _METER_PROVIDER = provider
    return provider


def record_metric(name: str, value: float, attrs: MetricAttributes | None = None) -> None:
    """Add ``value`` to the counter ``name``, creating it on first use."""
    counter = _COUNTERS.get(name)
    if counter is None:
        counter = _COUNTERS[name] = get_meter().create_counter(name, unit="1")
    counter.add(value, attributes=attrs or {})


def shutdown_metrics() -> None:
    """Push readings the periodic reader has not exported yet, then release the provider."""
    global _METER_PROVIDER
    if _METER_PROVIDER is not None:
        _METER_PROVIDER.shutdown()
        _METER_PROVIDER = None
