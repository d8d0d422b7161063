"""Public telemetry helpers for hiddenfleet."""

from __future__ import annotations

from .config import TelemetryConfig, init_telemetry, load_telemetry_config, shutdown_telemetry
from .logger import init_console_logging, init_logging
from .metrics import get_meter, init_metrics, record_metric
from .tracer import get_tracer, init_tracing

__all__ = [
    "TelemetryConfig",
    "get_tracer",
    "get_meter",
    "record_metric",
    "init_console_logging",
    "init_logging",
    "init_tracing",
    "init_metrics",
    "load_telemetry_config",
    "init_telemetry",
    "shutdown_telemetry",
]
