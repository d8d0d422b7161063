"""Telemetry instrumentation unit tests."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from conftest import ALICE, BOB, placement, player1_layout
from hiddenfleet.engine import geometry as geometry_module
from hiddenfleet.engine.errors import TransactionRejected, TransportFailure
from hiddenfleet.engine.ship import Coordinate, ShipId
from hiddenfleet.reconcile import reconciler as reconciler_module
from hiddenfleet.reconcile.config import ReconcilerConfig
from hiddenfleet.reconcile.ledger import FeedLedgerSource
from hiddenfleet.reconcile.private_state import InMemoryPrivateStateStore, PrivateState
from hiddenfleet.reconcile.reconciler import DerivedStateReconciler
from hiddenfleet.telemetry import config as telemetry_config_module
from hiddenfleet.telemetry import logger as logger_module
from hiddenfleet.telemetry import metrics as metrics_module
from hiddenfleet.telemetry import tracer as tracer_module
from hiddenfleet.telemetry.config import TelemetryConfig
from opentelemetry.sdk.trace import TracerProvider


class DummySpan:
    def __init__(self, names: list[str], span_name: str) -> None:
        self._names = names
        self._names.append(span_name)
        self.attributes: dict[str, object] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key, value):
        self.attributes[key] = value

    def record_exception(self, exc):
        self.attributes["exception"] = repr(exc)


class DummyTracer:
    def __init__(self) -> None:
        self.span_names: list[str] = []

    def start_as_current_span(self, name: str):
        return DummySpan(self.span_names, name)


class DummyCounter:
    def __init__(self, calls: list[tuple[str, dict | None]], name: str) -> None:
        self._calls = calls
        self._name = name

    def add(self, amount, attributes=None):
        self._calls.append((self._name, attributes))


def reset_singletons() -> None:
    tracer_module._TRACERS.clear()
    tracer_module._TRACER_PROVIDER = None
    metrics_module._METERS.clear()
    metrics_module._METER_PROVIDER = None
    metrics_module._COUNTERS.clear()
    logger_module._LOGGER_PROVIDER = None
    logger_module._OTLP_HANDLER = None


def test_tracers_are_cached_per_scope() -> None:
    reset_singletons()
    engine = tracer_module.get_tracer("hiddenfleet.engine")
    assert tracer_module.get_tracer("hiddenfleet.engine") is engine
    assert tracer_module.get_tracer("hiddenfleet.reconcile") is not engine
    assert metrics_module.get_meter("hiddenfleet.engine") is metrics_module.get_meter("hiddenfleet.engine")
    reset_singletons()


def test_init_and_shutdown_providers(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    config = TelemetryConfig(
        enable_tracing=True,
        enable_metrics=True,
        otlp_traces_endpoint="http://example",
        otlp_metrics_endpoint="http://example",
        resource_attributes={"deployment": "test"},
    )

    provider_class = MagicMock()
    monkeypatch.setattr(tracer_module, "TracerProvider", provider_class)
    monkeypatch.setattr(tracer_module, "OTLPSpanExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", MagicMock())
    provider = tracer_module.init_tracing(config)
    assert provider is provider_class.return_value
    resource = provider_class.call_args.kwargs["resource"]
    assert resource.attributes["service.name"] == "hiddenfleet"
    assert resource.attributes["deployment"] == "test"

    meter_provider_class = MagicMock()
    monkeypatch.setattr(metrics_module, "MeterProvider", meter_provider_class)
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", MagicMock())
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())
    meter_provider = metrics_module.init_metrics(config)
    assert meter_provider is meter_provider_class.return_value

    telemetry_config_module.shutdown_telemetry()
    provider.shutdown.assert_called_once_with()
    meter_provider.shutdown.assert_called_once_with()
    assert tracer_module._TRACER_PROVIDER is None
    assert metrics_module._METER_PROVIDER is None

    telemetry_config_module.shutdown_telemetry()
    provider.shutdown.assert_called_once_with()
    reset_singletons()


def test_record_metric_reuses_counter(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "get_meter", lambda *_: meter)

    metrics_module.record_metric("hiddenfleet_cli_runs", 1, {"command": "validate"})
    metrics_module.record_metric("hiddenfleet_cli_runs", 1)

    meter.create_counter.assert_called_once_with("hiddenfleet_cli_runs", unit="1")
    counter = meter.create_counter.return_value
    assert counter.add.call_count == 2
    reset_singletons()


def test_log_records_carry_span_context() -> None:
    span_filter = logger_module._SpanContextFilter()
    tracer = TracerProvider().get_tracer("test")

    outside = logging.LogRecord("hiddenfleet", logging.INFO, __file__, 1, "idle", None, None)
    assert span_filter.filter(outside)
    assert (outside.otelTraceID, outside.otelSpanID) == ("-", "-")

    with tracer.start_as_current_span("reconciler.fold") as span:
        inside = logging.LogRecord("hiddenfleet", logging.INFO, __file__, 1, "folded", None, None)
        span_filter.filter(inside)
    context = span.get_span_context()
    assert inside.otelTraceID == format(context.trace_id, "032x")
    assert inside.otelSpanID == format(context.span_id, "016x")


def test_otlp_log_handler_is_installed_once(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    added: list[logging.Handler] = []
    removed: list[logging.Handler] = []
    root = logging.getLogger()
    monkeypatch.setattr(root, "addHandler", added.append)
    monkeypatch.setattr(root, "removeHandler", removed.append)
    monkeypatch.setattr(logger_module, "init_console_logging", lambda: None)
    monkeypatch.setattr(logger_module, "set_logger_provider", MagicMock())
    monkeypatch.setattr(logger_module, "LoggingHandler", lambda **kwargs: logging.NullHandler())
    monkeypatch.setattr(logger_module, "LoggerProvider", MagicMock())

    provider = logger_module.init_logging(TelemetryConfig(enable_logging=True))
    logger_module.init_logging(TelemetryConfig(enable_logging=True))
    assert len(added) == 1

    logger_module.shutdown_logging()
    assert removed == added
    provider.shutdown.assert_called()
    reset_singletons()


def test_init_telemetry_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr(tracer_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(metrics_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(logger_module, "init_logging", lambda cfg: calls.append("lo"))

    telemetry_config_module.init_telemetry(TelemetryConfig())
    assert calls == []


def test_init_telemetry_respects_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr(tracer_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(metrics_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(logger_module, "init_logging", lambda cfg: calls.append("lo"))

    config = TelemetryConfig(enable_tracing=True, enable_logging=True)
    telemetry_config_module.init_telemetry(config)
    assert calls == ["tr", "lo"]


def test_from_env_enables_exporters_from_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317/")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "fleet-ui")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "deployment=dev, region = eu ,broken")
    monkeypatch.setenv("HIDDENFLEET_ENABLE_LOGGING", "no")

    config = TelemetryConfig.from_env()

    assert config.otlp_traces_endpoint == "http://collector:4317/v1/traces"
    assert config.enable_tracing
    assert config.enable_metrics
    assert config.service_name == "fleet-ui"
    assert config.resource_attributes == {"deployment": "dev", "region": "eu"}


def test_from_env_overrides_win_over_endpoint_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "http://env-traces")
    config = TelemetryConfig.from_env(otlp_traces_endpoint="http://override")
    assert config.otlp_traces_endpoint == "http://override"


def test_load_telemetry_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry_config_module.load_telemetry_config.cache_clear()
    calls = {"count": 0}

    def fake_from_env(cls, **overrides):
        calls["count"] += 1
        return TelemetryConfig(enable_tracing=True)

    monkeypatch.setattr(TelemetryConfig, "from_env", classmethod(fake_from_env))

    first = telemetry_config_module.load_telemetry_config()
    second = telemetry_config_module.load_telemetry_config()
    assert first is second
    assert calls["count"] == 1
    telemetry_config_module.load_telemetry_config.cache_clear()


def test_validation_emits_span(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = DummyTracer()
    monkeypatch.setattr(geometry_module, "tracer", tracer)

    geometry_module.validate_layout(player1_layout().with_ship(ShipId.S21, placement(11, 7)))
    assert tracer.span_names == ["geometry.validate_layout"]


def test_reconciler_emits_spans_and_counters(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = DummyTracer()
    counters: list[tuple[str, dict | None]] = []

    monkeypatch.setattr(reconciler_module, "tracer", tracer)
    for attr, name in [
        ("TICK_COUNTER", "ticks"),
        ("RECONNECT_COUNTER", "reconnects"),
        ("MALFORMED_COUNTER", "malformed"),
        ("SHOT_COUNTER", "shots"),
    ]:
        monkeypatch.setattr(reconciler_module, attr, DummyCounter(counters, name))

    class FailingTransport:
        def submit_shot(self, player, cell):
            raise TransportFailure("rpc down")

        def join(self, player):
            pass

    feed = FeedLedgerSource()
    store = InMemoryPrivateStateStore({"game-1": PrivateState(identity=ALICE, layout=player1_layout())})
    config = ReconcilerConfig(retry_delay_seconds=0.01)
    reconciler = DerivedStateReconciler("game-1", feed, FailingTransport(), store, config=config)

    with reconciler:
        feed.push({"phase": "nope"})
        feed.push({"phase": "p1_turn", "player1_id": ALICE, "player2_id": BOB})
        reconciler.wait_for(lambda state: state.tick >= 1, timeout=5)
        with pytest.raises(TransactionRejected):
            reconciler.submit_shot(Coordinate(1, 1)).result(timeout=5)
        reconciler.drain(timeout=0)

    assert "reconciler.fold" in tracer.span_names
    assert "reconciler.submit_shot" in tracer.span_names
    names = [name for name, _ in counters]
    assert "ticks" in names
    assert ("shots", {"result": "cancelled"}) in counters
    assert ("malformed", {"session_id": "game-1"}) in counters
