"""Stdlib logging wired to OpenTelemetry span context and the OTLP log exporter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

if TYPE_CHECKING:
    from .config import TelemetryConfig

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s "
    "| trace_id=%(otelTraceID)s span_id=%(otelSpanID)s"
)

_LOGGER_PROVIDER: LoggerProvider | None = None
_OTLP_HANDLER: logging.Handler | None = None


class _SpanContextFilter(logging.Filter):
    """Stamps records with the active trace and span ids, or ``-`` outside a span."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if not hasattr(record, "otelTraceID"):
            record.otelTraceID = format(context.trace_id, "032x") if context.is_valid else "-"
        if not hasattr(record, "otelSpanID"):
            record.otelSpanID = format(context.span_id, "016x") if context.is_valid else "-"
        return True


def init_logging(config: TelemetryConfig) -> LoggerProvider:
    """Forward root-logger records to OpenTelemetry, over OTLP when an endpoint is set."""
    global _LOGGER_PROVIDER

    provider = LoggerProvider(resource=config.resource())
    if config.otlp_logs_endpoint:
        exporter = OTLPLogExporter(endpoint=config.otlp_logs_endpoint, insecure=True)
        provider.add_log_record_processor(BatchLogRecordProcessor(exporter))

    set_logger_provider(provider)
    _install_root_handler(LoggingHandler(level=logging.INFO, logger_provider=provider))
    _LOGGER_PROVIDER = provider
    return provider


def init_console_logging(level: int = logging.INFO) -> None:
    """Plain stderr logging for the CLI when no OTLP exporter is configured."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for existing in root_logger.handlers:
        existing.addFilter(_SpanContextFilter())


def shutdown_logging() -> None:
    """Detach the OTLP handler and flush the provider."""
    global _LOGGER_PROVIDER, _OTLP_HANDLER
    if _OTLP_HANDLER is not None:
        logging.getLogger().removeHandler(_OTLP_HANDLER)
        _OTLP_HANDLER = None
    if _LOGGER_PROVIDER is not None:
        _LOGGER_PROVIDER.shutdown()
        _LOGGER_PROVIDER = None


def _install_root_handler(handler: logging.Handler) -> None:
    global _OTLP_HANDLER
    init_console_logging()
    if _OTLP_HANDLER is not None:
        return
    handler.addFilter(_SpanContextFilter())
    logging.getLogger().addHandler(handler)
    _OTLP_HANDLER = handler
