"""Telemetry configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from opentelemetry.sdk.resources import Resource
from pydantic import BaseModel, Field


def bool_from_env(*names: str) -> bool | None:
    """Return the first boolean-looking env var among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value is not None:
            return value.strip().lower() in {"1", "true", "yes", "on"}
    return None


class TelemetryConfig(BaseModel):
    """Runtime configuration for telemetry exporters."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    service_name: str = "hiddenfleet"
    service_namespace: str = "client"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    def resource(self) -> Resource:
        """Resource shared by the trace, metric and log providers."""
        return Resource.create(
            {
                "service.name": self.service_name,
                "service.namespace": self.service_namespace,
                **self.resource_attributes,
            }
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Construct config from env vars (`HIDDENFLEET_*` + `OTEL_*`)."""

        data: Dict[str, Any] = cls().model_dump()
        data.update(overrides)

        bool_fields = {
            "enable_tracing": ("HIDDENFLEET_ENABLE_TRACING", "OTEL_TRACES_ENABLED"),
            "enable_metrics": ("HIDDENFLEET_ENABLE_METRICS", "OTEL_METRICS_ENABLED"),
            "enable_logging": ("HIDDENFLEET_ENABLE_LOGGING", "OTEL_LOGS_ENABLED"),
        }
        for field, env_names in bool_fields.items():
            env_value = bool_from_env(*env_names)
            if env_value is not None:
                data[field] = env_value

        base_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

        def _with_suffix(base: str | None, suffix: str) -> str | None:
            if not base:
                return None
            return f"{base.rstrip('/')}/{suffix}"

        endpoints = {
            "otlp_traces_endpoint": ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "v1/traces"),
            "otlp_metrics_endpoint": ("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", "v1/metrics"),
            "otlp_logs_endpoint": ("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT", "v1/logs"),
        }
        for field, (env_name, suffix) in endpoints.items():
            if data.get(field) is None:
                data[field] = os.getenv(env_name) or _with_suffix(base_endpoint, suffix)

        service_name = os.getenv("OTEL_SERVICE_NAME")
        service_namespace = os.getenv("OTEL_SERVICE_NAMESPACE")
        if service_name:
            data["service_name"] = service_name
        if service_namespace:
            data["service_namespace"] = service_namespace

        resource_env = os.getenv("OTEL_RESOURCE_ATTRIBUTES")
        if resource_env:
            attrs = {**data.get("resource_attributes", {})}
            for part in resource_env.split(","):
                if "=" not in part:
                    continue
                key, value = part.split("=", 1)
                attrs[key.strip()] = value.strip()
            data["resource_attributes"] = attrs

        # Auto-enable exporters when endpoints are configured.
        if data.get("otlp_traces_endpoint"):
            data["enable_tracing"] = True
        if data.get("otlp_metrics_endpoint"):
            data["enable_metrics"] = True
        if data.get("otlp_logs_endpoint"):
            data["enable_logging"] = True

        return cls(**data)


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load and cache telemetry config from the environment."""

    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Initialise telemetry subsystems lazily."""

    from .logger import init_logging
    from .metrics import init_metrics
    from .tracer import init_tracing

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved


def shutdown_telemetry() -> None:
    """Flush and release the providers installed by :func:`init_telemetry`."""

    from .logger import shutdown_logging
    from .metrics import shutdown_metrics
    from .tracer import shutdown_tracing

    shutdown_tracing()
    shutdown_metrics()
    shutdown_logging()
