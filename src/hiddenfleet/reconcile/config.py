"""Reconciler configuration."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

from .private_state import INITIAL_STATE_KEY


class ReconcilerConfig(BaseModel):
    """Tunables for one game session's reconciler."""

    retry_delay_seconds: float = Field(default=0.5, ge=0)
    submit_workers: int = Field(default=4, ge=1)
    initial_state_key: str = INITIAL_STATE_KEY
    shutdown_timeout_seconds: float = Field(default=1.0, ge=0)

    @classmethod
    def from_env(cls, **overrides: Any) -> "ReconcilerConfig":
        """Construct config from `HIDDENFLEET_*` env vars."""

        data: Dict[str, Any] = {}
        retry_ms = os.getenv("HIDDENFLEET_RETRY_DELAY_MS")
        if retry_ms:
            data["retry_delay_seconds"] = float(retry_ms) / 1000
        workers = os.getenv("HIDDENFLEET_SUBMIT_WORKERS")
        if workers:
            data["submit_workers"] = int(workers)
        initial_key = os.getenv("HIDDENFLEET_INITIAL_STATE_KEY")
        if initial_key:
            data["initial_state_key"] = initial_key
        shutdown_ms = os.getenv("HIDDENFLEET_SHUTDOWN_TIMEOUT_MS")
        if shutdown_ms:
            data["shutdown_timeout_seconds"] = float(shutdown_ms) / 1000
        data.update(overrides)
        return cls(**data)


@lru_cache(maxsize=1)
def load_reconciler_config() -> ReconcilerConfig:
    """Load and cache reconciler config from the environment."""

    return ReconcilerConfig.from_env()
