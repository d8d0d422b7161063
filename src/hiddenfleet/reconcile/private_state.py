"""The viewer's secret: identity plus own ship layout."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Protocol

from hiddenfleet.engine.game import Identity
from hiddenfleet.engine.ship import ShipLayout

logger = logging.getLogger(__name__)

INITIAL_STATE_KEY = "initial"


@dataclass(frozen=True)
class PrivateState:
    identity: Identity
    layout: ShipLayout = ShipLayout()


class PrivateStateStore(Protocol):
    def get(self, key: str) -> PrivateState | None:
        ...

    def set(self, key: str, state: PrivateState) -> None:
        ...


class InMemoryPrivateStateStore:
    """Process-lifetime store keyed by session id."""

    def __init__(self, states: dict[str, PrivateState] | None = None) -> None:
        self._states: dict[str, PrivateState] = dict(states or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> PrivateState | None:
        with self._lock:
            return self._states.get(key)

    def set(self, key: str, state: PrivateState) -> None:
        with self._lock:
            self._states[key] = state

    def remove(self, key: str) -> None:
        with self._lock:
            self._states.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()


def get_or_create_initial(store: PrivateStateStore, key: str = INITIAL_STATE_KEY) -> PrivateState:
    """Return the device-wide identity, minting a random one on first use."""
    state = store.get(key)
    if state is None:
        state = PrivateState(identity=secrets.token_hex(32))
        store.set(key, state)
        logger.info("initial_identity_created", extra={"key": key})
    return state


def load_private_state(
    store: PrivateStateStore, session_id: str, initial_key: str = INITIAL_STATE_KEY
) -> PrivateState:
    """Session state if stored, else the initial identity with nothing placed."""
    existing = store.get(session_id)
    if existing is not None:
        return existing
    return PrivateState(identity=get_or_create_initial(store, initial_key).identity)
