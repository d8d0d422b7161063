"""Multicast read model with replay of the latest value."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[T], None]


@dataclass(frozen=True)
class Subscription:
    """Opaque subscription token."""

    id: int


class StateBroadcast(Generic[T]):
    """Registered-listener broadcast.

    A new listener first receives the current value, then every later value
    in the same order as all other listeners.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.RLock())
        self._listeners: dict[int, Listener] = {}
        self._next_id = 1
        self._current: T | None = None

    @property
    def current(self) -> T | None:
        with self._cond:
            return self._current

    def subscribe(self, listener: Listener) -> Subscription:
        with self._cond:
            sub_id = self._next_id
            self._next_id += 1
            self._listeners[sub_id] = listener
            if self._current is not None:
                self._deliver(sub_id, listener, self._current)
            return Subscription(sub_id)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._cond:
            self._listeners.pop(subscription.id, None)

    def publish(self, value: T) -> int:
        """Publish one value and return the number of listeners invoked."""
        with self._cond:
            self._current = value
            listeners = tuple(self._listeners.items())
            for sub_id, listener in listeners:
                self._deliver(sub_id, listener, value)
            self._cond.notify_all()
            return len(listeners)

    def wait_for(self, predicate: Callable[[T], bool], timeout: float | None = None) -> T:
        """Block until the current value satisfies ``predicate``; raise TimeoutError otherwise."""
        with self._cond:
            matched = self._cond.wait_for(
                lambda: self._current is not None and predicate(self._current), timeout
            )
            if not matched:
                raise TimeoutError("Derived state did not reach the expected condition in time.")
            return self._current

    @staticmethod
    def _deliver(sub_id: int, listener: Listener, value: T) -> None:
        try:
            listener(value)
        except Exception:
            logger.exception("listener_failed", extra={"subscription": sub_id})
