"""Reconciles ledger, private state and local actions into one live DerivedState."""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from hiddenfleet.engine.errors import MalformedAuthoritativeState, TransactionRejected
from hiddenfleet.engine.game import GameSnapshot, PlayerSlot
from hiddenfleet.engine.geometry import ensure_valid_layout, validate_layout
from hiddenfleet.engine.ship import Coordinate, ShipLayout
from hiddenfleet.telemetry import get_meter, get_tracer

from .actions import LocalAction
from .broadcast import StateBroadcast, Subscription
from .config import ReconcilerConfig, load_reconciler_config
from .ledger import LedgerSource, LedgerTransport
from .private_state import PrivateState, PrivateStateStore, load_private_state
from .state import DerivedState, fold, initial_state
from .wire import parse_snapshot

logger = logging.getLogger(__name__)
tracer = get_tracer("hiddenfleet.reconcile")
meter = get_meter("hiddenfleet.reconcile")

TICK_COUNTER = meter.create_counter(
    "hiddenfleet_reconciler_ticks",
    unit="1",
    description="Combine-and-fold steps applied to the derived state",
)
RECONNECT_COUNTER = meter.create_counter(
    "hiddenfleet_ledger_reconnects",
    unit="1",
    description="Ledger subscriptions re-established after a failure",
)
MALFORMED_COUNTER = meter.create_counter(
    "hiddenfleet_ledger_malformed_updates",
    unit="1",
    description="Ledger payloads skipped because they could not be parsed",
)
SHOT_COUNTER = meter.create_counter(
    "hiddenfleet_shots_submitted",
    unit="1",
    description="Shots submitted to the ledger, by result",
)


class Source(Enum):
    """The three inputs combined on every tick."""

    LEDGER = "ledger"
    PRIVATE = "private"
    LOCAL = "local"


@dataclass(frozen=True)
class _Inbound:
    source: Source
    value: Any


_STOP = object()


class DerivedStateReconciler:
    """Owns one game session's DerivedState.

    Producers post to a single inbox; one worker thread writes the input
    registers and folds, so the accumulator is never touched concurrently.
    Ledger drops are retried after a fixed delay without resetting it.
    """

    validate_layout = staticmethod(validate_layout)

    def __init__(
        self,
        session_id: str,
        ledger: LedgerSource,
        transport: LedgerTransport,
        store: PrivateStateStore,
        config: ReconcilerConfig | None = None,
    ) -> None:
        self.session_id = session_id
        self._ledger = ledger
        self._transport = transport
        self._store = store
        self._config = config or load_reconciler_config()

        self._inbox: queue.Queue[_Inbound | object] = queue.Queue()
        # No local action yet; ticks start once the ledger and private registers are filled.
        self._registers: dict[Source, Any] = {Source.LOCAL: None}
        self._state = initial_state()
        self._broadcast: StateBroadcast[DerivedState] = StateBroadcast()

        self._stop = threading.Event()
        self._worker: threading.Thread | None = None
        self._pump: threading.Thread | None = None
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.submit_workers, thread_name_prefix=f"hiddenfleet-submit-{session_id}"
        )
        self._action_ids = itertools.count(1)
        self._action_lock = threading.Lock()

    # -- lifecycle -------------------------------------------------------

    def start(self) -> DerivedStateReconciler:
        if self._worker is not None:
            raise RuntimeError("Reconciler already started.")
        self._worker = threading.Thread(
            target=self._run_worker, name=f"hiddenfleet-fold-{self.session_id}", daemon=True
        )
        self._worker.start()
        private = load_private_state(self._store, self.session_id, self._config.initial_state_key)
        self._post(Source.PRIVATE, private)
        self._pump = threading.Thread(
            target=self._run_pump, name=f"hiddenfleet-ledger-{self.session_id}", daemon=True
        )
        self._pump.start()
        logger.info("reconciler_started", extra={"session_id": self.session_id})
        return self

    def close(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        close_feed = getattr(self._ledger, "close", None)
        if callable(close_feed):
            close_feed()
        if self._pump is not None:
            self._pump.join(self._config.shutdown_timeout_seconds)
            if self._pump.is_alive():
                logger.warning(
                    "ledger_pump_still_running",
                    extra={
                        "session_id": self.session_id,
                        "timeout_s": self._config.shutdown_timeout_seconds,
                    },
                )
        self._inbox.put(_STOP)
        if self._worker is not None:
            self._worker.join()
        self._executor.shutdown(wait=False)
        logger.info("reconciler_closed", extra={"session_id": self.session_id})

    def __enter__(self) -> DerivedStateReconciler:
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def drain(self, timeout: float | None = None) -> None:
        """Wait for the ledger feed to end, then for every posted input to be folded."""
        if self._pump is not None:
            self._pump.join(timeout)
        self._inbox.join()

    # -- read model ------------------------------------------------------

    @property
    def derived_state(self) -> StateBroadcast[DerivedState]:
        return self._broadcast

    @property
    def current(self) -> DerivedState | None:
        return self._broadcast.current

    def subscribe(self, listener: Callable[[DerivedState], None]) -> Subscription:
        return self._broadcast.subscribe(listener)

    def unsubscribe(self, subscription: Subscription) -> None:
        self._broadcast.unsubscribe(subscription)

    def wait_for(
        self, predicate: Callable[[DerivedState], bool], timeout: float | None = None
    ) -> DerivedState:
        return self._broadcast.wait_for(predicate, timeout)

    # -- write operations ------------------------------------------------

    def submit_shot(self, cell: Coordinate) -> Future[None]:
        """Fire at ``cell``; an ``attempt`` marker shows until the ledger answers.

        If the submission fails, a cancellation is posted before the future
        fails with :class:`TransactionRejected`.
        """
        state = self.current
        shooter = state.viewer_slot if state is not None else None
        if shooter is None:
            rejected: Future[None] = Future()
            rejected.set_exception(TransactionRejected("Viewer has not joined this game."))
            return rejected

        with self._action_lock:
            action = LocalAction(next(self._action_ids), shooter, cell)
        logger.info(
            "shot_fired",
            extra={"action_id": action.action_id, "player": shooter.value, "x": cell.x, "y": cell.y},
        )
        self._post(Source.LOCAL, action)
        return self._executor.submit(self._run_shot, action)

    def submit_layout(self, layout: ShipLayout) -> Future[None]:
        """Store a new secret layout; invalid layouts raise GeometryViolation right away."""
        ensure_valid_layout(layout, require_complete=True)
        return self._executor.submit(self._store_layout, layout)

    def join(self, player: PlayerSlot) -> Future[None]:
        return self._executor.submit(self._run_join, player)

    # -- workers ---------------------------------------------------------

    def _post(self, source: Source, value: Any) -> None:
        self._inbox.put(_Inbound(source, value))

    def _run_worker(self) -> None:
        while True:
            item = self._inbox.get()
            try:
                if item is _STOP:
                    return
                self._registers[item.source] = item.value
                if len(self._registers) == len(Source):
                    try:
                        self._apply(item.source)
                    except Exception:
                        logger.exception(
                            "fold_failed",
                            extra={"session_id": self.session_id, "trigger": item.source.value},
                        )
            finally:
                self._inbox.task_done()

    def _apply(self, trigger: Source) -> None:
        with tracer.start_as_current_span("reconciler.fold") as span:
            span.set_attribute("session_id", self.session_id)
            span.set_attribute("trigger", trigger.value)
            self._state = fold(
                self._state,
                self._registers[Source.LEDGER],
                self._registers[Source.PRIVATE],
                self._registers[Source.LOCAL],
            )
            span.set_attribute("tick", self._state.tick)
            span.set_attribute("phase", self._state.phase.value)
            TICK_COUNTER.add(1, attributes={"trigger": trigger.value})
            logger.debug(
                "derived_state_updated",
                extra={
                    "session_id": self.session_id,
                    "tick": self._state.tick,
                    "phase": self._state.phase.value,
                    "trigger": trigger.value,
                },
            )
            self._broadcast.publish(self._state)

    def _run_pump(self) -> None:
        while not self._stop.is_set():
            try:
                for payload in self._ledger.updates():
                    if self._stop.is_set():
                        return
                    self._accept(payload)
            except Exception as exc:
                if self._stop.is_set():
                    return
                RECONNECT_COUNTER.add(1, attributes={"session_id": self.session_id})
                logger.warning(
                    "ledger_subscription_failed",
                    extra={
                        "session_id": self.session_id,
                        "error": repr(exc),
                        "retry_delay_s": self._config.retry_delay_seconds,
                    },
                )
                self._stop.wait(self._config.retry_delay_seconds)
                continue
            logger.info("ledger_feed_ended", extra={"session_id": self.session_id})
            return

    def _accept(self, payload: Any) -> None:
        if isinstance(payload, GameSnapshot):
            self._post(Source.LEDGER, payload)
            return
        try:
            snapshot = parse_snapshot(payload)
        except MalformedAuthoritativeState as exc:
            MALFORMED_COUNTER.add(1, attributes={"session_id": self.session_id})
            logger.warning(
                "ledger_update_skipped", extra={"session_id": self.session_id, "error": str(exc)}
            )
            return
        self._post(Source.LEDGER, snapshot)

    def _run_shot(self, action: LocalAction) -> None:
        with tracer.start_as_current_span("reconciler.submit_shot") as span:
            span.set_attribute("player", action.shooter.value)
            span.set_attribute("x", action.cell.x)
            span.set_attribute("y", action.cell.y)
            try:
                self._transport.submit_shot(action.shooter, action.cell)
            except Exception as exc:
                self._post(Source.LOCAL, action.cancelled())
                SHOT_COUNTER.add(1, attributes={"result": "cancelled"})
                span.record_exception(exc)
                logger.warning(
                    "shot_rejected",
                    extra={"action_id": action.action_id, "error": repr(exc)},
                )
                if isinstance(exc, TransactionRejected):
                    raise
                raise TransactionRejected(f"Shot at {action.cell} was rejected: {exc}") from exc
            self._post(Source.LOCAL, action.confirmed())
            SHOT_COUNTER.add(1, attributes={"result": "confirmed"})
            logger.info("shot_confirmed", extra={"action_id": action.action_id})

    def _store_layout(self, layout: ShipLayout) -> None:
        with tracer.start_as_current_span("reconciler.submit_layout"):
            current = load_private_state(self._store, self.session_id, self._config.initial_state_key)
            updated = PrivateState(identity=current.identity, layout=layout)
            self._store.set(self.session_id, updated)
            self._post(Source.PRIVATE, updated)
            logger.info("layout_submitted", extra={"session_id": self.session_id})

    def _run_join(self, player: PlayerSlot) -> None:
        try:
            self._transport.join(player)
        except TransactionRejected:
            logger.warning("join_rejected", extra={"player": player.value})
            raise
        except Exception as exc:
            logger.warning("join_rejected", extra={"player": player.value, "error": repr(exc)})
            raise TransactionRejected(f"Joining as {player.value} was rejected: {exc}") from exc
        logger.info("joined", extra={"session_id": self.session_id, "player": player.value})
