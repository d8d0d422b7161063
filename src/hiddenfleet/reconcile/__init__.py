"""Reconciler package exports."""

from .actions import ActionStatus, LocalAction
from .broadcast import StateBroadcast, Subscription
from .config import ReconcilerConfig, load_reconciler_config
from .ledger import FeedLedgerSource, LedgerSource, LedgerTransport, ReadOnlyTransport
from .private_state import (
    INITIAL_STATE_KEY,
    InMemoryPrivateStateStore,
    PrivateState,
    PrivateStateStore,
    get_or_create_initial,
    load_private_state,
)
from .reconciler import DerivedStateReconciler
from .state import DerivedState, fold, initial_state
from .wire import dump_layout, parse_layout, parse_snapshot

__all__ = [
    "ActionStatus",
    "DerivedState",
    "DerivedStateReconciler",
    "FeedLedgerSource",
    "INITIAL_STATE_KEY",
    "InMemoryPrivateStateStore",
    "LedgerSource",
    "LedgerTransport",
    "LocalAction",
    "PrivateState",
    "PrivateStateStore",
    "ReadOnlyTransport",
    "ReconcilerConfig",
    "StateBroadcast",
    "Subscription",
    "dump_layout",
    "fold",
    "get_or_create_initial",
    "initial_state",
    "load_private_state",
    "load_reconciler_config",
    "parse_layout",
    "parse_snapshot",
]
