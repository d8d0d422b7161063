"""Command-line tools for checking layouts and replaying recorded ledger feeds."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from hiddenfleet.engine.board import empty_board, format_board, project_board
from hiddenfleet.engine.game import GameSnapshot, PlayerSlot
from hiddenfleet.engine.geometry import is_complete, layout_violations
from hiddenfleet.engine.ship import PartialReveal, ShipLayout
from hiddenfleet.reconcile.ledger import FeedLedgerSource, ReadOnlyTransport
from hiddenfleet.reconcile.private_state import InMemoryPrivateStateStore, PrivateState
from hiddenfleet.reconcile.reconciler import DerivedStateReconciler
from hiddenfleet.reconcile.state import DerivedState
from hiddenfleet.reconcile.wire import parse_layout
from hiddenfleet.telemetry import (
    init_console_logging,
    init_telemetry,
    record_metric,
    shutdown_telemetry,
)

REPLAY_SESSION = "replay"

logger = logging.getLogger(__name__)


def _read_layout(path: Path) -> ShipLayout:
    return parse_layout(path.read_text(encoding="utf-8"))


def _layout_board(layout: ShipLayout) -> str:
    board = project_board(empty_board(), GameSnapshot(), PlayerSlot.P1, PartialReveal(), own_layout=layout)
    return format_board(board)


def validate_command(args: argparse.Namespace) -> int:
    layout = _read_layout(args.layout)
    print(_layout_board(layout))
    reasons = layout_violations(layout)
    if not is_complete(layout):
        reasons.insert(0, "All ships must be placed")
    if reasons:
        for reason in reasons:
            print(f"invalid: {reason}")
        return 1
    print("valid")
    return 0


def _describe(state: DerivedState) -> str:
    lines = [f"phase: {state.phase.value}", f"ticks: {state.tick}"]
    viewer = state.viewer_slot
    lines.append(f"viewer: {viewer.value if viewer else 'spectator'}")
    for slot in PlayerSlot:
        revealed = state.reveal(slot).disclosed_count
        lines.append(f"\n{slot.value} board ({revealed} ships sunk):")
        lines.append(format_board(state.board(slot)))
    return "\n".join(lines)


def replay_command(args: argparse.Namespace) -> int:
    store = InMemoryPrivateStateStore()
    layout = _read_layout(args.layout) if args.layout is not None else ShipLayout()
    store.set(REPLAY_SESSION, PrivateState(identity=args.identity, layout=layout))

    feed = FeedLedgerSource()
    reconciler = DerivedStateReconciler(REPLAY_SESSION, feed, ReadOnlyTransport(), store)
    with reconciler:
        with args.snapshots.open(encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    feed.push(line.strip())
        feed.close()
        reconciler.drain()
        state = reconciler.current

    if state is None:
        print("no snapshots folded")
        return 1
    logger.info("replay_finished", extra={"ticks": state.tick, "phase": state.phase.value})
    print(_describe(state))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hidden-fleet client state tools.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    commands = parser.add_subparsers(dest="command", required=True)

    validate = commands.add_parser("validate", help="Check a ship layout file against the placement rules.")
    validate.add_argument("layout", type=Path, help="JSON layout file keyed by ship id.")
    validate.set_defaults(handler=validate_command)

    replay = commands.add_parser("replay", help="Fold a JSONL file of ledger snapshots and print the boards.")
    replay.add_argument("snapshots", type=Path, help="One snapshot JSON document per line.")
    replay.add_argument("--layout", type=Path, default=None, help="The viewer's own layout file.")
    replay.add_argument(
        "--identity", default="viewer", help="Viewer identity as it appears in the snapshots."
    )
    replay.set_defaults(handler=replay_command)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    init_console_logging(logging.DEBUG if args.verbose else logging.WARNING)
    init_telemetry()
    try:
        status = args.handler(args)
        record_metric("hiddenfleet_cli_runs", 1, {"command": args.command, "status": status})
    finally:
        shutdown_telemetry()
    return status


if __name__ == "__main__":
    sys.exit(main())
