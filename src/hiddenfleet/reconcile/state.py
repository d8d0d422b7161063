"""Derived game state and the fold that advances it."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from hiddenfleet.engine.board import PlayerBoard, empty_board, overlay_attempts, project_board
from hiddenfleet.engine.game import (
    GamePhase,
    GameSnapshot,
    Identity,
    LastShotResult,
    PlayerSlot,
)
from hiddenfleet.engine.reveal import update_partial_reveal
from hiddenfleet.engine.ship import Coordinate, PartialReveal, ShipLayout

from .actions import LocalAction, apply_action, attempted_cells, retire_settled
from .private_state import PrivateState

UNKNOWN_IDENTITY = "unknown"


def _per_player(factory):
    return field(default_factory=lambda: MappingProxyType({slot: factory() for slot in PlayerSlot}))


@dataclass(frozen=True, eq=False)
class DerivedState:
    """Everything the UI needs for one game, reconciled from ledger, secret and local actions.

    ``folded_boards`` carry only ledger-backed history; ``boards`` add the
    optimistic markers of in-flight shots on top. The per-player mappings are
    read-only views.
    """

    phase: GamePhase = GamePhase.WAITING_P1
    whoami: Identity = UNKNOWN_IDENTITY
    player1_id: Identity | None = None
    player2_id: Identity | None = None
    pending_shot: Coordinate | None = None
    last_shot_result: LastShotResult | None = None
    own_layout: ShipLayout | None = None
    reveals: Mapping[PlayerSlot, PartialReveal] = _per_player(PartialReveal)
    folded_boards: Mapping[PlayerSlot, PlayerBoard] = _per_player(empty_board)
    boards: Mapping[PlayerSlot, PlayerBoard] = _per_player(empty_board)
    local_actions: tuple[LocalAction, ...] = ()
    last_local_action: LocalAction | None = None
    tick: int = 0

    @property
    def viewer_slot(self) -> PlayerSlot | None:
        if self.whoami == self.player1_id:
            return PlayerSlot.P1
        if self.whoami == self.player2_id:
            return PlayerSlot.P2
        return None

    def board(self, slot: PlayerSlot) -> PlayerBoard:
        return self.boards[slot]

    def reveal(self, slot: PlayerSlot) -> PartialReveal:
        return self.reveals[slot]


def initial_state() -> DerivedState:
    return DerivedState()


def fold(
    previous: DerivedState,
    snapshot: GameSnapshot,
    private: PrivateState,
    action: LocalAction | None,
) -> DerivedState:
    """Combine the latest value of each source with the previous state.

    Player identities are sticky: a snapshot that omits them does not erase
    what was already known.
    """
    snapshot = replace(
        snapshot,
        player1_id=snapshot.player1_id or previous.player1_id,
        player2_id=snapshot.player2_id or previous.player2_id,
    )
    own_layout = private.layout
    viewer = snapshot.slot_of(private.identity)

    reveals = {
        slot: update_partial_reveal(previous.reveals[slot], snapshot, slot) for slot in PlayerSlot
    }
    folded = {
        slot: project_board(
            previous.folded_boards[slot],
            snapshot,
            slot,
            reveals[slot],
            own_layout=own_layout if slot is viewer else None,
        )
        for slot in PlayerSlot
    }

    actions = retire_settled(apply_action(previous.local_actions, action), folded)
    boards = {slot: overlay_attempts(folded[slot], attempted_cells(actions, slot)) for slot in PlayerSlot}

    return DerivedState(
        phase=snapshot.phase,
        whoami=private.identity,
        player1_id=snapshot.player1_id,
        player2_id=snapshot.player2_id,
        pending_shot=snapshot.pending_shot,
        last_shot_result=snapshot.last_shot_result,
        own_layout=own_layout,
        reveals=MappingProxyType(reveals),
        folded_boards=MappingProxyType(folded),
        boards=MappingProxyType(boards),
        local_actions=actions,
        last_local_action=action,
        tick=previous.tick + 1,
    )
