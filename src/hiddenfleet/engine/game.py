"""Authoritative game snapshot as mirrored from the ledger."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .ship import Coordinate, ShipId, ShipPlacement

Identity = str


class PlayerSlot(Enum):
    """The two seats of a match."""

    P1 = "p1"
    P2 = "p2"

    def opponent(self) -> PlayerSlot:
        """Return the opposing slot."""
        return PlayerSlot.P2 if self is PlayerSlot.P1 else PlayerSlot.P1


class GamePhase(Enum):
    """Ledger lifecycle: waiting_p1 -> waiting_p2 -> p1_turn <-> p2_turn -> p1_wins | p2_wins."""

    WAITING_P1 = "waiting_p1"
    WAITING_P2 = "waiting_p2"
    P1_TURN = "p1_turn"
    P2_TURN = "p2_turn"
    P1_WINS = "p1_wins"
    P2_WINS = "p2_wins"

    @property
    def is_terminal(self) -> bool:
        return self in (GamePhase.P1_WINS, GamePhase.P2_WINS)

    def turn_of(self) -> PlayerSlot | None:
        """Slot that has to act now, if any."""
        if self is GamePhase.P1_TURN:
            return PlayerSlot.P1
        if self is GamePhase.P2_TURN:
            return PlayerSlot.P2
        return None

    def resolved_board(self) -> PlayerSlot | None:
        """Board the last resolved shot landed on.

        A player resolves the opponent's shot on their own board while handing
        the turn over, so this is the slot the phase just moved away from.
        """
        if self in (GamePhase.P1_TURN, GamePhase.P1_WINS):
            return PlayerSlot.P2
        if self in (GamePhase.P2_TURN, GamePhase.P2_WINS):
            return PlayerSlot.P1
        return None


class ShotOutcome(Enum):
    MISS = "miss"
    HIT = "hit"
    SUNK = "sunk"


@dataclass(frozen=True)
class DisclosedShip:
    """Geometry published by the ledger when a ship goes down."""

    ship: ShipId
    placement: ShipPlacement


@dataclass(frozen=True)
class LastShotResult:
    cell: Coordinate
    fired_by: Identity
    outcome: ShotOutcome
    disclosed_ship: DisclosedShip | None = None


@dataclass(frozen=True)
class GameSnapshot:
    """Immutable view of the ledger at one point in time."""

    phase: GamePhase = GamePhase.WAITING_P1
    player1_id: Identity | None = None
    player2_id: Identity | None = None
    pending_shot: Coordinate | None = None
    last_shot_result: LastShotResult | None = None

    def player_id(self, slot: PlayerSlot) -> Identity | None:
        return self.player1_id if slot is PlayerSlot.P1 else self.player2_id

    def slot_of(self, identity: Identity | None) -> PlayerSlot | None:
        if identity is None:
            return None
        if identity == self.player1_id:
            return PlayerSlot.P1
        if identity == self.player2_id:
            return PlayerSlot.P2
        return None

    def last_shot_target(self) -> PlayerSlot | None:
        """Board hit by the last resolved shot: the opponent of whoever fired it."""
        if self.last_shot_result is None:
            return None
        shooter = self.slot_of(self.last_shot_result.fired_by)
        return shooter.opponent() if shooter is not None else None
