"""Shared fleets and snapshot builders."""

from __future__ import annotations

import pytest
from hiddenfleet.engine.game import (
    DisclosedShip,
    GamePhase,
    GameSnapshot,
    LastShotResult,
    ShotOutcome,
)
from hiddenfleet.engine.ship import Coordinate, ShipId, ShipLayout, ShipPlacement

ALICE = "alice"
BOB = "bob"


def placement(x: int, y: int, vertical: bool = False) -> ShipPlacement:
    return ShipPlacement(Coordinate(x, y), vertical)


def player1_layout() -> ShipLayout:
    return ShipLayout(
        s21=placement(5, 9, vertical=True),
        s31=placement(8, 2),
        s32=placement(8, 5),
        s41=placement(1, 2),
        s51=placement(6, 7),
    )


def player2_layout() -> ShipLayout:
    return ShipLayout(
        s21=placement(2, 2, vertical=True),
        s31=placement(1, 8, vertical=True),
        s32=placement(5, 9),
        s41=placement(10, 1, vertical=True),
        s51=placement(1, 5),
    )


def snapshot(
    phase: GamePhase,
    pending: tuple[int, int] | None = None,
    shot: tuple[int, int] | None = None,
    fired_by: str | None = None,
    outcome: ShotOutcome = ShotOutcome.MISS,
    disclosed: tuple[ShipId, ShipPlacement] | None = None,
) -> GameSnapshot:
    last = None
    if shot is not None:
        last = LastShotResult(
            cell=Coordinate(*shot),
            fired_by=fired_by or "",
            outcome=outcome,
            disclosed_ship=DisclosedShip(*disclosed) if disclosed else None,
        )
    return GameSnapshot(
        phase=phase,
        player1_id=ALICE,
        player2_id=BOB,
        pending_shot=Coordinate(*pending) if pending else None,
        last_shot_result=last,
    )


@pytest.fixture
def player1_ships() -> ShipLayout:
    return player1_layout()


@pytest.fixture
def player2_ships() -> ShipLayout:
    return player2_layout()
