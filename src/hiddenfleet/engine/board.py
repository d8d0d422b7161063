"""Per-player 10×10 display boards and the projection fold that keeps them current."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, TypeAlias

import numpy as np
import numpy.typing as npt

from .game import GameSnapshot, PlayerSlot, ShotOutcome
from .geometry import occupied_cells
from .ship import BOARD_SIZE, Coordinate, PartialReveal, ShipLayout

PlayerBoard: TypeAlias = npt.NDArray[np.int8]


class BoardCell(IntEnum):
    """What the viewer knows about one cell."""

    EMPTY = 0
    SHIP = 1
    SHIP_SUNK = 2
    SHIP_HIT = 3
    ATTEMPT = 4
    MISS = 5


CELL_SYMBOLS: dict[BoardCell, str] = {
    BoardCell.EMPTY: " ",
    BoardCell.SHIP: "S",
    BoardCell.SHIP_SUNK: "X",
    BoardCell.SHIP_HIT: "I",
    BoardCell.ATTEMPT: "?",
    BoardCell.MISS: "O",
}

_OUTCOME_CELLS = {
    ShotOutcome.SUNK: BoardCell.SHIP_SUNK,
    ShotOutcome.HIT: BoardCell.SHIP_HIT,
    ShotOutcome.MISS: BoardCell.MISS,
}


def freeze(board: npt.ArrayLike) -> PlayerBoard:
    """Return a read-only int8 copy of ``board``."""
    frozen = np.array(board, dtype=np.int8, copy=True)
    frozen.flags.writeable = False
    return frozen


def empty_board() -> PlayerBoard:
    return freeze(np.zeros((BOARD_SIZE, BOARD_SIZE), dtype=np.int8))


def cell_value(board: PlayerBoard, cell: Coordinate) -> BoardCell:
    return BoardCell(int(board[cell.y - 1, cell.x - 1]))


def cell_mask(cells: Iterable[Coordinate]) -> npt.NDArray[np.bool_]:
    """Boolean mask selecting the in-bounds ``cells``."""
    mask = np.zeros((BOARD_SIZE, BOARD_SIZE), dtype=bool)
    for cell in cells:
        if cell.in_bounds:
            mask[cell.y - 1, cell.x - 1] = True
    return mask


def project_board(
    previous: PlayerBoard,
    snapshot: GameSnapshot,
    owner: PlayerSlot,
    reveal: PartialReveal,
    own_layout: ShipLayout | None = None,
) -> PlayerBoard:
    """Fold one snapshot into ``owner``'s board.

    ``own_layout`` is only passed when the viewer owns this board. Rules run in
    priority order and the first match wins for each cell:

    1. own ship on a still-empty cell -> ``SHIP``
    2. cell of a disclosed (sunk) ship -> ``SHIP_SUNK``
    3. target of the last resolved shot on this board -> outcome
    4. ledger's pending shot while this board is due to answer it -> ``ATTEMPT``
       (``SHIP``/``SHIP_HIT`` become ``SHIP_HIT`` instead)
    5. anything else keeps its previous value

    Only the latest shot is present in a snapshot, so the board history lives in
    ``previous`` and this must be applied as a running fold.
    """
    # Lower priorities are written first so higher ones overwrite them.
    result = np.array(previous, dtype=np.int8, copy=True)

    pending = snapshot.pending_shot
    if pending is not None and pending.is_placed and pending.in_bounds and snapshot.phase.turn_of() is owner:
        current = cell_value(previous, pending)
        hit = current in (BoardCell.SHIP, BoardCell.SHIP_HIT)
        result[pending.y - 1, pending.x - 1] = BoardCell.SHIP_HIT if hit else BoardCell.ATTEMPT

    shot = snapshot.last_shot_result
    if shot is not None and shot.cell.in_bounds and snapshot.last_shot_target() is owner:
        result[shot.cell.y - 1, shot.cell.x - 1] = _OUTCOME_CELLS[shot.outcome]

    result[cell_mask(occupied_cells(reveal))] = BoardCell.SHIP_SUNK

    if own_layout is not None:
        own = cell_mask(occupied_cells(own_layout)) & (previous == BoardCell.EMPTY)
        result[own] = BoardCell.SHIP

    return freeze(result)


def overlay_attempts(board: PlayerBoard, cells: Iterable[Coordinate]) -> PlayerBoard:
    """Paint optimistic ``ATTEMPT`` markers on the empty ``cells`` of ``board``."""
    mask = cell_mask(cells) & (board == BoardCell.EMPTY)
    if not mask.any():
        return board
    result = np.array(board, dtype=np.int8, copy=True)
    result[mask] = BoardCell.ATTEMPT
    return freeze(result)


def format_board(board: PlayerBoard) -> str:
    """Render ``board`` as framed text, one row per line."""
    border = f"+{'-' * (board.shape[1] * 3)}+"
    rows = [
        "| " + "  ".join(CELL_SYMBOLS[BoardCell(int(value))] for value in row) + " |"
        for row in board
    ]
    return "\n".join([border, *rows, border])
