"""Optimistic local actions and their in-flight table."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping

from hiddenfleet.engine.board import BoardCell, PlayerBoard, cell_value
from hiddenfleet.engine.game import PlayerSlot
from hiddenfleet.engine.ship import Coordinate


class ActionStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LocalAction:
    """A shot the viewer fired that the ledger may not show yet."""

    action_id: int
    shooter: PlayerSlot
    cell: Coordinate
    status: ActionStatus = ActionStatus.PENDING

    @property
    def target_board(self) -> PlayerSlot:
        return self.shooter.opponent()

    def confirmed(self) -> LocalAction:
        return replace(self, status=ActionStatus.CONFIRMED)

    def cancelled(self) -> LocalAction:
        return replace(self, status=ActionStatus.CANCELLED)


def apply_action(
    table: tuple[LocalAction, ...], action: LocalAction | None
) -> tuple[LocalAction, ...]:
    """Record ``action`` by id; cancellations leave the table. Re-applying is a no-op."""
    if action is None:
        return table
    others = tuple(entry for entry in table if entry.action_id != action.action_id)
    if action.status is ActionStatus.CANCELLED:
        return others
    return tuple(sorted((*others, action), key=lambda entry: entry.action_id))


def retire_settled(
    table: Iterable[LocalAction], boards: Mapping[PlayerSlot, PlayerBoard]
) -> tuple[LocalAction, ...]:
    """Drop confirmed actions the ledger has caught up with (their cell is no longer empty)."""

    def settled(entry: LocalAction) -> bool:
        if entry.status is not ActionStatus.CONFIRMED:
            return False
        if not entry.cell.in_bounds:
            return True
        return cell_value(boards[entry.target_board], entry.cell) is not BoardCell.EMPTY

    return tuple(entry for entry in table if not settled(entry))


def attempted_cells(table: Iterable[LocalAction], board: PlayerSlot) -> list[Coordinate]:
    return [entry.cell for entry in table if entry.target_board is board and entry.cell.in_bounds]
