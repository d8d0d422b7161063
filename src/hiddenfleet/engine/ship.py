"""Ship domain model: coordinates, fleet identities, layouts and partial reveals."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Iterator, Mapping

BOARD_SIZE = 10


@dataclass(frozen=True, order=True)
class Coordinate:
    """Immutable 1-based board coordinate; ``x`` is the column, ``y`` the row."""

    x: int
    y: int

    @property
    def is_placed(self) -> bool:
        """False for the (0, 0) sentinel used while a ship is still being positioned."""
        return self != UNPLACED

    @property
    def in_bounds(self) -> bool:
        return 1 <= self.x <= BOARD_SIZE and 1 <= self.y <= BOARD_SIZE

    def __str__(self) -> str:
        return f"({self.x},{self.y})"


UNPLACED = Coordinate(0, 0)


class ShipId(Enum):
    """The five ships of a fleet, in fleet order."""

    S21 = "s21"
    S31 = "s31"
    S32 = "s32"
    S41 = "s41"
    S51 = "s51"

    @property
    def length(self) -> int:
        """Return the number of contiguous cells the ship occupies."""
        return int(self.value[1])


FLEET_SIZE = sum(ship_id.length for ship_id in ShipId)


@dataclass(frozen=True)
class ShipPlacement:
    """Anchor cell plus orientation; ships extend along +y when vertical, +x otherwise."""

    anchor: Coordinate = UNPLACED
    vertical: bool = False

    @property
    def is_placed(self) -> bool:
        return self.anchor.is_placed


@dataclass(frozen=True)
class ShipLayout:
    """A player's secret fleet: one placement per ship, unplaced ones anchored at (0, 0)."""

    s21: ShipPlacement = ShipPlacement()
    s31: ShipPlacement = ShipPlacement()
    s32: ShipPlacement = ShipPlacement()
    s41: ShipPlacement = ShipPlacement()
    s51: ShipPlacement = ShipPlacement()

    def __getitem__(self, ship_id: ShipId) -> ShipPlacement:
        return getattr(self, ship_id.value)

    def items(self) -> Iterator[tuple[ShipId, ShipPlacement]]:
        """Yield every ship in fleet order, placed or not."""
        for ship_id in ShipId:
            yield ship_id, self[ship_id]

    def placed(self) -> Iterator[tuple[ShipId, ShipPlacement]]:
        for ship_id, placement in self.items():
            if placement.is_placed:
                yield ship_id, placement

    def with_ship(self, ship_id: ShipId, placement: ShipPlacement) -> ShipLayout:
        return replace(self, **{ship_id.value: placement})

    @classmethod
    def from_mapping(cls, ships: Mapping[ShipId, ShipPlacement]) -> ShipLayout:
        """Build a layout from a partial mapping; missing ships stay unplaced."""
        return cls(**{ship_id.value: placement for ship_id, placement in ships.items()})


@dataclass(frozen=True)
class PartialReveal:
    """Opponent ships disclosed so far; ``None`` means the ship is still hidden."""

    s21: ShipPlacement | None = None
    s31: ShipPlacement | None = None
    s32: ShipPlacement | None = None
    s41: ShipPlacement | None = None
    s51: ShipPlacement | None = None

    def __getitem__(self, ship_id: ShipId) -> ShipPlacement | None:
        return getattr(self, ship_id.value)

    def placed(self) -> Iterator[tuple[ShipId, ShipPlacement]]:
        for ship_id in ShipId:
            placement = self[ship_id]
            if placement is not None:
                yield ship_id, placement

    @property
    def disclosed_count(self) -> int:
        return sum(1 for field in fields(self) if getattr(self, field.name) is not None)

    def disclose(self, ship_id: ShipId, placement: ShipPlacement) -> PartialReveal:
        """Return a reveal with ``ship_id`` disclosed; an existing disclosure is kept as is."""
        if self[ship_id] is not None:
            return self
        return replace(self, **{ship_id.value: placement})

    def to_layout(self) -> ShipLayout | None:
        """Return the full layout once every ship has been disclosed."""
        if self.disclosed_count != len(ShipId):
            return None
        return ShipLayout.from_mapping(dict(self.placed()))
