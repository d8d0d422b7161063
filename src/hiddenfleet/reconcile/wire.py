"""Pydantic models for ledger payloads and layout files.

Payloads are accepted in snake_case or in the ledger's camelCase.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from hiddenfleet.engine.errors import MalformedAuthoritativeState
from hiddenfleet.engine.game import (
    DisclosedShip,
    GamePhase,
    GameSnapshot,
    LastShotResult,
    ShotOutcome,
)
from hiddenfleet.engine.ship import BOARD_SIZE, Coordinate, ShipId, ShipLayout, ShipPlacement


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CoordModel(_WireModel):
    x: int = Field(ge=0, le=BOARD_SIZE)
    y: int = Field(ge=0, le=BOARD_SIZE)

    def to_domain(self) -> Coordinate:
        return Coordinate(self.x, self.y)


class PlacementModel(_WireModel):
    """Ship placement as written in layout files; range is left to the geometry rules."""

    x: int = 0
    y: int = 0
    vertical: bool = False

    def to_domain(self) -> ShipPlacement:
        return ShipPlacement(Coordinate(self.x, self.y), self.vertical)


class LayoutModel(_WireModel):
    s21: PlacementModel = PlacementModel()
    s31: PlacementModel = PlacementModel()
    s32: PlacementModel = PlacementModel()
    s41: PlacementModel = PlacementModel()
    s51: PlacementModel = PlacementModel()

    def to_domain(self) -> ShipLayout:
        return ShipLayout(**{ship_id.value: getattr(self, ship_id.value).to_domain() for ship_id in ShipId})


class DisclosedShipModel(_WireModel):
    ship: ShipId
    anchor: CoordModel = Field(validation_alias=AliasChoices("anchor", "ship_cell", "shipCell"))
    vertical: bool = Field(default=False, validation_alias=AliasChoices("vertical", "ship_v", "shipV"))

    def to_domain(self) -> DisclosedShip | None:
        placement = ShipPlacement(self.anchor.to_domain(), self.vertical)
        if not placement.is_placed:
            return None
        return DisclosedShip(self.ship, placement)


class LastShotResultModel(_WireModel):
    cell: CoordModel
    fired_by: str = Field(validation_alias=AliasChoices("fired_by", "firedBy"))
    outcome: ShotOutcome
    disclosed_ship: DisclosedShipModel | None = Field(
        default=None, validation_alias=AliasChoices("disclosed_ship", "disclosedShip", "ship_def")
    )

    def to_domain(self) -> LastShotResult:
        return LastShotResult(
            cell=self.cell.to_domain(),
            fired_by=self.fired_by,
            outcome=self.outcome,
            disclosed_ship=self.disclosed_ship.to_domain() if self.disclosed_ship else None,
        )


class SnapshotModel(_WireModel):
    phase: GamePhase
    player1_id: str | None = Field(default=None, validation_alias=AliasChoices("player1_id", "player1Id"))
    player2_id: str | None = Field(default=None, validation_alias=AliasChoices("player2_id", "player2Id"))
    pending_shot: CoordModel | None = Field(
        default=None, validation_alias=AliasChoices("pending_shot", "pendingShot")
    )
    last_shot_result: LastShotResultModel | None = Field(
        default=None, validation_alias=AliasChoices("last_shot_result", "lastShotResult")
    )

    def to_domain(self) -> GameSnapshot:
        pending = self.pending_shot.to_domain() if self.pending_shot else None
        return GameSnapshot(
            phase=self.phase,
            player1_id=self.player1_id,
            player2_id=self.player2_id,
            pending_shot=pending if pending is not None and pending.is_placed else None,
            last_shot_result=self.last_shot_result.to_domain() if self.last_shot_result else None,
        )


def parse_snapshot(payload: Mapping[str, Any] | str | bytes) -> GameSnapshot:
    """Read a raw ledger payload, raising :class:`MalformedAuthoritativeState` on bad input."""
    try:
        if isinstance(payload, (str, bytes)):
            model = SnapshotModel.model_validate_json(payload)
        else:
            model = SnapshotModel.model_validate(payload)
    except ValidationError as exc:
        raise MalformedAuthoritativeState(str(exc)) from exc
    return model.to_domain()


def parse_layout(payload: Mapping[str, Any] | str | bytes) -> ShipLayout:
    """Read a layout document; unknown or missing ships stay unplaced."""
    if isinstance(payload, (str, bytes)):
        return LayoutModel.model_validate_json(payload).to_domain()
    return LayoutModel.model_validate(payload).to_domain()


def dump_layout(layout: ShipLayout) -> dict[str, Any]:
    return {
        ship_id.value: {"x": placement.anchor.x, "y": placement.anchor.y, "vertical": placement.vertical}
        for ship_id, placement in layout.items()
    }
