"""Ship-geometry rules mirrored from the authoritative contract.

Every predicate here must accept exactly the layouts the contract accepts; the
client only uses them to refuse a doomed submission early. Unplaced ships
(anchored at the ``(0, 0)`` sentinel) are skipped so that a layout can be
checked while it is still being built.
"""

from __future__ import annotations

import logging
from typing import Iterable, Union

from hiddenfleet.telemetry import get_meter, get_tracer

from .errors import GeometryViolation
from .ship import Coordinate, PartialReveal, ShipLayout

logger = logging.getLogger(__name__)
tracer = get_tracer("hiddenfleet.engine.geometry")
meter = get_meter("hiddenfleet.engine.geometry")

VALIDATION_COUNTER = meter.create_counter(
    "hiddenfleet_layout_validations",
    unit="1",
    description="Ship layouts checked against the placement rules",
)

OUT_OF_BOUNDS = "Ship must fit on the board"
NOT_UNIQUE = "Ship cells must be unique"
ADJACENT = "Ships can't be adjacent"

Fleet = Union[ShipLayout, PartialReveal]


def expand_ship(anchor: Coordinate, length: int, vertical: bool) -> tuple[Coordinate, ...]:
    """Return the ``length`` cells starting at ``anchor``, along +y if vertical else +x."""
    if vertical:
        return tuple(Coordinate(anchor.x, anchor.y + offset) for offset in range(length))
    return tuple(Coordinate(anchor.x + offset, anchor.y) for offset in range(length))


def layout_cells(layout: Fleet) -> list[Coordinate]:
    """Ordered cells of every placed ship, duplicates included."""
    cells: list[Coordinate] = []
    for ship_id, placement in layout.placed():
        cells.extend(expand_ship(placement.anchor, ship_id.length, placement.vertical))
    return cells


def occupied_cells(layout: Fleet) -> frozenset[Coordinate]:
    return frozenset(layout_cells(layout))


def buffer_cells(occupied: Iterable[Coordinate]) -> frozenset[Coordinate]:
    """The 8-neighbourhood of ``occupied``, minus the occupied cells themselves.

    Not clipped to the board, matching the contract.
    """
    occupied = frozenset(occupied)
    buffer: set[Coordinate] = set()
    for cell in occupied:
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                buffer.add(Coordinate(cell.x + dx, cell.y + dy))
    return frozenset(buffer - occupied)


def validate_bounds(cells: Iterable[Coordinate]) -> bool:
    return all(cell.in_bounds for cell in cells)


def validate_uniqueness(cells: Iterable[Coordinate]) -> bool:
    seen: set[Coordinate] = set()
    for cell in cells:
        if cell in seen:
            return False
        seen.add(cell)
    return True


def validate_adjacency(layout: Fleet) -> bool:
    """Sweep ships in fleet order; none may touch an earlier ship, even diagonally."""
    claimed: set[Coordinate] = set()
    for ship_id, placement in layout.placed():
        cells = expand_ship(placement.anchor, ship_id.length, placement.vertical)
        if any(cell in claimed for cell in cells):
            return False
        claimed.update(cells)
        claimed.update(buffer_cells(cells))
    return True


def layout_violations(layout: Fleet) -> list[str]:
    """Names of the rules ``layout`` breaks, in contract order."""
    cells = layout_cells(layout)
    violations: list[str] = []
    if not validate_bounds(cells):
        violations.append(OUT_OF_BOUNDS)
    if not validate_uniqueness(cells):
        violations.append(NOT_UNIQUE)
    if not validate_adjacency(layout):
        violations.append(ADJACENT)
    return violations


def validate_layout(layout: Fleet) -> bool:
    """True when every placed ship is in bounds, disjoint and non-adjacent."""
    with tracer.start_as_current_span("geometry.validate_layout") as span:
        violations = layout_violations(layout)
        valid = not violations
        span.set_attribute("layout.valid", valid)
        VALIDATION_COUNTER.add(1, attributes={"result": "valid" if valid else "invalid"})
        if not valid:
            logger.debug("layout_invalid", extra={"violations": violations})
        return valid


def is_complete(layout: ShipLayout) -> bool:
    """True once all five ships have left the sentinel."""
    return all(placement.is_placed for _, placement in layout.items())


def ensure_valid_layout(layout: ShipLayout, require_complete: bool = False) -> None:
    """Raise :class:`GeometryViolation` unless ``layout`` passes :func:`validate_layout`."""
    reasons: list[str] = []
    if require_complete and not is_complete(layout):
        reasons.append("All ships must be placed")
    if not validate_layout(layout):
        reasons.extend(layout_violations(layout))
    if reasons:
        logger.warning("layout_rejected", extra={"reasons": reasons})
        raise GeometryViolation(reasons)
