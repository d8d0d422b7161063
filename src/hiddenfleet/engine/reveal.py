"""Accumulates opponent ship geometry as ships are sunk."""

from __future__ import annotations

import logging

from .game import GameSnapshot, PlayerSlot, ShotOutcome
from .ship import PartialReveal

logger = logging.getLogger(__name__)


def update_partial_reveal(
    reveal: PartialReveal, snapshot: GameSnapshot, owner: PlayerSlot
) -> PartialReveal:
    """Merge a sunk-ship disclosure into ``owner``'s reveal.

    The disclosure belongs to ``owner`` only when the phase has just moved
    away from ``owner``'s turn. Earlier disclosures are never changed, so
    replaying the same snapshot is a no-op.
    """
    shot = snapshot.last_shot_result
    if shot is None or shot.outcome is not ShotOutcome.SUNK or shot.disclosed_ship is None:
        return reveal
    if snapshot.phase.resolved_board() is not owner:
        return reveal

    disclosed = shot.disclosed_ship
    existing = reveal[disclosed.ship]
    if existing is not None:
        if existing != disclosed.placement:
            logger.warning(
                "conflicting_disclosure_ignored",
                extra={
                    "owner": owner.value,
                    "ship": disclosed.ship.value,
                    "known_anchor": str(existing.anchor),
                    "new_anchor": str(disclosed.placement.anchor),
                },
            )
        return reveal

    logger.info(
        "ship_disclosed",
        extra={
            "owner": owner.value,
            "ship": disclosed.ship.value,
            "anchor": str(disclosed.placement.anchor),
            "vertical": disclosed.placement.vertical,
        },
    )
    return reveal.disclose(disclosed.ship, disclosed.placement)
