"""Error taxonomy shared by the engine and the reconciler."""

from __future__ import annotations


class HiddenFleetError(Exception):
    """Base class for every error raised by hiddenfleet."""


class GeometryViolation(HiddenFleetError, ValueError):
    """A ship layout breaks the bounds, uniqueness or adjacency rules."""

    def __init__(self, reasons: list[str] | tuple[str, ...]) -> None:
        self.reasons = tuple(reasons)
        super().__init__("; ".join(self.reasons) or "Invalid ship layout")


class TransportFailure(HiddenFleetError, ConnectionError):
    """The ledger subscription dropped."""


class TransactionRejected(HiddenFleetError, RuntimeError):
    """An authoritative submission did not go through."""


class MalformedAuthoritativeState(HiddenFleetError, ValueError):
    """A ledger payload could not be read as a game snapshot."""
