"""Boundary to the authoritative ledger: the update feed and the transaction submitter."""

from __future__ import annotations

import logging
import queue
from typing import Any, Iterator, Protocol

from hiddenfleet.engine.errors import TransactionRejected, TransportFailure
from hiddenfleet.engine.game import PlayerSlot
from hiddenfleet.engine.ship import Coordinate

logger = logging.getLogger(__name__)


class LedgerSource(Protocol):
    """Push subscription to one game's ledger state.

    ``updates`` blocks until the next payload arrives; raising from it means
    the subscription dropped and the caller should resubscribe.
    """

    def updates(self) -> Iterator[Any]:
        ...


class LedgerTransport(Protocol):
    """Submits transactions; raising means the ledger did not accept them."""

    def submit_shot(self, player: PlayerSlot, cell: Coordinate) -> None:
        ...

    def join(self, player: PlayerSlot) -> None:
        ...


class FeedLedgerSource:
    """In-process ledger feed driven by ``push``/``fail``/``close``.

    Payloads pushed while nobody is iterating are kept for the next
    subscription, so a resubscribe after ``fail`` resumes where it left off.
    """

    _PAYLOAD = "payload"
    _ERROR = "error"
    _END = "end"

    def __init__(self) -> None:
        self._queue: queue.Queue[tuple[str, Any]] = queue.Queue()
        self.subscriptions = 0

    def push(self, payload: Any) -> None:
        self._queue.put((self._PAYLOAD, payload))

    def fail(self, error: Exception | None = None) -> None:
        """Make the current subscription raise ``error`` (a TransportFailure by default)."""
        self._queue.put((self._ERROR, error or TransportFailure("ledger feed dropped")))

    def close(self) -> None:
        self._queue.put((self._END, None))

    def updates(self) -> Iterator[Any]:
        self.subscriptions += 1
        logger.debug("feed_subscribed", extra={"subscription": self.subscriptions})
        while True:
            kind, value = self._queue.get()
            if kind == self._END:
                return
            if kind == self._ERROR:
                raise value
            yield value


class ReadOnlyTransport:
    """Transport for spectating or replaying: every submission is refused."""

    def submit_shot(self, player: PlayerSlot, cell: Coordinate) -> None:
        raise TransactionRejected(f"Read-only session cannot fire at {cell} as {player.value}.")

    def join(self, player: PlayerSlot) -> None:
        raise TransactionRejected(f"Read-only session cannot join as {player.value}.")
