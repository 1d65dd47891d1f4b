"""EventFeed protocol - delivers inscription, transfer and reorg items."""

from __future__ import annotations

from typing import Protocol, Union

from tic_indexer.models.events import InscriptionEvent, ReorgNotice, Sequence, TransferEvent

FeedItem = Union[InscriptionEvent, TransferEvent, ReorgNotice]


class EventFeed(Protocol):
    """Produces events in ascending sequence order.

    A ReorgNotice is delivered before any event that replaces history
    after its sequence.
    """

    async def poll(self) -> list[FeedItem]:
        """Fetch new items since the last cursor."""
        ...

    async def get_cursor(self) -> Sequence | None:
        """The sequence of the last item delivered."""
        ...

    def set_cursor(self, cursor: Sequence | None) -> None:
        """Rewind or restore the feed position. None restarts from the beginning."""
        ...

    async def close(self) -> None:
        ...
