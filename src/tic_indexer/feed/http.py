"""HTTP event feed - polls an inscription-layer endpoint for new events."""

from __future__ import annotations

import logging

import httpx

from tic_indexer.feed.items import parse_feed_item
from tic_indexer.interfaces.feed import FeedItem
from tic_indexer.models.events import Sequence

log = logging.getLogger(__name__)


class HttpEventFeed:
    """Polls ``GET {base_url}/events`` for inscription, transfer and reorg items.

    Request parameters: ``after_block``/``after_index`` (the cursor, omitted
    on the first call, where ``from_block`` is sent instead if configured)
    and ``limit``. The response body is ``{"events": [...]}`` with items in
    ascending sequence order. The cursor is the sequence of the last item
    received, so a reorg notice moves it backwards.
    """

    def __init__(
        self,
        base_url: str,
        page_size: int = 100,
        timeout: int = 30,
        start_block: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._timeout = timeout
        self._start_block = start_block
        self._transport = transport
        self._cursor: Sequence | None = None

    @property
    def cursor(self) -> Sequence | None:
        return self._cursor

    def set_cursor(self, cursor: Sequence | None) -> None:
        """Restore or rewind the feed position."""
        self._cursor = cursor

    def _params(self) -> dict[str, int]:
        params = {"limit": self._page_size}
        if self._cursor is not None:
            params["after_block"] = self._cursor.block
            params["after_index"] = self._cursor.index
        elif self._start_block is not None:
            params["from_block"] = self._start_block
        return params

    async def poll(self) -> list[FeedItem]:
        """Fetch the next page of items after the cursor."""
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10),
                transport=self._transport,
            ) as client:
                resp = await client.get(f"{self._base_url}/events", params=self._params())
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.error("Event poll failed: %s", exc)
            raise

        items: list[FeedItem] = []
        for raw in body.get("events", []):
            if not isinstance(raw, dict):
                continue
            parsed = parse_feed_item(raw)
            if parsed is not None:
                items.append(parsed)

        if items:
            self._cursor = items[-1].sequence
            log.info("Polled %d events (cursor: %s)", len(items), self._cursor)

        return items

    async def get_cursor(self) -> Sequence | None:
        return self._cursor

    async def close(self) -> None:
        pass
