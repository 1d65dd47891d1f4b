"""JSON-lines event feed for replaying a recorded event log."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from tic_indexer.feed.items import parse_feed_item
from tic_indexer.interfaces.feed import FeedItem
from tic_indexer.models.events import ReorgNotice, Sequence

log = logging.getLogger(__name__)


class JsonlEventFeed:
    """Reads one feed item per line from a file, ``page_size`` at a time.

    Events at or before the cursor are skipped, so a replay resumes where
    the database left off. Reorg notices are always delivered and move the
    cursor back to their sequence, so events that replace the rolled-back
    range are never skipped after a rewind.
    """

    def __init__(self, path: str | Path, page_size: int = 100) -> None:
        self._path = Path(path).expanduser()
        self._page_size = page_size
        self._cursor: Sequence | None = None
        self._items: list[FeedItem] | None = None
        self._position = 0

    def _load(self) -> list[FeedItem]:
        items: list[FeedItem] = []
        with open(self._path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError as exc:
                    log.warning("%s:%d: invalid JSON: %s", self._path, lineno, exc)
                    continue
                if not isinstance(raw, dict):
                    continue
                parsed = parse_feed_item(raw)
                if parsed is not None:
                    items.append(parsed)
        log.info("Loaded %d feed items from %s", len(items), self._path)
        return items

    def set_cursor(self, cursor: Sequence | None) -> None:
        self._cursor = cursor
        self._position = 0

    async def get_cursor(self) -> Sequence | None:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._items is not None and self._position >= len(self._items)

    async def poll(self) -> list[FeedItem]:
        if self._items is None:
            self._items = self._load()

        batch: list[FeedItem] = []
        while self._position < len(self._items) and len(batch) < self._page_size:
            item = self._items[self._position]
            self._position += 1
            if (
                not isinstance(item, ReorgNotice)
                and self._cursor is not None
                and item.sequence <= self._cursor
            ):
                continue
            batch.append(item)
            self._cursor = item.sequence
        return batch

    async def close(self) -> None:
        self._items = None
