"""Main indexer loop - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal

from tic_indexer.api.query import QueryEngine
from tic_indexer.errors import PersistenceError
from tic_indexer.feed.http import HttpEventFeed
from tic_indexer.feed.jsonl import JsonlEventFeed
from tic_indexer.interfaces.feed import EventFeed
from tic_indexer.interfaces.query import QueryAPI
from tic_indexer.models.config import IndexerConfig
from tic_indexer.models.records import IngestResult
from tic_indexer.pipeline import IndexerPipeline
from tic_indexer.storage.comment_store import CommentStore
from tic_indexer.storage.sqlite import SQLiteCommentRepository

log = logging.getLogger(__name__)


def build_feed(cfg: IndexerConfig) -> EventFeed:
    """A replay file feed if one is configured, the HTTP feed otherwise."""
    if cfg.feed.replay_path:
        return JsonlEventFeed(cfg.feed.replay_path, cfg.feed.page_size)
    return HttpEventFeed(
        cfg.feed.url,
        page_size=cfg.feed.page_size,
        timeout=cfg.feed.timeout,
        start_block=cfg.feed.start_block,
    )


class IndexerDaemon:
    """TIC comment indexer.

    Polls the event feed, runs every item through the pipeline, and keeps
    the repository cursor in step with the store's high-water mark.
    """

    def __init__(self, cfg: IndexerConfig, feed: EventFeed | None = None) -> None:
        self._cfg = cfg
        self._running = False

        self.repository = SQLiteCommentRepository(cfg.db_path)
        self.store = CommentStore(self.repository, reorg_window=cfg.reorg_window)
        self.pipeline = IndexerPipeline(self.store, cfg.limits)
        self.query: QueryAPI = QueryEngine(self.store, cfg.limits.max_thread_depth)
        self.feed: EventFeed = feed or build_feed(cfg)

    async def initialize(self) -> None:
        """Open the repository, rebuild memory from it, restore the feed cursor."""
        await self.repository.initialize()
        await self.store.rebuild()
        cursor = await self.repository.get_cursor()
        if cursor is not None:
            self.feed.set_cursor(cursor)
            log.info("Restored cursor: %s", cursor)

    async def start(self) -> None:
        """Initialize components and run the main loop."""
        log.info("Starting tic_indexer")
        log.info("  Feed: %s", self._cfg.feed.replay_path or self._cfg.feed.url)
        log.info("  DB: %s", self._cfg.db_path)
        log.info("  Reorg window: %d blocks", self._cfg.reorg_window)

        await self.initialize()
        self._running = True
        await self.repository.log_activity("indexer_started", "Indexer started")

        try:
            await self._main_loop()
        finally:
            await self.repository.log_activity("indexer_stopped", "Indexer stopped")
            await self.feed.close()
            await self.repository.close()
            log.info("Indexer shut down cleanly")

    async def stop(self) -> None:
        """Signal the loop to stop gracefully."""
        log.info("Stop requested")
        self._running = False

    async def run_once(self) -> list[IngestResult]:
        """Poll once, apply the batch and persist the cursor."""
        items = await self.feed.poll()
        try:
            results = await self.pipeline.ingest(items)
        except PersistenceError:
            # Redeliver everything after the last event that made it to disk
            self.feed.set_cursor(self.store.high_water)
            await self._save_cursor()
            raise

        if self.pipeline.replay_required:
            # Store was reset to genesis by an unrecoverable reorg
            self.pipeline.replay_required = False
            self.feed.set_cursor(None)
        await self._save_cursor()
        return results

    async def _save_cursor(self) -> None:
        await self.repository.set_cursor(self.store.high_water)

    async def _main_loop(self) -> None:
        while self._running:
            try:
                results = await self.run_once()
                if results:
                    log.debug(
                        "Batch applied: %d items, stats %s", len(results), self.pipeline.stats,
                    )
                await asyncio.sleep(self._cfg.poll_interval)

            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)
                try:
                    await self.repository.log_activity("error", str(exc))
                except PersistenceError as log_exc:
                    log.warning("Could not record error activity: %s", log_exc)
                await asyncio.sleep(self._cfg.error_backoff)


async def run_daemon(cfg: IndexerConfig) -> None:
    """Entry point for running the indexer."""
    daemon = IndexerDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
