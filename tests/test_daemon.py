"""Tests 97-103: Daemon wiring, cursor persistence and retries."""

from __future__ import annotations

import asyncio

import pytest

from tic_indexer.daemon import IndexerDaemon, build_feed
from tic_indexer.errors import PersistenceError
from tic_indexer.feed.http import HttpEventFeed
from tic_indexer.feed.jsonl import JsonlEventFeed
from tic_indexer.models.config import FeedConfig
from tic_indexer.models.events import Sequence

from tests.conftest import make_test_config
from tests.factories import make_inscription_event, make_reorg_notice, make_transfer_event
from tests.mocks import MockFeed


# ── Test 97: One poll applies the batch and saves the cursor ──────


async def test_run_once_saves_cursor(daemon, mock_feed):
    mock_feed.enqueue(
        make_inscription_event("0xaaa", block_number=100),
        make_inscription_event("0xbbb", topic="0xaaa", block_number=101),
        make_transfer_event("0xccc", to_address="0x" + "9" * 40, block_number=102),
    )

    results = await daemon.run_once()

    assert [r.status for r in results] == ["accepted", "accepted", "ignored"]
    assert await daemon.repository.get_cursor() == Sequence(102, 0)
    assert [r.id for r in daemon.query.get_thread("0xaaa").flatten()] == ["0xaaa", "0xbbb"]


async def test_run_once_empty_poll(daemon):
    assert await daemon.run_once() == []
    assert await daemon.repository.get_cursor() is None


# ── Test 98: Reorg notice rolls back the database too ─────────────


async def test_run_once_reorg(daemon, mock_feed):
    mock_feed.enqueue(
        make_inscription_event("0xaaa", block_number=100),
        make_inscription_event("0xbbb", block_number=101),
    )
    await daemon.run_once()

    mock_feed.enqueue(make_reorg_notice(100))
    await daemon.run_once()

    assert await daemon.repository.get("0xbbb") is None
    assert await daemon.repository.get_cursor() == Sequence(100, 0)
    activity = await daemon.repository.get_recent_activity(5)
    assert activity[0].event_type == "reorg"


# ── Test 99: Persistence failure rewinds the feed ─────────────────


async def test_persistence_failure_rewinds_feed(daemon, mock_feed):
    mock_feed.enqueue(make_inscription_event("0xaaa", block_number=100))
    await daemon.run_once()

    async def failing_put(record):
        raise PersistenceError("disk full")

    daemon.repository.put = failing_put
    mock_feed.enqueue(make_inscription_event("0xbbb", block_number=101))

    with pytest.raises(PersistenceError):
        await daemon.run_once()

    assert mock_feed.cursor_calls[-1] == Sequence(100, 0)
    assert await daemon.repository.get_cursor() == Sequence(100, 0)
    assert "0xbbb" not in daemon.store


# ── Test 100: Restart restores store and cursor ───────────────────


async def test_restart_resumes(tmp_path):
    cfg = make_test_config(db_path=str(tmp_path / "index.db"))

    first = IndexerDaemon(cfg, feed=MockFeed())
    await first.initialize()
    first.feed.enqueue(
        make_inscription_event("0xaaa", block_number=100),
        make_inscription_event("0xbbb", topic="0xaaa", block_number=101),
    )
    await first.run_once()
    await first.repository.close()

    feed = MockFeed()
    second = IndexerDaemon(cfg, feed=feed)
    await second.initialize()
    try:
        assert feed.cursor_calls == [Sequence(101, 0)]
        assert second.store.parent_of("0xbbb") == "0xaaa"
        assert second.query.get_summary().total_records == 2
    finally:
        await second.repository.close()


# ── Test 101: Feed selection ──────────────────────────────────────


def test_build_feed(tmp_path):
    http = build_feed(make_test_config())
    assert isinstance(http, HttpEventFeed)

    path = tmp_path / "events.jsonl"
    replay = build_feed(make_test_config(feed=FeedConfig(replay_path=str(path))))
    assert isinstance(replay, JsonlEventFeed)


# ── Test 102: Start and stop ──────────────────────────────────────


async def test_start_and_stop(test_config, mock_feed):
    d = IndexerDaemon(test_config, feed=mock_feed)
    mock_feed.enqueue(make_inscription_event("0xaaa"))

    task = asyncio.create_task(d.start())
    for _ in range(100):
        if d.pipeline.stats.accepted:
            break
        await asyncio.sleep(0.02)

    await d.stop()
    await asyncio.wait_for(task, timeout=5)

    assert d.pipeline.stats.accepted == 1
    assert mock_feed.closed


# ── Test 103: Errors in the loop do not stop it ───────────────────


async def test_main_loop_survives_feed_error(test_config):
    class FlakyFeed(MockFeed):
        def __init__(self) -> None:
            super().__init__()
            self.calls = 0

        async def poll(self):
            self.calls += 1
            if self.calls == 1:
                raise ConnectionError("feed unreachable")
            return await super().poll()

    feed = FlakyFeed()
    feed.enqueue(make_inscription_event("0xaaa"))
    d = IndexerDaemon(make_test_config(error_backoff=0, poll_interval=0), feed=feed)

    task = asyncio.create_task(d.start())
    for _ in range(100):
        if d.pipeline.stats.accepted:
            break
        await asyncio.sleep(0.02)

    await d.stop()
    await asyncio.wait_for(task, timeout=5)

    assert feed.calls >= 2
    assert d.pipeline.stats.accepted == 1
