"""Shared fixtures for tic_indexer tests."""

from __future__ import annotations

import pytest

from tic_indexer.api.query import QueryEngine
from tic_indexer.daemon import IndexerDaemon
from tic_indexer.models.config import FeedConfig, IndexerConfig, LimitsConfig
from tic_indexer.pipeline import IndexerPipeline
from tic_indexer.storage.comment_store import CommentStore
from tic_indexer.storage.sqlite import SQLiteCommentRepository

from tests.mocks import MockFeed, MockRepository


def make_test_config(**overrides) -> IndexerConfig:
    """Build an IndexerConfig suitable for testing."""
    defaults = dict(
        poll_interval=1,
        error_backoff=1,
        log_level="debug",
        reorg_window=64,
        db_path=":memory:",
        feed=FeedConfig(url="http://feed.test", page_size=10, timeout=5),
        limits=LimitsConfig(),
    )
    defaults.update(overrides)
    return IndexerConfig(**defaults)


@pytest.fixture
def test_config():
    """Default IndexerConfig for tests."""
    return make_test_config()


@pytest.fixture
async def repository():
    """Initialized in-memory SQLiteCommentRepository."""
    r = SQLiteCommentRepository(":memory:")
    await r.initialize()
    yield r
    await r.close()


@pytest.fixture
def mock_repository():
    return MockRepository()


@pytest.fixture
def memory_store():
    """CommentStore with no persistence behind it."""
    return CommentStore()


@pytest.fixture
def store(repository):
    """CommentStore mirrored to the in-memory SQLite repository."""
    return CommentStore(repository)


@pytest.fixture
def pipeline(memory_store):
    return IndexerPipeline(memory_store)


@pytest.fixture
def query(memory_store):
    return QueryEngine(memory_store)


@pytest.fixture
def mock_feed():
    return MockFeed()


@pytest.fixture
async def daemon(test_config, mock_feed):
    """IndexerDaemon on an in-memory database with a mocked feed."""
    d = IndexerDaemon(test_config, feed=mock_feed)
    await d.initialize()
    yield d
    await d.repository.close()
