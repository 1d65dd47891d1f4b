"""Tests 104-108: Configuration loading from TOML and environment."""

from __future__ import annotations

from pathlib import Path

import pytest

from tic_indexer.config import load_config

CONFIG_TOML = """
[indexer]
poll_interval = 6
error_backoff = 15
log_level = "debug"
reorg_window = 10

[feed]
url = "https://feed.example.com"
page_size = 250
timeout = 5
start_block = 18000000

[limits]
max_topic_parts = 4
max_payload_bytes = 4096
max_thread_depth = 32

[storage]
db_path = "/var/lib/tic/index.db"
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("FEED_URL", "DB_PATH", "LOG_LEVEL", "REORG_WINDOW"):
        monkeypatch.delenv(f"TIC_INDEXER_{name}", raising=False)


# ── Test 104: Defaults ────────────────────────────────────────────


def test_defaults_without_file():
    cfg = load_config(None)

    assert cfg.poll_interval == 12
    assert cfg.reorg_window == 64
    assert cfg.feed.url == "http://127.0.0.1:4000"
    assert cfg.feed.start_block is None
    assert cfg.limits.max_topic_parts == 16
    assert cfg.db_path == str(Path("~/.tic_indexer/index.db").expanduser())


def test_missing_file_uses_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.toml")
    assert cfg.log_level == "info"


# ── Test 105: TOML sections ───────────────────────────────────────


def test_load_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML)

    cfg = load_config(path)

    assert cfg.poll_interval == 6
    assert cfg.error_backoff == 15
    assert cfg.log_level == "debug"
    assert cfg.reorg_window == 10
    assert cfg.feed.url == "https://feed.example.com"
    assert cfg.feed.page_size == 250
    assert cfg.feed.timeout == 5
    assert cfg.feed.start_block == 18_000_000
    assert cfg.limits.max_topic_parts == 4
    assert cfg.limits.max_payload_bytes == 4096
    assert cfg.limits.max_thread_depth == 32
    assert cfg.db_path == "/var/lib/tic/index.db"


# ── Test 106: A zero reorg window is honored ──────────────────────


def test_zero_reorg_window(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[indexer]\nreorg_window = 0\n")

    assert load_config(path).reorg_window == 0


# ── Test 107: Environment overrides ───────────────────────────────


def test_env_overrides_toml(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML)
    monkeypatch.setenv("TIC_INDEXER_FEED_URL", "http://env-feed:4000")
    monkeypatch.setenv("TIC_INDEXER_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("TIC_INDEXER_LOG_LEVEL", "warning")
    monkeypatch.setenv("TIC_INDEXER_REORG_WINDOW", "3")

    cfg = load_config(path)

    assert cfg.feed.url == "http://env-feed:4000"
    assert cfg.db_path == str(tmp_path / "env.db")
    assert cfg.log_level == "warning"
    assert cfg.reorg_window == 3
    # Untouched keys still come from the file
    assert cfg.feed.page_size == 250


# ── Test 108: In-memory database path ─────────────────────────────


def test_memory_db_path_not_expanded(monkeypatch):
    monkeypatch.setenv("TIC_INDEXER_DB_PATH", ":memory:")
    assert load_config().db_path == ":memory:"
