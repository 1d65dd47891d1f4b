"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from tic_indexer.models.config import FeedConfig, IndexerConfig, LimitsConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "TIC_INDEXER_",
) -> IndexerConfig:
    """Load indexer configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (TIC_INDEXER_FEED_URL, etc.)
        2. TOML config file
        3. Defaults from IndexerConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = IndexerConfig()

    # ── Indexer section ────────────────────────────────────
    indexer = raw.get("indexer", {})
    if v := indexer.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := indexer.get("error_backoff"):
        cfg.error_backoff = int(v)
    if v := indexer.get("log_level"):
        cfg.log_level = str(v)
    if (v := indexer.get("reorg_window")) is not None:
        cfg.reorg_window = int(v)

    # ── Feed section ───────────────────────────────────────
    feed_raw = raw.get("feed", {})
    start_block = feed_raw.get("start_block")
    cfg.feed = FeedConfig(
        url=str(feed_raw.get("url", cfg.feed.url)),
        page_size=int(feed_raw.get("page_size", cfg.feed.page_size)),
        timeout=int(feed_raw.get("timeout", cfg.feed.timeout)),
        start_block=int(start_block) if start_block is not None else None,
        replay_path=str(feed_raw.get("replay_path", "")),
    )

    # ── Limits section ─────────────────────────────────────
    limits_raw = raw.get("limits", {})
    cfg.limits = LimitsConfig(
        max_topic_parts=int(limits_raw.get("max_topic_parts", 16)),
        max_payload_bytes=int(limits_raw.get("max_payload_bytes", 131_072)),
        max_thread_depth=int(limits_raw.get("max_thread_depth", 1024)),
    )

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if url := os.environ.get(f"{env_prefix}FEED_URL"):
        cfg.feed.url = url
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level
    if window := os.environ.get(f"{env_prefix}REORG_WINDOW"):
        cfg.reorg_window = int(window)

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
