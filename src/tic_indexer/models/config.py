"""Configuration models for the indexer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class LimitsConfig:
    """Resource-exhaustion bounds. Exceeding them is not a protocol violation."""

    max_topic_parts: int = 16
    max_payload_bytes: int = 131_072  # 128 KiB
    max_thread_depth: int = 1024


@dataclass
class FeedConfig:
    """Where events come from."""

    url: str = "http://127.0.0.1:4000"
    page_size: int = 100
    timeout: int = 30  # seconds
    start_block: int | None = None
    replay_path: str = ""


@dataclass
class IndexerConfig:
    """Complete indexer configuration."""

    # Indexer
    poll_interval: int = 12  # seconds, roughly one block
    error_backoff: int = 30  # seconds
    log_level: str = "info"
    reorg_window: int = 64  # blocks of rollback history kept in memory

    # Storage
    db_path: str = "~/.tic_indexer/index.db"

    feed: FeedConfig = field(default_factory=FeedConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
