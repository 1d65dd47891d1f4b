"""Data models for the tic_indexer package."""

from tic_indexer.models.events import (
    ZERO_ADDRESS,
    InscriptionEvent,
    ReorgNotice,
    Sequence,
    TransferEvent,
)
from tic_indexer.models.records import (
    ActivityRecord,
    CommentRecord,
    IngestResult,
    IngestStats,
    TicCandidate,
)
from tic_indexer.models.config import FeedConfig, IndexerConfig, LimitsConfig
from tic_indexer.models.snapshots import IndexSummary, ThreadNode, TopicClassification

__all__ = [
    "ZERO_ADDRESS", "InscriptionEvent", "ReorgNotice", "Sequence", "TransferEvent",
    "ActivityRecord", "CommentRecord", "IngestResult", "IngestStats", "TicCandidate",
    "FeedConfig", "IndexerConfig", "LimitsConfig",
    "IndexSummary", "ThreadNode", "TopicClassification",
]
