"""QueryAPI protocol - read-only views over the comment store."""

from __future__ import annotations

from typing import Protocol

from tic_indexer.models.records import CommentRecord
from tic_indexer.models.snapshots import IndexSummary, ThreadNode, TopicClassification


class QueryAPI(Protocol):
    """The sole read interface for any UI or API layer.

    All methods are pure reads and never mutate the store.
    """

    def get_by_topic(self, topic: str) -> list[CommentRecord]:
        """Valid records whose topic equals ``topic``, deleted ones included."""
        ...

    def get_thread(self, root_id: str) -> ThreadNode | None:
        """The reply tree rooted at ``root_id``."""
        ...

    def get_by_author(self, address: str) -> list[CommentRecord]:
        ...

    def get_comment(self, record_id: str) -> CommentRecord | None:
        """A single record, including invalid ones kept for audit."""
        ...

    def classify_topic(self, topic: str) -> TopicClassification:
        """Advisory shape classification, recomputed on every call."""
        ...

    def get_orphans(self) -> list[CommentRecord]:
        ...

    def get_summary(self) -> IndexSummary:
        ...
