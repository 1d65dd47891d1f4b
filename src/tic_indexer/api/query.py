"""Query engine - read-only views over the comment store."""

from __future__ import annotations

import logging

from tic_indexer.errors import CycleDetectedError
from tic_indexer.models.records import CommentRecord
from tic_indexer.models.snapshots import IndexSummary, ThreadNode, TopicClassification
from tic_indexer.storage.comment_store import CommentStore
from tic_indexer.tic.topics import classify_topic, normalize_topic

log = logging.getLogger(__name__)


def _topic_key(topic: str) -> str:
    return ":".join(normalize_topic(topic.strip()))


class QueryEngine:
    """Builds views from the current CommentStore snapshot.

    This is the sole read interface between the indexer and any API or
    UI layer. Nothing here mutates the store.
    """

    def __init__(self, store: CommentStore, max_thread_depth: int = 1024) -> None:
        self._store = store
        self._max_thread_depth = max_thread_depth

    # ── Core views ─────────────────────────────────────────

    def get_by_topic(self, topic: str) -> list[CommentRecord]:
        """Valid comments on ``topic`` by sequence. Deleted ones keep their flag."""
        return self._store.children(_topic_key(topic))

    def get_by_author(self, address: str) -> list[CommentRecord]:
        return self._store.by_author(address.strip().lower())

    def get_thread(self, root_id: str) -> ThreadNode | None:
        """Reply tree under ``root_id``, or None if it is unknown or invalid.

        Walks topic -> children iteratively. Seeing an id twice, or going
        deeper than ``max_thread_depth``, raises CycleDetectedError.
        """
        root_id = root_id.strip().lower()
        root = self._store.get(root_id)
        if root is None or not root.valid:
            return None

        tree = ThreadNode(record=root)
        visited = {root_id}
        stack: list[tuple[ThreadNode, int]] = [(tree, 0)]

        while stack:
            node, depth = stack.pop()
            for child in self._store.children(node.record.id):
                if child.id in visited:
                    log.warning("Cycle in thread %s at %s", root_id, child.id)
                    raise CycleDetectedError(
                        f"comment {child.id} reached twice from {root_id}", child.id,
                    )
                if depth + 1 > self._max_thread_depth:
                    raise CycleDetectedError(
                        f"thread {root_id} deeper than {self._max_thread_depth}", child.id,
                    )
                visited.add(child.id)
                child_node = ThreadNode(record=child)
                node.replies.append(child_node)
                stack.append((child_node, depth + 1))

        return tree

    # ── Extras ─────────────────────────────────────────────

    def get_comment(self, record_id: str) -> CommentRecord | None:
        """Any record by id, including invalid ones kept for audit."""
        return self._store.get(record_id.strip().lower())

    def classify_topic(self, topic: str) -> TopicClassification:
        return classify_topic(normalize_topic(topic.strip()))

    def get_orphans(self) -> list[CommentRecord]:
        """Replies whose target id has not been indexed (yet)."""
        orphans = [
            self._store.get(record_id)
            for ids in self._store.orphans().values()
            for record_id in ids
        ]
        return sorted((r for r in orphans if r is not None), key=lambda r: r.sequence)

    def get_summary(self) -> IndexSummary:
        records = self._store.records()
        valid = [r for r in records if r.valid]
        high_water = self._store.high_water
        return IndexSummary(
            total_records=len(records),
            valid_records=len(valid),
            invalid_records=len(records) - len(valid),
            deleted_records=len([r for r in records if r.deleted]),
            replies=len([r for r in valid if self._store.parent_of(r.id) is not None]),
            orphans=sum(len(ids) for ids in self._store.orphans().values()),
            pending_deletions=len(self._store.pending_deletions()),
            high_water=high_water.to_dict() if high_water else None,
        )
