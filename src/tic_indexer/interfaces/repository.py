"""CommentRepository protocol - durable storage behind the comment store."""

from __future__ import annotations

from typing import Protocol

from tic_indexer.models.events import Sequence
from tic_indexer.models.records import ActivityRecord, CommentRecord


class CommentRepository(Protocol):
    """Persistence collaborator for the comment store.

    Failures must surface as PersistenceError so the pipeline can retry
    the event without advancing its high-water mark.
    """

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Records ────────────────────────────────────────────

    async def put(self, record: CommentRecord) -> None:
        """Persist a new record. Existing ids are left untouched."""
        ...

    async def get(self, record_id: str) -> CommentRecord | None:
        ...

    async def mark_deleted(self, record_id: str, sequence: Sequence) -> None:
        """Persist a deletion marker. The first marker for an id wins."""
        ...

    async def iter_by_topic(self, topic_key: str) -> list[CommentRecord]:
        """Valid records whose topic equals ``topic_key``, by sequence."""
        ...

    async def iter_by_author(self, author: str) -> list[CommentRecord]:
        """Valid records by ``author``, by sequence."""
        ...

    async def load_records(self) -> list[CommentRecord]:
        """Every record (valid or not) by sequence, deleted flag applied."""
        ...

    async def load_deletions(self) -> dict[str, Sequence]:
        """Every deletion marker, including ones for unknown ids."""
        ...

    async def forget_deletions(self, record_ids: list[str]) -> None:
        """Drop the deletion markers for ``record_ids``."""
        ...

    # ── Reorg ──────────────────────────────────────────────

    async def rollback(self, to_sequence: Sequence) -> None:
        """Drop records and markers with sequence strictly after ``to_sequence``."""
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> Sequence | None:
        ...

    async def set_cursor(self, sequence: Sequence | None) -> None:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self, event_type: str, message: str, ethscription_id: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
