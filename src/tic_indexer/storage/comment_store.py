"""Comment store - the indexer's only stateful component.

Holds every CommentRecord keyed by id plus two incrementally maintained
indexes (topic -> children, author -> records), both ordered by sequence.
Replies whose parent has not been seen yet wait in an orphan buffer keyed
by the topic they point at; deletion markers for unknown ids wait in the
same way. A journal of applied operations inside the reorg window makes
``rollback`` cheap.

Writes go through a single asyncio lock. Each write awaits the persistence
collaborator first and only then mutates memory, synchronously, so a
reader never sees half of an event and a failed write leaves no trace.
"""

from __future__ import annotations

import asyncio
import bisect
import logging

from tic_indexer.errors import ReorgInconsistencyError
from tic_indexer.interfaces.repository import CommentRepository
from tic_indexer.models.events import Sequence
from tic_indexer.models.records import CommentRecord

log = logging.getLogger(__name__)

_INSERT = "insert"
_DELETE = "delete"


class CommentStore:
    """In-memory comment tree, optionally mirrored to a CommentRepository."""

    def __init__(
        self,
        repository: CommentRepository | None = None,
        reorg_window: int = 64,
    ) -> None:
        self._repository = repository
        self._reorg_window = reorg_window
        self._lock = asyncio.Lock()
        self._reset_state()

    def _reset_state(self) -> None:
        self._records: dict[str, CommentRecord] = {}
        self._children: dict[str, list[tuple[Sequence, str]]] = {}
        self._by_author: dict[str, list[tuple[Sequence, str]]] = {}
        self._parent: dict[str, str] = {}
        self._orphans: dict[str, set[str]] = {}
        self._deletions: dict[str, Sequence] = {}
        self._journal: list[tuple[Sequence, str, str]] = []
        self._history_floor: Sequence | None = None
        self._high_water: Sequence | None = None

    @property
    def repository(self) -> CommentRepository | None:
        return self._repository

    @property
    def high_water(self) -> Sequence | None:
        """Largest sequence applied so far."""
        return self._high_water

    @property
    def history_floor(self) -> Sequence | None:
        """Rollbacks to a sequence below this need a full rebuild."""
        return self._history_floor

    # ── Writes ─────────────────────────────────────────────

    async def insert(self, record: CommentRecord) -> bool:
        """Add a record. Returns False (and does nothing) if the id is known."""
        async with self._lock:
            if record.id in self._records:
                return False
            if record.id in self._deletions and not record.deleted:
                record = record.with_deleted(True)

            if self._repository is not None:
                await self._repository.put(record)

            self._apply_insert(record)
            self._journal.append((record.sequence, _INSERT, record.id))
            self._advance(record.sequence)
            return True

    async def mark_deleted(self, record_id: str, sequence: Sequence) -> bool:
        """Flag a record as deleted. Unknown ids are buffered until they appear.

        Returns False when a marker for the id already exists.
        """
        async with self._lock:
            if record_id in self._deletions:
                return False

            if self._repository is not None:
                await self._repository.mark_deleted(record_id, sequence)

            self._deletions[record_id] = sequence
            record = self._records.get(record_id)
            if record is not None:
                self._records[record_id] = record.with_deleted(True)
            else:
                log.debug("Deletion of unknown %s buffered", record_id)
            self._journal.append((sequence, _DELETE, record_id))
            self._advance(sequence)
            return True

    def advance(self, sequence: Sequence) -> None:
        """Move the high-water mark for events that changed nothing."""
        self._advance(sequence)

    async def rollback(self, to_sequence: Sequence) -> int:
        """Undo every record and deletion marker after ``to_sequence``.

        Returns the number of operations undone. Raises
        ReorgInconsistencyError if the journal no longer reaches back that far.
        """
        async with self._lock:
            if self._history_floor is not None and to_sequence < self._history_floor:
                raise ReorgInconsistencyError(
                    f"rollback to {to_sequence} is older than retained history "
                    f"(floor {self._history_floor})"
                )

            if self._repository is not None:
                await self._repository.rollback(to_sequence)

            kept: list[tuple[Sequence, str, str]] = []
            undone = 0
            for entry in reversed(self._journal):
                sequence, op, record_id = entry
                if sequence <= to_sequence:
                    kept.append(entry)
                    continue
                if op == _INSERT:
                    self._remove_record(record_id)
                else:
                    self._remove_deletion(record_id)
                undone += 1
            kept.reverse()
            self._journal = kept

            if self._high_water is not None and self._high_water > to_sequence:
                self._high_water = to_sequence

            log.info("Rolled back %d operations to %s", undone, to_sequence)
            return undone

    async def rebuild(self) -> None:
        """Discard memory and reload everything from the repository.

        All loads finish before any state is replaced, so readers keep
        seeing the old snapshot until the new one is complete, and a failed
        load leaves the store as it was.
        """
        async with self._lock:
            if self._repository is None:
                self._reset_state()
                return

            records = await self._repository.load_records()
            deletions = await self._repository.load_deletions()
            cursor = await self._repository.get_cursor()

            # From here to the end there is no await
            self._reset_state()
            for record in records:
                if record.id in deletions and not record.deleted:
                    record = record.with_deleted(True)
                self._apply_insert(record)
                self._journal.append((record.sequence, _INSERT, record.id))
                self._advance(record.sequence)
            for record_id, sequence in deletions.items():
                self._deletions[record_id] = sequence
                self._journal.append((sequence, _DELETE, record_id))
                self._advance(sequence)
            self._journal.sort()
            if cursor is not None:
                self._advance(cursor)

            log.info(
                "Rebuilt store: %d records, %d deletion markers, high water %s",
                len(records), len(deletions), self._high_water,
            )

    async def prune_pending_deletions(self) -> int:
        """Forget deletion markers that no record claimed within the reorg window.

        An ethscription is always created before it can be burned, so a
        marker this far behind the high-water mark belongs to something that
        is not a TIC comment. Returns the number of markers dropped.
        """
        async with self._lock:
            if self._high_water is None:
                return 0
            cutoff = self._high_water.block - self._reorg_window
            stale = [
                rid for rid, seq in self._deletions.items()
                if seq.block < cutoff and rid not in self._records
            ]
            if not stale:
                return 0

            if self._repository is not None:
                await self._repository.forget_deletions(stale)

            for record_id in stale:
                del self._deletions[record_id]
            log.debug("Pruned %d unclaimed deletion markers below block %d", len(stale), cutoff)
            return len(stale)

    async def reset(self) -> None:
        """Forget everything in memory (restart from genesis)."""
        async with self._lock:
            self._reset_state()

    # ── Internal state transitions (no awaits) ─────────────

    def _apply_insert(self, record: CommentRecord) -> None:
        record_id = record.id
        self._records[record_id] = record
        if not record.valid:
            return

        key = (record.sequence, record_id)
        bisect.insort(self._children.setdefault(record.topic_key, []), key)
        bisect.insort(self._by_author.setdefault(record.author, []), key)

        # Replies that arrived before this record
        waiting = self._orphans.pop(record_id, None)
        if waiting:
            for child_id in waiting:
                self._parent[child_id] = record_id
            log.debug("Re-parented %d orphans under %s", len(waiting), record_id)

        if len(record.topic) != 1:
            return
        target = record.topic[0]
        parent = self._records.get(target)
        if target != record_id and parent is not None and parent.valid:
            self._parent[record_id] = target
        else:
            self._orphans.setdefault(target, set()).add(record_id)

    def _remove_record(self, record_id: str) -> None:
        record = self._records.pop(record_id, None)
        if record is None or not record.valid:
            return

        key = (record.sequence, record_id)
        _discard_sorted(self._children, record.topic_key, key)
        _discard_sorted(self._by_author, record.author, key)

        parent_id = self._parent.pop(record_id, None)
        if parent_id is None and len(record.topic) == 1:
            waiting = self._orphans.get(record.topic[0])
            if waiting is not None:
                waiting.discard(record_id)
                if not waiting:
                    del self._orphans[record.topic[0]]

        # Our replies go back to waiting for us
        for _, child_id in self._children.get(record_id, []):
            if self._parent.get(child_id) == record_id:
                del self._parent[child_id]
                self._orphans.setdefault(record_id, set()).add(child_id)

    def _remove_deletion(self, record_id: str) -> None:
        self._deletions.pop(record_id, None)
        record = self._records.get(record_id)
        if record is not None and record.deleted:
            self._records[record_id] = record.with_deleted(False)

    def _advance(self, sequence: Sequence) -> None:
        if self._high_water is None or sequence > self._high_water:
            self._high_water = sequence
        self._compact()

    def _compact(self) -> None:
        """Drop journal entries that fell out of the reorg window."""
        if not self._journal or self._high_water is None:
            return
        cutoff = self._high_water.block - self._reorg_window
        if self._journal[0][0].block >= cutoff:
            return
        kept = []
        for entry in self._journal:
            if entry[0].block < cutoff:
                if self._history_floor is None or entry[0] > self._history_floor:
                    self._history_floor = entry[0]
            else:
                kept.append(entry)
        self._journal = kept

    # ── Reads (lock-free, consistent per event) ────────────

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def get(self, record_id: str) -> CommentRecord | None:
        return self._records.get(record_id)

    def children(self, topic_key: str) -> list[CommentRecord]:
        """Valid records whose topic key equals ``topic_key``, by sequence."""
        return [self._records[rid] for _, rid in self._children.get(topic_key, [])]

    def by_author(self, author: str) -> list[CommentRecord]:
        return [self._records[rid] for _, rid in self._by_author.get(author, [])]

    def parent_of(self, record_id: str) -> str | None:
        return self._parent.get(record_id)

    def orphans(self) -> dict[str, list[str]]:
        """Unmatched topic -> ids waiting for a record with that id."""
        return {
            topic: sorted(ids, key=lambda rid: self._records[rid].sequence)
            for topic, ids in self._orphans.items()
        }

    def pending_deletions(self) -> dict[str, Sequence]:
        """Deletion markers whose record has not arrived."""
        return {
            rid: seq for rid, seq in self._deletions.items() if rid not in self._records
        }

    def records(self) -> list[CommentRecord]:
        """Every record, valid or not, by sequence."""
        return sorted(self._records.values(), key=lambda r: (r.sequence, r.id))


def _discard_sorted(
    index: dict[str, list[tuple[Sequence, str]]],
    key: str,
    item: tuple[Sequence, str],
) -> None:
    entries = index.get(key)
    if not entries:
        return
    pos = bisect.bisect_left(entries, item)
    if pos < len(entries) and entries[pos] == item:
        del entries[pos]
    if not entries:
        del index[key]
