"""Ingestion pipeline - parse, validate, normalize and store feed items."""

from __future__ import annotations

import logging

from tic_indexer.deletion import DeletionProcessor
from tic_indexer.errors import ErrorKind, ReorgInconsistencyError, TicIndexerError
from tic_indexer.interfaces.feed import FeedItem
from tic_indexer.models.config import LimitsConfig
from tic_indexer.models.events import InscriptionEvent, ReorgNotice, Sequence, TransferEvent
from tic_indexer.models.records import CommentRecord, IngestResult, IngestStats
from tic_indexer.storage.comment_store import CommentStore
from tic_indexer.tic.parser import parse_payload
from tic_indexer.tic.topics import normalize_topic
from tic_indexer.tic.validator import validate

log = logging.getLogger(__name__)

# How much of a rejected payload is kept on its audit record
AUDIT_PAYLOAD_CHARS = 1024


def _sort_key(item: InscriptionEvent | TransferEvent) -> tuple[int, int, int]:
    # Within one transaction the creation comes before any transfer
    kind = 0 if isinstance(item, InscriptionEvent) else 1
    return (item.block_number, item.transaction_index, kind)


def _rejected_record(event: InscriptionEvent, exc: TicIndexerError) -> CommentRecord:
    return CommentRecord(
        id=event.ethscription_id.lower(),
        topic=(),
        content=(event.raw_payload or "")[:AUDIT_PAYLOAD_CHARS],
        encoding="",
        version="",
        type="",
        author=event.creator.lower(),
        sequence=event.sequence,
        valid=False,
        errors=tuple(exc.describe()),
    )


class IndexerPipeline:
    """Single writer that applies feed items to a CommentStore.

    Bad payloads never stop the stream: they become ``valid=False`` audit
    records. Persistence errors propagate untouched so the caller can
    retry from the store's high-water mark.
    """

    def __init__(self, store: CommentStore, limits: LimitsConfig | None = None) -> None:
        self.store = store
        self.deletions = DeletionProcessor(store)
        self.stats = IngestStats()
        self._limits = limits or LimitsConfig()
        # Set when a reorg wiped the store; the feed must restart from genesis
        self.replay_required = False

    async def ingest(self, items: list[FeedItem]) -> list[IngestResult]:
        """Apply a batch. Events between reorg notices are re-sorted by sequence."""
        results: list[IngestResult] = []
        segment: list[InscriptionEvent | TransferEvent] = []

        for item in items:
            if isinstance(item, ReorgNotice):
                results.extend(await self._apply_segment(segment))
                segment = []
                if await self.reorg_to(item.sequence) is None:
                    # Anything after this point would be applied to an empty store
                    return results
            else:
                segment.append(item)

        results.extend(await self._apply_segment(segment))
        await self.store.prune_pending_deletions()
        return results

    async def _apply_segment(
        self, segment: list[InscriptionEvent | TransferEvent],
    ) -> list[IngestResult]:
        results = []
        for event in sorted(segment, key=_sort_key):
            results.append(await self.handle(event))
        return results

    async def handle(self, event: InscriptionEvent | TransferEvent) -> IngestResult:
        high_water = self.store.high_water
        if high_water is not None and event.sequence < high_water:
            log.warning(
                "Event %s at %s arrived behind high water %s",
                event.ethscription_id, event.sequence, high_water,
            )
        if isinstance(event, InscriptionEvent):
            return await self.handle_inscription(event)
        return await self.handle_transfer(event)

    async def handle_inscription(self, event: InscriptionEvent) -> IngestResult:
        record_id = event.ethscription_id.lower()

        if record_id in self.store:
            self.stats.duplicates += 1
            self.store.advance(event.sequence)
            log.debug("Duplicate inscription %s ignored", record_id)
            return IngestResult(status="duplicate", ethscription_id=record_id)

        try:
            obj = parse_payload(
                event.mime_type, event.raw_payload, self._limits.max_payload_bytes,
            )
            candidate = validate(obj, self._limits.max_topic_parts)
        except TicIndexerError as exc:
            if exc.kind == ErrorKind.NOT_TIC:
                log.debug("Inscription %s ignored: %s", record_id, exc)
                self.stats.ignored += 1
                self.store.advance(event.sequence)
                return IngestResult(
                    status="ignored", ethscription_id=record_id, error_kind=exc.kind.value,
                )
            return await self._reject(event, exc)

        record = CommentRecord(
            id=record_id,
            topic=normalize_topic(candidate.topic),
            content=candidate.content,
            encoding=candidate.encoding,
            version=candidate.version,
            type=candidate.type,
            author=event.creator.lower(),
            sequence=event.sequence,
            unknown_version=candidate.unknown_version,
        )
        await self.store.insert(record)
        stored = self.store.get(record_id) or record
        self.stats.accepted += 1

        orphan = len(record.topic) == 1 and self.store.parent_of(record_id) is None
        log.info(
            "Indexed %s %s on %s by %s at %s%s",
            record.type, record_id, record.topic_key, record.author, record.sequence,
            " (unknown version)" if record.unknown_version else "",
        )
        await self._log_activity(
            "comment_indexed", f"{record.type} on {record.topic_key}", record_id,
        )
        return IngestResult(
            status="accepted",
            ethscription_id=record_id,
            record=stored,
            error_kind=ErrorKind.UNKNOWN_VERSION.value if record.unknown_version else None,
            orphan=orphan,
        )

    async def _reject(self, event: InscriptionEvent, exc: TicIndexerError) -> IngestResult:
        record = _rejected_record(event, exc)
        await self.store.insert(record)
        self.stats.rejected += 1
        log.warning("Rejected %s at %s: %s", record.id, event.sequence, exc)
        await self._log_activity("comment_rejected", str(exc), record.id)
        return IngestResult(
            status="rejected",
            ethscription_id=record.id,
            record=record,
            error_kind=exc.kind.value,
            errors=list(record.errors),
        )

    async def handle_transfer(self, event: TransferEvent) -> IngestResult:
        result = await self.deletions.process(event)
        if result.status == "deleted":
            self.stats.deletions += 1
            await self._log_activity("comment_deleted", "burned", result.ethscription_id)
        elif result.status == "buffered":
            self.stats.buffered_deletions += 1
        return result

    async def reorg_to(self, sequence: Sequence) -> Sequence | None:
        """Roll the store back to ``sequence``.

        Falls back to a full rebuild from the repository when the in-memory
        history is too short, or to an empty store when there is no
        repository. Returns the position the feed should resume from
        (None means from genesis).
        """
        self.stats.reorgs += 1
        try:
            undone = await self.store.rollback(sequence)
        except ReorgInconsistencyError as exc:
            self.stats.rebuilds += 1
            repository = self.store.repository
            if repository is None:
                log.warning("%s; no repository, resetting to genesis", exc)
                await self.store.reset()
                self.replay_required = True
                return None
            log.warning("%s; rebuilding from repository", exc)
            await repository.rollback(sequence)
            await self.store.rebuild()
            await self._log_activity("rebuild", f"full rebuild at reorg to {sequence}")
            return sequence

        await self._log_activity("reorg", f"rolled back {undone} operations to {sequence}")
        return sequence

    async def _log_activity(
        self, event_type: str, message: str, ethscription_id: str | None = None,
    ) -> None:
        repository = self.store.repository
        if repository is not None:
            await repository.log_activity(event_type, message, ethscription_id)
