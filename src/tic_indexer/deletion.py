"""Deletion processor - turns zero-address transfers into deletion markers."""

from __future__ import annotations

import logging

from tic_indexer.models.events import TransferEvent
from tic_indexer.models.records import IngestResult
from tic_indexer.storage.comment_store import CommentStore

log = logging.getLogger(__name__)


class DeletionProcessor:
    """Applies burn transfers to the comment store.

    A deleted comment keeps its place in the tree; its replies stay
    reachable and the comment itself renders as a tombstone.
    """

    def __init__(self, store: CommentStore) -> None:
        self._store = store

    async def process(self, event: TransferEvent) -> IngestResult:
        record_id = event.ethscription_id.lower()

        if not event.is_burn:
            self._store.advance(event.sequence)
            return IngestResult(status="ignored", ethscription_id=record_id)

        applied = await self._store.mark_deleted(record_id, event.sequence)
        if not applied:
            log.debug("Repeated deletion of %s ignored", record_id)
            self._store.advance(event.sequence)
            return IngestResult(status="duplicate", ethscription_id=record_id)

        record = self._store.get(record_id)
        if record is None:
            log.info("Deletion of %s buffered until the comment is indexed", record_id)
            return IngestResult(status="buffered", ethscription_id=record_id)

        log.info("Comment %s deleted at %s", record_id, event.sequence)
        return IngestResult(status="deleted", ethscription_id=record_id, record=record)
