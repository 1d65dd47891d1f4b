"""Decoding of feed items shared by the HTTP and JSONL feeds."""

from __future__ import annotations

import logging

from tic_indexer.errors import PayloadError
from tic_indexer.interfaces.feed import FeedItem
from tic_indexer.models.events import InscriptionEvent, ReorgNotice, Sequence, TransferEvent
from tic_indexer.tic.parser import data_uri_media_type, split_data_uri

log = logging.getLogger(__name__)


def _inscription_body(raw: dict) -> tuple[str, str]:
    """Return ``(mime_type, payload)`` from either content or content_uri."""
    if "content_uri" in raw:
        return split_data_uri(str(raw["content_uri"]))
    return str(raw.get("mimetype") or raw.get("mime_type") or ""), str(raw.get("content", ""))


def parse_feed_item(raw: dict) -> FeedItem | None:
    """Parse one JSON feed item into an event model.

    Returns None if the item type is unrecognized or malformed.
    """
    kind = raw.get("type")
    try:
        if kind == "inscription":
            try:
                mime_type, payload = _inscription_body(raw)
            except PayloadError as exc:
                # Undecodable data URIs still occupy an id; keep them for audit
                log.debug("Undecodable content_uri for %s: %s", raw.get("ethscription_id"), exc)
                payload = str(raw.get("content_uri", ""))
                mime_type = data_uri_media_type(payload)
            return InscriptionEvent(
                ethscription_id=str(raw["ethscription_id"]),
                creator=str(raw["creator"]),
                block_number=int(raw["block_number"]),
                transaction_index=int(raw["transaction_index"]),
                mime_type=mime_type,
                raw_payload=payload,
            )

        elif kind == "transfer":
            return TransferEvent(
                ethscription_id=str(raw["ethscription_id"]),
                from_address=str(raw["from_address"]),
                to_address=str(raw["to_address"]),
                block_number=int(raw["block_number"]),
                transaction_index=int(raw["transaction_index"]),
            )

        elif kind == "reorg":
            return ReorgNotice(
                sequence=Sequence(int(raw["block_number"]), int(raw.get("transaction_index", 0))),
            )

        else:
            log.debug("Ignoring feed item type: %s", kind)
            return None

    except (KeyError, TypeError, ValueError) as exc:
        log.warning("Failed to parse %s feed item: %s", kind, exc)
        return None
