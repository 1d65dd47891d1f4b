"""Topic normalization and the advisory shape classifier."""

from __future__ import annotations

from tic_indexer.models.snapshots import TopicClassification

ADDRESS_HEX_DIGITS = 40  # 20 bytes
HASH_HEX_DIGITS = 64  # 32 bytes


def normalize_topic(topic: str) -> tuple[str, ...]:
    """Split a validated topic on ``:`` and lower-case each part.

    No padding or re-validation: hex-ness is guaranteed by the validator.
    """
    return tuple(part.lower() for part in topic.split(":"))


def _hex_digits(part: str) -> int:
    return len(part) - 2 if part.startswith("0x") else len(part)


def classify_topic(parts: tuple[str, ...] | list[str] | str) -> TopicClassification:
    """Guess what a topic points at from its shape alone.

    Never persisted: the protocol treats topics as opaque, so the answer
    is recomputed whenever someone asks.
    """
    if isinstance(parts, str):
        parts = normalize_topic(parts)
    parts = tuple(parts)

    if len(parts) == 1:
        digits = _hex_digits(parts[0])
        if digits == ADDRESS_HEX_DIGITS:
            return TopicClassification(kind="address", parts=parts)
        if digits == HASH_HEX_DIGITS:
            return TopicClassification(kind="hash", parts=parts)
        return TopicClassification(kind="unknown", parts=parts)

    if len(parts) == 2 and _hex_digits(parts[0]) == ADDRESS_HEX_DIGITS:
        return TopicClassification(
            kind="nft", parts=parts, contract=parts[0], token_id=parts[1],
        )

    return TopicClassification(kind="multi", parts=parts)
