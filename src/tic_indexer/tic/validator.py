"""Schema validator - enforces presence, type and enum rules on TIC objects."""

from __future__ import annotations

import re

from tic_indexer.errors import ErrorKind, SchemaViolationError, TicIndexerError
from tic_indexer.models.records import DEFAULT_ENCODING, DEFAULT_TYPE, TicCandidate

ENCODINGS = frozenset({"utf8", "base64", "hex", "json", "markdown", "ascii"})
TYPES = frozenset({"comment", "reaction"})

VERSION_RE = re.compile(r"0x[0-9a-fA-F]*")
TOPIC_PART_RE = re.compile(r"0x[0-9a-fA-F]+")


def is_known_version(version: str) -> bool:
    """Version 0 (in any spelling: ``0x``, ``0x0``, ``0x00``) is the only known one."""
    body = version[2:]
    return int(body, 16) == 0 if body else True


def _check_topic(topic: object, violations: list[tuple[str, str]]) -> None:
    if not isinstance(topic, str):
        violations.append(("topic", f"must be a string, got {type(topic).__name__}"))
        return
    if not topic:
        violations.append(("topic", "must not be empty"))
        return
    for position, part in enumerate(topic.split(":")):
        if not TOPIC_PART_RE.fullmatch(part):
            violations.append(("topic", f"part {position} {part!r} is not a 0x hex string"))


def validate(obj: dict, max_topic_parts: int | None = None) -> TicCandidate:
    """Validate a parsed payload. All-or-nothing.

    Every rule is checked independently so a rejection carries the full
    list of violations. Raises SchemaViolationError, or TicIndexerError
    with RESOURCE_LIMIT when the topic has too many parts.
    """
    violations: list[tuple[str, str]] = []

    if "topic" not in obj:
        violations.append(("topic", "missing"))
    else:
        _check_topic(obj["topic"], violations)

    if "content" not in obj:
        violations.append(("content", "missing"))
    elif not isinstance(obj["content"], str):
        violations.append(("content", f"must be a string, got {type(obj['content']).__name__}"))

    version = obj.get("version")
    if "version" not in obj:
        violations.append(("version", "missing"))
    elif not isinstance(version, str) or not VERSION_RE.fullmatch(version):
        violations.append(("version", f"{version!r} is not a 0x hex string"))

    encoding = obj.get("encoding", DEFAULT_ENCODING)
    if not isinstance(encoding, str) or encoding not in ENCODINGS:
        violations.append(("encoding", f"{encoding!r} not in {sorted(ENCODINGS)}"))

    kind = obj.get("type", DEFAULT_TYPE)
    if not isinstance(kind, str) or kind not in TYPES:
        violations.append(("type", f"{kind!r} not in {sorted(TYPES)}"))

    if violations:
        raise SchemaViolationError(violations)

    topic = obj["topic"]
    if max_topic_parts is not None and topic.count(":") + 1 > max_topic_parts:
        raise TicIndexerError(
            f"topic has {topic.count(':') + 1} parts (limit {max_topic_parts})",
            ErrorKind.RESOURCE_LIMIT,
        )

    return TicCandidate(
        topic=topic,
        content=obj["content"],
        version=version,
        encoding=encoding,
        type=kind,
        unknown_version=not is_known_version(version),
    )
