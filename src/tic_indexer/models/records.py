"""Record types for the comment store and pipeline results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from tic_indexer.models.events import Sequence

DEFAULT_ENCODING = "utf8"
DEFAULT_TYPE = "comment"


@dataclass(frozen=True)
class TicCandidate:
    """A payload that passed schema validation, before normalization."""

    topic: str
    content: str
    version: str
    encoding: str = DEFAULT_ENCODING
    type: str = DEFAULT_TYPE
    unknown_version: bool = False


@dataclass(frozen=True)
class CommentRecord:
    """A TIC comment as owned by the comment store.

    Invalid records keep ``valid=False`` and the reasons in ``errors``;
    they hold their id (so replays stay idempotent) but never appear in
    topic, author or thread views.
    """

    id: str
    topic: tuple[str, ...]
    content: str
    encoding: str
    version: str
    type: str
    author: str
    sequence: Sequence
    deleted: bool = False
    valid: bool = True
    unknown_version: bool = False
    errors: tuple[str, ...] = ()

    @property
    def topic_key(self) -> str:
        """The colon-joined topic used as the children-index key."""
        return ":".join(self.topic)

    def with_deleted(self, deleted: bool) -> CommentRecord:
        return replace(self, deleted=deleted)

    def to_dict(self, include_audit: bool = False) -> dict:
        """Canonical JSON shape used for interop."""
        data = {
            "id": self.id,
            "topic": list(self.topic),
            "content": self.content,
            "encoding": self.encoding,
            "version": self.version,
            "type": self.type,
            "author": self.author,
            "sequence": self.sequence.to_dict(),
            "deleted": self.deleted,
            "valid": self.valid,
        }
        if include_audit:
            data["unknownVersion"] = self.unknown_version
            data["errors"] = list(self.errors)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> CommentRecord:
        return cls(
            id=data["id"],
            topic=tuple(data.get("topic") or ()),
            content=data.get("content", ""),
            encoding=data.get("encoding", DEFAULT_ENCODING),
            version=data.get("version", ""),
            type=data.get("type", DEFAULT_TYPE),
            author=data.get("author", ""),
            sequence=Sequence.from_dict(data["sequence"]),
            deleted=bool(data.get("deleted", False)),
            valid=bool(data.get("valid", True)),
            unknown_version=bool(data.get("unknownVersion", False)),
            errors=tuple(data.get("errors") or ()),
        )


@dataclass
class IngestResult:
    """Outcome of feeding one event through the pipeline."""

    status: str  # "accepted", "rejected", "duplicate", "ignored", "deleted", "buffered"
    ethscription_id: str
    record: CommentRecord | None = None
    error_kind: str | None = None
    errors: list[str] = field(default_factory=list)
    orphan: bool = False


@dataclass
class IngestStats:
    """Running counters kept by the pipeline."""

    accepted: int = 0
    rejected: int = 0
    duplicates: int = 0
    ignored: int = 0
    deletions: int = 0
    buffered_deletions: int = 0
    reorgs: int = 0
    rebuilds: int = 0


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    ethscription_id: str | None
    message: str
    created_at: str
