"""Read-side models returned by the query engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from tic_indexer.models.records import CommentRecord


def _to_dict(obj: Any) -> dict:
    """Recursively convert a dataclass to a plain dict."""
    return asdict(obj)


@dataclass(frozen=True)
class TopicClassification:
    """Advisory, recomputed-on-demand reading of a topic's shape."""

    kind: str  # "address", "hash", "unknown", "nft", "multi"
    parts: tuple[str, ...]
    contract: str | None = None
    token_id: str | None = None

    def to_dict(self) -> dict:
        data: dict = {"kind": self.kind, "parts": list(self.parts)}
        if self.kind == "nft":
            data["contract"] = self.contract
            data["tokenId"] = self.token_id
        return data


@dataclass
class ThreadNode:
    """A comment plus its replies, ordered by sequence."""

    record: CommentRecord
    replies: list[ThreadNode] = field(default_factory=list)

    def flatten(self) -> list[CommentRecord]:
        """Depth-first pre-order listing of the thread."""
        out: list[CommentRecord] = []
        stack = [self]
        while stack:
            node = stack.pop()
            out.append(node.record)
            stack.extend(reversed(node.replies))
        return out

    def to_dict(self) -> dict:
        root: dict = {**self.record.to_dict(), "replies": []}
        stack = [(self, root)]
        while stack:
            node, data = stack.pop()
            for child in node.replies:
                child_data = {**child.record.to_dict(), "replies": []}
                data["replies"].append(child_data)
                stack.append((child, child_data))
        return root


@dataclass
class IndexSummary:
    total_records: int = 0
    valid_records: int = 0
    invalid_records: int = 0
    deleted_records: int = 0
    replies: int = 0
    orphans: int = 0
    pending_deletions: int = 0
    high_water: dict | None = None  # {"block", "index"}

    def to_dict(self) -> dict:
        return _to_dict(self)
