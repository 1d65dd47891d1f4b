"""Error taxonomy for the indexer.

Parse, validation and normalization failures are local to a single event:
the pipeline turns them into ``valid=False`` audit records and moves on.
Persistence failures are retryable and propagate to whoever drives the
pipeline. Reorg and traversal failures are raised to the caller of the
operation that hit them.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable classification of indexer failures."""

    NOT_TIC = "not_tic"  # not a TIC payload at all, silently ignored
    MISSING_MANDATORY_RULE = "missing_mandatory_rule"
    MALFORMED_PAYLOAD = "malformed_payload"
    SCHEMA_VIOLATION = "schema_violation"
    UNKNOWN_VERSION = "unknown_version"  # recorded, never rejected
    ORPHAN_PENDING = "orphan_pending"  # deferred, not an error
    RESOURCE_LIMIT = "resource_limit"
    REORG_INCONSISTENCY = "reorg_inconsistency"
    CYCLE_DETECTED = "cycle_detected"
    PERSISTENCE = "persistence"


class TicIndexerError(Exception):
    """Base class for all indexer errors."""

    kind: ErrorKind = ErrorKind.MALFORMED_PAYLOAD
    retryable: bool = False

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    def describe(self) -> list[str]:
        """Audit strings stored on rejected records."""
        return [f"{self.kind.value}: {self}"]


class PayloadError(TicIndexerError):
    """Raised by the payload parser (media type, JSON shape, size)."""


class SchemaViolationError(TicIndexerError):
    """One or more schema rules failed. Carries every violation found."""

    kind = ErrorKind.SCHEMA_VIOLATION

    def __init__(self, violations: list[tuple[str, str]]) -> None:
        self.violations = violations
        summary = "; ".join(f"{field}: {reason}" for field, reason in violations)
        super().__init__(summary or "schema violation")

    @property
    def fields(self) -> list[str]:
        return [field for field, _ in self.violations]

    def describe(self) -> list[str]:
        return [
            f"{self.kind.value}: {field}: {reason}"
            for field, reason in self.violations
        ]


class ReorgInconsistencyError(TicIndexerError):
    """Rollback target lies before the store's retained history."""

    kind = ErrorKind.REORG_INCONSISTENCY


class CycleDetectedError(TicIndexerError):
    """Thread traversal revisited a node or exceeded the depth bound."""

    kind = ErrorKind.CYCLE_DETECTED

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class PersistenceError(TicIndexerError):
    """The storage collaborator failed. Safe to retry the same event."""

    kind = ErrorKind.PERSISTENCE
    retryable = True
