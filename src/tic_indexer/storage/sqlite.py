"""SQLite implementation of the CommentRepository protocol."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from tic_indexer.errors import PersistenceError
from tic_indexer.models.events import Sequence
from tic_indexer.models.records import ActivityRecord, CommentRecord

log = logging.getLogger(__name__)

SCHEMA = """
-- High-water mark for resumption
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    block_number INTEGER NOT NULL,
    transaction_index INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Every TIC candidate, valid or not
CREATE TABLE IF NOT EXISTS comments (
    id TEXT PRIMARY KEY,
    topic TEXT NOT NULL,
    content TEXT NOT NULL,
    encoding TEXT NOT NULL,
    version TEXT NOT NULL,
    type TEXT NOT NULL,
    author TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    transaction_index INTEGER NOT NULL,
    valid INTEGER NOT NULL,
    unknown_version INTEGER NOT NULL DEFAULT 0,
    errors TEXT NOT NULL DEFAULT '[]',
    indexed_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_comments_topic ON comments(topic, block_number, transaction_index);
CREATE INDEX IF NOT EXISTS idx_comments_author ON comments(author, block_number, transaction_index);
CREATE INDEX IF NOT EXISTS idx_comments_sequence ON comments(block_number, transaction_index);

-- Deletion markers, possibly for comments not yet indexed
CREATE TABLE IF NOT EXISTS deletions (
    ethscription_id TEXT PRIMARY KEY,
    block_number INTEGER NOT NULL,
    transaction_index INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_deletions_sequence ON deletions(block_number, transaction_index);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    ethscription_id TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""

_SELECT_COMMENTS = (
    "SELECT c.*, d.ethscription_id IS NOT NULL AS deleted"
    " FROM comments c LEFT JOIN deletions d ON d.ethscription_id = c.id"
)
_ORDER = " ORDER BY c.block_number, c.transaction_index, c.id"
_AFTER = "block_number > ? OR (block_number = ? AND transaction_index > ?)"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_record(row: aiosqlite.Row) -> CommentRecord:
    topic = row["topic"]
    return CommentRecord(
        id=row["id"],
        topic=tuple(topic.split(":")) if topic else (),
        content=row["content"],
        encoding=row["encoding"],
        version=row["version"],
        type=row["type"],
        author=row["author"],
        sequence=Sequence(row["block_number"], row["transaction_index"]),
        deleted=bool(row["deleted"]),
        valid=bool(row["valid"]),
        unknown_version=bool(row["unknown_version"]),
        errors=tuple(json.loads(row["errors"])),
    )


class SQLiteCommentRepository:
    """SQLite-backed implementation of the CommentRepository protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(self._db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(SCHEMA)
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"cannot open {self._db_path}: {exc}") from exc

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Repository not initialized. Call initialize() first."
        return self._db

    async def _write(self, sql: str, params: tuple = ()) -> None:
        try:
            await self.db.execute(sql, params)
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(str(exc)) from exc

    async def _read(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        try:
            async with self.db.execute(sql, params) as cur:
                return list(await cur.fetchall())
        except aiosqlite.Error as exc:
            raise PersistenceError(str(exc)) from exc

    # ── Records ────────────────────────────────────────────

    async def put(self, record: CommentRecord) -> None:
        await self._write(
            "INSERT OR IGNORE INTO comments"
            " (id, topic, content, encoding, version, type, author,"
            "  block_number, transaction_index, valid, unknown_version, errors, indexed_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id, record.topic_key, record.content, record.encoding,
                record.version, record.type, record.author,
                record.sequence.block, record.sequence.index,
                int(record.valid), int(record.unknown_version),
                json.dumps(list(record.errors)), _now(),
            ),
        )

    async def get(self, record_id: str) -> CommentRecord | None:
        rows = await self._read(_SELECT_COMMENTS + " WHERE c.id=?", (record_id,))
        return _row_to_record(rows[0]) if rows else None

    async def mark_deleted(self, record_id: str, sequence: Sequence) -> None:
        await self._write(
            "INSERT OR IGNORE INTO deletions (ethscription_id, block_number, transaction_index)"
            " VALUES (?, ?, ?)",
            (record_id, sequence.block, sequence.index),
        )

    async def iter_by_topic(self, topic_key: str) -> list[CommentRecord]:
        rows = await self._read(
            _SELECT_COMMENTS + " WHERE c.topic=? AND c.valid=1" + _ORDER, (topic_key,),
        )
        return [_row_to_record(row) for row in rows]

    async def iter_by_author(self, author: str) -> list[CommentRecord]:
        rows = await self._read(
            _SELECT_COMMENTS + " WHERE c.author=? AND c.valid=1" + _ORDER, (author,),
        )
        return [_row_to_record(row) for row in rows]

    async def load_records(self) -> list[CommentRecord]:
        rows = await self._read(_SELECT_COMMENTS + _ORDER)
        return [_row_to_record(row) for row in rows]

    async def load_deletions(self) -> dict[str, Sequence]:
        rows = await self._read(
            "SELECT * FROM deletions ORDER BY block_number, transaction_index"
        )
        return {
            row["ethscription_id"]: Sequence(row["block_number"], row["transaction_index"])
            for row in rows
        }

    async def forget_deletions(self, record_ids: list[str]) -> None:
        try:
            await self.db.executemany(
                "DELETE FROM deletions WHERE ethscription_id=?",
                [(rid,) for rid in record_ids],
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            await self.db.rollback()
            raise PersistenceError(str(exc)) from exc

    # ── Reorg ──────────────────────────────────────────────

    async def rollback(self, to_sequence: Sequence) -> None:
        params = (to_sequence.block, to_sequence.block, to_sequence.index)
        try:
            await self.db.execute(f"DELETE FROM comments WHERE {_AFTER}", params)
            await self.db.execute(f"DELETE FROM deletions WHERE {_AFTER}", params)
            await self.db.execute(
                "UPDATE cursor SET block_number=?, transaction_index=?, updated_at=?"
                f" WHERE id=1 AND ({_AFTER})",
                (to_sequence.block, to_sequence.index, _now(), *params),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            await self.db.rollback()
            raise PersistenceError(str(exc)) from exc
        log.debug("Repository rolled back to %s", to_sequence)

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> Sequence | None:
        rows = await self._read("SELECT block_number, transaction_index FROM cursor WHERE id=1")
        if not rows:
            return None
        return Sequence(rows[0]["block_number"], rows[0]["transaction_index"])

    async def set_cursor(self, sequence: Sequence | None) -> None:
        if sequence is None:
            await self._write("DELETE FROM cursor WHERE id=1")
            return
        await self._write(
            "INSERT INTO cursor (id, block_number, transaction_index, updated_at)"
            " VALUES (1, ?, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET block_number=excluded.block_number,"
            " transaction_index=excluded.transaction_index,"
            " updated_at=excluded.updated_at",
            (sequence.block, sequence.index, _now()),
        )

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self, event_type: str, message: str, ethscription_id: str | None = None,
    ) -> None:
        await self._write(
            "INSERT INTO activity_log (event_type, ethscription_id, message, created_at)"
            " VALUES (?, ?, ?, ?)",
            (event_type, ethscription_id, message, _now()),
        )

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        rows = await self._read(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [
            ActivityRecord(
                id=row["id"],
                event_type=row["event_type"],
                ethscription_id=row["ethscription_id"],
                message=row["message"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
