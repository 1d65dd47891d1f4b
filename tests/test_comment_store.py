"""Tests 31-42: Comment store indexes, orphans and deletion markers."""

from __future__ import annotations

import itertools

from tic_indexer.models.events import Sequence
from tic_indexer.storage.comment_store import CommentStore

from tests.factories import ALICE, BOB, make_record


# ── Test 31: Insert is idempotent ─────────────────────────────────


async def test_insert_idempotent(memory_store):
    first = make_record("0xaaa", content="first")
    second = make_record("0xaaa", content="second", block_number=200)

    assert await memory_store.insert(first) is True
    assert await memory_store.insert(second) is False

    assert len(memory_store) == 1
    assert memory_store.get("0xaaa").content == "first"
    assert memory_store.high_water == Sequence(100, 0)


# ── Test 32: Reply links to its parent ────────────────────────────


async def test_reply_linked_to_parent(memory_store):
    await memory_store.insert(make_record("0xaaa", topic="0x1234"))
    await memory_store.insert(make_record("0xbbb", topic="0xaaa", block_number=101))

    assert memory_store.parent_of("0xbbb") == "0xaaa"
    assert [r.id for r in memory_store.children("0xaaa")] == ["0xbbb"]
    assert "0xaaa" not in memory_store.orphans()


# ── Test 33: Orphan is re-parented when the parent arrives ────────


async def test_orphan_reparented(memory_store):
    await memory_store.insert(make_record("0xbbb", topic="0xaaa", block_number=101))
    assert memory_store.orphans()["0xaaa"] == ["0xbbb"]
    assert memory_store.parent_of("0xbbb") is None

    await memory_store.insert(make_record("0xaaa", topic="0x1234", block_number=100))

    assert memory_store.parent_of("0xbbb") == "0xaaa"
    assert "0xaaa" not in memory_store.orphans()
    # The parent itself points at an id nobody has inscribed
    assert memory_store.orphans()["0x1234"] == ["0xaaa"]


# ── Test 34: Insertion order does not matter ──────────────────────


def _shape(store: CommentStore) -> tuple:
    ids = [r.id for r in store.records()]
    return (
        ids,
        {rid: store.parent_of(rid) for rid in ids},
        {key: [r.id for r in store.children(key)] for key in ("0x1234", "0xaaa", "0xbbb")},
        [r.id for r in store.by_author(ALICE)],
        store.orphans(),
    )


async def test_insert_order_independent():
    records = [
        make_record("0xaaa", topic="0x1234", block_number=100),
        make_record("0xbbb", topic="0xaaa", block_number=101, author=BOB),
        make_record("0xccc", topic="0xaaa", block_number=102),
        make_record("0xddd", topic="0xbbb", block_number=103),
    ]
    shapes = []
    for perm in itertools.permutations(records):
        store = CommentStore()
        for record in perm:
            await store.insert(record)
        shapes.append(_shape(store))

    assert all(shape == shapes[0] for shape in shapes)
    assert shapes[0][2]["0xaaa"] == ["0xbbb", "0xccc"]


# ── Test 35: Indexes are ordered by sequence ──────────────────────


async def test_indexes_sorted_by_sequence(memory_store):
    await memory_store.insert(make_record("0x3", topic="0xaaa", block_number=300))
    await memory_store.insert(make_record("0x1", topic="0xaaa", block_number=100))
    await memory_store.insert(make_record("0x2", topic="0xaaa", block_number=100,
                                          transaction_index=5))

    assert [r.id for r in memory_store.children("0xaaa")] == ["0x1", "0x2", "0x3"]
    assert [r.id for r in memory_store.by_author(ALICE)] == ["0x1", "0x2", "0x3"]


# ── Test 36: Invalid records are held but not indexed ─────────────


async def test_invalid_record_not_indexed(memory_store):
    await memory_store.insert(make_record("0xbad", valid=False))

    assert "0xbad" in memory_store
    assert memory_store.get("0xbad").valid is False
    assert memory_store.by_author(ALICE) == []
    assert memory_store.orphans() == {}


async def test_reply_to_invalid_record_stays_orphan(memory_store):
    await memory_store.insert(make_record("0xbad", valid=False))
    await memory_store.insert(make_record("0xbbb", topic="0xbad", block_number=101))

    assert memory_store.parent_of("0xbbb") is None
    assert memory_store.orphans()["0xbad"] == ["0xbbb"]


# ── Test 37: Multi-part topics never have a parent ────────────────


async def test_multi_part_topic_not_a_reply(memory_store):
    await memory_store.insert(make_record("0xaaa"))
    await memory_store.insert(make_record("0xbbb", topic="0xaaa:0x1", block_number=101))

    assert memory_store.parent_of("0xbbb") is None
    assert [r.id for r in memory_store.children("0xaaa:0x1")] == ["0xbbb"]
    assert "0xaaa" not in memory_store.orphans()


# ── Test 38: Self reply stays orphaned ────────────────────────────


async def test_self_reply_not_linked(memory_store):
    await memory_store.insert(make_record("0xccc", topic="0xccc"))

    assert memory_store.parent_of("0xccc") is None
    assert memory_store.orphans()["0xccc"] == ["0xccc"]


# ── Test 39: Deletion of a known record ───────────────────────────


async def test_mark_deleted(memory_store):
    await memory_store.insert(make_record("0xaaa"))

    assert await memory_store.mark_deleted("0xaaa", Sequence(105, 1)) is True
    assert memory_store.get("0xaaa").deleted is True
    assert memory_store.high_water == Sequence(105, 1)
    assert memory_store.pending_deletions() == {}


async def test_second_deletion_marker_ignored(memory_store):
    await memory_store.insert(make_record("0xaaa"))
    await memory_store.mark_deleted("0xaaa", Sequence(105, 1))

    assert await memory_store.mark_deleted("0xaaa", Sequence(106, 0)) is False


# ── Test 40: Deletion before the record arrives ───────────────────


async def test_deletion_buffered_until_record(memory_store):
    await memory_store.mark_deleted("0xaaa", Sequence(99, 0))
    assert memory_store.pending_deletions() == {"0xaaa": Sequence(99, 0)}
    assert "0xaaa" not in memory_store

    await memory_store.insert(make_record("0xaaa"))

    assert memory_store.get("0xaaa").deleted is True
    assert memory_store.pending_deletions() == {}


# ── Test 41: High-water mark ──────────────────────────────────────


async def test_advance_only_moves_forward(memory_store):
    memory_store.advance(Sequence(50, 3))
    memory_store.advance(Sequence(40, 0))
    assert memory_store.high_water == Sequence(50, 3)

    await memory_store.insert(make_record("0xaaa", block_number=45))
    assert memory_store.high_water == Sequence(50, 3)


# ── Test 42: Reset ────────────────────────────────────────────────


async def test_reset_clears_everything(memory_store):
    await memory_store.insert(make_record("0xaaa"))
    await memory_store.mark_deleted("0xfff", Sequence(101, 0))

    await memory_store.reset()

    assert len(memory_store) == 0
    assert memory_store.high_water is None
    assert memory_store.pending_deletions() == {}
