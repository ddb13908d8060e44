"""Tests for the in-memory conversation store."""

import asyncio
import threading

import pytest

from insight_assistant.core.conversation_store import ConversationMessage, ConversationStore


def _msg(content: str, role: str = "user") -> ConversationMessage:
    return ConversationMessage(role=role, content=content)


def test_sequential_appends_keep_call_order():
    store = ConversationStore()

    store.append("A", _msg("first"))
    store.append("A", _msg("second", role="assistant"))

    assert [m.content for m in store.snapshot("A")] == ["first", "second"]
    assert store.snapshot("B") == []


def test_append_returns_count_and_creates_conversation():
    store = ConversationStore()

    assert store.append("new", _msg("hi")) == 1
    assert store.append("new", _msg("again")) == 2
    assert store.conversation_ids() == ["new"]
    assert len(store) == 1


def test_snapshot_is_a_copy():
    store = ConversationStore()
    store.append("A", _msg("one"))

    snapshot = store.snapshot("A")
    store.append("A", _msg("two"))
    snapshot.append(_msg("local only"))

    assert [m.content for m in snapshot] == ["one", "local only"]
    assert [m.content for m in store.snapshot("A")] == ["one", "two"]


def test_snapshot_of_unknown_id_does_not_create_it():
    store = ConversationStore()
    store.snapshot("ghost")
    assert store.conversation_ids() == []


def test_clear_truncates_in_place():
    store = ConversationStore()
    store.append("A", _msg("one"))

    store.clear("A")
    store.clear("never-seen")

    assert store.snapshot("A") == []
    assert store.conversation_ids() == ["A"]
    assert store.append("A", _msg("fresh")) == 1


def test_concurrent_appends_on_distinct_ids_stay_isolated():
    store = ConversationStore()
    ids = [f"conv-{i}" for i in range(8)]

    def writer(cid: str):
        for n in range(200):
            store.append(cid, _msg(f"{cid}:{n}"))

    threads = [threading.Thread(target=writer, args=(cid,)) for cid in ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for cid in ids:
        messages = store.snapshot(cid)
        assert len(messages) == 200
        assert all(m.content.startswith(f"{cid}:") for m in messages)
        assert [m.content for m in messages] == [f"{cid}:{n}" for n in range(200)]


def test_concurrent_appends_on_same_id_lose_nothing():
    store = ConversationStore()

    def writer(tag: str):
        for n in range(250):
            store.append("shared", _msg(f"{tag}:{n}"))

    threads = [threading.Thread(target=writer, args=(tag,)) for tag in "abcd"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    contents = [m.content for m in store.snapshot("shared")]
    assert len(contents) == 1000
    # Per-writer order is preserved even though writers interleave
    for tag in "abcd":
        assert [c for c in contents if c.startswith(f"{tag}:")] == [f"{tag}:{n}" for n in range(250)]


@pytest.mark.asyncio
async def test_concurrent_tasks_on_distinct_ids():
    store = ConversationStore()

    async def writer(cid: str):
        for n in range(50):
            store.append(cid, _msg(f"{cid}:{n}"))
            await asyncio.sleep(0)

    await asyncio.gather(*(writer(f"task-{i}") for i in range(5)))

    for i in range(5):
        assert all(m.content.startswith(f"task-{i}:") for m in store.snapshot(f"task-{i}"))
