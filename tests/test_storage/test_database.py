"""Tests for the SQLite conversation store."""

import sqlite3

import pytest

from chat_archiver.exceptions import ConversationNotFoundError, PersistError, StorageError
from chat_archiver.storage.database import ConversationStore


def _insert(store, draft, rows=()):
    with store.transaction():
        cid = store.insert_conversation(draft, message_count=len(rows), turn_count=len(rows) // 2, snippet="snip")
        store.insert_messages(cid, list(rows))
    return cid


def test_insert_and_get(store, make_draft):
    draft = make_draft("conv-aaaaaaaa", tags=["work"], starred=True, source_created_at=900)
    cid = _insert(store, draft, [("user", "hi", 1), ("ai", "hello", 2)])

    conversation = store.get_conversation(cid)
    assert conversation.external_id == "conv-aaaaaaaa"
    assert conversation.platform == "ChatGPT"
    assert conversation.created_at == draft.captured_at
    assert conversation.message_count == 2
    assert conversation.turn_count == 1
    assert conversation.snippet == "snip"
    assert conversation.tags == ["work"]
    assert conversation.starred is True
    assert conversation.archived is False
    assert conversation.source_created_at == 900


def test_find_by_external_id(store, make_draft):
    cid = _insert(store, make_draft("conv-bbbbbbbb"))
    assert store.find_by_external_id("conv-bbbbbbbb").id == cid
    assert store.find_by_external_id("missing") is None
    assert store.get_conversation(9999) is None


def test_messages_ordered_by_time_then_id(store, make_draft):
    cid = _insert(store, make_draft(), [("ai", "later", 20), ("user", "first", 10), ("user", "tie", 20)])
    assert [m.text for m in store.list_messages(cid)] == ["first", "later", "tie"]
    assert store.count_messages(cid) == 3


def test_list_conversations_filters(store, make_draft):
    _insert(store, make_draft("conv-11111111", title="Budget review", captured_at=100, updated_at=100))
    _insert(store, make_draft("conv-22222222", platform="Claude", title="Poems", captured_at=200, updated_at=300))
    _insert(store, make_draft("conv-33333333", title="Travel", captured_at=300, updated_at=200))

    assert [c.title for c in store.list_conversations()] == ["Poems", "Travel", "Budget review"]
    assert [c.title for c in store.list_conversations(platform="Claude")] == ["Poems"]
    assert [c.title for c in store.list_conversations(search="BUDGET")] == ["Budget review"]
    assert [c.title for c in store.list_conversations(date_range=(150, 300))] == ["Poems", "Travel"]


def test_update_title(store, make_draft):
    cid = _insert(store, make_draft())
    updated = store.update_title(cid, "  Renamed  ")
    assert updated.title == "Renamed"
    assert store.get_conversation(cid).title == "Renamed"


def test_update_title_validation(store, make_draft):
    cid = _insert(store, make_draft())
    with pytest.raises(StorageError, match="empty"):
        store.update_title(cid, "   ")
    with pytest.raises(StorageError, match="exceeds"):
        store.update_title(cid, "x" * 121)
    with pytest.raises(ConversationNotFoundError):
        store.update_title(9999, "Anything")


def test_delete_conversation_removes_messages(store, make_draft):
    cid = _insert(store, make_draft(), [("user", "hi", 1)])
    assert store.delete_conversation(cid) is True
    assert store.get_conversation(cid) is None
    assert store.count_messages(cid) == 0
    assert store.delete_conversation(cid) is False


def test_clear_all(store, make_draft):
    _insert(store, make_draft("conv-11111111"), [("user", "hi", 1)])
    _insert(store, make_draft("conv-22222222"), [("user", "yo", 1)])
    store.clear_all()
    assert store.get_stats() == {"total_conversations": 0, "total_messages": 0, "platforms": {}}


def test_get_stats(store, make_draft):
    _insert(store, make_draft("conv-11111111"), [("user", "a", 1), ("ai", "b", 2)])
    _insert(store, make_draft("conv-22222222", platform="Claude"), [("user", "c", 1)])
    _insert(store, make_draft("conv-33333333"))
    stats = store.get_stats()
    assert stats["total_conversations"] == 3
    assert stats["total_messages"] == 3
    assert stats["platforms"] == {"ChatGPT": 2, "Claude": 1}


def test_transaction_rolls_back_on_sqlite_error(store, make_draft):
    with pytest.raises(PersistError, match="rolled back"):
        with store.transaction():
            store.insert_conversation(make_draft(), message_count=0, turn_count=0, snippet="")
            store.conn.execute("INSERT INTO no_such_table VALUES (1)")
    assert store.get_stats()["total_conversations"] == 0


def test_transaction_rolls_back_on_other_errors(store, make_draft):
    with pytest.raises(ValueError):
        with store.transaction():
            store.insert_conversation(make_draft(), message_count=0, turn_count=0, snippet="")
            raise ValueError("boom")
    assert store.get_stats()["total_conversations"] == 0


def test_nested_transaction_joins_outer(store, make_draft):
    with pytest.raises(ValueError):
        with store.transaction():
            with store.transaction():
                store.insert_conversation(make_draft(), message_count=0, turn_count=0, snippet="")
            raise ValueError("outer fails")
    assert store.get_stats()["total_conversations"] == 0


def test_messages_require_conversation(store):
    with pytest.raises(PersistError):
        with store.transaction():
            store.insert_messages(424242, [("user", "orphan", 1)])


def test_file_store_persists(tmp_path, make_draft):
    path = tmp_path / "nested" / "conversations.db"
    store = ConversationStore(path)
    _insert(store, make_draft(), [("user", "hi", 1)])
    store.close()

    reopened = ConversationStore(path)
    try:
        assert reopened.get_stats()["total_messages"] == 1
    finally:
        reopened.close()


def test_open_failure_raises_persist_error(tmp_path):
    directory = tmp_path / "is_a_dir"
    directory.mkdir()
    with pytest.raises(PersistError, match="Cannot open"):
        ConversationStore(directory)


def test_row_factory_is_sqlite_row(store):
    assert store.conn.row_factory is sqlite3.Row
