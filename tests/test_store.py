"""
Testing the in-memory key-value store
- Set, get, overwrite and delete documents
"""

from bullscows.store import InMemoryStore

def test_store_set_get_delete():
    store = InMemoryStore()

    assert store.get("session") is None

    store.set("session", {"round_id": "game_1", "attempt_count": 0})
    assert store.get("session") == {"round_id": "game_1", "attempt_count": 0}

    # Overwrite replaces the whole document
    store.set("session", {"round_id": "game_2"})
    assert store.get("session") == {"round_id": "game_2"}
    assert store.keys() == ["session"]

    store.delete("session")
    assert store.get("session") is None
    # Deleting twice is fine
    store.delete("session")

def test_store_returns_copies():
    store = InMemoryStore()
    store.set("history", [{"guess": "123"}])

    loaded = store.get("history")
    loaded.append({"guess": "456"})

    # Mutating what we read must not change what is stored
    assert store.get("history") == [{"guess": "123"}]
