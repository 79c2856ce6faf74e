import asyncio

import pytest

from data_sources.error_handling import PersistenceError
from data_sources.kv_store import InMemoryKeyValueStore, ProfileStore, SQLiteKeyValueStore
from data_sources.settings import AVATAR_KEY


def test_sqlite_store_round_trip(tmp_path):
    store = SQLiteKeyValueStore(tmp_path / "state.sqlite3")

    assert asyncio.run(store.get("missing")) is None
    asyncio.run(store.set("pace_m_per_min_v1", "55.0"))
    asyncio.run(store.set("pace_m_per_min_v1", "57.5"))
    assert asyncio.run(store.get("pace_m_per_min_v1")) == "57.5"

    asyncio.run(store.delete("pace_m_per_min_v1"))
    assert asyncio.run(store.get("pace_m_per_min_v1")) is None


def test_sqlite_store_persists_across_instances(tmp_path):
    path = tmp_path / "state.sqlite3"
    asyncio.run(SQLiteKeyValueStore(path).set("VISITS_V1", "[]"))
    assert asyncio.run(SQLiteKeyValueStore(path).get("VISITS_V1")) == "[]"


def test_sqlite_store_unusable_path_raises(tmp_path):
    # a directory cannot be opened as a database file
    store = SQLiteKeyValueStore(tmp_path)
    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(store.get("VISITS_V1"))
    assert exc_info.value.key == "VISITS_V1"


def test_in_memory_store():
    store = InMemoryKeyValueStore({"a": "1"})
    assert asyncio.run(store.get("a")) == "1"
    asyncio.run(store.set("b", "2"))
    asyncio.run(store.delete("a"))
    asyncio.run(store.delete("never-set"))
    assert asyncio.run(store.get("a")) is None
    assert asyncio.run(store.get("b")) == "2"


def test_profile_store_avatar():
    store = InMemoryKeyValueStore()
    profile = ProfileStore(store)

    assert asyncio.run(profile.get_avatar()) is None
    asyncio.run(profile.set_avatar("file:///photos/dog.jpg"))
    assert asyncio.run(profile.get_avatar()) == "file:///photos/dog.jpg"
    assert asyncio.run(store.get(AVATAR_KEY)) == "file:///photos/dog.jpg"

    asyncio.run(profile.clear_avatar())
    assert asyncio.run(profile.get_avatar()) is None


def test_profile_store_read_failure_means_no_avatar():
    class BrokenStore(InMemoryKeyValueStore):
        async def get(self, key):
            raise PersistenceError("locked", key)

    assert asyncio.run(ProfileStore(BrokenStore()).get_avatar()) is None
