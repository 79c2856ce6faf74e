"""
Persisted key-value state for WalkMate (pace, visit collection, avatar reference).

The rest of the code treats the store as an opaque async get/set/delete contract.
Implementations raise PersistenceError on failure; callers decide on the fallback.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Dict, Optional, Union

from logging_config import get_logger
from .error_handling import PersistenceError
from .settings import AVATAR_KEY

logger = get_logger(__name__)


class KeyValueStore:
    """Async string key-value store."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; used in tests and when no store path is configured."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-backed store. Each operation opens its own connection and runs in a
    worker thread so the event loop never blocks on disk I/O.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=5)
        conn.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
        return conn

    def _get_sync(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def _set_sync(self, key: str, value: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        finally:
            conn.close()

    def _delete_sync(self, key: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        finally:
            conn.close()

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read {key}: {e}", key) from e

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._set_sync, key, value)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not write {key}: {e}", key) from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, key)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not delete {key}: {e}", key) from e


class ProfileStore:
    """Avatar image reference (a URI string; the image itself lives elsewhere)."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def get_avatar(self) -> Optional[str]:
        try:
            return await self._store.get(AVATAR_KEY)
        except PersistenceError as e:
            logger.warning(f"Avatar reference unavailable: {e}")
            return None

    async def set_avatar(self, uri: str) -> None:
        await self._store.set(AVATAR_KEY, uri)

    async def clear_avatar(self) -> None:
        await self._store.delete(AVATAR_KEY)
