"""Async key-value store that every other store is layered on.

The interface is deliberately tiny: ``get`` returns a mapping holding only
the keys that exist, ``set`` writes a mapping of keys to JSON-compatible
values. There are no transactions; callers do get-then-set.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

import aiosqlite

from feedwatch.db.database import get_db

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the underlying store cannot be read or written."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


def _as_keys(keys: Union[str, Iterable[str]]) -> list:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class KeyValueStore(ABC):
    """Interface for the persistent key-value substrate."""

    @abstractmethod
    async def get(self, keys: Union[str, Iterable[str]]) -> Dict[str, Any]:
        """Read one or more keys. Absent keys are omitted from the result."""
        ...

    @abstractmethod
    async def set(self, items: Dict[str, Any]) -> None:
        """Write each key/value pair, replacing existing values."""
        ...

    @abstractmethod
    async def delete(self, keys: Union[str, Iterable[str]]) -> None:
        """Remove keys. Keys that do not exist are ignored."""
        ...

    async def get_value(self, key: str, default: Any = None) -> Any:
        result = await self.get(key)
        return result.get(key, default)


class SQLiteKeyValueStore(KeyValueStore):
    """Key-value store backed by the ``kv_store`` table."""

    def __init__(self, path: Optional[str] = None):
        self.path = path

    async def get(self, keys: Union[str, Iterable[str]]) -> Dict[str, Any]:
        key_list = _as_keys(keys)
        if not key_list:
            return {}

        placeholders = ", ".join("?" for _ in key_list)
        try:
            db = await get_db(self.path)
            try:
                cursor = await db.execute(
                    f"SELECT key, value FROM kv_store WHERE key IN ({placeholders})",
                    key_list,
                )
                rows = await cursor.fetchall()
            finally:
                await db.close()
            return {row[0]: json.loads(row[1]) for row in rows}
        except (aiosqlite.Error, json.JSONDecodeError) as e:
            logger.error("Store read failed for %s: %s", key_list, e)
            raise StoreError(f"Failed to read {key_list}", cause=e) from e

    async def set(self, items: Dict[str, Any]) -> None:
        if not items:
            return

        now = datetime.now(timezone.utc).isoformat()
        try:
            db = await get_db(self.path)
            try:
                await db.executemany(
                    """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET
                        value=excluded.value, updated_at=excluded.updated_at""",
                    [(key, json.dumps(value), now) for key, value in items.items()],
                )
                await db.commit()
            finally:
                await db.close()
        except (aiosqlite.Error, TypeError) as e:
            logger.error("Store write failed for %s: %s", list(items), e)
            raise StoreError(f"Failed to write {list(items)}", cause=e) from e

    async def delete(self, keys: Union[str, Iterable[str]]) -> None:
        key_list = _as_keys(keys)
        if not key_list:
            return

        placeholders = ", ".join("?" for _ in key_list)
        try:
            db = await get_db(self.path)
            try:
                await db.execute(f"DELETE FROM kv_store WHERE key IN ({placeholders})", key_list)
                await db.commit()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            logger.error("Store delete failed for %s: %s", key_list, e)
            raise StoreError(f"Failed to delete {key_list}", cause=e) from e


class MemoryKeyValueStore(KeyValueStore):
    """In-process store. Values are deep-copied so callers never share state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, keys: Union[str, Iterable[str]]) -> Dict[str, Any]:
        return {
            key: copy.deepcopy(self._data[key])
            for key in _as_keys(keys)
            if key in self._data
        }

    async def set(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def delete(self, keys: Union[str, Iterable[str]]) -> None:
        for key in _as_keys(keys):
            self._data.pop(key, None)
