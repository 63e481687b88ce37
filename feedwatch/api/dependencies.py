"""Shared objects handed to the route handlers."""

from functools import lru_cache

from feedwatch.config import DetectionConfig, load_config
from feedwatch.db.kv_store import KeyValueStore, SQLiteKeyValueStore


@lru_cache
def get_store() -> KeyValueStore:
    return SQLiteKeyValueStore()


@lru_cache
def get_config() -> DetectionConfig:
    return load_config()
