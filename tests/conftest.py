"""Shared fixtures: in-memory stores and a store that can be made to fail."""

import pytest

from feedwatch.db.kv_store import KeyValueStore, MemoryKeyValueStore, StoreError


class FlakyStore(KeyValueStore):
    """Memory store whose reads or writes of chosen keys can be switched to fail."""

    def __init__(self):
        self.inner = MemoryKeyValueStore()
        self.failing_reads = set()
        self.failing_writes = set()

    async def get(self, keys):
        key_list = [keys] if isinstance(keys, str) else list(keys)
        if any(k in self.failing_reads for k in key_list):
            raise StoreError(f"read failed for {key_list}")
        return await self.inner.get(key_list)

    async def set(self, items):
        if any(k in self.failing_writes for k in items):
            raise StoreError(f"write failed for {list(items)}")
        await self.inner.set(items)

    async def delete(self, keys):
        key_list = [keys] if isinstance(keys, str) else list(keys)
        if any(k in self.failing_writes for k in key_list):
            raise StoreError(f"delete failed for {key_list}")
        await self.inner.delete(key_list)


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def flaky_store():
    return FlakyStore()
