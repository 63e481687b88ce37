"""Per-entity snapshot storage.

A snapshot is the last full observed state of one entity's scraped data and
is the baseline the detectors diff against. Each check replaces it
wholesale; a missing snapshot means the entity has never been checked.
"""

import logging
from typing import Generic, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel

from feedwatch.api.schemas import CompanySnapshot, JobSnapshot, PersonSnapshot
from feedwatch.db.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

SnapshotT = TypeVar("SnapshotT", bound=BaseModel)


class SnapshotStore(Generic[SnapshotT]):
    """Snapshots of one kind, stored one key per entity."""

    def __init__(self, store: KeyValueStore, namespace: str, model: Type[SnapshotT]):
        self.store = store
        self.namespace = namespace
        self.model = model

    def _key(self, entity_id: str) -> str:
        return f"{self.namespace}:{entity_id}"

    async def get(self, entity_id: str) -> Optional[SnapshotT]:
        data = await self.store.get_value(self._key(entity_id))
        if data is None:
            return None
        return self.model.model_validate(data)

    async def set(self, entity_id: str, snapshot: SnapshotT) -> None:
        await self.store.set({self._key(entity_id): snapshot.model_dump(mode="json")})
        logger.debug("Saved %s snapshot for %s", self.namespace, entity_id)

    async def clear(self, entity_ids: Iterable[str]) -> None:
        """Forget snapshots so the next check of each entity starts fresh."""
        keys = [self._key(entity_id) for entity_id in entity_ids]
        await self.store.delete(keys)
        logger.info("Cleared %d %s snapshots", len(keys), self.namespace)


def job_snapshots(store: KeyValueStore) -> SnapshotStore[JobSnapshot]:
    return SnapshotStore(store, "job_snapshot", JobSnapshot)


def company_snapshots(store: KeyValueStore) -> SnapshotStore[CompanySnapshot]:
    return SnapshotStore(store, "company_snapshot", CompanySnapshot)


def person_snapshots(store: KeyValueStore) -> SnapshotStore[PersonSnapshot]:
    return SnapshotStore(store, "person_snapshot", PersonSnapshot)
