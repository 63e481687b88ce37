"""Dedup ledgers: persisted "already notified" markers.

Two flavours:

- AcceptanceLedger is unbounded. A (path id, profile url) pair logged once is
  never reported again.
- WarmPathLedger is a sliding window. Rows are never removed by a lookup;
  a lookup simply ignores rows older than the window, so the same warm path
  may be reported again once its last row has aged out. prune() exists to
  bound storage and drops only rows a lookup would ignore anyway.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Set, Tuple

from pydantic import BaseModel

from feedwatch.api.schemas import UtcDatetime, utcnow
from feedwatch.db.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ACCEPTANCES_KEY = "logged_acceptances"
WARM_PATH_KEY = "warm_path_dedupe"


class AcceptanceLedger:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> Set[Tuple[str, str]]:
        raw = await self.store.get_value(ACCEPTANCES_KEY, [])
        return {(entry[0], entry[1]) for entry in raw}

    async def contains(self, path_id: str, profile_url: str) -> bool:
        return (path_id, profile_url) in await self.load()

    async def append(self, path_id: str, profile_url: str) -> None:
        raw = await self.store.get_value(ACCEPTANCES_KEY, [])
        raw.append([path_id, profile_url])
        await self.store.set({ACCEPTANCES_KEY: raw})
        logger.debug("Logged acceptance %s / %s", path_id, profile_url)


class WarmPathDedupeEntry(BaseModel):
    company_url: str
    person_url: str
    path_length: int
    created_at: UtcDatetime

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.company_url, self.person_url, self.path_length)


class WarmPathLedger:
    def __init__(self, store: KeyValueStore, window_days: int = 30):
        self.store = store
        self.window = timedelta(days=window_days)

    async def entries(self) -> List[WarmPathDedupeEntry]:
        raw = await self.store.get_value(WARM_PATH_KEY, [])
        return [WarmPathDedupeEntry.model_validate(r) for r in raw]

    async def _save(self, entries: List[WarmPathDedupeEntry]) -> None:
        await self.store.set({WARM_PATH_KEY: [e.model_dump(mode="json") for e in entries]})

    async def is_duplicate(
        self,
        company_url: str,
        person_url: str,
        path_length: int,
        now: Optional[datetime] = None,
    ) -> bool:
        """True if a row for this key is younger than the window."""
        now = now or utcnow()
        key = (company_url, person_url, path_length)
        return any(
            entry.key == key and now - entry.created_at < self.window
            for entry in await self.entries()
        )

    async def record(
        self,
        company_url: str,
        person_url: str,
        path_length: int,
        now: Optional[datetime] = None,
    ) -> WarmPathDedupeEntry:
        """Append a new row; existing rows for the same key are left as they are."""
        entry = WarmPathDedupeEntry(
            company_url=company_url,
            person_url=person_url,
            path_length=path_length,
            created_at=now or utcnow(),
        )
        entries = await self.entries()
        entries.append(entry)
        await self._save(entries)
        logger.debug("Recorded warm path %s", entry.key)
        return entry

    async def prune(self, now: Optional[datetime] = None) -> int:
        """Drop rows older than the window. Returns the number removed."""
        now = now or utcnow()
        entries = await self.entries()
        valid = [e for e in entries if now - e.created_at < self.window]
        pruned = len(entries) - len(valid)
        if pruned:
            await self._save(valid)
            logger.info("Pruned %d expired warm path entries", pruned)
        return pruned
