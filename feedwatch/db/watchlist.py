"""Watchlist storage: monitored companies, people, connection paths and the
global job preferences.

Removing an entity never touches the feed; items already created for it stay.
"""

import logging
from datetime import datetime
from typing import List, Optional

from feedwatch.api.schemas import (
    ConnectionPath, JobPreferences, MonitoredCompany, MonitoredPerson, utcnow,
)
from feedwatch.db.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

COMPANIES_KEY = "watchlist_companies"
PEOPLE_KEY = "watchlist_people"
PATHS_KEY = "connection_paths"
PREFERENCES_KEY = "job_preferences"


class WatchlistEntryNotFound(KeyError):
    """Raised when a watchlist id does not exist."""


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class WatchlistStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    # --- Companies ---

    async def list_companies(self) -> List[MonitoredCompany]:
        raw = await self.store.get_value(COMPANIES_KEY, [])
        return [MonitoredCompany.model_validate(r) for r in raw]

    async def save_companies(self, companies: List[MonitoredCompany]) -> None:
        await self.store.set({COMPANIES_KEY: [c.model_dump(mode="json") for c in companies]})

    async def add_company(self, company: MonitoredCompany) -> MonitoredCompany:
        """Add or replace a company (matched by id)."""
        companies = [c for c in await self.list_companies() if c.id != company.id]
        companies.append(company)
        await self.save_companies(companies)
        logger.info("Watching company %s", company.name)
        return company

    async def remove_company(self, company_id: str) -> None:
        companies = await self.list_companies()
        remaining = [c for c in companies if c.id != company_id]
        if len(remaining) == len(companies):
            raise WatchlistEntryNotFound(company_id)
        await self.save_companies(remaining)
        logger.info("Stopped watching company %s", company_id)

    async def mark_checked(self, company_id: str, when: Optional[datetime] = None) -> None:
        companies = await self.list_companies()
        for company in companies:
            if company.id == company_id:
                company.last_checked = when or utcnow()
                await self.save_companies(companies)
                return
        raise WatchlistEntryNotFound(company_id)

    # --- People ---

    async def list_people(self) -> List[MonitoredPerson]:
        raw = await self.store.get_value(PEOPLE_KEY, [])
        return [MonitoredPerson.model_validate(r) for r in raw]

    async def add_person(self, person: MonitoredPerson) -> MonitoredPerson:
        people = [p for p in await self.list_people() if p.id != person.id]
        people.append(person)
        await self.store.set({PEOPLE_KEY: [p.model_dump(mode="json") for p in people]})
        logger.info("Watching person %s", person.name)
        return person

    async def remove_person(self, person_id: str) -> None:
        people = await self.list_people()
        remaining = [p for p in people if p.id != person_id]
        if len(remaining) == len(people):
            raise WatchlistEntryNotFound(person_id)
        await self.store.set({PEOPLE_KEY: [p.model_dump(mode="json") for p in remaining]})

    # --- Connection paths ---

    async def list_paths(self) -> List[ConnectionPath]:
        raw = await self.store.get_value(PATHS_KEY, [])
        return [ConnectionPath.model_validate(r) for r in raw]

    async def save_paths(self, paths: List[ConnectionPath]) -> None:
        await self.store.set({PATHS_KEY: [p.model_dump(mode="json") for p in paths]})

    async def add_path(self, path: ConnectionPath) -> ConnectionPath:
        paths = [p for p in await self.list_paths() if p.id != path.id]
        paths.append(path)
        await self.save_paths(paths)
        return path

    async def remove_path(self, path_id: str) -> None:
        paths = await self.list_paths()
        remaining = [p for p in paths if p.id != path_id]
        if len(remaining) == len(paths):
            raise WatchlistEntryNotFound(path_id)
        await self.save_paths(remaining)

    # --- Preferences ---

    async def get_preferences(self) -> Optional[JobPreferences]:
        raw = await self.store.get_value(PREFERENCES_KEY)
        return JobPreferences.model_validate(raw) if raw is not None else None

    async def set_preferences(self, preferences: JobPreferences) -> None:
        await self.store.set({PREFERENCES_KEY: preferences.model_dump(mode="json")})
