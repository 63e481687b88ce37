"""Monitoring cycle orchestration.

One cycle runs per page visit: the URL decides which watched entity the page
belongs to and which detectors run. Detectors are isolated from each other;
a failure in one is logged and recorded in the cycle summary, and the rest
still run.
"""

import logging
import re
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from feedwatch.api.feed_schemas import FeedItem
from feedwatch.api.schemas import (
    CycleSummary, MonitoredCompany, MonitoredPerson, PersonProfile, utcnow,
)
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import KeyValueStore, StoreError
from feedwatch.db.snapshots import company_snapshots, job_snapshots, person_snapshots
from feedwatch.db.watchlist import WatchlistStore
from feedwatch.pipeline.company_updates import CompanyUpdateDetector
from feedwatch.pipeline.connection_monitor import ConnectionAcceptanceDetector
from feedwatch.pipeline.hiring_heat import HiringHeatDetector
from feedwatch.pipeline.job_alerts import JobAlertDetector
from feedwatch.pipeline.person_insights import PersonInsightDetector
from feedwatch.pipeline.warm_path import WarmPathDetector
from feedwatch.resilience.ledgers import AcceptanceLedger, WarmPathLedger
from feedwatch.scraper.base import PageScraper

logger = logging.getLogger(__name__)

COMPANY_URL = re.compile(r"/company/([^/?#]+)")
PERSON_URL = re.compile(r"/in/([^/?#]+)")

_SUMMARY_FIELDS = {
    "job_alert": "job_alerts",
    "hiring_heat": "hiring_heat",
    "company_update": "company_updates",
    "person_update": "person_updates",
    "connection_update": "connection_updates",
    "warm_path_opened": "warm_paths",
}


def _tally(summary: CycleSummary, items: List[FeedItem]) -> None:
    for item_type, count in Counter(item.type for item in items).items():
        field = _SUMMARY_FIELDS[item_type]
        setattr(summary, field, getattr(summary, field) + count)


class MonitoringOrchestrator:
    def __init__(
        self,
        watchlist: WatchlistStore,
        job_alerts: JobAlertDetector,
        company_updates: CompanyUpdateDetector,
        person_insights: PersonInsightDetector,
        connections: ConnectionAcceptanceDetector,
    ):
        self.watchlist = watchlist
        self.job_alerts = job_alerts
        self.company_updates = company_updates
        self.person_insights = person_insights
        self.connections = connections

    # --- Entity resolution ---

    async def resolve_company(self, url: str) -> Optional[MonitoredCompany]:
        match = COMPANY_URL.search(url)
        if not match:
            return None
        slug = match.group(1)
        for company in await self.watchlist.list_companies():
            if slug in company.company_url:
                return company
        logger.debug("Company page %s is not watchlisted", slug)
        return None

    async def resolve_person(self, url: str) -> Optional[MonitoredPerson]:
        match = PERSON_URL.search(url)
        if not match:
            return None
        username = match.group(1)
        for person in await self.watchlist.list_people():
            if username in person.profile_url:
                return person
        logger.debug("Profile %s is not watchlisted", username)
        return None

    # --- Cycles ---

    async def monitor_page(
        self,
        url: str,
        scraper: PageScraper,
        now: Optional[datetime] = None,
    ) -> CycleSummary:
        """Run the detectors that apply to the visited page."""
        now = now or utcnow()
        summary = CycleSummary(url=url)

        try:
            company = await self.resolve_company(url)
            person = None if company else await self.resolve_person(url)
        except StoreError as e:
            logger.error("Could not load watchlist for %s: %s", url, e)
            summary.errors.append(f"watchlist: {e}")
            return summary

        if company:
            summary.company_id = company.id
            await self._check_company(company, url, scraper, summary, now)
        elif person:
            summary.person_id = person.id
            await self._check_person(person, scraper, summary, now)
        else:
            logger.debug("No watched entity for %s", url)

        logger.info("Cycle for %s finished: %s", url, summary.model_dump(exclude={"url"}))
        return summary

    async def _check_company(
        self,
        company: MonitoredCompany,
        url: str,
        scraper: PageScraper,
        summary: CycleSummary,
        now: datetime,
    ) -> None:
        checked = False

        if company.job_alert_enabled and "/jobs" in url:
            checked = True
            try:
                jobs = await scraper.jobs_for_company(company.id)
                preferences = await self._global_preferences()
                _tally(summary, await self.job_alerts.run(company, jobs, preferences, now))
            except Exception as e:
                logger.error("Job alert check failed for %s: %s", company.name, e, exc_info=True)
                summary.errors.append(f"job_alerts: {e}")

        if "/posts" in url:
            checked = True
            try:
                updates = await scraper.updates_for_company(company.id)
                _tally(summary, await self.company_updates.run(company, updates, now))
            except Exception as e:
                logger.error("Company update check failed for %s: %s", company.name, e, exc_info=True)
                summary.errors.append(f"company_updates: {e}")

        if checked:
            try:
                await self.watchlist.mark_checked(company.id, now)
            except Exception as e:
                logger.warning("Could not update last_checked for %s: %s", company.name, e)

    async def _check_person(
        self,
        person: MonitoredPerson,
        scraper: PageScraper,
        summary: CycleSummary,
        now: datetime,
    ) -> None:
        try:
            profile = await scraper.profile_for_person()
            item = await self.person_insights.run(person, profile, now)
            if item:
                _tally(summary, [item])
        except Exception as e:
            logger.error("Person insight check failed for %s: %s", person.name, e, exc_info=True)
            summary.errors.append(f"person_insights: {e}")

    async def _global_preferences(self):
        try:
            return await self.watchlist.get_preferences()
        except StoreError as e:
            logger.warning("Could not load job preferences, scoring without them: %s", e)
            return None

    async def check_connections(
        self,
        current_connections: List[str],
        profiles: Optional[Dict[str, PersonProfile]] = None,
        now: Optional[datetime] = None,
    ) -> CycleSummary:
        """Log newly accepted connection requests on saved paths."""
        now = now or utcnow()
        profiles = profiles or {}
        summary = CycleSummary()

        try:
            acceptances = await self.connections.detect(current_connections)
        except Exception as e:
            logger.error("Connection check failed: %s", e, exc_info=True)
            summary.errors.append(f"connections: {e}")
            return summary

        for acceptance in acceptances:
            try:
                items = await self.connections.log_acceptance(
                    acceptance, profiles.get(acceptance.profile_url), now,
                )
                _tally(summary, items)
            except Exception as e:
                logger.error(
                    "Could not log acceptance from %s: %s", acceptance.person_name, e, exc_info=True,
                )
                summary.errors.append(f"connections: {e}")

        return summary


def build_orchestrator(
    store: KeyValueStore,
    config: Optional[DetectionConfig] = None,
) -> MonitoringOrchestrator:
    """Wire every detector to one store."""
    config = config or DetectionConfig()
    feed = FeedStore(store, heat_window_days=config.job_window_days)
    watchlist = WatchlistStore(store)
    warm_path = WarmPathDetector(
        watchlist, WarmPathLedger(store, config.warm_path_window_days), feed,
    )
    return MonitoringOrchestrator(
        watchlist=watchlist,
        job_alerts=JobAlertDetector(
            job_snapshots(store), feed, HiringHeatDetector(feed, config), config,
        ),
        company_updates=CompanyUpdateDetector(company_snapshots(store), feed, config),
        person_insights=PersonInsightDetector(person_snapshots(store), watchlist, feed, config),
        connections=ConnectionAcceptanceDetector(watchlist, AcceptanceLedger(store), feed, warm_path),
    )
