"""Company update (post) detection.

Unlike job alerts, the first check of a company only records a baseline and
reports nothing; otherwise the posts already on the page would flood the
feed. Later checks report posts that are new since the snapshot and no older
than the update window.
"""

import logging
from datetime import datetime
from typing import List, Optional

from feedwatch.api.feed_schemas import CompanyUpdatePayload, FeedItem
from feedwatch.api.schemas import CompanySnapshot, CompanyUpdate, MonitoredCompany, utcnow
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import StoreError
from feedwatch.db.snapshots import SnapshotStore
from feedwatch.pipeline.change_detector import new_records, within_window
from feedwatch.pipeline.normalizer import clean_text

logger = logging.getLogger(__name__)


def detect_new_updates(
    current: List[CompanyUpdate],
    previous: Optional[CompanySnapshot],
    window_days: int,
    now: datetime,
) -> List[CompanyUpdate]:
    """New, recent updates ordered oldest first. Empty without a baseline."""
    if previous is None:
        return []
    fresh = [
        update for update in new_records(current, previous.updates)
        if within_window(update.timestamp, window_days, now)
    ]
    return sorted(fresh, key=lambda update: update.timestamp)


def build_company_update_item(update: CompanyUpdate, company: MonitoredCompany) -> FeedItem:
    preview = clean_text(update.preview)
    return FeedItem.create(
        CompanyUpdatePayload(
            company_id=company.id,
            company=company.name,
            company_logo=company.company_logo,
            update_id=update.id,
            preview=preview,
            source_url=update.url,
        ),
        title="Company Update",
        description=preview,
        action_url=update.url,
        action_label="See Post",
        timestamp=update.timestamp,
    )


class CompanyUpdateDetector:
    def __init__(
        self,
        snapshots: SnapshotStore[CompanySnapshot],
        feed: FeedStore,
        config: Optional[DetectionConfig] = None,
    ):
        self.snapshots = snapshots
        self.feed = feed
        self.config = config or DetectionConfig()

    async def already_in_feed(self, company: MonitoredCompany, update: CompanyUpdate) -> bool:
        try:
            return await self.feed.has_company_update(company.id, update.url)
        except StoreError as e:
            logger.warning("Company update dedup scan failed for %s, allowing: %s", company.name, e)
            return False

    async def run(
        self,
        company: MonitoredCompany,
        current_updates: List[CompanyUpdate],
        now: Optional[datetime] = None,
    ) -> List[FeedItem]:
        now = now or utcnow()

        if not current_updates:
            logger.warning("No updates scraped for %s, keeping previous snapshot", company.name)
            return []

        previous = await self.snapshots.get(company.id)
        if previous is None:
            logger.info("%s: no previous snapshot, establishing baseline", company.name)
        new_updates = detect_new_updates(
            current_updates, previous, self.config.update_window_days, now,
        )

        created: List[FeedItem] = []
        for update in new_updates:
            if await self.already_in_feed(company, update):
                logger.info("Skipping duplicate update %s for %s", update.id, company.name)
                continue
            item = await self.feed.add(build_company_update_item(update, company))
            if item:
                created.append(item)

        try:
            await self.snapshots.set(
                company.id,
                CompanySnapshot(company_id=company.id, last_checked=now, updates=current_updates),
            )
        except StoreError as e:
            logger.error("Failed to save company snapshot for %s: %s", company.name, e)

        logger.info("Created %d company update items for %s", len(created), company.name)
        return created
