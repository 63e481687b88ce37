"""Job alert detection for watched companies.

On the first check of a company every listed job is treated as new (there is
no baseline to diff against), so the user hears about matching roles right
away. The snapshot is replaced on every non-empty scrape, whatever matched.
"""

import logging
from datetime import datetime
from typing import List, Optional

from feedwatch.api.feed_schemas import FeedItem, JobAlertPayload
from feedwatch.api.schemas import (
    JobPosting, JobPreferences, JobSnapshot, MonitoredCompany, utcnow,
)
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import StoreError
from feedwatch.db.snapshots import SnapshotStore
from feedwatch.pipeline.change_detector import new_records
from feedwatch.pipeline.hiring_heat import HiringHeatDetector
from feedwatch.pipeline.job_matcher import MatchResult, merge_preferences, score_job

logger = logging.getLogger(__name__)


def build_job_alert_item(
    job: JobPosting,
    company: MonitoredCompany,
    match: MatchResult,
    now: Optional[datetime] = None,
) -> FeedItem:
    return FeedItem.create(
        JobAlertPayload(
            company_id=company.id,
            company=company.name,
            company_logo=company.company_logo,
            job_id=job.id,
            job_title=job.title,
            location=job.location,
            job_url=job.url,
            match_score=match.score,
            match_reasons=match.reasons,
        ),
        title="New Job Match",
        description=job.title,
        action_url=job.url,
        action_label="View Job",
        timestamp=now,
    )


class JobAlertDetector:
    def __init__(
        self,
        snapshots: SnapshotStore[JobSnapshot],
        feed: FeedStore,
        hiring_heat: Optional[HiringHeatDetector] = None,
        config: Optional[DetectionConfig] = None,
    ):
        self.snapshots = snapshots
        self.feed = feed
        self.config = config or DetectionConfig()
        self.hiring_heat = hiring_heat or HiringHeatDetector(feed, self.config)

    def match_new_jobs(
        self,
        new_jobs: List[JobPosting],
        company: MonitoredCompany,
        global_preferences: Optional[JobPreferences],
        now: Optional[datetime] = None,
    ) -> List[tuple]:
        """(job, match) pairs scoring at or above the cutoff, best first."""
        preferences = merge_preferences(company, global_preferences)
        scored = [(job, score_job(job, preferences, now)) for job in new_jobs]
        matching = [(job, m) for job, m in scored if m.score >= self.config.match_score_cutoff]
        logger.info(
            "%s: %d/%d new jobs meet match cutoff %d",
            company.name, len(matching), len(new_jobs), self.config.match_score_cutoff,
        )
        return sorted(matching, key=lambda pair: pair[1].score, reverse=True)

    async def run(
        self,
        company: MonitoredCompany,
        current_jobs: List[JobPosting],
        global_preferences: Optional[JobPreferences] = None,
        now: Optional[datetime] = None,
    ) -> List[FeedItem]:
        """Check one company's scraped jobs. Returns the feed items created."""
        now = now or utcnow()

        if not current_jobs:
            logger.warning("No jobs scraped for %s, keeping previous snapshot", company.name)
            return []

        previous = await self.snapshots.get(company.id)
        new_jobs = new_records(current_jobs, previous.jobs if previous else None)
        logger.info(
            "%s: %d new of %d scraped jobs%s",
            company.name, len(new_jobs), len(current_jobs),
            "" if previous else " (first check)",
        )

        matches = self.match_new_jobs(new_jobs, company, global_preferences, now)

        try:
            await self.snapshots.set(
                company.id,
                JobSnapshot(company_id=company.id, last_checked=now, jobs=current_jobs),
            )
        except StoreError as e:
            logger.error("Failed to save job snapshot for %s: %s", company.name, e)

        created: List[FeedItem] = []
        for job, match in matches:
            item = await self.feed.add(build_job_alert_item(job, company, match, now))
            if item:
                created.append(item)
        logger.info("Created %d job alerts for %s", len(created), company.name)

        try:
            heat_item = await self.hiring_heat.run(company, current_jobs, previous, now)
            if heat_item:
                created.append(heat_item)
        except Exception as e:
            logger.error("Hiring heat check failed for %s: %s", company.name, e, exc_info=True)

        return created
