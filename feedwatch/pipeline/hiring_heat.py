"""Hiring heat detection.

Flags watched companies that are posting many new roles at once. Only jobs
posted inside the detection window count, and only those that were not in
the previous snapshot. At most one hiring_heat item per company per window.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel

from feedwatch.api.feed_schemas import FeedItem, HeatLevel, HiringHeatPayload
from feedwatch.api.schemas import JobPosting, JobSnapshot, MonitoredCompany, utcnow
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import StoreError
from feedwatch.pipeline.change_detector import new_records, within_window
from feedwatch.pipeline.normalizer import contains_any

logger = logging.getLogger(__name__)

# Titles containing any of these count as intern/junior roles
JUNIOR_KEYWORDS = [
    "intern", "internship", "co-op", "coop", "entry", "junior",
    "associate", "new grad", "graduate", "entry level", "entry-level",
]

HEAT_EMOJI = {"warming": "🔥", "hot": "🔥🔥", "very_hot": "🔥🔥🔥"}


class HiringHeatIndicator(BaseModel):
    company: MonitoredCompany
    job_count: int
    internship_count: int
    heat_level: HeatLevel
    top_job_titles: List[str]
    detection_window: int
    action_url: str


def classify_heat(new_job_count: int, config: DetectionConfig) -> Optional[str]:
    """Heat tier for a count of new jobs, or None below the minimum."""
    if new_job_count < config.min_new_jobs:
        return None
    if new_job_count >= config.heat_very_hot:
        return "very_hot"
    if new_job_count >= config.heat_hot:
        return "hot"
    return "warming"


def detect_hiring_heat(
    current_jobs: List[JobPosting],
    previous: Optional[JobSnapshot],
    company: MonitoredCompany,
    config: DetectionConfig,
    now: Optional[datetime] = None,
) -> Optional[HiringHeatIndicator]:
    now = now or utcnow()
    window = config.job_window_days

    recent_jobs = [job for job in current_jobs if within_window(job.posted_at, window, now)]
    if len(recent_jobs) < config.min_new_jobs:
        logger.debug("%s: %d recent jobs, below threshold", company.name, len(recent_jobs))
        return None

    new_jobs = new_records(recent_jobs, previous.jobs if previous else None)
    heat_level = classify_heat(len(new_jobs), config)
    if heat_level is None:
        logger.debug("%s: %d new recent jobs, below threshold", company.name, len(new_jobs))
        return None

    internships = [job for job in new_jobs if contains_any(job.title, JUNIOR_KEYWORDS)]
    others = [job for job in new_jobs if job not in internships]
    top_jobs = (internships + others)[:config.top_job_titles]

    logger.info(
        "Hiring heat for %s: %d new jobs (%d intern/junior), %s",
        company.name, len(new_jobs), len(internships), heat_level,
    )
    return HiringHeatIndicator(
        company=company,
        job_count=len(new_jobs),
        internship_count=len(internships),
        heat_level=heat_level,
        top_job_titles=[job.title for job in top_jobs],
        detection_window=window,
        action_url=company.jobs_url,
    )


def build_hiring_heat_item(indicator: HiringHeatIndicator, now: Optional[datetime] = None) -> FeedItem:
    company = indicator.company
    plural = "s" if indicator.job_count > 1 else ""
    junior = f" ({indicator.internship_count} intern/junior)" if indicator.internship_count else ""
    description = (
        f"{indicator.job_count} new position{plural} posted in the last "
        f"{indicator.detection_window} days{junior}.\n\n"
        f"Top roles: {', '.join(indicator.top_job_titles)}"
    )
    return FeedItem.create(
        HiringHeatPayload(
            company_id=company.id,
            company=company.name,
            company_logo=company.company_logo,
            job_count=indicator.job_count,
            internship_count=indicator.internship_count,
            heat_level=indicator.heat_level,
            top_job_titles=indicator.top_job_titles,
            detection_window=indicator.detection_window,
        ),
        title=f"{company.name} is ramping up hiring {HEAT_EMOJI[indicator.heat_level]}",
        description=description,
        action_url=indicator.action_url,
        action_label="View Open Roles",
        timestamp=now,
    )


class HiringHeatDetector:
    def __init__(self, feed: FeedStore, config: Optional[DetectionConfig] = None):
        self.feed = feed
        self.config = config or DetectionConfig()

    async def already_reported(self, company: MonitoredCompany, now: datetime) -> bool:
        """Whether the feed already holds a hiring_heat item for this window.

        A storage failure counts as "not reported" so a real signal is never lost.
        """
        since = now - timedelta(days=self.config.job_window_days)
        try:
            existing = await self.feed.find_recent("hiring_heat", company.id, since)
        except StoreError as e:
            logger.warning("Hiring heat dedup scan failed for %s, allowing: %s", company.name, e)
            return False
        if existing:
            logger.info("Skipping duplicate hiring_heat for %s (existing %s)", company.name, existing.id)
            return True
        return False

    async def run(
        self,
        company: MonitoredCompany,
        current_jobs: List[JobPosting],
        previous: Optional[JobSnapshot],
        now: Optional[datetime] = None,
    ) -> Optional[FeedItem]:
        now = now or utcnow()
        indicator = detect_hiring_heat(current_jobs, previous, company, self.config, now)
        if indicator is None:
            return None
        if await self.already_reported(company, now):
            return None
        return await self.feed.add(build_hiring_heat_item(indicator, now))
