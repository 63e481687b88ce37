"""Scoring engine for job alerts: rates a posting against job preferences.

Points (0-100):
    title keywords      40  (25 when no keywords are set)
    work location type  25  (15 when no preference or unknown)
    geographic location 20  (10 when no preference)
    posted in last 24h  +5
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel

from feedwatch.api.schemas import JobPosting, JobPreferences, MonitoredCompany, utcnow
from feedwatch.pipeline.normalizer import infer_work_location

logger = logging.getLogger(__name__)


class MatchResult(BaseModel):
    """Result of scoring a job against preferences."""
    score: int
    breakdown: Dict[str, int]
    reasons: List[str]


def merge_preferences(
    company: MonitoredCompany,
    global_preferences: Optional[JobPreferences],
) -> JobPreferences:
    """The company's own preferences win; otherwise the global ones apply."""
    if company.job_preferences is not None:
        return company.job_preferences
    return global_preferences or JobPreferences()


def score_job(
    job: JobPosting,
    preferences: JobPreferences,
    now: Optional[datetime] = None,
) -> MatchResult:
    now = now or utcnow()
    breakdown: Dict[str, int] = {}
    reasons: List[str] = []
    title_lower = job.title.lower()

    # --- Title (0-40) ---
    keywords = [k for k in preferences.keywords if k and k.strip()]
    if keywords:
        matched = next((k for k in keywords if k.lower().strip() in title_lower), None)
        if matched:
            breakdown["title"] = 40
            reasons.append(f'Matches "{matched}"')
        else:
            breakdown["title"] = 0
    else:
        breakdown["title"] = 25

    # --- Work location type (0-25) ---
    wanted_types = preferences.work_location_types
    if wanted_types:
        job_type = job.work_location or infer_work_location(job.location, job.title)
        if job_type in wanted_types:
            breakdown["work_location"] = 25
            reasons.append(f"{job_type.capitalize()} work")
        else:
            breakdown["work_location"] = 0
    else:
        breakdown["work_location"] = 15

    # --- Geographic location (0-20) ---
    locations = [l for l in preferences.locations if l and l.strip()]
    if locations:
        job_location = job.location.lower()
        matched_location = next(
            (
                l for l in locations
                if job_location and (l.lower() in job_location or job_location in l.lower())
            ),
            None,
        )
        if matched_location:
            breakdown["location"] = 20
            reasons.append(f"Located in {matched_location}")
        else:
            breakdown["location"] = 0
    else:
        breakdown["location"] = 10

    # --- Freshness bonus ---
    if now - job.posted_at < timedelta(hours=24):
        breakdown["fresh"] = 5
        reasons.append("Posted recently")

    score = min(100, sum(breakdown.values()))
    logger.debug("Scored %s: %d %s", job.title, score, breakdown)
    return MatchResult(score=score, breakdown=breakdown, reasons=reasons)
