"""Tests for hiring heat detection and its once-per-window dedup."""

from datetime import datetime, timedelta, timezone

import pytest

from feedwatch.api.schemas import JobPosting, JobSnapshot, MonitoredCompany
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.snapshots import job_snapshots
from feedwatch.pipeline.hiring_heat import (
    HiringHeatDetector, build_hiring_heat_item, classify_heat, detect_hiring_heat,
)
from feedwatch.pipeline.job_alerts import JobAlertDetector

NOW = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
CONFIG = DetectionConfig()
ACME = MonitoredCompany(id="c1", name="Acme", company_url="https://www.linkedin.com/company/acme/")


def posting(job_id, title=None, days_ago=1):
    return JobPosting(id=job_id, title=title or f"Engineer {job_id}", posted_at=NOW - timedelta(days=days_ago))


def snapshot(*jobs):
    return JobSnapshot(company_id="c1", last_checked=NOW, jobs=list(jobs))


class TestClassifyHeat:
    @pytest.mark.parametrize("count,level", [
        (2, None), (3, "warming"), (5, "warming"), (6, "hot"), (9, "hot"), (10, "very_hot"), (25, "very_hot"),
    ])
    def test_tiers(self, count, level):
        assert classify_heat(count, CONFIG) == level


class TestDetectHiringHeat:
    def test_first_check_counts_all_recent_jobs(self):
        jobs = [posting(str(i)) for i in range(3)]
        indicator = detect_hiring_heat(jobs, None, ACME, CONFIG, NOW)
        assert indicator.job_count == 3
        assert indicator.heat_level == "warming"
        assert indicator.action_url == "https://www.linkedin.com/company/acme/jobs/"

    def test_old_jobs_ignored(self):
        jobs = [posting("1"), posting("2"), posting("3", days_ago=8)]
        assert detect_hiring_heat(jobs, None, ACME, CONFIG, NOW) is None

    def test_previously_seen_jobs_ignored(self):
        jobs = [posting(str(i)) for i in range(4)]
        assert detect_hiring_heat(jobs, snapshot(jobs[0], jobs[1]), ACME, CONFIG, NOW) is None

    def test_junior_roles_listed_first(self):
        jobs = [
            posting("1", "Staff Engineer"),
            posting("2", "Principal Engineer"),
            posting("3", "Summer Intern"),
            posting("4", "Junior Analyst"),
        ]
        indicator = detect_hiring_heat(jobs, None, ACME, CONFIG, NOW)
        assert indicator.internship_count == 2
        assert indicator.top_job_titles == ["Summer Intern", "Junior Analyst", "Staff Engineer"]

    def test_item_text(self):
        indicator = detect_hiring_heat([posting(str(i)) for i in range(6)], None, ACME, CONFIG, NOW)
        item = build_hiring_heat_item(indicator, NOW)
        assert item.title == "Acme is ramping up hiring 🔥🔥"
        assert item.description.startswith("6 new positions posted in the last 7 days")
        assert item.action_label == "View Open Roles"
        assert item.payload.heat_level == "hot"


class TestHiringHeatDetector:
    @pytest.mark.asyncio
    async def test_second_cycle_with_three_new_postings(self, store):
        j1, j2 = posting("j1", days_ago=5), posting("j2", days_ago=5)
        detector = JobAlertDetector(job_snapshots(store), FeedStore(store))
        await job_snapshots(store).set("c1", snapshot(j1, j2))

        jobs = [j1, j2, posting("j3", days_ago=2), posting("j4", days_ago=1), posting("j5", days_ago=0)]
        created = await detector.run(ACME, jobs, now=NOW)

        (heat,) = [item for item in created if item.type == "hiring_heat"]
        assert heat.payload.heat_level == "warming"
        assert heat.payload.job_count == 3

        rerun = await detector.run(ACME, jobs, now=NOW)
        assert [item for item in rerun if item.type == "hiring_heat"] == []

    @pytest.mark.asyncio
    async def test_one_report_per_window(self, store):
        detector = HiringHeatDetector(FeedStore(store), CONFIG)
        jobs = [posting(str(i)) for i in range(3)]

        assert await detector.run(ACME, jobs, None, NOW) is not None
        assert await detector.run(ACME, jobs, None, NOW + timedelta(days=3)) is None
        later = NOW + timedelta(days=8)
        fresh = [JobPosting(id=f"n{i}", title="Engineer", posted_at=later) for i in range(3)]
        assert await detector.run(ACME, fresh, None, later) is not None

    @pytest.mark.asyncio
    async def test_dedup_scan_failure_allows_emission(self, flaky_store):
        feed = FeedStore(flaky_store)
        detector = HiringHeatDetector(feed, CONFIG)
        flaky_store.failing_reads.add("feed")

        assert await detector.already_reported(ACME, NOW) is False
