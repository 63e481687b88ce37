"""Tests for direct warm path detection and its 30-day dedup."""

from datetime import datetime, timedelta, timezone

import pytest

from feedwatch.api.schemas import CurrentRole, MonitoredCompany, PersonProfile
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.watchlist import WatchlistStore
from feedwatch.pipeline.warm_path import WarmPathDetector, detect_direct_warm_path
from feedwatch.resilience.ledgers import WarmPathLedger

NOW = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
JANE = "https://www.linkedin.com/in/jane"
ACME = MonitoredCompany(
    id="c1", name="Acme Robotics", company_url="https://www.linkedin.com/company/acme",
    company_logo="https://cdn/acme.png",
)


def jane(company="Acme Robotics"):
    return PersonProfile(
        name="Jane Doe", profile_url=JANE, photo_url="https://cdn/jane.png",
        current_role=CurrentRole(title="Recruiter", company=company) if company else None,
    )


@pytest.fixture
def detector(store):
    return WarmPathDetector(WatchlistStore(store), WarmPathLedger(store), FeedStore(store))


class TestDetectDirectWarmPath:
    def test_match_uses_watchlist_record(self):
        descriptor = detect_direct_warm_path(JANE, jane("  acme robotics "), [ACME])
        assert descriptor.target_company == "Acme Robotics"
        assert descriptor.target_company_url == ACME.company_url
        assert descriptor.target_company_logo == "https://cdn/acme.png"
        assert descriptor.via_person_title == "Recruiter"
        assert descriptor.path_length == 1

    def test_no_employer(self):
        assert detect_direct_warm_path(JANE, jane(company=None), [ACME]) is None

    def test_employer_not_watchlisted(self):
        assert detect_direct_warm_path(JANE, jane("Globex"), [ACME]) is None

    def test_partial_name_does_not_match(self):
        assert detect_direct_warm_path(JANE, jane("Acme"), [ACME]) is None


class TestWarmPathDetector:
    @pytest.mark.asyncio
    async def test_reported_once_within_window(self, store, detector):
        await detector.watchlist.add_company(ACME)

        item = await detector.run(JANE, jane(), NOW)
        assert item.type == "warm_path_opened"
        assert item.title == "Warm path opened to Acme Robotics"
        assert item.action_label == "View Profile"

        assert await detector.run(JANE, jane(), NOW + timedelta(days=29)) is None

    @pytest.mark.asyncio
    async def test_reported_again_after_window(self, store, detector):
        await detector.watchlist.add_company(ACME)
        await detector.run(JANE, jane(), NOW)

        assert await detector.run(JANE, jane(), NOW + timedelta(days=31)) is not None
        assert len(await detector.ledger.entries()) == 2

    @pytest.mark.asyncio
    async def test_ledger_failure_allows_emission(self, flaky_store):
        detector = WarmPathDetector(WatchlistStore(flaky_store), WarmPathLedger(flaky_store), FeedStore(flaky_store))
        await detector.watchlist.add_company(ACME)
        flaky_store.failing_reads.add("warm_path_dedupe")

        descriptor = await detector.detect(JANE, jane())
        assert await detector.already_reported(descriptor, NOW) is False
