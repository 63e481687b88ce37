"""Tests for company update detection."""

from datetime import datetime, timedelta, timezone

import pytest

from feedwatch.api.feed_schemas import FeedItem, HiringHeatPayload
from feedwatch.api.schemas import CompanySnapshot, CompanyUpdate, MonitoredCompany
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.snapshots import company_snapshots
from feedwatch.pipeline.company_updates import CompanyUpdateDetector, detect_new_updates

NOW = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
ACME = MonitoredCompany(id="c1", name="Acme", company_url="https://www.linkedin.com/company/acme")


def post(update_id, days_ago=1, preview="Big news"):
    return CompanyUpdate(
        id=update_id, preview=preview, timestamp=NOW - timedelta(days=days_ago),
        url=f"https://www.linkedin.com/feed/update/{update_id}",
    )


def baseline(*updates):
    return CompanySnapshot(company_id="c1", last_checked=NOW, updates=list(updates))


class TestDetectNewUpdates:
    def test_no_baseline_reports_nothing(self):
        assert detect_new_updates([post("u1"), post("u2")], None, 7, NOW) == []

    def test_old_posts_filtered(self):
        result = detect_new_updates([post("u1", days_ago=2), post("u2", days_ago=9)], baseline(), 7, NOW)
        assert [u.id for u in result] == ["u1"]

    def test_oldest_first(self):
        updates = [post("new", days_ago=1), post("older", days_ago=3), post("mid", days_ago=2)]
        result = detect_new_updates(updates, baseline(), 7, NOW)
        assert [u.id for u in result] == ["older", "mid", "new"]


class TestCompanyUpdateDetector:
    @pytest.mark.asyncio
    async def test_first_check_only_sets_baseline(self, store):
        detector = CompanyUpdateDetector(company_snapshots(store), FeedStore(store))
        assert await detector.run(ACME, [post("u1"), post("u2")], NOW) == []
        snapshot = await company_snapshots(store).get("c1")
        assert [u.id for u in snapshot.updates] == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_new_post_reported_once(self, store):
        detector = CompanyUpdateDetector(company_snapshots(store), FeedStore(store))
        await company_snapshots(store).set("c1", baseline(post("u1")))

        created = await detector.run(ACME, [post("u1"), post("u2", preview="<p>We  raised</p>")], NOW)
        (item,) = created
        assert item.payload.update_id == "u2"
        assert item.description == "We raised"
        assert item.action_label == "See Post"
        assert item.timestamp == NOW - timedelta(days=1)

        assert await detector.run(ACME, [post("u1"), post("u2")], NOW) == []

    @pytest.mark.asyncio
    async def test_post_already_in_feed_skipped(self, store):
        feed = FeedStore(store)
        detector = CompanyUpdateDetector(company_snapshots(store), feed)
        await company_snapshots(store).set("c1", baseline())
        await detector.run(ACME, [post("u1")], NOW)

        # snapshot lost, but the feed still remembers the post
        await company_snapshots(store).set("c1", baseline())
        assert await detector.run(ACME, [post("u1")], NOW) == []
        assert len(await feed.list_items()) == 1

    @pytest.mark.asyncio
    async def test_empty_scrape_keeps_snapshot(self, store):
        detector = CompanyUpdateDetector(company_snapshots(store), FeedStore(store))
        await company_snapshots(store).set("c1", baseline(post("u1")))
        assert await detector.run(ACME, [], NOW) == []
        assert [u.id for u in (await company_snapshots(store).get("c1")).updates] == ["u1"]

    @pytest.mark.asyncio
    async def test_dedup_scan_failure_allows_emission(self, flaky_store):
        detector = CompanyUpdateDetector(company_snapshots(flaky_store), FeedStore(flaky_store))
        flaky_store.failing_reads.add("feed")
        assert await detector.already_in_feed(ACME, post("u1")) is False


class TestTimestampInputs:
    @pytest.mark.asyncio
    async def test_naive_post_timestamp_taken_as_utc(self, store):
        feed = FeedStore(store)
        detector = CompanyUpdateDetector(company_snapshots(store), feed)
        await company_snapshots(store).set("c1", baseline())

        naive = CompanyUpdate(id="u1", preview="Big news", timestamp="2026-03-09T08:30:00")
        (item,) = await detector.run(ACME, [naive], NOW)

        assert item.timestamp == datetime(2026, 3, 9, 8, 30, tzinfo=timezone.utc)
        await feed.add(FeedItem.create(
            HiringHeatPayload(
                company_id="c2", company="Globex", heat_level="hot", job_count=5, detection_window=7,
            ),
            title="Globex is hiring", description="5 new roles", timestamp=NOW,
        ))
        assert [i.type for i in await feed.list_items()] == ["hiring_heat", "company_update"]
