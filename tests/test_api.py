"""Tests for the HTTP API."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from feedwatch.api.dependencies import get_config, get_store
from feedwatch.config import DetectionConfig
from feedwatch.db.kv_store import MemoryKeyValueStore
from feedwatch.main import app

ACME_URL = "https://www.linkedin.com/company/acme"


@pytest_asyncio.fixture
async def client():
    store = MemoryKeyValueStore()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_config] = lambda: DetectionConfig()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def visit_jobs_page(client, count=3):
    posted = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
    await client.post("/api/watchlist/companies", json={"id": "c1", "name": "Acme", "company_url": ACME_URL})
    return await client.post("/api/page-visits", json={
        "url": f"{ACME_URL}/jobs/",
        "jobs": [{"id": f"j{i}", "title": f"Engineer {i}", "posted_at": posted} for i in range(count)],
    })


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}


class TestWatchlist:
    @pytest.mark.asyncio
    async def test_company_crud(self, client):
        resp = await client.post("/api/watchlist/companies", json={"name": "Acme", "company_url": ACME_URL})
        assert resp.status_code == 201
        company_id = resp.json()["id"]

        listed = (await client.get("/api/watchlist/companies")).json()
        assert [c["id"] for c in listed] == [company_id]

        assert (await client.delete(f"/api/watchlist/companies/{company_id}")).status_code == 200
        assert (await client.delete(f"/api/watchlist/companies/{company_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_path_progress_is_derived(self, client):
        resp = await client.post("/api/watchlist/paths", json={
            "target_name": "Sam",
            "steps": [{"name": "Alice", "profile_url": "https://www.linkedin.com/in/alice", "connected": True}],
        })
        body = resp.json()
        assert body["total_steps"] == 1
        assert body["completed_steps"] == 1
        assert body["is_complete"] is True

    @pytest.mark.asyncio
    async def test_unknown_person(self, client):
        assert (await client.delete("/api/watchlist/people/nope")).status_code == 404

    @pytest.mark.asyncio
    async def test_preferences(self, client):
        assert (await client.get("/api/preferences")).json()["keywords"] == []
        await client.put("/api/preferences", json={"keywords": ["intern"], "work_location_types": ["remote"]})
        assert (await client.get("/api/preferences")).json()["keywords"] == ["intern"]

    @pytest.mark.asyncio
    async def test_invalid_work_location_rejected(self, client):
        resp = await client.put("/api/preferences", json={"work_location_types": ["moon"]})
        assert resp.status_code == 422


class TestFeed:
    @pytest.mark.asyncio
    async def test_page_visit_fills_feed(self, client):
        resp = await visit_jobs_page(client)
        assert resp.status_code == 200
        assert resp.json()["job_alerts"] == 3
        assert resp.json()["hiring_heat"] == 1

        items = (await client.get("/api/feed")).json()
        assert len(items) == 4
        assert {item["type"] for item in items} == {"job_alert", "hiring_heat"}

        stats = (await client.get("/api/feed/stats")).json()
        assert stats["total_items"] == 4
        assert stats["unread_count"] == 4

    @pytest.mark.asyncio
    async def test_filters(self, client):
        await visit_jobs_page(client)
        heat = (await client.get("/api/feed", params={"type": "hiring_heat"})).json()
        assert len(heat) == 1
        assert heat[0]["payload"]["heat_level"] == "warming"

        await client.post(f"/api/feed/{heat[0]['id']}/toggle-read")
        unread = (await client.get("/api/feed", params={"unread": "true"})).json()
        assert len(unread) == 3

    @pytest.mark.asyncio
    async def test_unknown_type_filter(self, client):
        assert (await client.get("/api/feed", params={"type": "gossip"})).status_code == 400

    @pytest.mark.asyncio
    async def test_mark_all_read_and_delete(self, client):
        await visit_jobs_page(client)
        assert (await client.post("/api/feed/mark-all-read")).json() == {"marked": 4}
        assert (await client.get("/api/feed/stats")).json()["unread_count"] == 0

        item_id = (await client.get("/api/feed")).json()[0]["id"]
        assert (await client.delete(f"/api/feed/{item_id}")).status_code == 200
        assert (await client.delete(f"/api/feed/{item_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_clear(self, client):
        await visit_jobs_page(client)
        assert (await client.delete("/api/feed")).status_code == 200
        assert (await client.get("/api/feed")).json() == []

    @pytest.mark.asyncio
    async def test_clear_keeps_snapshots_by_default(self, client):
        await visit_jobs_page(client)
        await client.delete("/api/feed")
        resp = await visit_jobs_page(client)
        assert resp.json()["job_alerts"] == 0

    @pytest.mark.asyncio
    async def test_clear_with_snapshot_reset(self, client):
        await visit_jobs_page(client)
        resp = await client.delete("/api/feed", params={"reset_snapshots": "true"})
        assert resp.json() == {"cleared": True, "snapshots_reset": True}

        resp = await visit_jobs_page(client)
        assert resp.json()["job_alerts"] == 3

    @pytest.mark.asyncio
    async def test_storage(self, client):
        empty = (await client.get("/api/feed/storage")).json()
        assert empty == {"feed_item_count": 0, "estimated_size_kb": 0.0, "oldest_item_age_days": 0}

        await visit_jobs_page(client)
        stats = (await client.get("/api/feed/storage")).json()
        assert stats["feed_item_count"] == 4
        assert stats["estimated_size_kb"] > 0
        assert stats["oldest_item_age_days"] == 0

    @pytest.mark.asyncio
    async def test_naive_posted_at_accepted(self, client):
        posted = (datetime.now(timezone.utc) - timedelta(days=2)).replace(tzinfo=None).isoformat()
        await client.post("/api/watchlist/companies", json={"id": "c1", "name": "Acme", "company_url": ACME_URL})
        resp = await client.post("/api/page-visits", json={
            "url": f"{ACME_URL}/jobs/",
            "jobs": [{"id": "j1", "title": "Engineer", "posted_at": posted}],
        })
        assert resp.status_code == 200
        assert resp.json()["job_alerts"] == 1
        assert resp.json()["errors"] == []

    @pytest.mark.asyncio
    async def test_toggle_unknown_item(self, client):
        assert (await client.post("/api/feed/feed_missing/toggle-read")).status_code == 404


class TestConnections:
    @pytest.mark.asyncio
    async def test_check_connections(self, client):
        alice = "https://www.linkedin.com/in/alice"
        await client.post("/api/watchlist/paths", json={
            "id": "path_1", "target_name": "Sam",
            "steps": [{"name": "Alice", "profile_url": alice}, {"name": "Bob", "profile_url": "b"}],
        })
        resp = await client.post("/api/connections/check", json={"current_connections": [alice]})
        assert resp.json()["connection_updates"] == 1

        (path,) = (await client.get("/api/watchlist/paths")).json()
        assert path["completed_steps"] == 1
        assert path["is_complete"] is False
