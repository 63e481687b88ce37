"""API routes for FeedWatch.

Provides endpoints for reading and curating the feed, editing the watchlist,
and triggering monitoring cycles for page visits and connection checks.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from feedwatch.api.dependencies import get_config, get_store
from feedwatch.api.feed_schemas import FEED_ITEM_TYPES, FeedItem, FeedStats, StorageStats
from feedwatch.api.schemas import (
    ConnectionCheckRequest, ConnectionPath, CycleSummary, JobPreferences,
    MonitoredCompany, MonitoredPerson, PageVisitRequest,
)
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedItemNotFound, FeedStore
from feedwatch.db.kv_store import KeyValueStore, StoreError
from feedwatch.db.snapshots import company_snapshots, job_snapshots
from feedwatch.db.watchlist import WatchlistEntryNotFound, WatchlistStore
from feedwatch.pipeline.orchestrator import build_orchestrator
from feedwatch.scraper.captured_page import CapturedPageScraper

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")


def get_feed(
    store: KeyValueStore = Depends(get_store),
    config: DetectionConfig = Depends(get_config),
) -> FeedStore:
    return FeedStore(store, heat_window_days=config.job_window_days)


def get_watchlist(store: KeyValueStore = Depends(get_store)) -> WatchlistStore:
    return WatchlistStore(store)


def _store_unavailable(e: StoreError) -> HTTPException:
    logger.error("Store failure: %s", e, exc_info=True)
    return HTTPException(status_code=503, detail="Storage unavailable")


# --- Feed ---


@router.get("/feed", response_model=List[FeedItem])
async def list_feed(
    type: Optional[str] = Query(None),
    unread: Optional[bool] = None,
    feed: FeedStore = Depends(get_feed),
):
    """Feed items, newest first, optionally filtered by type and read state."""
    if type is not None and type not in FEED_ITEM_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown feed item type '{type}'")
    try:
        items = await feed.list_items()
    except StoreError as e:
        raise _store_unavailable(e)
    if type:
        items = [item for item in items if item.type == type]
    if unread is not None:
        items = [item for item in items if item.read != unread]
    return items


@router.get("/feed/stats", response_model=FeedStats)
async def feed_stats(feed: FeedStore = Depends(get_feed)):
    try:
        return await feed.stats()
    except StoreError as e:
        raise _store_unavailable(e)


@router.get("/feed/storage", response_model=StorageStats)
async def feed_storage(feed: FeedStore = Depends(get_feed)):
    try:
        return await feed.storage_stats()
    except StoreError as e:
        raise _store_unavailable(e)


@router.post("/feed/mark-all-read")
async def mark_all_read(feed: FeedStore = Depends(get_feed)):
    try:
        return {"marked": await feed.mark_all_read()}
    except StoreError as e:
        raise _store_unavailable(e)


@router.post("/feed/{item_id}/toggle-read", response_model=FeedItem)
async def toggle_read(item_id: str, feed: FeedStore = Depends(get_feed)):
    try:
        return await feed.toggle_read(item_id)
    except FeedItemNotFound:
        raise HTTPException(status_code=404, detail="Feed item not found")
    except StoreError as e:
        raise _store_unavailable(e)


@router.delete("/feed")
async def clear_feed(
    reset_snapshots: bool = False,
    feed: FeedStore = Depends(get_feed),
    watchlist: WatchlistStore = Depends(get_watchlist),
    store: KeyValueStore = Depends(get_store),
):
    """Empty the feed. With reset_snapshots, company pages are re-detected from scratch."""
    try:
        await feed.clear()
        if reset_snapshots:
            company_ids = [c.id for c in await watchlist.list_companies()]
            await job_snapshots(store).clear(company_ids)
            await company_snapshots(store).clear(company_ids)
    except StoreError as e:
        raise _store_unavailable(e)
    return {"cleared": True, "snapshots_reset": reset_snapshots}


@router.delete("/feed/{item_id}")
async def delete_feed_item(item_id: str, feed: FeedStore = Depends(get_feed)):
    try:
        deleted = await feed.delete(item_id)
    except StoreError as e:
        raise _store_unavailable(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Feed item not found")
    return {"deleted": item_id}


# --- Watchlist ---


@router.get("/watchlist/companies", response_model=List[MonitoredCompany])
async def list_companies(watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.list_companies()


@router.post("/watchlist/companies", response_model=MonitoredCompany, status_code=201)
async def add_company(company: MonitoredCompany, watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.add_company(company)


@router.delete("/watchlist/companies/{company_id}")
async def remove_company(company_id: str, watchlist: WatchlistStore = Depends(get_watchlist)):
    try:
        await watchlist.remove_company(company_id)
    except WatchlistEntryNotFound:
        raise HTTPException(status_code=404, detail="Company not found")
    return {"deleted": company_id}


@router.get("/watchlist/people", response_model=List[MonitoredPerson])
async def list_people(watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.list_people()


@router.post("/watchlist/people", response_model=MonitoredPerson, status_code=201)
async def add_person(person: MonitoredPerson, watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.add_person(person)


@router.delete("/watchlist/people/{person_id}")
async def remove_person(person_id: str, watchlist: WatchlistStore = Depends(get_watchlist)):
    try:
        await watchlist.remove_person(person_id)
    except WatchlistEntryNotFound:
        raise HTTPException(status_code=404, detail="Person not found")
    return {"deleted": person_id}


@router.get("/watchlist/paths", response_model=List[ConnectionPath])
async def list_paths(watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.list_paths()


@router.post("/watchlist/paths", response_model=ConnectionPath, status_code=201)
async def add_path(path: ConnectionPath, watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.add_path(path)


@router.delete("/watchlist/paths/{path_id}")
async def remove_path(path_id: str, watchlist: WatchlistStore = Depends(get_watchlist)):
    try:
        await watchlist.remove_path(path_id)
    except WatchlistEntryNotFound:
        raise HTTPException(status_code=404, detail="Connection path not found")
    return {"deleted": path_id}


@router.get("/preferences", response_model=JobPreferences)
async def get_preferences(watchlist: WatchlistStore = Depends(get_watchlist)):
    return await watchlist.get_preferences() or JobPreferences()


@router.put("/preferences", response_model=JobPreferences)
async def set_preferences(preferences: JobPreferences, watchlist: WatchlistStore = Depends(get_watchlist)):
    await watchlist.set_preferences(preferences)
    return preferences


# --- Monitoring cycles ---


@router.post("/page-visits", response_model=CycleSummary)
async def page_visit(
    visit: PageVisitRequest,
    store: KeyValueStore = Depends(get_store),
    config: DetectionConfig = Depends(get_config),
):
    """Run one monitoring cycle for a page the browser just visited."""
    orchestrator = build_orchestrator(store, config)
    return await orchestrator.monitor_page(visit.url, CapturedPageScraper.from_visit(visit))


@router.post("/connections/check", response_model=CycleSummary)
async def check_connections(
    request: ConnectionCheckRequest,
    store: KeyValueStore = Depends(get_store),
    config: DetectionConfig = Depends(get_config),
):
    orchestrator = build_orchestrator(store, config)
    return await orchestrator.check_connections(request.current_connections, request.profiles)


@router.get("/health")
async def health(store: KeyValueStore = Depends(get_store)):
    try:
        await store.get("feed")
    except StoreError as e:
        logger.warning("Health check store failure: %s", e)
        return {"ok": False}
    return {"ok": True}
