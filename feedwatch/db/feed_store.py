"""Feed storage.

The feed is a single list kept newest-first. New items are prepended and the
list is re-sorted by timestamp (stably, so ties keep insertion order). Every
write is a non-atomic get-then-set of the whole list.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from feedwatch.api.feed_schemas import FeedItem, FeedStats, StorageStats
from feedwatch.api.schemas import utcnow
from feedwatch.db.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

FEED_KEY = "feed"


class FeedItemNotFound(KeyError):
    """Raised when a feed item id does not exist."""


def _sort_newest_first(items: List[FeedItem]) -> List[FeedItem]:
    return sorted(items, key=lambda item: item.timestamp, reverse=True)


def _same_activity(item: FeedItem, person_id: str, update_text: str) -> bool:
    return (
        item.type == "person_update"
        and item.payload.insight_type == "new_activity"
        and item.payload.person_id == person_id
        and bool(update_text)
        and item.payload.update_text == update_text
    )


class FeedStore:
    """Ordered feed of notifications; the sink every detector writes to."""

    def __init__(self, store: KeyValueStore, heat_window_days: int = 7):
        self.store = store
        self.heat_window_days = heat_window_days

    async def list_items(self) -> List[FeedItem]:
        raw = await self.store.get_value(FEED_KEY, [])
        return _sort_newest_first([FeedItem.model_validate(r) for r in raw])

    async def _save(self, items: List[FeedItem]) -> None:
        await self.store.set({
            FEED_KEY: [item.model_dump(mode="json") for item in _sort_newest_first(items)]
        })

    # --- Dedup scans ---

    async def find_recent(
        self,
        item_type: str,
        company_id: str,
        since: datetime,
    ) -> Optional[FeedItem]:
        """Existing item of ``item_type`` for a company at or after ``since``."""
        for item in await self.list_items():
            if (
                item.type == item_type
                and getattr(item.payload, "company_id", None) == company_id
                and item.timestamp >= since
            ):
                return item
        return None

    async def has_company_update(self, company_id: str, source_url: str) -> bool:
        """Whether a company_update for this company and post url exists."""
        if not source_url:
            return False
        for item in await self.list_items():
            if (
                item.type == "company_update"
                and item.payload.company_id == company_id
                and item.payload.source_url == source_url
            ):
                return True
        return False

    async def has_person_activity(self, person_id: str, update_text: str) -> bool:
        """Whether this person's hiring post is already in the feed."""
        return any(
            _same_activity(item, person_id, update_text) for item in await self.list_items()
        )

    def _duplicate_of(self, item: FeedItem, items: List[FeedItem]) -> Optional[FeedItem]:
        payload = item.payload
        for existing in items:
            if existing.id == item.id:
                return existing
            if existing.type != item.type:
                continue
            if item.type == "company_update":
                if (
                    payload.source_url
                    and existing.payload.company_id == payload.company_id
                    and existing.payload.source_url == payload.source_url
                ):
                    return existing
            elif item.type == "person_update":
                if payload.insight_type == "new_activity" and _same_activity(
                    existing, payload.person_id, payload.update_text,
                ):
                    return existing
            elif item.type == "hiring_heat":
                window_start = item.timestamp - timedelta(days=self.heat_window_days)
                if (
                    existing.payload.company_id == payload.company_id
                    and existing.timestamp >= window_start
                ):
                    return existing
        return None

    # --- Mutations ---

    async def add(self, item: FeedItem) -> Optional[FeedItem]:
        """Prepend an item unless an equivalent one is already in the feed.

        Returns the stored item, or None when it was rejected as a duplicate.
        """
        items = await self.list_items()
        duplicate = self._duplicate_of(item, items)
        if duplicate:
            logger.info("Rejected duplicate %s item (existing %s)", item.type, duplicate.id)
            return None

        items.insert(0, item)
        await self._save(items)
        logger.info("Added %s feed item: %s", item.type, item.title)
        return item

    async def get(self, item_id: str) -> FeedItem:
        for item in await self.list_items():
            if item.id == item_id:
                return item
        raise FeedItemNotFound(item_id)

    async def set_read(self, item_id: str, read: bool) -> FeedItem:
        items = await self.list_items()
        for item in items:
            if item.id == item_id:
                item.read = read
                await self._save(items)
                return item
        raise FeedItemNotFound(item_id)

    async def toggle_read(self, item_id: str) -> FeedItem:
        item = await self.get(item_id)
        return await self.set_read(item_id, not item.read)

    async def mark_all_read(self) -> int:
        items = await self.list_items()
        changed = sum(1 for item in items if not item.read)
        for item in items:
            item.read = True
        await self._save(items)
        logger.info("Marked %d feed items as read", changed)
        return changed

    async def delete(self, item_id: str) -> bool:
        items = await self.list_items()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            return False
        await self._save(remaining)
        logger.info("Deleted feed item %s", item_id)
        return True

    async def clear(self) -> None:
        await self.store.set({FEED_KEY: []})
        logger.info("Feed cleared")

    async def cleanup_older_than(self, max_age_days: int = 30, now: Optional[datetime] = None) -> int:
        """Drop items older than ``max_age_days``. Returns the number removed."""
        cutoff = (now or utcnow()) - timedelta(days=max_age_days)
        items = await self.list_items()
        fresh = [item for item in items if item.timestamp > cutoff]
        removed = len(items) - len(fresh)
        if removed:
            await self._save(fresh)
            logger.info("Cleaned up %d feed items older than %d days", removed, max_age_days)
        return removed

    async def storage_stats(self, now: Optional[datetime] = None) -> StorageStats:
        """Size of the stored feed and the age of its oldest item."""
        now = now or utcnow()
        raw = await self.store.get_value(FEED_KEY, [])
        items = [FeedItem.model_validate(r) for r in raw]
        oldest = min((item.timestamp for item in items), default=now)
        return StorageStats(
            feed_item_count=len(items),
            estimated_size_kb=round(len(json.dumps(raw)) / 1024, 1),
            oldest_item_age_days=(now - oldest).days,
        )

    async def stats(self) -> FeedStats:
        items = await self.list_items()

        def count(item_type: str) -> int:
            return sum(1 for item in items if item.type == item_type)

        return FeedStats(
            total_items=len(items),
            unread_count=sum(1 for item in items if not item.read),
            job_alerts=count("job_alert"),
            hiring_heat=count("hiring_heat"),
            company_updates=count("company_update"),
            connection_updates=count("connection_update"),
            warm_paths=count("warm_path_opened"),
            person_updates=count("person_update"),
        )
