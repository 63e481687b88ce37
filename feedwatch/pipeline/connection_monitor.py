"""Connection acceptance detection.

Compares the user's current connections with the steps of saved connection
paths. Each newly connected step is reported once: the feed item goes out
first, then the path is updated and the acceptance logged. A bad path or
step reference only skips the path update.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel

from feedwatch.api.feed_schemas import ConnectionUpdatePayload, FeedItem
from feedwatch.api.schemas import ConnectionPath, PersonProfile, utcnow
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import StoreError
from feedwatch.db.watchlist import WatchlistStore
from feedwatch.pipeline.warm_path import WarmPathDetector
from feedwatch.resilience.ledgers import AcceptanceLedger

logger = logging.getLogger(__name__)


class Acceptance(BaseModel):
    path_id: str
    step_index: int
    person_name: str
    profile_url: str


def track_connection_status(profile_url: str, current_connections: Iterable[str]) -> str:
    if profile_url in set(current_connections):
        return "connected"
    return "not_connected"


def find_acceptances(
    current_connections: Iterable[str],
    paths: List[ConnectionPath],
    logged: Set[Tuple[str, str]],
) -> List[Acceptance]:
    """Unconnected, unlogged steps whose person is now a connection."""
    connected = set(current_connections)
    acceptances = []
    for path in paths:
        for index, step in enumerate(path.steps):
            if (
                track_connection_status(step.profile_url, connected) == "connected"
                and not step.connected
                and (path.id, step.profile_url) not in logged
            ):
                acceptances.append(Acceptance(
                    path_id=path.id,
                    step_index=index,
                    person_name=step.name,
                    profile_url=step.profile_url,
                ))
    return acceptances


def build_connection_item(
    acceptance: Acceptance,
    path: Optional[ConnectionPath],
    now: Optional[datetime] = None,
) -> FeedItem:
    """Feed item for an acceptance; ``path`` is the already-updated path, if any."""
    name = acceptance.person_name
    target = (path.target_name if path else None) or "your target"

    if path is None:
        title = "Connection accepted"
        description = f"{name} accepted your connection request"
    elif path.is_complete:
        title = "🎉 Connection Path Complete!"
        description = f"{name} connected! You've completed your path to {target}"
    else:
        remaining = path.total_steps - path.completed_steps
        title = f"✅ Step {path.completed_steps}/{path.total_steps} Complete"
        description = (
            f"{name} connected! {remaining} {'step' if remaining == 1 else 'steps'} "
            f"remaining to reach {target}"
        )

    return FeedItem.create(
        ConnectionUpdatePayload(
            path_id=acceptance.path_id,
            connection_name=name,
            connection_url=acceptance.profile_url,
            completed_steps=path.completed_steps if path else None,
            total_steps=path.total_steps if path else None,
            path_complete=path.is_complete if path else False,
            target_name=path.target_name if path else None,
        ),
        title=title,
        description=description,
        action_url=acceptance.profile_url,
        action_label="View Profile",
        timestamp=now,
    )


class ConnectionAcceptanceDetector:
    def __init__(
        self,
        watchlist: WatchlistStore,
        ledger: AcceptanceLedger,
        feed: FeedStore,
        warm_path: Optional[WarmPathDetector] = None,
    ):
        self.watchlist = watchlist
        self.ledger = ledger
        self.feed = feed
        self.warm_path = warm_path

    async def detect(
        self,
        current_connections: List[str],
        paths: Optional[List[ConnectionPath]] = None,
    ) -> List[Acceptance]:
        if paths is None:
            paths = await self.watchlist.list_paths()
        logged = await self.ledger.load()
        acceptances = find_acceptances(current_connections, paths, logged)
        logger.info("Connection check: %d new acceptances across %d paths", len(acceptances), len(paths))
        return acceptances

    async def log_acceptance(
        self,
        acceptance: Acceptance,
        profile: Optional[PersonProfile] = None,
        now: Optional[datetime] = None,
    ) -> List[FeedItem]:
        """Notify, update the path, log the acceptance, then look for a warm path."""
        now = now or utcnow()
        paths = await self.watchlist.list_paths()
        index = next((i for i, p in enumerate(paths) if p.id == acceptance.path_id), None)

        updated: Optional[ConnectionPath] = None
        if index is None:
            logger.warning("Acceptance for unknown path %s, path not updated", acceptance.path_id)
        else:
            candidate = paths[index].model_copy(deep=True)
            if candidate.mark_connected(acceptance.step_index, now):
                updated = candidate
            else:
                logger.warning(
                    "Step %d out of range for path %s, path not updated",
                    acceptance.step_index, acceptance.path_id,
                )

        created: List[FeedItem] = []
        item = await self.feed.add(build_connection_item(acceptance, updated, now))
        if item:
            created.append(item)

        if updated is not None:
            paths[index] = updated
            try:
                await self.watchlist.save_paths(paths)
            except StoreError as e:
                logger.warning("Could not save progress for path %s: %s", acceptance.path_id, e)

        await self.ledger.append(acceptance.path_id, acceptance.profile_url)
        logger.info("Logged acceptance from %s on path %s", acceptance.person_name, acceptance.path_id)

        if profile is not None and self.warm_path is not None:
            try:
                warm_item = await self.warm_path.run(acceptance.profile_url, profile, now)
                if warm_item:
                    created.append(warm_item)
            except Exception as e:
                logger.error("Warm path check failed for %s: %s", acceptance.person_name, e, exc_info=True)

        return created

    async def run(
        self,
        current_connections: List[str],
        profiles: Optional[Dict[str, PersonProfile]] = None,
        now: Optional[datetime] = None,
    ) -> List[FeedItem]:
        profiles = profiles or {}
        created: List[FeedItem] = []
        for acceptance in await self.detect(current_connections):
            created.extend(await self.log_acceptance(
                acceptance, profiles.get(acceptance.profile_url), now,
            ))
        return created
