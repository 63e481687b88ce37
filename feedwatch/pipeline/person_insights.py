"""Opportunity-relevant changes on watched people's profiles.

At most one insight is emitted per check, from the first applicable branch:

1. No usable role history (no current role, no snapshot, or a snapshot
   without a role): scan recent activity for hiring posts.
2. Employer changed: report if the new employer is watchlisted or the new
   title is senior.
3. Same employer, new title: report only if the employer is watchlisted and
   the title is senior.
4. Nothing changed: scan recent activity for hiring posts.

A hiring post already in the feed is not reported again.
"""

import logging
import re
from datetime import datetime
from typing import Optional, Set

from feedwatch.api.feed_schemas import FeedItem, PersonUpdatePayload
from feedwatch.api.schemas import MonitoredPerson, PersonProfile, PersonSnapshot, utcnow
from feedwatch.config import DetectionConfig
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import StoreError
from feedwatch.db.snapshots import SnapshotStore
from feedwatch.db.watchlist import WatchlistStore, normalize_name
from feedwatch.pipeline.normalizer import contains_any, truncate

logger = logging.getLogger(__name__)

HIRING_KEYWORDS = [
    "hiring",
    "we're hiring",
    "we are hiring",
    "looking for",
    "seeking",
    "intern",
    "internship",
    "open role",
    "open position",
    "join our team",
    "join us",
    "we're looking",
    "we are looking",
    "recruiting",
    "applications",
]

SENIOR_ROLE = re.compile(r"senior|lead|manager|director|head|vp|chief", re.IGNORECASE)


def is_senior_role(title: Optional[str]) -> bool:
    return bool(title and SENIOR_ROLE.search(title))


def _person_payload(person: MonitoredPerson, profile: PersonProfile, **fields) -> PersonUpdatePayload:
    return PersonUpdatePayload(
        person_id=person.id,
        person_name=profile.name,
        person_title=profile.current_role.title if profile.current_role else None,
        person_url=profile.profile_url or person.profile_url,
        person_image=profile.photo_url,
        **fields,
    )


def detect_hiring_activity(
    profile: PersonProfile,
    person: MonitoredPerson,
    config: DetectionConfig,
    now: Optional[datetime] = None,
) -> Optional[FeedItem]:
    for activity in profile.recent_activity:
        keyword = contains_any(activity.preview, HIRING_KEYWORDS)
        if keyword is None:
            continue
        logger.info("Hiring activity from %s (matched %r)", person.name, keyword)
        return FeedItem.create(
            _person_payload(
                person, profile,
                insight_type="new_activity",
                update_text=activity.preview,
            ),
            title=f"{profile.name} posted about hiring",
            description=truncate(activity.preview, config.preview_max_chars),
            action_url=activity.url or profile.profile_url or person.profile_url,
            action_label="View Post",
            timestamp=now,
        )
    return None


def detect_person_insight(
    current: PersonProfile,
    previous: Optional[PersonProfile],
    person: MonitoredPerson,
    watchlisted: Set[str],
    config: Optional[DetectionConfig] = None,
    now: Optional[datetime] = None,
) -> Optional[FeedItem]:
    """The single most relevant insight for this profile change, if any.

    ``watchlisted`` holds normalized names of watchlisted companies.
    """
    config = config or DetectionConfig()
    role = current.current_role
    prior = previous.current_role if previous else None

    if role is None or prior is None:
        return detect_hiring_activity(current, person, config, now)

    is_target = normalize_name(role.company) in watchlisted
    senior = is_senior_role(role.title)
    url = current.profile_url or person.profile_url

    if role.company != prior.company:
        if not (is_target or senior):
            logger.debug("%s changed jobs to a non-relevant role, skipping", person.name)
            return None
        logger.info("Job change for %s: %s -> %s", person.name, prior.company, role.company)
        return FeedItem.create(
            _person_payload(
                person, current,
                insight_type="job_change",
                new_company=role.company,
                new_role=role.title,
                is_target_company=is_target,
                update_text=f"Started new position at {role.company}",
            ),
            title=(
                f"{current.name} joined {role.company}" if is_target
                else f"{current.name} changed jobs"
            ),
            description=(
                f"{current.name} is now {role.title} at {role.company}"
                + (" (Watchlisted Company!)" if is_target else "")
            ),
            action_url=url,
            action_label="View Profile",
            timestamp=now,
        )

    if role.title != prior.title:
        if not (is_target and senior):
            logger.debug("Title change for %s not relevant, skipping", person.name)
            return None
        logger.info("Promotion for %s at %s: %s", person.name, role.company, role.title)
        return FeedItem.create(
            _person_payload(
                person, current,
                insight_type="promotion",
                new_company=role.company,
                new_role=role.title,
                is_target_company=True,
                update_text=f"Promoted to {role.title}",
            ),
            title=f"{current.name} promoted at {role.company}",
            description=f"{current.name} is now {role.title} at {role.company} (Watchlisted Company!)",
            action_url=url,
            action_label="View Profile",
            timestamp=now,
        )

    return detect_hiring_activity(current, person, config, now)


class PersonInsightDetector:
    def __init__(
        self,
        snapshots: SnapshotStore[PersonSnapshot],
        watchlist: WatchlistStore,
        feed: FeedStore,
        config: Optional[DetectionConfig] = None,
    ):
        self.snapshots = snapshots
        self.watchlist = watchlist
        self.feed = feed
        self.config = config or DetectionConfig()

    async def watchlisted_names(self) -> Set[str]:
        try:
            companies = await self.watchlist.list_companies()
        except StoreError as e:
            logger.error("Could not load watchlisted companies: %s", e)
            return set()
        return {normalize_name(c.name) for c in companies}

    async def already_in_feed(self, item: FeedItem) -> bool:
        if item.payload.insight_type != "new_activity":
            return False
        try:
            return await self.feed.has_person_activity(item.payload.person_id, item.payload.update_text)
        except StoreError as e:
            logger.warning("Person activity dedup scan failed for %s, allowing: %s", item.payload.person_name, e)
            return False

    async def run(
        self,
        person: MonitoredPerson,
        profile: Optional[PersonProfile],
        now: Optional[datetime] = None,
    ) -> Optional[FeedItem]:
        now = now or utcnow()
        if profile is None:
            logger.warning("No profile scraped for %s", person.name)
            return None

        previous = await self.snapshots.get(person.id)
        candidate = detect_person_insight(
            profile,
            previous.profile if previous else None,
            person,
            await self.watchlisted_names(),
            self.config,
            now,
        )

        item = None
        if candidate and await self.already_in_feed(candidate):
            logger.info("Hiring post from %s already in feed", person.name)
        elif candidate:
            item = await self.feed.add(candidate)

        try:
            await self.snapshots.set(
                person.id,
                PersonSnapshot(person_id=person.id, last_checked=now, profile=profile),
            )
        except StoreError as e:
            logger.error("Failed to save person snapshot for %s: %s", person.name, e)

        return item
