"""Warm path detection.

A warm path opens when a new connection works at a watchlisted company.
Only direct paths (length 1) are detected; two-hop "bridge" paths through a
connection's colleagues are not implemented.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from feedwatch.api.feed_schemas import FeedItem, WarmPathPayload
from feedwatch.api.schemas import MonitoredCompany, PersonProfile, utcnow
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import StoreError
from feedwatch.db.watchlist import WatchlistStore, normalize_name
from feedwatch.resilience.ledgers import WarmPathLedger

logger = logging.getLogger(__name__)

DIRECT_PATH = 1


class WarmPathDescriptor(BaseModel):
    target_company: str
    target_company_url: str
    target_company_logo: Optional[str] = None
    via_person_name: str
    via_person_profile_url: str
    via_person_image: Optional[str] = None
    via_person_title: Optional[str] = None
    path_length: int = DIRECT_PATH


def detect_direct_warm_path(
    profile_url: str,
    profile: PersonProfile,
    companies: List[MonitoredCompany],
) -> Optional[WarmPathDescriptor]:
    """Descriptor when the person's current employer is on the watchlist."""
    employer = profile.current_role.company if profile.current_role else None
    if not employer or not employer.strip():
        logger.debug("No employer known for %s", profile_url)
        return None

    wanted = normalize_name(employer)
    company = next((c for c in companies if normalize_name(c.name) == wanted), None)
    if company is None:
        logger.debug("Employer %s is not watchlisted", employer)
        return None

    return WarmPathDescriptor(
        target_company=company.name,
        target_company_url=company.company_url,
        target_company_logo=company.company_logo,
        via_person_name=profile.name,
        via_person_profile_url=profile_url,
        via_person_image=profile.photo_url,
        via_person_title=profile.current_role.title,
        path_length=DIRECT_PATH,
    )


def build_warm_path_item(descriptor: WarmPathDescriptor, now: Optional[datetime] = None) -> FeedItem:
    return FeedItem.create(
        WarmPathPayload(**descriptor.model_dump()),
        title=f"Warm path opened to {descriptor.target_company}",
        description=(
            f"Your new connection {descriptor.via_person_name} works at "
            f"{descriptor.target_company} (a watchlisted company). "
            f"Now's a great time to reach out!"
        ),
        action_url=descriptor.via_person_profile_url,
        action_label="View Profile",
        timestamp=now,
    )


class WarmPathDetector:
    def __init__(self, watchlist: WatchlistStore, ledger: WarmPathLedger, feed: FeedStore):
        self.watchlist = watchlist
        self.ledger = ledger
        self.feed = feed

    async def detect(self, profile_url: str, profile: PersonProfile) -> Optional[WarmPathDescriptor]:
        companies = await self.watchlist.list_companies()
        return detect_direct_warm_path(profile_url, profile, companies)

    async def already_reported(self, descriptor: WarmPathDescriptor, now: datetime) -> bool:
        try:
            return await self.ledger.is_duplicate(
                descriptor.target_company_url,
                descriptor.via_person_profile_url,
                descriptor.path_length,
                now=now,
            )
        except StoreError as e:
            logger.warning("Warm path dedup lookup failed, allowing: %s", e)
            return False

    async def run(
        self,
        profile_url: str,
        profile: PersonProfile,
        now: Optional[datetime] = None,
    ) -> Optional[FeedItem]:
        now = now or utcnow()
        descriptor = await self.detect(profile_url, profile)
        if descriptor is None:
            return None

        if await self.already_reported(descriptor, now):
            logger.info(
                "Warm path via %s to %s already reported",
                descriptor.via_person_name, descriptor.target_company,
            )
            return None

        item = await self.feed.add(build_warm_path_item(descriptor, now))
        await self.ledger.record(
            descriptor.target_company_url,
            descriptor.via_person_profile_url,
            descriptor.path_length,
            now=now,
        )
        logger.info("Warm path opened: %s -> %s", descriptor.via_person_name, descriptor.target_company)
        return item
