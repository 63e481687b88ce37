"""Scraper over records the browser already extracted.

The browser extension parses the page it is on and posts the result with the
page visit, so this scraper only hands those records back.
"""

import logging
from typing import List, Optional

from feedwatch.api.schemas import CompanyUpdate, JobPosting, PageVisitRequest, PersonProfile
from feedwatch.scraper.base import PageScraper

logger = logging.getLogger(__name__)


class CapturedPageScraper(PageScraper):
    def __init__(
        self,
        url: str,
        jobs: Optional[List[JobPosting]] = None,
        updates: Optional[List[CompanyUpdate]] = None,
        profile: Optional[PersonProfile] = None,
    ):
        super().__init__(url)
        self.jobs = jobs or []
        self.updates = updates or []
        self.profile = profile

    @classmethod
    def from_visit(cls, visit: PageVisitRequest) -> "CapturedPageScraper":
        logger.info(
            "Captured page %s: %d jobs, %d updates, profile=%s",
            visit.url, len(visit.jobs), len(visit.updates), visit.profile is not None,
        )
        return cls(visit.url, visit.jobs, visit.updates, visit.profile)

    async def jobs_for_company(self, company_id: str) -> List[JobPosting]:
        return list(self.jobs)

    async def updates_for_company(self, company_id: str) -> List[CompanyUpdate]:
        return list(self.updates)

    async def profile_for_person(self) -> Optional[PersonProfile]:
        return self.profile
