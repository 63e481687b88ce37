"""Abstract page scraper.

The monitoring cycle never talks to a page directly; it asks a scraper for
the records of the page being visited. Each concrete scraper implements the
three lookups below. None of them raise when the page has nothing for the
entity: they return an empty list or None, which the detectors read as
"no signal".
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from feedwatch.api.schemas import CompanyUpdate, JobPosting, PersonProfile


class PageScraper(ABC):
    """Abstract base class for all page scrapers."""

    def __init__(self, url: str):
        self.url = url

    @abstractmethod
    async def jobs_for_company(self, company_id: str) -> List[JobPosting]:
        """Job postings listed on a company's jobs page."""
        ...

    @abstractmethod
    async def updates_for_company(self, company_id: str) -> List[CompanyUpdate]:
        """Posts listed on a company's posts page."""
        ...

    @abstractmethod
    async def profile_for_person(self) -> Optional[PersonProfile]:
        """The profile shown on the current page, if it is a profile page."""
        ...
