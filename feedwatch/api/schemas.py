"""Pydantic models for scraped records, watchlist entities and API schemas."""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field, model_validator

WorkLocationType = Literal["remote", "hybrid", "onsite"]


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC; aware ones are converted to it."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# --- Scraped records (produced by the page scraper) ---


class JobPosting(BaseModel):
    """A job listed on a company's jobs page."""
    id: str
    title: str
    posted_at: UtcDatetime
    location: str = ""
    url: str = ""
    work_location: Optional[WorkLocationType] = None


class CompanyUpdate(BaseModel):
    """A post/article from a company's updates page."""
    id: str
    preview: str
    timestamp: UtcDatetime
    url: str = ""
    kind: str = "post"


class CurrentRole(BaseModel):
    title: str
    company: str


class ProfileActivity(BaseModel):
    preview: str
    timestamp: UtcDatetime
    type: str = "post"
    url: str = ""


class PersonProfile(BaseModel):
    """Profile record scraped from a person's page."""
    name: str
    headline: str = ""
    profile_url: str = ""
    current_role: Optional[CurrentRole] = None
    photo_url: Optional[str] = None
    location: Optional[str] = None
    recent_activity: List[ProfileActivity] = []


# --- Watchlist ---


class JobPreferences(BaseModel):
    """What kinds of jobs the user wants to hear about."""
    keywords: List[str] = []
    locations: List[str] = []
    work_location_types: List[WorkLocationType] = []


class MonitoredCompany(BaseModel):
    id: str = Field(default_factory=lambda: new_id("company"))
    name: str
    company_url: str
    company_logo: Optional[str] = None
    job_alert_enabled: bool = True
    job_preferences: Optional[JobPreferences] = None
    last_checked: Optional[UtcDatetime] = None
    added_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def jobs_url(self) -> str:
        return f"{self.company_url.rstrip('/')}/jobs/"


class MonitoredPerson(BaseModel):
    id: str = Field(default_factory=lambda: new_id("person"))
    name: str
    profile_url: str
    headline: Optional[str] = None
    added_at: UtcDatetime = Field(default_factory=utcnow)


class PathStep(BaseModel):
    name: str
    profile_url: str
    degree: int = 1
    connected: bool = False
    profile_image: Optional[str] = None


class ConnectionPath(BaseModel):
    """Ordered chain of people the user is connecting through to a target.

    completed_steps and is_complete are always derived from the steps.
    """
    id: str = Field(default_factory=lambda: new_id("path"))
    target_name: str = ""
    target_profile_url: str = ""
    steps: List[PathStep] = []
    total_steps: int = 0
    completed_steps: int = 0
    is_complete: bool = False
    added_at: UtcDatetime = Field(default_factory=utcnow)
    last_updated: UtcDatetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _derive_progress(self):
        if not self.total_steps:
            self.total_steps = len(self.steps)
        self.recompute()
        return self

    def recompute(self):
        self.completed_steps = sum(1 for step in self.steps if step.connected)
        self.is_complete = self.completed_steps == self.total_steps

    def mark_connected(self, step_index: int, when: Optional[datetime] = None) -> bool:
        """Mark one step connected. Returns False for an out-of-range index."""
        if step_index < 0 or step_index >= len(self.steps):
            return False
        self.steps[step_index].connected = True
        self.recompute()
        self.last_updated = when or utcnow()
        return True


# --- Snapshots ---


class JobSnapshot(BaseModel):
    company_id: str
    last_checked: UtcDatetime
    jobs: List[JobPosting]


class CompanySnapshot(BaseModel):
    company_id: str
    last_checked: UtcDatetime
    updates: List[CompanyUpdate]


class PersonSnapshot(BaseModel):
    person_id: str
    last_checked: UtcDatetime
    profile: PersonProfile


# --- API requests / responses ---


class PageVisitRequest(BaseModel):
    """A page visit captured by the browser, with whatever it scraped."""
    url: str
    jobs: List[JobPosting] = []
    updates: List[CompanyUpdate] = []
    profile: Optional[PersonProfile] = None


class ConnectionCheckRequest(BaseModel):
    current_connections: List[str]
    profiles: Dict[str, PersonProfile] = {}


class CycleSummary(BaseModel):
    """What one monitoring cycle matched and produced."""
    url: Optional[str] = None
    company_id: Optional[str] = None
    person_id: Optional[str] = None
    job_alerts: int = 0
    hiring_heat: int = 0
    company_updates: int = 0
    person_updates: int = 0
    connection_updates: int = 0
    warm_paths: int = 0
    errors: List[str] = []
