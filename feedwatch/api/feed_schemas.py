"""Feed item models.

A feed item is a common envelope (id, timestamp, read flag, display text)
around exactly one payload. The payload's ``type`` tag selects its shape.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from feedwatch.api.schemas import UtcDatetime, utcnow

FEED_ITEM_TYPES = (
    "job_alert",
    "hiring_heat",
    "company_update",
    "connection_update",
    "warm_path_opened",
    "person_update",
)

HeatLevel = Literal["warming", "hot", "very_hot"]


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class JobAlertPayload(_Payload):
    type: Literal["job_alert"] = "job_alert"
    company_id: str
    company: str
    company_logo: Optional[str] = None
    job_id: str
    job_title: str
    location: str = ""
    job_url: str = ""
    match_score: int
    match_reasons: List[str] = []


class HiringHeatPayload(_Payload):
    type: Literal["hiring_heat"] = "hiring_heat"
    company_id: str
    company: str
    company_logo: Optional[str] = None
    job_count: int
    internship_count: int = 0
    heat_level: HeatLevel
    top_job_titles: List[str] = []
    detection_window: int


class CompanyUpdatePayload(_Payload):
    type: Literal["company_update"] = "company_update"
    company_id: str
    company: str
    company_logo: Optional[str] = None
    update_id: str
    preview: str
    source_url: str = ""


class ConnectionUpdatePayload(_Payload):
    type: Literal["connection_update"] = "connection_update"
    path_id: str
    connection_name: str
    connection_url: str
    completed_steps: Optional[int] = None
    total_steps: Optional[int] = None
    path_complete: bool = False
    target_name: Optional[str] = None


class WarmPathPayload(_Payload):
    type: Literal["warm_path_opened"] = "warm_path_opened"
    target_company: str
    target_company_url: str
    target_company_logo: Optional[str] = None
    via_person_name: str
    via_person_profile_url: str
    via_person_image: Optional[str] = None
    via_person_title: Optional[str] = None
    path_length: Literal[1, 2] = 1


class PersonUpdatePayload(_Payload):
    type: Literal["person_update"] = "person_update"
    person_id: str
    person_name: str
    person_title: Optional[str] = None
    person_url: str
    person_image: Optional[str] = None
    insight_type: Literal["job_change", "promotion", "new_activity"]
    new_company: Optional[str] = None
    new_role: Optional[str] = None
    is_target_company: bool = False
    update_text: str = ""


FeedPayload = Annotated[
    Union[
        JobAlertPayload,
        HiringHeatPayload,
        CompanyUpdatePayload,
        ConnectionUpdatePayload,
        WarmPathPayload,
        PersonUpdatePayload,
    ],
    Field(discriminator="type"),
]


class FeedItem(BaseModel):
    """One notification surfaced to the user. Only ``read`` ever changes."""
    id: str
    timestamp: UtcDatetime
    read: bool = False
    title: str
    description: str = ""
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    payload: FeedPayload

    @computed_field
    @property
    def type(self) -> str:
        return self.payload.type

    @classmethod
    def create(
        cls,
        payload,
        title: str,
        description: str = "",
        action_url: Optional[str] = None,
        action_label: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "FeedItem":
        return cls(
            id=f"feed_{uuid.uuid4().hex}",
            timestamp=timestamp or utcnow(),
            title=title,
            description=description,
            action_url=action_url,
            action_label=action_label,
            payload=payload,
        )


class StorageStats(BaseModel):
    feed_item_count: int = 0
    estimated_size_kb: float = 0.0
    oldest_item_age_days: int = 0


class FeedStats(BaseModel):
    total_items: int = 0
    unread_count: int = 0
    job_alerts: int = 0
    hiring_heat: int = 0
    company_updates: int = 0
    connection_updates: int = 0
    warm_paths: int = 0
    person_updates: int = 0
