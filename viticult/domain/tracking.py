"""Domain models for visitor tracking and GDPR requests."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, EmailStr, Field, field_validator

VISITOR_STATUSES = ("anonymous", "prospect", "identified", "customer")
VisitorStatus = Literal["anonymous", "prospect", "identified", "customer"]

ConsentMethod = Literal["banner", "preferences", "api", "implied"]
ConsentAction = Literal["granted", "denied", "updated", "withdrawn"]


class TrackingModel(BaseModel):
    """Base for beacon payloads: camelCase aliases, unknown keys ignored."""

    class Config:
        populate_by_name = True
        extra = "ignore"


class PageVisit(TrackingModel):
    url: str = Field(min_length=1, max_length=500)
    title: Optional[str] = Field(default=None, max_length=300)
    time_spent: float = Field(default=0, alias="timeSpent", ge=0)
    scroll_depth: float = Field(default=0, alias="scrollDepth", ge=0, le=100)
    clicks: int = Field(default=0, ge=0)


class BehaviorPayload(TrackingModel):
    interests: List[str] = Field(default_factory=list)
    pages_visited: List[PageVisit] = Field(default_factory=list, alias="pagesVisited")


class SessionPayload(TrackingModel):
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    page_views: int = Field(default=0, alias="pageViews", ge=0)
    total_time_spent: float = Field(default=0, alias="totalTimeSpent", ge=0)


class Referrer(TrackingModel):
    source: str = "direct"
    medium: Optional[str] = None
    campaign: Optional[str] = None
    url: Optional[str] = None


class Location(TrackingModel):
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None


class Device(TrackingModel):
    type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    screen_resolution: Optional[str] = Field(default=None, alias="screenResolution")
    language: Optional[str] = None


class VisitorPayload(TrackingModel):
    """Visit beacon sent by the site on page load and unload.

    Example:
        {"visitorId": "v_123", "device": {"type": "desktop"},
         "session": {"pageViews": 2, "totalTimeSpent": 95},
         "behavior": {"interests": ["casks"],
                      "pagesVisited": [{"url": "/sell", "timeSpent": 40}]}}
    """
    visitor_id: str = Field(alias="visitorId", min_length=1, max_length=100)
    fingerprint: Optional[str] = Field(default=None, max_length=200)
    location: Optional[Location] = None
    device: Optional[Device] = None
    behavior: Optional[BehaviorPayload] = None
    session: Optional[SessionPayload] = None
    referrer: Optional[Referrer] = None

    @field_validator("referrer", mode="before")
    @classmethod
    def referrer_from_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"source": value or "direct", "url": value or None}
        return value


class EventPayload(TrackingModel):
    visitor_id: str = Field(alias="visitorId", min_length=1, max_length=100)
    category: str = Field(max_length=100)
    action: str = Field(max_length=100)
    label: Optional[str] = Field(default=None, max_length=300)
    value: Optional[Union[float, str]] = None


class IdentifyPayload(TrackingModel):
    visitor_id: str = Field(alias="visitorId", min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)


class CaptureFieldPayload(TrackingModel):
    visitor_id: str = Field(alias="visitorId", min_length=1, max_length=100)
    field_name: str = Field(alias="fieldName", min_length=1, max_length=100)
    field_value: Optional[str] = Field(default=None, alias="fieldValue", max_length=2000)
    form_type: str = Field(default="unknown", alias="formType", max_length=100)
    page_url: Optional[str] = Field(default=None, alias="pageUrl", max_length=500)


class VisitorBulkDelete(TrackingModel):
    visitor_ids: List[str] = Field(default_factory=list, alias="visitorIds")


class ConsentPreferences(TrackingModel):
    necessary: bool = True
    analytics: bool = False
    marketing: bool = False
    functional: bool = False
    version: Optional[str] = None


class ConsentLogRequest(TrackingModel):
    preferences: ConsentPreferences = Field(default_factory=ConsentPreferences)
    method: ConsentMethod = "banner"
    action: ConsentAction = "granted"
    url: Optional[str] = Field(default=None, max_length=500)
    user_agent: Optional[str] = Field(default=None, alias="userAgent", max_length=500)
    visitor_id: Optional[str] = Field(default=None, alias="visitorId", max_length=100)
    email: Optional[EmailStr] = None


class DataSubjectRequest(TrackingModel):
    """Identifies the data subject of an erasure, export or opt-out request."""
    visitor_id: Optional[str] = Field(default=None, alias="visitorId", max_length=100)
    email: Optional[EmailStr] = None
    opt_out_type: Optional[Literal["all", "marketing", "analytics"]] = Field(default=None, alias="optOutType")


class RectificationRequest(TrackingModel):
    email: Optional[EmailStr] = None
    updates: Dict[str, Any] = Field(default_factory=dict)
