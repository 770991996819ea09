# app/schemas/event.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class EventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, json_schema_extra={"example": "Sunday 5-a-side"})
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    mode: str = Field("GROUP", json_schema_extra={"example": "GROUP"})
    min: Optional[int] = None
    max: Optional[int] = None
    join_mode: str = "OPEN"
    join_opens_minutes_before_start: Optional[int] = None
    join_cutoff_minutes_before_start: Optional[int] = None
    late_join_cutoff_minutes_after_start: Optional[int] = None
    allow_join_late: bool = True
    meeting_kind: str = "ONSITE"
    online_url: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class EventCreate(EventBase):
    pass


# All fields are optional; only the ones explicitly set are applied.
class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    mode: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None
    join_mode: Optional[str] = None
    join_opens_minutes_before_start: Optional[int] = None
    join_cutoff_minutes_before_start: Optional[int] = None
    late_join_cutoff_minutes_after_start: Optional[int] = None
    allow_join_late: Optional[bool] = None
    meeting_kind: Optional[str] = None
    online_url: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class Event(EventBase):
    id: str = Field(..., json_schema_extra={"example": "evt_c5a6d8e0f9b1"})
    owner_id: str
    status: str = Field(..., json_schema_extra={"example": "PUBLISHED"})
    published_at: Optional[datetime] = None
    scheduled_publish_at: Optional[datetime] = None
    joined_count: int = 0
    join_manually_closed: bool = False
    canceled_at: Optional[datetime] = None
    canceled_by_id: Optional[str] = None
    cancel_reason: Optional[str] = None
    deleted_at: Optional[datetime] = None
    deleted_by_id: Optional[str] = None
    delete_reason: Optional[str] = None
    audit_archived_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class Membership(BaseModel):
    id: str
    event_id: str
    user_id: str
    role: str
    status: str
    note: Optional[str] = None
    joined_at: Optional[datetime] = None
    left_at: Optional[datetime] = None
    waitlisted_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MembershipList(BaseModel):
    data: List[Membership]
    joinedCount: int
