# app/graphql/types.py
import dataclasses
import strawberry
import typing
from typing import Optional
from datetime import datetime
from strawberry.scalars import JSON


def _from_model(cls, obj):
    return cls(**{f.name: getattr(obj, f.name) for f in dataclasses.fields(cls)})


@strawberry.type
class EventType:
    id: str
    owner_id: str
    title: str
    description: Optional[str]
    status: str
    published_at: Optional[datetime]
    scheduled_publish_at: Optional[datetime]
    start_at: datetime
    end_at: datetime
    mode: str
    min: Optional[int]
    max: Optional[int]
    joined_count: int
    join_mode: str
    join_opens_minutes_before_start: Optional[int]
    join_cutoff_minutes_before_start: Optional[int]
    late_join_cutoff_minutes_after_start: Optional[int]
    allow_join_late: bool
    join_manually_closed: bool
    join_manual_close_reason: Optional[str]
    meeting_kind: str
    online_url: Optional[str]
    address: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    canceled_at: Optional[datetime]
    cancel_reason: Optional[str]
    deleted_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, event) -> "EventType":
        return _from_model(cls, event)


@strawberry.type
class MembershipType:
    id: str
    event_id: str
    user_id: str
    role: str
    status: str
    note: Optional[str]
    joined_at: Optional[datetime]
    left_at: Optional[datetime]
    waitlisted_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_model(cls, member) -> "MembershipType":
        return _from_model(cls, member)


@strawberry.type
class EventMembersPayload:
    members: typing.List[MembershipType]
    joinedCount: int


@strawberry.type
class NotificationType:
    id: str
    kind: str
    recipient_id: str
    actor_id: Optional[str]
    entity_type: str
    entity_id: Optional[str]
    event_id: Optional[str]
    title: Optional[str]
    body: Optional[str]
    data: Optional[JSON]
    read_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_model(cls, row) -> "NotificationType":
        return _from_model(cls, row)


@strawberry.type
class NotificationsPayload:
    notifications: typing.List[NotificationType]
    unreadCount: int


@strawberry.input
class EventCreateInput:
    title: str
    start_at: datetime
    end_at: datetime
    description: Optional[str] = None
    mode: str = "GROUP"
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


# Fields left out of the request stay UNSET and are not applied.
@strawberry.input
class EventUpdateInput:
    title: Optional[str] = strawberry.UNSET
    description: Optional[str] = strawberry.UNSET
    start_at: Optional[datetime] = strawberry.UNSET
    end_at: Optional[datetime] = strawberry.UNSET
    mode: Optional[str] = strawberry.UNSET
    min: Optional[int] = strawberry.UNSET
    max: Optional[int] = strawberry.UNSET
    join_mode: Optional[str] = strawberry.UNSET
    join_opens_minutes_before_start: Optional[int] = strawberry.UNSET
    join_cutoff_minutes_before_start: Optional[int] = strawberry.UNSET
    late_join_cutoff_minutes_after_start: Optional[int] = strawberry.UNSET
    allow_join_late: Optional[bool] = strawberry.UNSET
    meeting_kind: Optional[str] = strawberry.UNSET
    online_url: Optional[str] = strawberry.UNSET
    address: Optional[str] = strawberry.UNSET
    lat: Optional[float] = strawberry.UNSET
    lng: Optional[float] = strawberry.UNSET

    def to_patch(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not strawberry.UNSET
        }
