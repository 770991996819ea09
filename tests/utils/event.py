from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.constants.event import MemberRole, MemberStatus
from app.crud.crud_membership import membership as crud_membership
from app.models.event import Event
from app.schemas.event import EventCreate
from app.services import capacity, event_lifecycle
from app.utils.time_utils import utcnow

OWNER_ID = "usr_owner"


def event_payload(start_in: timedelta = timedelta(days=2), duration: timedelta = timedelta(hours=2), **overrides) -> EventCreate:
    start_at = utcnow() + start_in
    values = {
        "title": "Sunday 5-a-side",
        "start_at": start_at,
        "end_at": start_at + duration,
        "mode": "GROUP",
        "min": 1,
        "max": 10,
        "meeting_kind": "ONSITE",
        "lat": 51.5,
        "lng": -0.12,
        "address": "Hackney Marshes",
    }
    values.update(overrides)
    return EventCreate(**values)


def create_random_event(
    db: Session,
    owner_id: str = OWNER_ID,
    now: Optional[datetime] = None,
    publish: bool = True,
    **overrides,
) -> Event:
    """
    Creates an event through the lifecycle service, published by default.
    """
    event = event_lifecycle.create_event(db, owner_id=owner_id, event_in=event_payload(**overrides), now=now)
    if publish:
        event = event_lifecycle.publish_event(db, actor_id=owner_id, event_id=event.id)
    return event


def add_members(db: Session, event: Event, user_ids, status: str = MemberStatus.JOINED, role: str = MemberRole.PARTICIPANT):
    """Seed memberships directly, bypassing join rules, and recount."""
    base = utcnow() - timedelta(hours=1)
    members = []
    for i, uid in enumerate(user_ids):
        member = crud_membership.add_member(db, event_id=event.id, user_id=uid, role=role, status=status)
        if status == MemberStatus.WAITLIST:
            # strictly increasing queue positions
            member.waitlisted_at = base + timedelta(seconds=i)
        members.append(member)
    capacity.sync_joined_count(db, event)
    db.commit()
    return members

