# app/services/capacity.py
"""
Capacity & waitlist manager.

Every function here runs inside the caller's transaction, after the caller
locked the event row (crud_event.get_for_update). JOINED counts always come
from a COUNT query; joined_count on the event is overwritten from that
count, never incremented.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.constants.event import EventMode, MemberRole, MemberStatus
from app.crud.crud_membership import membership as crud_membership
from app.models.event import Event
from app.models.membership import Membership

logger = logging.getLogger(__name__)


def count_joined(db: Session, event_id: str) -> int:
    return crud_membership.count_joined(db, event_id=event_id)


def sync_joined_count(db: Session, event: Event) -> int:
    joined = count_joined(db, event.id)
    if event.joined_count != joined:
        event.joined_count = joined
        db.add(event)
        db.flush()
    return joined


def free_slots(db: Session, event: Event) -> Optional[int]:
    """
    Seats still available, or None when the event has no upper bound.

    ONE_TO_ONE events seat exactly one member besides the owner/moderators.
    """
    joined = count_joined(db, event.id)

    if event.max is None:
        free = None
    else:
        free = max(event.max - joined, 0)

    if event.mode == EventMode.ONE_TO_ONE:
        seated_hosts = crud_membership.count_joined_with_roles(
            db, event_id=event.id, roles=MemberRole.moderators()
        )
        guest_seats = max(1 - (joined - seated_hosts), 0)
        free = guest_seats if free is None else min(free, guest_seats)

    return free


def has_free_slot(db: Session, event: Event) -> bool:
    free = free_slots(db, event)
    return free is None or free > 0


def promote_from_waitlist(
    db: Session, event: Event, limit: Optional[int] = None
) -> List[Membership]:
    """
    Move WAITLIST members to JOINED in FIFO order.

    Promotes at most `limit` members (all that fit when None) and never more
    than the free slots. Returns the promoted memberships.
    """
    free = free_slots(db, event)
    if free is None:
        take = limit
    else:
        take = free if limit is None else min(free, limit)

    if take is not None and take <= 0:
        return []

    candidates = crud_membership.get_waitlist(db, event_id=event.id, limit=take)
    for member in candidates:
        crud_membership.set_status(db, member=member, status=MemberStatus.JOINED)

    sync_joined_count(db, event)
    if candidates:
        logger.info(
            f"Promoted {len(candidates)} waitlisted members on event {event.id}: "
            f"{[m.user_id for m in candidates]}"
        )
    return candidates
