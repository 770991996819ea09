# app/services/membership.py
"""
Join / leave / approve / reject / waitlist operations.

Every operation locks the event row first, so two concurrent joins on the
same event serialize and the second one sees the first one's JOINED row
when it recounts.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.constants.event import (
    AuditScope,
    JoinMode,
    MemberRole,
    MemberStatus,
    NotificationKind,
)
from app.core.exceptions import FailedPrecondition, Forbidden, NotFound
from app.crud.crud_membership import membership as crud_membership
from app.models.membership import Membership
from app.services import audit_trail, capacity
from app.services.guards import (
    actor_role,
    commit_or_raise,
    ensure_not_read_only,
    get_event_or_404,
    require_moderator,
)
from app.services.notifications import fan_out
from app.services.post_commit import PostCommitHooks
from app.utils.time_utils import isoformat
from app.utils.validators import can_still_join

logger = logging.getLogger(__name__)

BLOCKED_STATUSES = (MemberStatus.BANNED, MemberStatus.KICKED)


def queue_promotion_notices(
    hooks: PostCommitHooks,
    db: Session,
    *,
    event_id: str,
    title: str,
    user_ids: List[str],
    actor_id: Optional[str] = None,
) -> None:
    """Tell each promoted user they got a seat, once per event."""
    if not user_ids:
        return
    hooks.add(
        "notify:WAITLIST_PROMOTED", fan_out, db,
        recipients=user_ids,
        kind=NotificationKind.WAITLIST_PROMOTED,
        entity_id=event_id,
        actor_id=actor_id,
        title=f"A spot opened up: you are now in {title}",
        dedupe_key=lambda rid: f"waitlist_promoted:{rid}:{event_id}",
    )


def _record(db, event, member, action, actor_id, role=None, meta=None):
    audit_trail.record(
        db,
        event_id=event.id,
        action=action,
        actor_id=actor_id,
        actor_role=role,
        scope=AuditScope.MEMBER,
        entity_type="MEMBERSHIP",
        entity_id=member.id,
        meta={"userId": member.user_id, "status": member.status, **(meta or {})},
    )


def _admit(db: Session, event, member: Optional[Membership], user_id: str, status: str, note=None) -> Membership:
    if member is None:
        return crud_membership.add_member(
            db, event_id=event.id, user_id=user_id, role=MemberRole.PARTICIPANT, status=status, note=note
        )
    if note is not None:
        member.note = note
    return crud_membership.set_status(db, member=member, status=status)


def _get_member_or_404(db: Session, event_id: str, user_id: str) -> Membership:
    member = crud_membership.get_by_event_and_user(db, event_id=event_id, user_id=user_id)
    if member is None:
        raise NotFound("Membership not found")
    return member


# --- Self-service ---

def join_event(
    db: Session,
    *,
    user_id: str,
    event_id: str,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Membership:
    """
    Join an event according to its join mode.

    OPEN events seat the user when a slot is free and waitlist them
    otherwise. REQUEST events park the user in PENDING for a moderator.
    INVITE_ONLY events accept only users holding an invitation.
    """
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)

    allowed, reason = can_still_join(event, now)
    if not allowed:
        raise FailedPrecondition(f"Joining is closed for this event ({reason})")

    member = crud_membership.get_by_event_and_user(db, event_id=event.id, user_id=user_id)
    if member is not None:
        if member.status in BLOCKED_STATUSES:
            raise Forbidden("You cannot join this event")
        if member.status == MemberStatus.REJECTED:
            raise FailedPrecondition("Your request to join was rejected")
        if member.status in (MemberStatus.JOINED, MemberStatus.PENDING, MemberStatus.WAITLIST):
            db.rollback()
            return member

    invited = member is not None and member.status == MemberStatus.INVITED
    if event.join_mode == JoinMode.INVITE_ONLY and not invited:
        raise Forbidden("This event is invite-only")

    if event.join_mode == JoinMode.REQUEST and not invited:
        status = MemberStatus.PENDING
    elif capacity.has_free_slot(db, event):
        status = MemberStatus.JOINED
    else:
        status = MemberStatus.WAITLIST

    member = _admit(db, event, member, user_id, status, note)
    capacity.sync_joined_count(db, event)
    _record(db, event, member, "JOIN", user_id, MemberRole.PARTICIPANT)

    moderator_ids = crud_membership.user_ids_with_status(
        db, event_id=event.id, statuses=[MemberStatus.JOINED], roles=MemberRole.moderators()
    )
    if event.owner_id not in moderator_ids:
        moderator_ids.insert(0, event.owner_id)
    member_id, title = member.id, event.title
    joined_iso = isoformat(member.joined_at)
    commit_or_raise(db)
    logger.info(f"User {user_id} -> {status} on event {event_id}")

    hooks = PostCommitHooks()
    if status == MemberStatus.PENDING:
        hooks.add(
            "notify:JOIN_REQUEST", fan_out, db,
            recipients=moderator_ids,
            kind=NotificationKind.JOIN_REQUEST,
            entity_type="MEMBERSHIP",
            entity_id=member_id,
            event_id=event_id,
            actor_id=user_id,
            title=f"New request to join {title}",
            body=note,
            data={"userId": user_id},
            dedupe_key=lambda rid: f"join_request:{rid}:{member_id}",
        )
    elif status == MemberStatus.WAITLIST:
        hooks.add(
            "notify:WAITLIST_JOINED", fan_out, db,
            recipients=[user_id],
            kind=NotificationKind.WAITLIST_JOINED,
            entity_id=event_id,
            title=f"{title} is full: you are on the waitlist",
            dedupe_key=lambda rid: f"waitlist_joined:{rid}:{event_id}",
        )
    else:
        hooks.add(
            "notify:EVENT_JOINED", fan_out, db,
            recipients=[user_id],
            kind=NotificationKind.EVENT_JOINED,
            entity_id=event_id,
            title=f"You joined {title}",
            dedupe_key=lambda rid: f"event_joined:{rid}:{event_id}:{joined_iso}",
        )
    hooks.run()

    db.refresh(member)
    return member


def leave_event(db: Session, *, user_id: str, event_id: str) -> Membership:
    """Leave an event. A freed seat goes to the head of the waitlist."""
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    if event.owner_id == user_id:
        raise FailedPrecondition("The owner cannot leave their own event")

    member = _get_member_or_404(db, event.id, user_id)
    if member.status == MemberStatus.LEFT:
        db.rollback()
        return member
    if member.status not in (
        MemberStatus.JOINED, MemberStatus.PENDING, MemberStatus.INVITED, MemberStatus.WAITLIST
    ):
        raise FailedPrecondition(f"Cannot leave with status {member.status}")

    was_joined = member.status == MemberStatus.JOINED
    crud_membership.set_status(db, member=member, status=MemberStatus.LEFT)
    promoted = capacity.promote_from_waitlist(db, event) if was_joined else []
    capacity.sync_joined_count(db, event)
    _record(db, event, member, "LEAVE", user_id, meta={"promoted": [m.user_id for m in promoted]})

    promoted_ids, title = [m.user_id for m in promoted], event.title
    commit_or_raise(db)

    hooks = PostCommitHooks()
    queue_promotion_notices(hooks, db, event_id=event_id, title=title, user_ids=promoted_ids)
    hooks.run()

    db.refresh(member)
    return member


def join_waitlist(
    db: Session, *, user_id: str, event_id: str, now: Optional[datetime] = None
) -> Membership:
    """Queue for a full OPEN event. Other join modes go through join_event."""
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    if event.join_mode != JoinMode.OPEN:
        raise FailedPrecondition("Only OPEN events have a self-service waitlist")

    allowed, reason = can_still_join(event, now)
    if not allowed:
        raise FailedPrecondition(f"Joining is closed for this event ({reason})")

    member = crud_membership.get_by_event_and_user(db, event_id=event.id, user_id=user_id)
    if member is not None:
        if member.status in BLOCKED_STATUSES:
            raise Forbidden("You cannot join this event")
        if member.status in (MemberStatus.JOINED, MemberStatus.WAITLIST):
            db.rollback()
            return member

    if capacity.has_free_slot(db, event):
        raise FailedPrecondition("Event is not full; join it directly")

    member = _admit(db, event, member, user_id, MemberStatus.WAITLIST)
    _record(db, event, member, "JOIN_WAITLIST", user_id, MemberRole.PARTICIPANT)
    title = event.title
    commit_or_raise(db)

    hooks = PostCommitHooks()
    hooks.add(
        "notify:WAITLIST_JOINED", fan_out, db,
        recipients=[user_id],
        kind=NotificationKind.WAITLIST_JOINED,
        entity_id=event_id,
        title=f"You are on the waitlist for {title}",
        dedupe_key=lambda rid: f"waitlist_joined:{rid}:{event_id}",
    )
    hooks.run()

    db.refresh(member)
    return member


def leave_waitlist(db: Session, *, user_id: str, event_id: str) -> Membership:
    event = get_event_or_404(db, event_id, lock=True)
    member = _get_member_or_404(db, event.id, user_id)
    if member.status != MemberStatus.WAITLIST:
        raise FailedPrecondition("You are not on the waitlist")

    crud_membership.set_status(db, member=member, status=MemberStatus.LEFT)
    _record(db, event, member, "LEAVE_WAITLIST", user_id)
    commit_or_raise(db)
    db.refresh(member)
    return member


# --- Moderation ---

def approve_membership(db: Session, *, actor_id: str, event_id: str, user_id: str) -> Membership:
    """PENDING -> JOINED, or WAITLIST when the event is full."""
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    role = require_moderator(db, event, actor_id)

    member = _get_member_or_404(db, event.id, user_id)
    if member.status != MemberStatus.PENDING:
        raise FailedPrecondition(f"Only pending requests can be approved (status is {member.status})")

    status = MemberStatus.JOINED if capacity.has_free_slot(db, event) else MemberStatus.WAITLIST
    crud_membership.set_status(db, member=member, status=status)
    capacity.sync_joined_count(db, event)
    _record(db, event, member, "APPROVE", actor_id, role)
    title = event.title
    commit_or_raise(db)
    logger.info(f"Membership of {user_id} on event {event_id} approved by {actor_id} -> {status}")

    hooks = PostCommitHooks()
    hooks.add(
        "notify:MEMBERSHIP_APPROVED", fan_out, db,
        recipients=[user_id],
        kind=NotificationKind.MEMBERSHIP_APPROVED,
        entity_id=event_id,
        actor_id=actor_id,
        title=f"Your request to join {title} was approved",
        data={"status": status},
        dedupe_key=lambda rid: f"membership_approved:{rid}:{event_id}",
    )
    hooks.run()

    db.refresh(member)
    return member


def reject_membership(
    db: Session, *, actor_id: str, event_id: str, user_id: str, note: Optional[str] = None
) -> Membership:
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    role = require_moderator(db, event, actor_id)

    member = _get_member_or_404(db, event.id, user_id)
    if member.status not in (MemberStatus.PENDING, MemberStatus.INVITED):
        raise FailedPrecondition(f"Cannot reject a membership with status {member.status}")

    crud_membership.set_status(db, member=member, status=MemberStatus.REJECTED)
    _record(db, event, member, "REJECT", actor_id, role, meta={"note": note})
    title = event.title
    commit_or_raise(db)

    hooks = PostCommitHooks()
    hooks.add(
        "notify:MEMBERSHIP_REJECTED", fan_out, db,
        recipients=[user_id],
        kind=NotificationKind.MEMBERSHIP_REJECTED,
        entity_id=event_id,
        actor_id=actor_id,
        title=f"Your request to join {title} was declined",
        body=note,
        dedupe_key=lambda rid: f"membership_rejected:{rid}:{event_id}",
    )
    hooks.run()

    db.refresh(member)
    return member


def promote_from_waitlist_manual(
    db: Session, *, actor_id: str, event_id: str, user_id: Optional[str] = None
) -> Optional[Membership]:
    """
    Promote one waitlisted member, or the head of the queue when user_id is
    None. Returns None when the waitlist is empty.
    """
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    role = require_moderator(db, event, actor_id)

    if not capacity.has_free_slot(db, event):
        raise FailedPrecondition("Event is full")

    if user_id is None:
        queue = crud_membership.get_waitlist(db, event_id=event.id, limit=1)
        if not queue:
            db.rollback()
            return None
        member = queue[0]
    else:
        member = _get_member_or_404(db, event.id, user_id)
        if member.status != MemberStatus.WAITLIST:
            raise FailedPrecondition("User is not on the waitlist")

    crud_membership.set_status(db, member=member, status=MemberStatus.JOINED)
    capacity.sync_joined_count(db, event)
    _record(db, event, member, "PROMOTE", actor_id, role)
    promoted_id, title = member.user_id, event.title
    commit_or_raise(db)

    hooks = PostCommitHooks()
    queue_promotion_notices(hooks, db, event_id=event_id, title=title, user_ids=[promoted_id], actor_id=actor_id)
    hooks.run()

    db.refresh(member)
    return member


def list_members(
    db: Session, *, event_id: str, viewer_id: Optional[str] = None, statuses: Optional[List[str]] = None
) -> List[Membership]:
    """
    Members of an event. Moderators see every status; everyone else only
    sees JOINED members.
    """
    event = get_event_or_404(db, event_id)
    if event.deleted_at is not None:
        raise NotFound("Event not found")
    if viewer_id is None or actor_role(db, event, viewer_id) not in MemberRole.moderators():
        statuses = [MemberStatus.JOINED]
    return crud_membership.get_for_event(db, event_id=event.id, statuses=statuses)
