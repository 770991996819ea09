# app/services/guards.py
"""Shared lookups, permission checks and transaction helpers for mutations."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.constants.event import MemberRole, MemberStatus
from app.core.exceptions import FailedPrecondition, Forbidden, Internal, NotFound
from app.crud.crud_event import event as crud_event
from app.crud.crud_membership import membership as crud_membership
from app.models.event import Event

logger = logging.getLogger(__name__)


def get_event_or_404(db: Session, event_id: str, *, lock: bool = False) -> Event:
    event = crud_event.get_for_update(db, id=event_id) if lock else crud_event.get(db, id=event_id)
    if event is None:
        raise NotFound("Event not found")
    return event


def ensure_not_read_only(event: Event) -> None:
    """Canceled and deleted events reject every mutation except publish management."""
    if event.deleted_at is not None:
        raise FailedPrecondition("Event is deleted")
    if event.canceled_at is not None:
        raise FailedPrecondition("Event is canceled and read-only")


def actor_role(db: Session, event: Event, actor_id: str) -> Optional[str]:
    """OWNER for the event owner, otherwise the role of a JOINED membership."""
    if event.owner_id == actor_id:
        return MemberRole.OWNER
    member = crud_membership.get_by_event_and_user(db, event_id=event.id, user_id=actor_id)
    if member is not None and member.status == MemberStatus.JOINED:
        return member.role
    return None


def require_owner(event: Event, actor_id: str) -> str:
    if event.owner_id != actor_id:
        raise Forbidden("Only the event owner can do this")
    return MemberRole.OWNER


def require_moderator(db: Session, event: Event, actor_id: str) -> str:
    role = actor_role(db, event, actor_id)
    if role not in MemberRole.moderators():
        raise Forbidden("Only the owner or a moderator can do this")
    return role


def commit_or_raise(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction failed: {e}", exc_info=True)
        raise Internal("Failed to save changes") from e
