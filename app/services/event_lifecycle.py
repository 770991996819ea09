# app/services/event_lifecycle.py
"""
Event state machine.

    DRAFT -> SCHEDULED | PUBLISHED
    SCHEDULED -> PUBLISHED | DRAFT
    PUBLISHED -> DRAFT
    any -> canceled -> soft-deleted

Each operation validates, mutates and audits inside one transaction, then
runs its side effects (job scheduling, notifications, lifecycle stream)
as post-commit hooks.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.constants.event import (
    AuditSeverity,
    EventMode,
    EventStatus,
    MemberRole,
    MemberStatus,
    NotificationKind,
)
from app.core.config import settings
from app.core.exceptions import EngineError, FailedPrecondition, InvalidInput, NotFound
from app.crud.crud_event import event as crud_event
from app.crud.crud_membership import membership as crud_membership
from app.models.event import Event
from app.schemas.event import EventCreate, EventUpdate
from app.services import audit_trail, capacity, event_jobs
from app.services.guards import (
    actor_role,
    commit_or_raise,
    ensure_not_read_only,
    get_event_or_404,
    require_moderator,
    require_owner,
)
from app.services.membership import queue_promotion_notices
from app.services.notifications import fan_out
from app.services.post_commit import PostCommitHooks
from app.utils.kafka_helpers import publish_lifecycle_event
from app.utils.time_utils import ensure_utc, isoformat, utcnow
from app.utils.validators import default_capacity, validate_event_fields

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = tuple(EventUpdate.model_fields.keys())
NON_NULLABLE_FIELDS = {"title", "start_at", "end_at", "mode", "join_mode", "allow_join_late", "meeting_kind"}

UPDATE_RECIPIENT_STATUSES = [
    MemberStatus.JOINED, MemberStatus.PENDING, MemberStatus.INVITED, MemberStatus.WAITLIST,
]
CANCEL_RECIPIENT_STATUSES = [MemberStatus.JOINED, MemberStatus.PENDING, MemberStatus.INVITED]


def _as_dict(obj_in: Union[BaseModel, Dict[str, Any]], *, exclude_unset: bool = False) -> Dict[str, Any]:
    if isinstance(obj_in, BaseModel):
        return obj_in.model_dump(exclude_unset=exclude_unset)
    return dict(obj_in)


def _current_values(event: Event) -> Dict[str, Any]:
    return {field: getattr(event, field) for field in EDITABLE_FIELDS}


def _emit(hooks: PostCommitHooks, event_type: str, event_id: str, actor_id: Optional[str], data=None) -> None:
    hooks.add(f"kafka:{event_type}", publish_lifecycle_event, event_type, event_id, actor_id, data)


def get_event(db: Session, *, event_id: str, viewer_id: Optional[str] = None) -> Event:
    """
    Read an event. Deleted events are gone for everyone; drafts and
    scheduled events are only visible to the owner and moderators.
    """
    event = get_event_or_404(db, event_id)
    if event.deleted_at is not None:
        raise NotFound("Event not found")
    if event.status != EventStatus.PUBLISHED:
        if viewer_id is None or actor_role(db, event, viewer_id) not in MemberRole.moderators():
            raise NotFound("Event not found")
    return event


# --- Create / update ---

def create_event(
    db: Session,
    *,
    owner_id: str,
    event_in: Union[EventCreate, Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Event:
    data = _as_dict(event_in)
    data = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    data["mode"] = data.get("mode") or EventMode.GROUP

    default_min, default_max = default_capacity(data["mode"])
    if data.get("min") is None:
        data["min"] = default_min
    if data.get("max") is None:
        data["max"] = default_max

    validate_event_fields(data, is_create=True, now=now)

    event = crud_event.create_with_owner(db, obj_in=data, owner_id=owner_id)
    crud_membership.add_member(
        db, event_id=event.id, user_id=owner_id, role=MemberRole.OWNER, status=MemberStatus.JOINED
    )
    capacity.sync_joined_count(db, event)
    audit_trail.record(
        db, event_id=event.id, action="CREATE", actor_id=owner_id, actor_role=MemberRole.OWNER,
        meta={"mode": event.mode, "min": event.min, "max": event.max},
    )

    event_id, start_at, end_at, title = event.id, event.start_at, event.end_at, event.title
    commit_or_raise(db)
    logger.info(f"Event {event_id} created by {owner_id}")

    hooks = PostCommitHooks()
    hooks.add("enqueue_reminders", event_jobs.enqueue_reminders, event_id, start_at)
    hooks.add("enqueue_feedback", event_jobs.enqueue_feedback_request, event_id, end_at)
    hooks.add(
        "notify:EVENT_CREATED", fan_out, db,
        recipients=[owner_id],
        kind=NotificationKind.EVENT_CREATED,
        entity_id=event_id,
        actor_id=owner_id,
        title=f"Your event {title} was created",
        dedupe_key=lambda rid: f"event_created:{rid}:{event_id}",
    )
    _emit(hooks, "EventCreated", event_id, owner_id)
    hooks.run()

    db.refresh(event)
    return event


def update_event(
    db: Session,
    *,
    actor_id: str,
    event_id: str,
    event_in: Union[EventUpdate, Dict[str, Any]],
) -> Event:
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    role = require_moderator(db, event, actor_id)

    patch = _as_dict(event_in, exclude_unset=True)
    patch = {
        k: v for k, v in patch.items()
        if k in EDITABLE_FIELDS and not (v is None and k in NON_NULLABLE_FIELDS)
    }

    # Switching mode without explicit bounds takes the new mode's defaults
    if "mode" in patch and patch["mode"] != event.mode:
        default_min, default_max = default_capacity(patch["mode"])
        patch.setdefault("min", default_min)
        patch.setdefault("max", default_max)

    merged = {**_current_values(event), **patch}
    validate_event_fields(merged, is_create=False)

    joined = capacity.count_joined(db, event.id)
    if merged["max"] is not None and merged["max"] < joined:
        raise InvalidInput(
            f"max cannot be lower than the {joined} members already joined", field="max"
        )

    old_max = event.max
    changed_fields, diff = crud_event.apply_changes(db, db_obj=event, update_data=patch)
    if not changed_fields:
        db.rollback()
        return event

    event.updated_at = utcnow()

    promoted = []
    if "max" in changed_fields:
        new_max = event.max
        if new_max is None:
            promoted = capacity.promote_from_waitlist(db, event)
        elif old_max is not None and new_max > old_max:
            promoted = capacity.promote_from_waitlist(db, event, limit=new_max - old_max)
    capacity.sync_joined_count(db, event)

    audit_trail.record(
        db, event_id=event.id, action="UPDATE", actor_id=actor_id, actor_role=role,
        diff=diff or None,
        meta={"changedFields": changed_fields, "promoted": [m.user_id for m in promoted]},
    )

    recipients = crud_membership.user_ids_with_status(
        db, event_id=event.id, statuses=UPDATE_RECIPIENT_STATUSES, exclude_user_id=actor_id
    )
    promoted_ids = [m.user_id for m in promoted]
    start_at, end_at, title = event.start_at, event.end_at, event.title
    version = isoformat(event.updated_at)
    commit_or_raise(db)
    logger.info(f"Event {event_id} updated by {actor_id}: {changed_fields}")

    hooks = PostCommitHooks()
    if "start_at" in changed_fields:
        hooks.add("reschedule_reminders", event_jobs.reschedule_reminders, event_id, start_at)
    if "end_at" in changed_fields:
        hooks.add("reschedule_feedback", event_jobs.reschedule_feedback_request, event_id, end_at)
    hooks.add(
        "notify:EVENT_UPDATED", fan_out, db,
        recipients=recipients,
        kind=NotificationKind.EVENT_UPDATED,
        entity_id=event_id,
        actor_id=actor_id,
        title=f"{title} was updated",
        data={"changedFields": changed_fields, "changes": diff},
        dedupe_key=lambda rid: f"event_updated:{rid}:{event_id}:{version}",
    )
    queue_promotion_notices(hooks, db, event_id=event_id, title=title, user_ids=promoted_ids, actor_id=actor_id)
    _emit(hooks, "EventUpdated", event_id, actor_id, {"changedFields": changed_fields})
    hooks.run()

    db.refresh(event)
    return event


# --- Cancel / delete ---

def cancel_event(
    db: Session, *, actor_id: str, event_id: str, reason: Optional[str] = None
) -> Event:
    """Cancel an event. Canceling an already-canceled event returns it unchanged."""
    event = get_event_or_404(db, event_id, lock=True)
    if event.deleted_at is not None:
        raise FailedPrecondition("Event is deleted")
    role = require_moderator(db, event, actor_id)

    if event.canceled_at is not None:
        db.rollback()
        return event

    recipients = crud_membership.user_ids_with_status(
        db, event_id=event.id, statuses=CANCEL_RECIPIENT_STATUSES, exclude_user_id=actor_id
    )
    event.canceled_at = utcnow()
    event.canceled_by_id = actor_id
    event.cancel_reason = reason
    db.add(event)
    audit_trail.record(
        db, event_id=event.id, action="CANCEL", actor_id=actor_id, actor_role=role,
        severity=AuditSeverity.WARNING, meta={"reason": reason},
    )
    title = event.title
    commit_or_raise(db)
    logger.info(f"Event {event_id} canceled by {actor_id}")

    hooks = PostCommitHooks()
    hooks.add("clear_reminders", event_jobs.clear_reminders, event_id)
    hooks.add("clear_feedback", event_jobs.clear_feedback_request, event_id)
    hooks.add(
        "notify:EVENT_CANCELED", fan_out, db,
        recipients=recipients,
        kind=NotificationKind.EVENT_CANCELED,
        entity_id=event_id,
        actor_id=actor_id,
        title=f"{title} was canceled",
        body=reason,
        data={"reason": reason},
        dedupe_key=lambda rid: f"event_canceled:{rid}:{event_id}",
    )
    _emit(hooks, "EventCanceled", event_id, actor_id, {"reason": reason})
    hooks.run()

    db.refresh(event)
    return event


def delete_event(
    db: Session,
    *,
    actor_id: str,
    event_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Soft-delete a canceled event.

    Only allowed DELETE_AFTER_CANCEL_DAYS after cancellation. Deleting an
    already-deleted event returns True.
    """
    event = get_event_or_404(db, event_id, lock=True)
    if event.deleted_at is not None:
        db.rollback()
        return True
    require_owner(event, actor_id)

    if event.canceled_at is None:
        raise FailedPrecondition("Event must be canceled before it can be deleted")

    now = ensure_utc(now) if now else utcnow()
    window = timedelta(days=settings.DELETE_AFTER_CANCEL_DAYS)
    if now - ensure_utc(event.canceled_at) < window:
        raise FailedPrecondition(
            f"Event can only be deleted {settings.DELETE_AFTER_CANCEL_DAYS} days after cancellation"
        )

    recipients = crud_membership.user_ids_with_status(
        db, event_id=event.id, statuses=UPDATE_RECIPIENT_STATUSES, exclude_user_id=actor_id
    )
    event.deleted_at = now
    event.deleted_by_id = actor_id
    event.delete_reason = reason
    db.add(event)
    audit_trail.record(
        db, event_id=event.id, action="DELETE", actor_id=actor_id, actor_role=MemberRole.OWNER,
        severity=AuditSeverity.CRITICAL, meta={"reason": reason},
    )
    title = event.title
    commit_or_raise(db)
    logger.info(f"Event {event_id} soft-deleted by {actor_id}")

    hooks = PostCommitHooks()
    hooks.add("clear_jobs", event_jobs.clear_all, event_id)
    hooks.add(
        "notify:EVENT_DELETED", fan_out, db,
        recipients=recipients,
        kind=NotificationKind.EVENT_DELETED,
        entity_id=event_id,
        actor_id=actor_id,
        title=f"{title} was deleted",
        dedupe_key=lambda rid: f"event_deleted:{rid}:{event_id}",
    )
    _emit(hooks, "EventDeleted", event_id, actor_id, {"reason": reason})
    hooks.run()
    return True


# --- Publication management ---

def _get_publishable(db: Session, event_id: str, actor_id: Optional[str]):
    event = get_event_or_404(db, event_id, lock=True)
    ensure_not_read_only(event)
    role = require_moderator(db, event, actor_id) if actor_id else None
    return event, role


def _publish(db: Session, event: Event, actor_id: Optional[str], role: Optional[str]) -> Event:
    event.status = EventStatus.PUBLISHED
    event.published_at = utcnow()
    event.scheduled_publish_at = None
    db.add(event)
    audit_trail.record(db, event_id=event.id, action="PUBLISH", actor_id=actor_id, actor_role=role)
    event_id, start_at = event.id, event.start_at
    commit_or_raise(db)
    logger.info(f"Event {event_id} published")

    hooks = PostCommitHooks()
    hooks.add("enqueue_reminders", event_jobs.enqueue_reminders, event_id, start_at)
    _emit(hooks, "EventPublished", event_id, actor_id)
    hooks.run()

    db.refresh(event)
    return event


def publish_event(db: Session, *, actor_id: Optional[str], event_id: str) -> Event:
    """Publish now. Idempotent when the event is already PUBLISHED."""
    event, role = _get_publishable(db, event_id, actor_id)
    if event.status == EventStatus.PUBLISHED:
        db.rollback()
        return event
    return _publish(db, event, actor_id, role)


def schedule_event_publication(
    db: Session,
    *,
    actor_id: str,
    event_id: str,
    publish_at: datetime,
    now: Optional[datetime] = None,
) -> Event:
    event, role = _get_publishable(db, event_id, actor_id)
    now = ensure_utc(now) if now else utcnow()
    publish_at = ensure_utc(publish_at)

    if publish_at <= now:
        raise InvalidInput("Scheduled publish time must be in the future", field="publishAt")
    if publish_at >= ensure_utc(event.start_at):
        raise InvalidInput("Scheduled publish time must be before the event starts", field="publishAt")
    if event.status == EventStatus.PUBLISHED:
        raise FailedPrecondition("Event is already published")

    event.status = EventStatus.SCHEDULED
    event.scheduled_publish_at = publish_at
    db.add(event)
    audit_trail.record(
        db, event_id=event.id, action="SCHEDULE_PUBLICATION", actor_id=actor_id, actor_role=role,
        meta={"publishAt": publish_at.isoformat()},
    )
    commit_or_raise(db)
    logger.info(f"Event {event_id} scheduled for publication at {publish_at.isoformat()}")

    hooks = PostCommitHooks()
    _emit(hooks, "EventPublicationScheduled", event_id, actor_id, {"publishAt": publish_at})
    hooks.run()

    db.refresh(event)
    return event


def cancel_scheduled_publication(db: Session, *, actor_id: str, event_id: str) -> Event:
    event, role = _get_publishable(db, event_id, actor_id)
    if event.status != EventStatus.SCHEDULED:
        raise FailedPrecondition("Event is not scheduled for publication")

    event.status = EventStatus.DRAFT
    event.scheduled_publish_at = None
    db.add(event)
    audit_trail.record(
        db, event_id=event.id, action="CANCEL_SCHEDULED_PUBLICATION", actor_id=actor_id, actor_role=role
    )
    commit_or_raise(db)

    db.refresh(event)
    return event


def unpublish_event(db: Session, *, actor_id: str, event_id: str) -> Event:
    """Back to DRAFT. Idempotent when already DRAFT."""
    event, role = _get_publishable(db, event_id, actor_id)
    if event.status == EventStatus.DRAFT:
        db.rollback()
        return event

    event.status = EventStatus.DRAFT
    event.scheduled_publish_at = None
    db.add(event)
    audit_trail.record(db, event_id=event.id, action="UNPUBLISH", actor_id=actor_id, actor_role=role)
    commit_or_raise(db)
    logger.info(f"Event {event_id} unpublished by {actor_id}")

    hooks = PostCommitHooks()
    hooks.add("clear_reminders", event_jobs.clear_reminders, event_id)
    _emit(hooks, "EventUnpublished", event_id, actor_id)
    hooks.run()

    db.refresh(event)
    return event


def publish_due_scheduled_events(db: Session, *, now: Optional[datetime] = None) -> List[str]:
    """Publish every SCHEDULED event whose publish time has passed."""
    now = ensure_utc(now) if now else utcnow()
    published = []

    for candidate_id in [e.id for e in crud_event.get_due_scheduled(db, now=now)]:
        event = crud_event.get_for_update(db, id=candidate_id)
        # Re-check under the lock; it may have been unscheduled meanwhile
        if (
            event is None
            or event.status != EventStatus.SCHEDULED
            or event.is_read_only
            or event.scheduled_publish_at is None
            or ensure_utc(event.scheduled_publish_at) > now
        ):
            db.rollback()
            continue
        try:
            _publish(db, event, None, None)
        except EngineError as e:
            db.rollback()
            logger.error(f"Scheduled publication of event {candidate_id} failed: {e.message}", exc_info=True)
            continue
        published.append(candidate_id)

    return published


# --- Join window ---

def close_event_join(
    db: Session, *, actor_id: str, event_id: str, reason: Optional[str] = None
) -> Event:
    event = get_event_or_404(db, event_id, lock=True)
    if event.deleted_at is not None:
        raise FailedPrecondition("Event is deleted")
    role = require_moderator(db, event, actor_id)

    event.join_manually_closed = True
    event.join_manually_closed_at = utcnow()
    event.join_manually_closed_by_id = actor_id
    event.join_manual_close_reason = reason
    db.add(event)
    audit_trail.record(
        db, event_id=event.id, action="CLOSE_JOIN", actor_id=actor_id, actor_role=role,
        meta={"reason": reason},
    )
    commit_or_raise(db)
    db.refresh(event)
    return event


def reopen_event_join(db: Session, *, actor_id: str, event_id: str) -> Event:
    event = get_event_or_404(db, event_id, lock=True)
    if event.deleted_at is not None:
        raise FailedPrecondition("Event is deleted")
    role = require_moderator(db, event, actor_id)

    event.join_manually_closed = False
    event.join_manually_closed_at = None
    event.join_manually_closed_by_id = None
    event.join_manual_close_reason = None
    db.add(event)
    audit_trail.record(db, event_id=event.id, action="REOPEN_JOIN", actor_id=actor_id, actor_role=role)
    commit_or_raise(db)
    db.refresh(event)
    return event
