"""
Background job handlers for event reminders and feedback requests.

These run on the APScheduler worker threads when a job queued by
app.services.event_jobs comes due:
1. Re-fetch the event (the job may be stale)
2. No-op if the event is gone, canceled or deleted
3. Fan out notifications to the joined members (deduped per offset)
4. On failure, queue a retry with exponential backoff until attempts run out
"""

import logging
from typing import Any, Dict, List

from app.constants.event import MemberRole, MemberStatus, NotificationKind
from app.crud.crud_event import event as crud_event
from app.crud.crud_membership import membership as crud_membership
from app.db.session import SessionLocal
from app.services import event_jobs
from app.services.notifications import notify, publish_notifications
from app.utils.time_utils import isoformat

logger = logging.getLogger(__name__)


def _describe_offset(offset_minutes: int) -> str:
    if offset_minutes >= 60 and offset_minutes % 60 == 0:
        hours = offset_minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{offset_minutes} minute{'s' if offset_minutes != 1 else ''}"


def _handle_failure(kind: str, event_id: str, offset_minutes: int, attempt: int, error: Exception) -> None:
    retry_id = event_jobs.schedule_retry(kind, event_id, offset_minutes, attempt)
    if retry_id:
        logger.warning(
            f"{kind} job for event {event_id} (offset={offset_minutes}) failed on attempt "
            f"{attempt}: {error}. Retrying as {retry_id}"
        )
    else:
        logger.error(
            f"{kind} job for event {event_id} (offset={offset_minutes}) gave up after "
            f"{attempt} attempts: {error}"
        )


def run_reminder_job(event_id: str, offset_minutes: int, attempt: int = 1) -> bool:
    """
    Deliver the reminder for one ladder offset.

    Returns True when the job is done (delivered or nothing to do), False
    when it failed.
    """
    db = SessionLocal()
    payloads: List[Dict[str, Any]] = []

    try:
        event = crud_event.get(db, id=event_id)
        if event is None:
            logger.info(f"Reminder skipped: event {event_id} no longer exists")
            return True
        if event.canceled_at is not None or event.deleted_at is not None:
            logger.info(f"Reminder skipped: event {event_id} is canceled or deleted")
            return True

        recipients = crud_membership.user_ids_with_status(
            db, event_id=event_id, statuses=[MemberStatus.JOINED]
        )
        start_iso = isoformat(event.start_at)
        title = event.title

        payloads = notify(
            db,
            recipients=recipients,
            kind=NotificationKind.EVENT_REMINDER,
            entity_id=event_id,
            title=f"{title} starts in {_describe_offset(offset_minutes)}",
            data={"offsetMinutes": offset_minutes, "startAt": start_iso},
            # startAt is part of the key so a rescheduled event reminds again
            dedupe_key=lambda rid: f"event_reminder:{rid}:{event_id}:{offset_minutes}:{start_iso}",
        )

    except Exception as e:
        db.rollback()
        _handle_failure(event_jobs.REMINDER, event_id, offset_minutes, attempt, e)
        return False

    finally:
        db.close()

    # Outside the transaction: pub/sub is best-effort
    publish_notifications(payloads)
    return True


def run_feedback_job(event_id: str, offset_minutes: int, attempt: int = 1) -> bool:
    """Ask joined participants (not the owner) for feedback once the event is over."""
    db = SessionLocal()
    payloads: List[Dict[str, Any]] = []

    try:
        event = crud_event.get(db, id=event_id)
        if event is None:
            logger.info(f"Feedback request skipped: event {event_id} no longer exists")
            return True
        if event.canceled_at is not None or event.deleted_at is not None:
            logger.info(f"Feedback request skipped: event {event_id} is canceled or deleted")
            return True

        recipients = crud_membership.user_ids_with_status(
            db,
            event_id=event_id,
            statuses=[MemberStatus.JOINED],
            roles=[MemberRole.PARTICIPANT, MemberRole.MODERATOR],
        )

        payloads = notify(
            db,
            recipients=recipients,
            kind=NotificationKind.EVENT_FEEDBACK_REQUEST,
            entity_id=event_id,
            title=f"How was {event.title}?",
            data={"endAt": isoformat(event.end_at)},
            dedupe_key=lambda rid: f"event_feedback_request:{rid}:{event_id}",
        )

    except Exception as e:
        db.rollback()
        _handle_failure(event_jobs.FEEDBACK, event_id, offset_minutes, attempt, e)
        return False

    finally:
        db.close()

    publish_notifications(payloads)
    return True
