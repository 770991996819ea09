# app/services/event_jobs.py
"""
Reminder and feedback scheduling for events.

Job ids are a pure function of (event_id, kind, offset_minutes), so enqueueing
the same offset twice replaces the earlier job and rescheduling is just
"remove the ids, add them again from the new time". Retries of a failed run
get their own id suffix (":attempt:N") and are cleared together with the
original job.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from app.core.config import settings
from app.services.job_queue import job_queue
from app.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

REMINDER = "reminder"
FEEDBACK = "feedback"

# Minutes before start: 24h, 12h, 6h, 3h, 60m, 30m, 15m, then every minute from 10m
REMINDER_OFFSETS_MINUTES = [1440, 720, 360, 180, 60, 30, 15] + list(range(10, 0, -1))

REMINDER_JOB_FUNC = "app.background_tasks.event_reminder_tasks:run_reminder_job"
FEEDBACK_JOB_FUNC = "app.background_tasks.event_reminder_tasks:run_feedback_job"

JOB_FUNCS = {REMINDER: REMINDER_JOB_FUNC, FEEDBACK: FEEDBACK_JOB_FUNC}


def job_id(event_id: str, kind: str, offset_minutes: int) -> str:
    return f"{event_id}:{kind}:{offset_minutes}"


def retry_job_id(event_id: str, kind: str, offset_minutes: int, attempt: int) -> str:
    return f"{job_id(event_id, kind, offset_minutes)}:attempt:{attempt}"


def _too_close(run_at: datetime, now: datetime) -> bool:
    return (run_at - now).total_seconds() <= settings.REMINDER_SKIP_THRESHOLD_SECONDS


def enqueue_reminders(event_id: str, start_at: datetime, now: Optional[datetime] = None) -> List[str]:
    """
    Queue one reminder per ladder offset that is still in the future.

    Returns the ids that were enqueued.
    """
    now = ensure_utc(now) if now else utcnow()
    start_at = ensure_utc(start_at)
    enqueued = []

    for offset in REMINDER_OFFSETS_MINUTES:
        run_at = start_at - timedelta(minutes=offset)
        if _too_close(run_at, now):
            continue
        jid = job_id(event_id, REMINDER, offset)
        if job_queue.enqueue(
            jid,
            REMINDER_JOB_FUNC,
            run_at,
            kwargs={"event_id": event_id, "offset_minutes": offset, "attempt": 1},
        ):
            enqueued.append(jid)

    logger.info(f"Enqueued {len(enqueued)} reminders for event {event_id}")
    return enqueued


def clear_reminders(event_id: str) -> int:
    removed = 0
    for offset in REMINDER_OFFSETS_MINUTES:
        if job_queue.remove(job_id(event_id, REMINDER, offset)):
            removed += 1
    # Pending retries of already-fired reminders
    removed += job_queue.remove_prefix(f"{event_id}:{REMINDER}:")
    logger.info(f"Cleared {removed} reminder jobs for event {event_id}")
    return removed


def reschedule_reminders(event_id: str, start_at: datetime, now: Optional[datetime] = None) -> List[str]:
    clear_reminders(event_id)
    return enqueue_reminders(event_id, start_at, now=now)


def enqueue_feedback_request(event_id: str, end_at: datetime, now: Optional[datetime] = None) -> Optional[str]:
    now = ensure_utc(now) if now else utcnow()
    offset = settings.FEEDBACK_DELAY_MINUTES
    run_at = ensure_utc(end_at) + timedelta(minutes=offset)
    if _too_close(run_at, now):
        return None

    jid = job_id(event_id, FEEDBACK, offset)
    if not job_queue.enqueue(
        jid,
        FEEDBACK_JOB_FUNC,
        run_at,
        kwargs={"event_id": event_id, "offset_minutes": offset, "attempt": 1},
    ):
        return None
    logger.info(f"Enqueued feedback request for event {event_id} at {run_at.isoformat()}")
    return jid


def clear_feedback_request(event_id: str) -> int:
    removed = 1 if job_queue.remove(job_id(event_id, FEEDBACK, settings.FEEDBACK_DELAY_MINUTES)) else 0
    removed += job_queue.remove_prefix(f"{event_id}:{FEEDBACK}:")
    return removed


def reschedule_feedback_request(event_id: str, end_at: datetime, now: Optional[datetime] = None) -> Optional[str]:
    clear_feedback_request(event_id)
    return enqueue_feedback_request(event_id, end_at, now=now)


def clear_all(event_id: str) -> None:
    clear_reminders(event_id)
    clear_feedback_request(event_id)


def backoff_seconds(attempt: int) -> int:
    """Delay before the attempt following `attempt` (5s, 10s, 20s, ...)."""
    return settings.JOB_BACKOFF_BASE_SECONDS * (2 ** (attempt - 1))


def schedule_retry(
    kind: str,
    event_id: str,
    offset_minutes: int,
    attempt: int,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Queue the next attempt of a failed job.

    Returns the retry job id, or None once JOB_MAX_ATTEMPTS is reached.
    """
    if attempt >= settings.JOB_MAX_ATTEMPTS:
        return None

    now = ensure_utc(now) if now else utcnow()
    next_attempt = attempt + 1
    jid = retry_job_id(event_id, kind, offset_minutes, next_attempt)
    run_at = now + timedelta(seconds=backoff_seconds(attempt))
    if not job_queue.enqueue(
        jid,
        JOB_FUNCS[kind],
        run_at,
        kwargs={"event_id": event_id, "offset_minutes": offset_minutes, "attempt": next_attempt},
    ):
        return None
    return jid
