# app/scheduler.py
"""
Background task scheduler for event jobs and periodic sweeps.

One APScheduler instance serves two purposes:
- Delayed, per-event jobs (reminders, feedback requests) added on demand by
  app.services.event_jobs under deterministic ids
- Periodic sweeps: publishing due scheduled events and archiving audit logs
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.base import STATE_PAUSED, STATE_RUNNING

from app.core.config import settings
from app.utils.time_utils import isoformat

logger = logging.getLogger(__name__)

# Set by init_scheduler, cleared by shutdown_scheduler
scheduler = None


def _log_job_event(event):
    if event.code == EVENT_JOB_MISSED:
        logger.warning(f"Job {event.job_id} missed its run at {event.scheduled_run_time}")
        return
    logger.error(f"Job {event.job_id} raised {event.exception!r}\n{event.traceback or ''}")


def _build_jobstores(jobstore: str | None = None) -> dict:
    jobstore = jobstore or settings.SCHEDULER_JOBSTORE
    if jobstore == "sqlalchemy":
        # Durable: pending reminders survive restarts
        return {"default": SQLAlchemyJobStore(url=settings.DATABASE_URL, tablename="apscheduler_jobs")}
    return {"default": MemoryJobStore()}


def create_scheduler(jobstore: str | None = None) -> BackgroundScheduler:
    sched = BackgroundScheduler(
        jobstores=_build_jobstores(jobstore),
        timezone="UTC",
        job_defaults={
            'coalesce': True,  # Combine missed executions
            'max_instances': 1,  # Only one instance of each job at a time
            'misfire_grace_time': 60  # Allow 60 seconds grace period
        }
    )
    sched.add_listener(_log_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    return sched


def _add_periodic_jobs(sched: BackgroundScheduler) -> None:
    # Job 1: Publish events whose scheduled publication time has passed
    # Runs every 1 minute
    sched.add_job(
        func="app.background_tasks.event_publication_tasks:publish_scheduled_events",
        trigger=IntervalTrigger(minutes=1),
        id='publish_scheduled_events',
        name='Publish Due Scheduled Events',
        replace_existing=True
    )
    logger.info("Scheduled job: publish_scheduled_events (every 1 minute)")

    # Job 2: Move audit trails of finished events to cold storage
    # Runs daily at 3 AM UTC
    sched.add_job(
        func="app.background_tasks.audit_archive_tasks:sweep_audit_archives",
        trigger=CronTrigger(hour=3, minute=0),
        id='sweep_audit_archives',
        name='Archive Audit Logs of Finished Events',
        replace_existing=True
    )
    logger.info("Scheduled job: sweep_audit_archives (daily at 3 AM UTC)")


def init_scheduler(*, paused: bool = False, jobstore: str | None = None, periodic: bool = True):
    """
    Initialize the background scheduler with all periodic tasks.

    This is called once when the application starts up. Tests pass
    paused=True so enqueued jobs can be inspected without running.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = create_scheduler(jobstore)
    if periodic:
        _add_periodic_jobs(scheduler)

    # Start the scheduler
    scheduler.start(paused=paused)
    logger.info("Background scheduler started successfully")

    return scheduler


def shutdown_scheduler(wait: bool = True):
    """
    Gracefully shutdown the scheduler.

    This is called when the application shuts down.
    """
    global scheduler

    if scheduler is not None:
        if scheduler.running:
            scheduler.shutdown(wait=wait)
        logger.info("Background scheduler shutdown complete")
        scheduler = None


def get_scheduler():
    return scheduler


def get_scheduler_status() -> dict:
    """Scheduler state plus every queued job, for the internal status endpoint."""
    if scheduler is None:
        return {"status": "not_initialized", "jobCount": 0, "jobs": []}

    state = {STATE_RUNNING: "running", STATE_PAUSED: "paused"}.get(scheduler.state, "stopped")
    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "nextRunTime": isoformat(job.next_run_time),
            "trigger": str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
    return {"status": state, "jobCount": len(jobs), "jobs": jobs}
