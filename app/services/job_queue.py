# app/services/job_queue.py
"""
Delayed job queue over the APScheduler instance.

Jobs are addressed by caller-supplied ids with upsert semantics: adding a
job under an existing id replaces it. Removing an id that is not queued is
not an error.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from app import scheduler as scheduler_module

logger = logging.getLogger(__name__)


class JobQueue:

    def _scheduler(self):
        return scheduler_module.get_scheduler()

    def enqueue(
        self,
        job_id: str,
        func: Union[str, Callable[..., Any]],
        run_at: datetime,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> bool:
        sched = self._scheduler()
        if sched is None:
            logger.warning(f"Scheduler not running, job {job_id} not enqueued")
            return False

        sched.add_job(
            func=func,
            trigger=DateTrigger(run_date=run_at, timezone="UTC"),
            id=job_id,
            name=job_id,
            kwargs=kwargs or {},
            replace_existing=True,
            # Late jobs still run; handlers re-check event state themselves
            misfire_grace_time=None,
        )
        logger.debug(f"Enqueued job {job_id} at {run_at.isoformat()}")
        return True

    def remove(self, job_id: str) -> bool:
        sched = self._scheduler()
        if sched is None:
            return False
        try:
            sched.remove_job(job_id)
            return True
        except JobLookupError:
            return False

    def job_ids(self, prefix: str = "") -> List[str]:
        sched = self._scheduler()
        if sched is None:
            return []
        return sorted(job.id for job in sched.get_jobs() if job.id.startswith(prefix))

    def remove_prefix(self, prefix: str) -> int:
        removed = 0
        for job_id in self.job_ids(prefix):
            if self.remove(job_id):
                removed += 1
        return removed

    def get_run_time(self, job_id: str) -> Optional[datetime]:
        sched = self._scheduler()
        if sched is None:
            return None
        job = sched.get_job(job_id)
        return job.next_run_time if job else None


job_queue = JobQueue()
