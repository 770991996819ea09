# app/tasks.py
import logging

from app.worker import celery_app
from app.db.session import SessionLocal
from app.services.audit_archive import archive_event_audit

logger = logging.getLogger(__name__)


@celery_app.task(
    name="archive_event_audit_logs",
    autoretry_for=(Exception,),
    retry_backoff=5,
    retry_jitter=False,
    max_retries=3,
)
def archive_event_audit_logs(event_id: str) -> dict:
    """
    Celery task for manually requested archival of one event's audit trail.

    Raises on failure so Celery retries with exponential backoff; the event
    stays unarchived until a run succeeds.
    """
    db = SessionLocal()
    try:
        result = archive_event_audit(db, event_id)
        logger.info(f"Manual audit archive for {event_id}: {result.status} ({result.count} rows)")
        return result.model_dump()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
