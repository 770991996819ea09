# app/api/v1/endpoints/internals.py
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api import deps
from app.db.session import get_db
from app.scheduler import get_scheduler_status
from app.schemas.audit_archive import AuditArchiveRequestAccepted
from app.services.guards import get_event_or_404
from app.tasks import archive_event_audit_logs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["Internal"])


@router.get("/scheduler/status")
def scheduler_status(api_key: str = Depends(deps.get_internal_api_key)):
    """Jobs currently held by the background scheduler."""
    return get_scheduler_status()


@router.post(
    "/events/{eventId}/audit-archive",
    response_model=AuditArchiveRequestAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def request_audit_archive(
    eventId: str,
    db: Session = Depends(get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """
    Queue archival of one event's audit trail on the Celery worker.
    """
    get_event_or_404(db, eventId)
    result = archive_event_audit_logs.delay(eventId)
    logger.info(f"Queued audit archive for event {eventId} as task {result.id}")
    return AuditArchiveRequestAccepted(event_id=eventId, task_id=result.id)
