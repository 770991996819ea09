# app/services/audit_archive.py
"""
Moves the audit trail of a finished event to cold storage.

The trail is exported as gzipped JSON lines to S3 (or the local archive
directory when S3 is not configured or the upload fails), then deleted
from the database. audit_archived_at is set in the same transaction as
the delete, so a failed run leaves everything in place for the next sweep.
"""

import gzip
import json
import logging
from datetime import datetime
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.local_storage import save_bytes
from app.core.s3 import put_object
from app.crud.crud_audit_log import audit_log as crud_audit_log
from app.crud.crud_event import event as crud_event
from app.schemas.audit_archive import AuditArchiveResult
from app.services.guards import commit_or_raise
from app.utils.time_utils import ensure_utc, isoformat, utcnow

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "audit-archives"


def archive_key(event_id: str) -> str:
    return f"{ARCHIVE_PREFIX}/{event_id}.jsonl.gz"


def _row_to_line(row) -> str:
    return json.dumps(
        {
            "id": row.id,
            "createdAt": isoformat(row.created_at),
            "scope": row.scope,
            "action": row.action,
            "entityType": row.entity_type,
            "entityId": row.entity_id,
            "actorId": row.actor_id,
            "actorRole": row.actor_role,
            "severity": row.severity,
            "diff": row.diff,
            "meta": row.meta,
        },
        default=str,
    )


def _store(event_id: str, body: bytes, count: int, s3_client=None) -> str:
    key = archive_key(event_id)
    try:
        location = put_object(
            key,
            body,
            content_type="application/x-ndjson",
            content_encoding="gzip",
            metadata={"event-id": event_id, "row-count": str(count)},
            s3_client=s3_client,
        )
        if location:
            return f"s3://{settings.AWS_S3_BUCKET_NAME}/{location}"
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"S3 upload of audit archive for {event_id} failed, using local storage: {e}")
    return save_bytes(key, body)


def _skipped(db: Session, event_id: str, reason: str) -> AuditArchiveResult:
    db.rollback()
    return AuditArchiveResult(event_id=event_id, status="skipped", reason=reason)


def _lock_unarchived(db: Session, event_id: str):
    event = crud_event.get_for_update(db, id=event_id)
    if event is None or event.audit_archived_at is not None:
        return None
    return event


def archive_event_audit(db: Session, event_id: str, *, s3_client=None) -> AuditArchiveResult:
    """
    Archive one event's audit trail.

    The rows are read and exported without a row lock and with no
    transaction open during the upload. The event is locked only for the
    final delete and mark. Running it again on an archived event is a
    no-op that reports status="skipped".
    """
    event = crud_event.get(db, id=event_id)
    if event is None:
        return _skipped(db, event_id, "not_found")
    if event.audit_archived_at is not None:
        return _skipped(db, event_id, "already_archived")

    total = crud_audit_log.count_for_event(db, event_id=event_id)
    if total == 0:
        event = _lock_unarchived(db, event_id)
        if event is None:
            return _skipped(db, event_id, "already_archived")
        event.audit_archived_at = utcnow()
        db.add(event)
        commit_or_raise(db)
        logger.info(f"Event {event_id} has no audit rows, marked archived")
        return AuditArchiveResult(event_id=event_id, status="archived", reason="empty")

    batch_size = settings.AUDIT_ARCHIVE_BATCH_SIZE
    lines: List[str] = []
    ids: List[str] = []
    offset = 0
    while True:
        batch = crud_audit_log.get_batch(db, event_id=event_id, offset=offset, limit=batch_size)
        if not batch:
            break
        for row in batch:
            lines.append(_row_to_line(row))
            ids.append(row.id)
        offset += len(batch)

    # End the read transaction before the upload
    db.rollback()
    body = gzip.compress(("\n".join(lines) + "\n").encode("utf-8"))
    location = _store(event_id, body, len(ids), s3_client=s3_client)

    event = _lock_unarchived(db, event_id)
    if event is None:
        logger.warning(f"Event {event_id} was archived or removed during export to {location}")
        return _skipped(db, event_id, "already_archived")

    crud_audit_log.delete_ids(db, ids=ids, chunk_size=batch_size)
    event.audit_archived_at = utcnow()
    db.add(event)
    commit_or_raise(db)

    logger.info(f"Archived {len(ids)} audit rows of event {event_id} to {location}")
    return AuditArchiveResult(event_id=event_id, status="archived", location=location, count=len(ids))


def find_archivable_events(
    db: Session, *, now: Optional[datetime] = None, limit: int = 100
) -> List[str]:
    now = ensure_utc(now) if now else utcnow()
    events = crud_event.get_archivable(
        db, now=now, older_than_days=settings.AUDIT_ARCHIVE_AFTER_DAYS, limit=limit
    )
    return [e.id for e in events]
