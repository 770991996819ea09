# app/background_tasks/audit_archive_tasks.py
"""
Daily sweep that moves audit trails of finished events to cold storage.

Each event is archived in its own transaction; one failure is logged and
the sweep moves on. Failed events keep audit_archived_at unset and are
picked up again by the next sweep.
"""

import logging
from typing import Dict

from app.db.session import SessionLocal
from app.services.audit_archive import archive_event_audit, find_archivable_events

logger = logging.getLogger(__name__)


def sweep_audit_archives(limit: int = 100) -> Dict[str, int]:
    db = SessionLocal()
    stats = {"archived": 0, "skipped": 0, "failed": 0}

    try:
        event_ids = find_archivable_events(db, limit=limit)
        db.rollback()

        for event_id in event_ids:
            try:
                result = archive_event_audit(db, event_id)
                stats[result.status] += 1
            except Exception as e:
                db.rollback()
                stats["failed"] += 1
                logger.error(f"Failed to archive audit trail of event {event_id}: {e}", exc_info=True)

        logger.info(
            f"Audit archive sweep done: archived={stats['archived']} "
            f"skipped={stats['skipped']} failed={stats['failed']}"
        )
        return stats

    finally:
        db.close()
