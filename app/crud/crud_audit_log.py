# app/crud/crud_audit_log.py
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.models.audit_log import EventAuditLog


class CRUDEventAuditLog:
    """
    CRUD operations for EventAuditLog.

    Note: audit rows are append-only. The only delete path is the archival
    job, which removes rows after they were exported to cold storage.
    """

    def __init__(self, model):
        self.model = model

    def create_log(
        self,
        db: Session,
        *,
        event_id: str,
        scope: str,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        actor_role: Optional[str] = None,
        severity: str = "INFO",
        diff: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> EventAuditLog:
        """Add an audit row to the caller's transaction (flush only)."""
        db_obj = self.model(
            event_id=event_id,
            scope=scope,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            actor_role=actor_role,
            severity=severity,
            diff=diff,
            meta=meta,
        )
        db.add(db_obj)
        db.flush()
        return db_obj

    def count_for_event(self, db: Session, *, event_id: str) -> int:
        return db.query(self.model).filter(self.model.event_id == event_id).count()

    def get_batch(
        self, db: Session, *, event_id: str, offset: int, limit: int
    ) -> List[EventAuditLog]:
        """A stable page of an event's audit trail, oldest first."""
        return (
            db.query(self.model)
            .filter(self.model.event_id == event_id)
            .order_by(self.model.created_at.asc(), self.model.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def delete_ids(self, db: Session, *, ids: Sequence[str], chunk_size: int = 1000) -> int:
        deleted = 0
        ids = list(ids)
        for start in range(0, len(ids), chunk_size):
            chunk = ids[start:start + chunk_size]
            deleted += (
                db.query(self.model)
                .filter(self.model.id.in_(chunk))
                .delete(synchronize_session=False)
            )
        return deleted


audit_log = CRUDEventAuditLog(EventAuditLog)
