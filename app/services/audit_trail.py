# app/services/audit_trail.py
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.constants.event import AuditScope, AuditSeverity
from app.crud.crud_audit_log import audit_log as crud_audit_log


def record(
    db: Session,
    *,
    event_id: str,
    action: str,
    actor_id: Optional[str],
    actor_role: Optional[str] = None,
    scope: str = AuditScope.EVENT,
    entity_type: str = "EVENT",
    entity_id: Optional[str] = None,
    severity: str = AuditSeverity.INFO,
    diff: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
):
    """Append an audit row to the current transaction."""
    return crud_audit_log.create_log(
        db,
        event_id=event_id,
        scope=scope,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id or event_id,
        actor_id=actor_id,
        actor_role=actor_role,
        severity=severity,
        diff=diff,
        meta=meta,
    )
