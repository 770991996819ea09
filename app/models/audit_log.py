# app/models/audit_log.py
import uuid
from sqlalchemy import Column, String, ForeignKey, Index
from app.db.base_class import Base
from app.db.types import JSONBType, UTCDateTime
from app.utils.time_utils import utcnow


class EventAuditLog(Base):
    """Append-only audit trail for a single event, archived to cold storage."""

    __tablename__ = "event_audit_logs"

    id = Column(String, primary_key=True, default=lambda: f"aud_{uuid.uuid4().hex[:12]}")
    event_id = Column(
        String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scope = Column(String(20), nullable=False)  # EVENT, MEMBER
    action = Column(String(50), nullable=False)  # CREATE, UPDATE, CANCEL, JOIN, ...
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String, nullable=True)
    actor_id = Column(String, nullable=True)
    actor_role = Column(String(20), nullable=True)
    severity = Column(String(20), nullable=False, default="INFO")
    diff = Column(JSONBType, nullable=True)
    meta = Column(JSONBType, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_event_audit_logs_event_created", "event_id", "created_at"),
    )
