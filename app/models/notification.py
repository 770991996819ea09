"""Notification model for in-app notifications delivered to users."""

import uuid
from sqlalchemy import Column, String, Text, Index
from app.db.base_class import Base
from app.db.types import JSONBType, UTCDateTime
from app.utils.time_utils import utcnow


class Notification(Base):
    """
    One row per recipient per logical notification.

    dedupe_key is unique, so re-delivering the same logical notification
    never creates a second row.
    """

    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=lambda: f"ntf_{uuid.uuid4().hex[:12]}")
    kind = Column(String(50), nullable=False)
    recipient_id = Column(String, nullable=False, index=True)
    actor_id = Column(String, nullable=True)
    entity_type = Column(String(30), nullable=False, default="EVENT")
    entity_id = Column(String, nullable=True)
    event_id = Column(String, nullable=True, index=True)

    title = Column(String, nullable=True)
    body = Column(Text, nullable=True)
    data = Column(JSONBType, nullable=True)

    dedupe_key = Column(String(255), nullable=False, unique=True)
    read_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_notifications_recipient_unread", "recipient_id", "read_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.id} kind={self.kind} to={self.recipient_id}>"
