# app/models/event.py
import uuid
from sqlalchemy import Column, Integer, String, Boolean, Float, Text, Index, text
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.db.types import UTCDateTime
from app.utils.time_utils import utcnow


class Event(Base):
    __tablename__ = "events"

    id = Column(
        String, primary_key=True, default=lambda: f"evt_{uuid.uuid4().hex[:12]}"
    )
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # Publication state: DRAFT, SCHEDULED, PUBLISHED
    status = Column(String(20), nullable=False, default="DRAFT")
    published_at = Column(UTCDateTime, nullable=True)
    scheduled_publish_at = Column(UTCDateTime, nullable=True)

    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)

    # Capacity: ONE_TO_ONE, GROUP, CUSTOM
    mode = Column(String(20), nullable=False, default="GROUP")
    min = Column(Integer, nullable=True)
    max = Column(Integer, nullable=True)
    # Denormalized; always recomputed from the memberships table
    joined_count = Column(Integer, nullable=False, default=0, server_default=text("0"))

    # Join policy and window (minutes)
    join_mode = Column(String(20), nullable=False, default="OPEN")
    join_opens_minutes_before_start = Column(Integer, nullable=True)
    join_cutoff_minutes_before_start = Column(Integer, nullable=True)
    late_join_cutoff_minutes_after_start = Column(Integer, nullable=True)
    allow_join_late = Column(Boolean, nullable=False, default=True)
    join_manually_closed = Column(Boolean, nullable=False, default=False)
    join_manually_closed_at = Column(UTCDateTime, nullable=True)
    join_manually_closed_by_id = Column(String, nullable=True)
    join_manual_close_reason = Column(Text, nullable=True)

    # Meeting: ONSITE, ONLINE, HYBRID
    meeting_kind = Column(String(20), nullable=False, default="ONSITE")
    online_url = Column(String, nullable=True)
    address = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    # Lifecycle
    canceled_at = Column(UTCDateTime, nullable=True)
    canceled_by_id = Column(String, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    deleted_at = Column(UTCDateTime, nullable=True, index=True)
    deleted_by_id = Column(String, nullable=True)
    delete_reason = Column(Text, nullable=True)
    audit_archived_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    memberships = relationship(
        "Membership", back_populates="event", order_by="Membership.created_at"
    )

    __table_args__ = (
        Index("idx_events_status_scheduled", "status", "scheduled_publish_at"),
    )

    @property
    def is_read_only(self) -> bool:
        return self.canceled_at is not None or self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Event {self.id} status={self.status}>"
