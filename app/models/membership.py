# app/models/membership.py
import uuid
from sqlalchemy import Column, String, ForeignKey, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.db.types import UTCDateTime
from app.utils.time_utils import utcnow


class Membership(Base):
    """
    Relationship between a user and an event.

    Memberships are never hard-deleted; leaving, rejection and bans are
    status transitions. Waitlist order is FIFO on (waitlisted_at, id).
    """

    __tablename__ = "event_memberships"

    id = Column(String, primary_key=True, default=lambda: f"mem_{uuid.uuid4().hex[:12]}")
    event_id = Column(
        String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False, index=True)  # No FK - users live in another service

    # OWNER, MODERATOR, PARTICIPANT
    role = Column(String(20), nullable=False, default="PARTICIPANT")
    # JOINED, PENDING, INVITED, WAITLIST, REJECTED, BANNED, LEFT, KICKED
    status = Column(String(20), nullable=False, default="PENDING")

    note = Column(Text, nullable=True)
    joined_at = Column(UTCDateTime, nullable=True)
    left_at = Column(UTCDateTime, nullable=True)
    # Queue position for WAITLIST members; reset each time the user (re)enters the waitlist
    waitlisted_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    event = relationship("Event", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_membership_user"),
        Index("idx_event_memberships_status", "event_id", "status", "waitlisted_at"),
    )

    def __repr__(self) -> str:
        return f"<Membership {self.id} {self.user_id} role={self.role} status={self.status}>"
