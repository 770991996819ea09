# app/crud/crud_membership.py
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.constants.event import MemberStatus
from app.models.membership import Membership
from app.schemas.event import Membership as MembershipSchema
from app.utils.time_utils import utcnow


class CRUDMembership(CRUDBase[Membership, MembershipSchema, MembershipSchema]):
    """
    Membership reads and writes. Writes only flush; the calling service owns
    the transaction so capacity checks and status changes commit together.
    """

    def get_by_event_and_user(
        self, db: Session, *, event_id: str, user_id: str
    ) -> Optional[Membership]:
        return (
            db.query(self.model)
            .filter(self.model.event_id == event_id, self.model.user_id == user_id)
            .first()
        )

    def get_for_event(
        self, db: Session, *, event_id: str, statuses: Optional[Sequence[str]] = None
    ) -> List[Membership]:
        query = db.query(self.model).filter(self.model.event_id == event_id)
        if statuses:
            query = query.filter(self.model.status.in_(list(statuses)))
        return query.order_by(self.model.created_at.asc(), self.model.id.asc()).all()

    def count_joined(self, db: Session, *, event_id: str) -> int:
        """Authoritative JOINED count."""
        return (
            db.query(func.count(self.model.id))
            .filter(
                self.model.event_id == event_id,
                self.model.status == MemberStatus.JOINED,
            )
            .scalar()
        ) or 0

    def count_joined_with_roles(
        self, db: Session, *, event_id: str, roles: Sequence[str]
    ) -> int:
        return (
            db.query(func.count(self.model.id))
            .filter(
                self.model.event_id == event_id,
                self.model.status == MemberStatus.JOINED,
                self.model.role.in_(list(roles)),
            )
            .scalar()
        ) or 0

    def get_waitlist(
        self, db: Session, *, event_id: str, limit: Optional[int] = None
    ) -> List[Membership]:
        """WAITLIST members in FIFO order (waitlisted_at, then id)."""
        query = (
            db.query(self.model)
            .filter(
                self.model.event_id == event_id,
                self.model.status == MemberStatus.WAITLIST,
            )
            .order_by(self.model.waitlisted_at.asc(), self.model.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def user_ids_with_status(
        self,
        db: Session,
        *,
        event_id: str,
        statuses: Sequence[str],
        roles: Optional[Sequence[str]] = None,
        exclude_user_id: Optional[str] = None,
    ) -> List[str]:
        query = db.query(self.model.user_id).filter(
            self.model.event_id == event_id,
            self.model.status.in_(list(statuses)),
        )
        if roles:
            query = query.filter(self.model.role.in_(list(roles)))
        if exclude_user_id:
            query = query.filter(self.model.user_id != exclude_user_id)
        return [row[0] for row in query.order_by(self.model.created_at.asc()).all()]

    def add_member(
        self,
        db: Session,
        *,
        event_id: str,
        user_id: str,
        role: str,
        status: str,
        note: Optional[str] = None,
    ) -> Membership:
        now = utcnow()
        obj_in = {
            "event_id": event_id,
            "user_id": user_id,
            "role": role,
            "status": status,
            "note": note,
            "joined_at": now if status == MemberStatus.JOINED else None,
            "waitlisted_at": now if status == MemberStatus.WAITLIST else None,
        }
        return self.create(db, obj_in=obj_in, commit=False)

    def set_status(self, db: Session, *, member: Membership, status: str) -> Membership:
        now = utcnow()
        member.status = status
        if status == MemberStatus.JOINED:
            member.joined_at = now
            member.left_at = None
        elif status == MemberStatus.WAITLIST:
            member.waitlisted_at = now
        elif status in (MemberStatus.LEFT, MemberStatus.KICKED):
            member.left_at = now
        db.add(member)
        db.flush()
        return member


membership = CRUDMembership(Membership)
