# app/crud/crud_event.py
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.constants.event import EventStatus
from app.models.event import Event
from app.schemas.event import EventCreate, EventUpdate
from app.utils.time_utils import ensure_utc

# Fields whose before/after values are carried in update notifications
DIFFED_FIELDS = ("start_at", "end_at", "address", "max")


class CRUDEvent(CRUDBase[Event, EventCreate, EventUpdate]):

    def get_for_update(self, db: Session, *, id: str) -> Optional[Event]:
        """
        Load an event and lock its row until the transaction ends.

        Concurrent joins and capacity changes on the same event serialize on
        this lock (no-op on SQLite, which serializes writers anyway).
        """
        return (
            db.query(self.model)
            .filter(self.model.id == id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def create_with_owner(
        self, db: Session, *, obj_in: Dict[str, Any], owner_id: str
    ) -> Event:
        return self.create(
            db, obj_in={**obj_in, "owner_id": owner_id, "status": EventStatus.DRAFT}, commit=False
        )

    def apply_changes(
        self, db: Session, *, db_obj: Event, update_data: Dict[str, Any]
    ) -> Tuple[List[str], Dict[str, Dict[str, Any]]]:
        """
        Apply a patch and report what actually changed.

        Returns:
            (changed_fields, diff) where diff maps each changed field in
            DIFFED_FIELDS to {"old": ..., "new": ...} with datetimes isoformatted.
        """
        changed_fields: List[str] = []
        diff: Dict[str, Dict[str, Any]] = {}

        for field, new_value in update_data.items():
            old_value = getattr(db_obj, field)
            if _normalize(old_value) == _normalize(new_value):
                continue
            changed_fields.append(field)
            if field in DIFFED_FIELDS:
                diff[field] = {"old": _serialize(old_value), "new": _serialize(new_value)}
            setattr(db_obj, field, new_value)

        if changed_fields:
            db.add(db_obj)
            db.flush()
        return changed_fields, diff

    def get_due_scheduled(self, db: Session, *, now: datetime, limit: int = 100) -> List[Event]:
        """SCHEDULED events whose publish time has passed."""
        return (
            db.query(self.model)
            .filter(
                self.model.status == EventStatus.SCHEDULED,
                self.model.scheduled_publish_at <= now,
                self.model.canceled_at.is_(None),
                self.model.deleted_at.is_(None),
            )
            .order_by(self.model.scheduled_publish_at.asc())
            .limit(limit)
            .all()
        )

    def get_archivable(
        self, db: Session, *, now: datetime, older_than_days: int, limit: int = 100
    ) -> List[Event]:
        """
        Events whose audit trail can move to cold storage: deleted events,
        and events that ended or were canceled more than older_than_days ago.
        """
        threshold = now - timedelta(days=older_than_days)
        return (
            db.query(self.model)
            .filter(
                self.model.audit_archived_at.is_(None),
                or_(
                    self.model.deleted_at.isnot(None),
                    self.model.end_at < threshold,
                    and_(
                        self.model.canceled_at.isnot(None),
                        self.model.canceled_at < threshold,
                    ),
                ),
            )
            .order_by(self.model.end_at.asc())
            .limit(limit)
            .all()
        )


def _normalize(value):
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def _serialize(value):
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    return value


event = CRUDEvent(Event)
