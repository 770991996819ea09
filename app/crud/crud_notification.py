"""CRUD operations for in-app notifications."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.models.notification import Notification
from app.schemas.notification import Notification as NotificationSchema
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class CRUDNotification(CRUDBase[Notification, NotificationSchema, NotificationSchema]):

    def create_if_absent(
        self, db: Session, *, values: Dict[str, Any]
    ) -> Optional[Notification]:
        """
        Insert a notification unless its dedupe_key already exists.

        The insert runs in a savepoint so a duplicate only rolls back this
        row. Returns None for duplicates (idempotent).
        """
        existing = (
            db.query(self.model.id)
            .filter(self.model.dedupe_key == values["dedupe_key"])
            .first()
        )
        if existing:
            logger.debug(f"Duplicate notification skipped: {values['dedupe_key']}")
            return None

        db_obj = self.model(**values)
        try:
            with db.begin_nested():
                db.add(db_obj)
        except IntegrityError:
            # Lost a race with a concurrent writer for the same dedupe key
            logger.debug(f"Duplicate notification skipped: {values['dedupe_key']}")
            return None
        return db_obj

    def get_for_recipient(
        self,
        db: Session,
        *,
        recipient_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Notification]:
        query = db.query(self.model).filter(self.model.recipient_id == recipient_id)
        if unread_only:
            query = query.filter(self.model.read_at.is_(None))
        return (
            query.order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_unread(self, db: Session, *, recipient_id: str) -> int:
        return (
            db.query(func.count(self.model.id))
            .filter(
                self.model.recipient_id == recipient_id,
                self.model.read_at.is_(None),
            )
            .scalar()
        ) or 0

    def mark_read(self, db: Session, *, db_obj: Notification) -> Notification:
        if db_obj.read_at is None:
            db_obj.read_at = utcnow()
            db.add(db_obj)
            db.commit()
            db.refresh(db_obj)
        return db_obj


notification = CRUDNotification(Notification)
