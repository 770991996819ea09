# app/api/v1/endpoints/notifications.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.crud.crud_notification import notification as crud_notification
from app.db.session import get_db
from app.schemas.notification import Notification as NotificationSchema, NotificationList
from app.schemas.token import TokenPayload
from app.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationList)
def list_my_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Newest first. Clients call this to catch up on pushes they missed."""
    rows = notification_service.list_for_recipient(
        db, user_id=current_user.sub, unread_only=unread_only, skip=skip, limit=limit
    )
    unread = crud_notification.count_unread(db, recipient_id=current_user.sub)
    return NotificationList(data=rows, unreadCount=unread)


@router.post("/{notificationId}/read", response_model=NotificationSchema)
def mark_notification_read(
    notificationId: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return notification_service.mark_read(
        db, user_id=current_user.sub, notification_id=notificationId
    )
