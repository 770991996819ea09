# app/api/v1/endpoints/events.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.db.session import get_db
from app.schemas.event import Event as EventSchema, MembershipList
from app.schemas.token import TokenPayload
from app.services import event_lifecycle, membership as membership_service

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/{eventId}", response_model=EventSchema)
def get_event(
    eventId: str,
    db: Session = Depends(get_db),
    current_user: Optional[TokenPayload] = Depends(deps.get_current_user_optional),
):
    """Published events are public; drafts are visible to the owner and moderators."""
    viewer_id = current_user.sub if current_user else None
    return event_lifecycle.get_event(db, event_id=eventId, viewer_id=viewer_id)


@router.get("/{eventId}/members", response_model=MembershipList)
def list_event_members(
    eventId: str,
    status: Optional[List[str]] = Query(None, description="Filter by status (moderators only)"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    event = event_lifecycle.get_event(db, event_id=eventId, viewer_id=current_user.sub)
    members = membership_service.list_members(
        db, event_id=eventId, viewer_id=current_user.sub, statuses=status
    )
    return MembershipList(data=members, joinedCount=event.joined_count)
