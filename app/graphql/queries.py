# app/graphql/queries.py
import strawberry
from typing import Optional
from strawberry.types import Info

from ..core.exceptions import NotFound
from ..crud.crud_notification import notification as crud_notification
from ..services import event_lifecycle, membership as membership_service
from ..services.notifications import list_for_recipient
from .mutations import current_user_id, engine_errors
from .types import (
    EventMembersPayload,
    EventType,
    MembershipType,
    NotificationsPayload,
    NotificationType,
)


@strawberry.type
class Query:
    @strawberry.field
    def event(self, id: strawberry.ID, info: Info) -> Optional[EventType]:
        user = info.context.user
        viewer_id = user.get("sub") if user else None
        try:
            event_obj = event_lifecycle.get_event(info.context.db, event_id=str(id), viewer_id=viewer_id)
        except NotFound:
            return None
        return EventType.from_model(event_obj)

    @strawberry.field
    def event_members(
        self, event_id: strawberry.ID, info: Info, status: Optional[list[str]] = None
    ) -> EventMembersPayload:
        with engine_errors():
            user_id = current_user_id(info)
            db = info.context.db
            event_obj = event_lifecycle.get_event(db, event_id=str(event_id), viewer_id=user_id)
            members = membership_service.list_members(
                db, event_id=event_obj.id, viewer_id=user_id, statuses=status
            )
            return EventMembersPayload(
                members=[MembershipType.from_model(m) for m in members],
                joinedCount=event_obj.joined_count,
            )

    @strawberry.field
    def my_notifications(
        self, info: Info, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> NotificationsPayload:
        with engine_errors():
            user_id = current_user_id(info)
            db = info.context.db
            rows = list_for_recipient(
                db, user_id=user_id, unread_only=unread_only, skip=offset, limit=min(limit, 200)
            )
            return NotificationsPayload(
                notifications=[NotificationType.from_model(r) for r in rows],
                unreadCount=crud_notification.count_unread(db, recipient_id=user_id),
            )
