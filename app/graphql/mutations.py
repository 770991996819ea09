# app/graphql/mutations.py
"""
GraphQL mutations for the event lifecycle.

Resolvers are thin: they resolve the caller, delegate to app.services and
turn EngineError into a GraphQLError carrying the error code and the
offending field in its extensions.
"""

import dataclasses
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import strawberry
from graphql import GraphQLError
from strawberry.types import Info

from ..core.exceptions import EngineError, Unauthenticated
from ..schemas.event import EventCreate
from ..services import event_lifecycle, membership as membership_service
from .types import EventCreateInput, EventType, EventUpdateInput, MembershipType

logger = logging.getLogger(__name__)


@contextmanager
def engine_errors():
    try:
        yield
    except EngineError as e:
        raise GraphQLError(e.message, extensions={"code": e.code, "field": e.field}) from e


def current_user_id(info: Info) -> str:
    user = info.context.user
    if not user or not user.get("sub"):
        raise Unauthenticated("Authentication required")
    return user["sub"]


def _optional_membership(member) -> Optional[MembershipType]:
    return MembershipType.from_model(member) if member is not None else None


@strawberry.type
class Mutation:
    # --- Event lifecycle ---

    @strawberry.mutation
    def create_event(self, event_in: EventCreateInput, info: Info) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            payload = EventCreate(**dataclasses.asdict(event_in))
            event = event_lifecycle.create_event(info.context.db, owner_id=user_id, event_in=payload)
            return EventType.from_model(event)

    @strawberry.mutation
    def update_event(self, id: strawberry.ID, event_in: EventUpdateInput, info: Info) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.update_event(
                info.context.db, actor_id=user_id, event_id=str(id), event_in=event_in.to_patch()
            )
            return EventType.from_model(event)

    @strawberry.mutation
    def cancel_event(self, id: strawberry.ID, info: Info, reason: Optional[str] = None) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.cancel_event(
                info.context.db, actor_id=user_id, event_id=str(id), reason=reason
            )
            return EventType.from_model(event)

    @strawberry.mutation
    def delete_event(self, id: strawberry.ID, info: Info, reason: Optional[str] = None) -> bool:
        with engine_errors():
            user_id = current_user_id(info)
            return event_lifecycle.delete_event(
                info.context.db, actor_id=user_id, event_id=str(id), reason=reason
            )

    # --- Publication ---

    @strawberry.mutation
    def publish_event(self, id: strawberry.ID, info: Info) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.publish_event(info.context.db, actor_id=user_id, event_id=str(id))
            return EventType.from_model(event)

    @strawberry.mutation
    def schedule_event_publication(
        self, id: strawberry.ID, publish_at: datetime, info: Info
    ) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.schedule_event_publication(
                info.context.db, actor_id=user_id, event_id=str(id), publish_at=publish_at
            )
            return EventType.from_model(event)

    @strawberry.mutation
    def cancel_scheduled_publication(self, id: strawberry.ID, info: Info) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.cancel_scheduled_publication(
                info.context.db, actor_id=user_id, event_id=str(id)
            )
            return EventType.from_model(event)

    @strawberry.mutation
    def unpublish_event(self, id: strawberry.ID, info: Info) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.unpublish_event(info.context.db, actor_id=user_id, event_id=str(id))
            return EventType.from_model(event)

    # --- Join window ---

    @strawberry.mutation
    def close_event_join(self, id: strawberry.ID, info: Info, reason: Optional[str] = None) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.close_event_join(
                info.context.db, actor_id=user_id, event_id=str(id), reason=reason
            )
            return EventType.from_model(event)

    @strawberry.mutation
    def reopen_event_join(self, id: strawberry.ID, info: Info) -> EventType:
        with engine_errors():
            user_id = current_user_id(info)
            event = event_lifecycle.reopen_event_join(info.context.db, actor_id=user_id, event_id=str(id))
            return EventType.from_model(event)

    # --- Membership ---

    @strawberry.mutation
    def join_event(self, event_id: strawberry.ID, info: Info, note: Optional[str] = None) -> MembershipType:
        with engine_errors():
            user_id = current_user_id(info)
            member = membership_service.join_event(
                info.context.db, user_id=user_id, event_id=str(event_id), note=note
            )
            return MembershipType.from_model(member)

    @strawberry.mutation
    def leave_event(self, event_id: strawberry.ID, info: Info) -> MembershipType:
        with engine_errors():
            user_id = current_user_id(info)
            member = membership_service.leave_event(info.context.db, user_id=user_id, event_id=str(event_id))
            return MembershipType.from_model(member)

    @strawberry.mutation
    def approve_membership(self, event_id: strawberry.ID, user_id: str, info: Info) -> MembershipType:
        with engine_errors():
            actor_id = current_user_id(info)
            member = membership_service.approve_membership(
                info.context.db, actor_id=actor_id, event_id=str(event_id), user_id=user_id
            )
            return MembershipType.from_model(member)

    @strawberry.mutation
    def reject_membership(
        self, event_id: strawberry.ID, user_id: str, info: Info, note: Optional[str] = None
    ) -> MembershipType:
        with engine_errors():
            actor_id = current_user_id(info)
            member = membership_service.reject_membership(
                info.context.db, actor_id=actor_id, event_id=str(event_id), user_id=user_id, note=note
            )
            return MembershipType.from_model(member)

    @strawberry.mutation
    def join_waitlist(self, event_id: strawberry.ID, info: Info) -> MembershipType:
        with engine_errors():
            user_id = current_user_id(info)
            member = membership_service.join_waitlist(info.context.db, user_id=user_id, event_id=str(event_id))
            return MembershipType.from_model(member)

    @strawberry.mutation
    def leave_waitlist(self, event_id: strawberry.ID, info: Info) -> MembershipType:
        with engine_errors():
            user_id = current_user_id(info)
            member = membership_service.leave_waitlist(info.context.db, user_id=user_id, event_id=str(event_id))
            return MembershipType.from_model(member)

    @strawberry.mutation
    def promote_from_waitlist(
        self, event_id: strawberry.ID, info: Info, user_id: Optional[str] = None
    ) -> Optional[MembershipType]:
        """Promote a specific waitlisted user, or the head of the queue."""
        with engine_errors():
            actor_id = current_user_id(info)
            member = membership_service.promote_from_waitlist_manual(
                info.context.db, actor_id=actor_id, event_id=str(event_id), user_id=user_id
            )
            return _optional_membership(member)
