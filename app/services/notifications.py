# app/services/notifications.py
"""
Notification fan-out.

Rows are the source of truth: one per recipient, keyed by a deterministic
dedupe key so repeated deliveries of the same logical notification are
skipped. After the rows commit, each one is pushed to the recipient's
Redis channel. Pushes are at-most-once; clients recover missed ones by
listing their notifications.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFound
from app.crud.crud_notification import notification as crud_notification
from app.db.redis import redis_client
from app.utils.time_utils import isoformat

logger = logging.getLogger(__name__)

NOTIFICATION_CHANNEL = "notification-added:{recipient_id}"
BADGE_CHANNEL = "notification-badge-changed:{recipient_id}"


def build_dedupe_key(
    kind: str, recipient_id: str, entity_id: str, version: Optional[Any] = None
) -> str:
    """e.g. event_canceled:usr_1:evt_2 or event_updated:usr_1:evt_2:<updatedAt>"""
    key = f"{kind.lower()}:{recipient_id}:{entity_id}"
    if version is not None:
        key = f"{key}:{version}"
    return key


def _payload(row) -> Dict[str, Any]:
    return {
        "id": row.id,
        "kind": row.kind,
        "recipientId": row.recipient_id,
        "actorId": row.actor_id,
        "entityType": row.entity_type,
        "entityId": row.entity_id,
        "eventId": row.event_id,
        "title": row.title,
        "body": row.body,
        "data": row.data,
        "createdAt": isoformat(row.created_at),
    }


def notify(
    db: Session,
    *,
    recipients: Iterable[str],
    kind: str,
    entity_id: str,
    entity_type: str = "EVENT",
    event_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    title: Optional[str] = None,
    body: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    version: Optional[Any] = None,
    dedupe_key: Optional[Callable[[str], str]] = None,
) -> List[Dict[str, Any]]:
    """
    Persist one notification per recipient and commit.

    Duplicate dedupe keys are skipped. Returns the delivery payloads of the
    rows actually created, ready for publish_notifications().
    """
    created: List[Dict[str, Any]] = []
    seen = set()

    for recipient_id in recipients:
        if not recipient_id or recipient_id in seen:
            continue
        seen.add(recipient_id)

        key = (
            dedupe_key(recipient_id)
            if dedupe_key
            else build_dedupe_key(kind, recipient_id, entity_id, version)
        )
        row = crud_notification.create_if_absent(
            db,
            values={
                "kind": kind,
                "recipient_id": recipient_id,
                "actor_id": actor_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_id": event_id or (entity_id if entity_type == "EVENT" else None),
                "title": title,
                "body": body,
                "data": data,
                "dedupe_key": key,
            },
        )
        if row is not None:
            created.append(_payload(row))

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    skipped = len(seen) - len(created)
    logger.info(
        f"Notification fan-out {kind} for {entity_id}: created={len(created)} skipped={skipped}"
    )
    return created


def publish_notifications(payloads: Iterable[Dict[str, Any]], client=None) -> int:
    """
    Push each payload to its recipient's channel plus a badge-changed signal.

    Failures are swallowed and logged. Returns the number of payloads pushed.
    """
    client = client or redis_client
    published = 0
    for payload in payloads:
        recipient_id = payload["recipientId"]
        try:
            client.publish(
                NOTIFICATION_CHANNEL.format(recipient_id=recipient_id),
                json.dumps(payload, default=str),
            )
            _publish_badge(client, recipient_id)
            published += 1
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Failed to publish notification {payload.get('id')} to {recipient_id}: {e}")
    return published


def _publish_badge(client, recipient_id: str) -> None:
    client.publish(
        BADGE_CHANNEL.format(recipient_id=recipient_id),
        json.dumps({"recipientId": recipient_id}),
    )


def publish_badge_changed(recipient_id: str, client=None) -> bool:
    client = client or redis_client
    try:
        _publish_badge(client, recipient_id)
        return True
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Failed to publish badge change for {recipient_id}: {e}")
        return False


def fan_out(db: Session, **kwargs) -> List[Dict[str, Any]]:
    """notify() followed by publish_notifications()."""
    payloads = notify(db, **kwargs)
    publish_notifications(payloads)
    return payloads


def list_for_recipient(db: Session, *, user_id: str, unread_only: bool = False, skip: int = 0, limit: int = 50):
    return crud_notification.get_for_recipient(
        db, recipient_id=user_id, unread_only=unread_only, skip=skip, limit=limit
    )


def mark_read(db: Session, *, user_id: str, notification_id: str):
    row = crud_notification.get(db, id=notification_id)
    if row is None or row.recipient_id != user_id:
        raise NotFound("Notification not found")
    crud_notification.mark_read(db, db_obj=row)
    publish_badge_changed(user_id)
    return row
