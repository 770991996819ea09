# app/utils/kafka_helpers.py
"""
Kafka helper functions for publishing lifecycle events to topics.
Uses the singleton producer from app.core.kafka_producer.
"""
import logging
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.kafka_producer import get_kafka_singleton
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def publish_lifecycle_event(
    event_type: str,
    event_id: str,
    actor_id: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Publish an event lifecycle change (EventCreated, EventCanceled, ...).

    Keyed by event id so consumers see one event's changes in order.

    Returns:
        bool: True if handed to the producer, False otherwise
    """
    try:
        producer = get_kafka_singleton()

        if producer is None:
            logger.debug("Kafka producer unavailable, skipping lifecycle event publish")
            return False

        producer.send(
            settings.KAFKA_LIFECYCLE_TOPIC,
            key=event_id,
            value={
                "type": event_type,
                "eventId": event_id,
                "actorId": actor_id,
                "data": data or {},
                "occurredAt": utcnow().isoformat(),
            },
        )
        return True
    except Exception as e:
        logger.error(f"Failed to publish {event_type} for event {event_id}: {e}")
        return False
