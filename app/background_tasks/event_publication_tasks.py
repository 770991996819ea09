# app/background_tasks/event_publication_tasks.py
"""
Background task for scheduled publication.

Runs every minute from the scheduler:
- publish_scheduled_events(): publish every SCHEDULED event whose
  scheduled_publish_at has passed
"""

import logging
from typing import List

from app.db.session import SessionLocal
from app.services.event_lifecycle import publish_due_scheduled_events

logger = logging.getLogger(__name__)


def publish_scheduled_events() -> List[str]:
    db = SessionLocal()

    try:
        published = publish_due_scheduled_events(db)
        if published:
            logger.info(f"Published {len(published)} scheduled events: {published}")
        return published

    except Exception as e:
        logger.error(f"Error in publish_scheduled_events task: {e}", exc_info=True)
        db.rollback()
        return []

    finally:
        db.close()
