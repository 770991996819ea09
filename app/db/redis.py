# app/db/redis.py
import redis
from app.core.config import settings


def get_redis_client():
    """
    Creates and returns a new Redis client instance.
    This is useful for creating fresh connections, like in a Celery task.
    """
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


# Shared instance used for notification pub/sub. No connection is opened
# until the first command is issued.
redis_client = get_redis_client()
