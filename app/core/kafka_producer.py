# app/core/kafka_producer.py

import json
import logging
from kafka import KafkaProducer
from kafka.errors import KafkaError
from app.core.config import settings

logger = logging.getLogger(__name__)

_producer: KafkaProducer | None = None


def _build_producer() -> KafkaProducer:
    return KafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
        key_serializer=lambda k: k.encode("utf-8") if k else None,
        request_timeout_ms=5000,
    )


def get_kafka_singleton() -> KafkaProducer | None:
    """
    Lazily create the process-wide producer.

    Returns None when Kafka is disabled or the brokers are unreachable, so
    callers can skip publishing instead of failing.
    """
    global _producer

    if not settings.KAFKA_ENABLED:
        return None
    if _producer is None:
        try:
            _producer = _build_producer()
        except KafkaError as e:
            logger.warning(f"Kafka producer unavailable: {e}")
            return None
    return _producer


def close_kafka_singleton() -> None:
    global _producer

    if _producer is not None:
        try:
            _producer.flush(timeout=5)
            _producer.close()
        except KafkaError as e:
            logger.warning(f"Error closing Kafka producer: {e}")
        _producer = None
