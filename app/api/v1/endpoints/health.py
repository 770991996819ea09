# app/api/v1/endpoints/health.py
"""
Health check endpoints for monitoring system status.
"""
import redis
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.redis import redis_client

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check():
    """Basic health check - API is responding."""
    return {"status": "healthy", "service": "event-lifecycle-engine"}


@router.get("/db")
def database_health(db: Session = Depends(get_db)):
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "component": "database"}
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database unhealthy: {str(e)}",
        )


@router.get("/redis")
def redis_health():
    """Check Redis connectivity."""
    try:
        redis_client.ping()
        return {"status": "healthy", "component": "redis"}
    except (redis.RedisError, OSError) as e:
        raise HTTPException(
            status_code=503,
            detail=f"Redis unhealthy: {str(e)}",
        )
