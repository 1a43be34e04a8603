"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from config.settings import Settings, get_settings
from src.models.base import get_db
from src.utils.clock import utcnow
from src.utils.constants import API_TIMEOUT_SHORT
import redis

router = APIRouter()

@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.
    Verifies database connectivity.
    """
    try:
        db.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "timestamp": utcnow().isoformat(),
            "database": "connected"
        }
    except SQLAlchemyError as e:
        return {
            "status": "unhealthy",
            "timestamp": utcnow().isoformat(),
            "database": "disconnected",
            "error": str(e)
        }

@router.get("/celery/status")
def celery_status(settings: Settings = Depends(get_settings)):
    """
    Celery worker status endpoint.
    Checks Redis connectivity and worker count.
    """
    try:
        r = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            decode_responses=True,
            socket_timeout=API_TIMEOUT_SHORT
        )

        # Finished task results stand in for workers when none are registered
        celery_keys = r.keys('celery-task-meta-*')
        worker_count = len(celery_keys) if celery_keys else 0

        try:
            workers = r.smembers('celery')
            worker_count = max(worker_count, len(workers))
        except redis.ResponseError:
            # 'celery' holds the broker queue list, not a set
            pass

        return {
            "status": "healthy" if worker_count > 0 else "idle",
            "workers": worker_count,
            "timestamp": utcnow().isoformat()
        }
    except redis.RedisError as e:
        return {
            "status": "unhealthy",
            "workers": 0,
            "timestamp": utcnow().isoformat(),
            "error": str(e)
        }
