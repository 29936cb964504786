"""
System Router - Health checks and service info
"""
from datetime import datetime

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from scavenger_hunt.config import settings
from scavenger_hunt.dependencies import get_db

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Scavenger Hunt",
        "version": "1.0.0",
        "status": "running",
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Database and Redis status, plus the Celery queue depth when Redis is up"""
    database_status = "unhealthy"
    try:
        db.execute(text("SELECT 1"))
        database_status = "healthy"
    except Exception:
        pass

    redis_status = "unhealthy"
    worker_queue_depth = 0
    try:
        r = redis.from_url(settings.CELERY_BROKER_URL, socket_connect_timeout=1)
        r.ping()
        redis_status = "healthy"
        worker_queue_depth = r.llen("celery") or 0
    except Exception:
        pass

    return {
        "status": "ok" if database_status == "healthy" else "degraded",
        "environment": settings.APP_ENV,
        "database": database_status,
        "redis": redis_status,
        "worker_queue_depth": worker_queue_depth,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }
