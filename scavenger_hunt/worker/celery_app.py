"""
Celery Application Configuration
"""
from celery import Celery
from scavenger_hunt.config import settings

# Create Celery app
celery_app = Celery(
    "scavenger_hunt_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "scavenger_hunt.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    result_expires=3600,  # Results expire after 1 hour
)

# Periodic maintenance
celery_app.conf.beat_schedule = {
    "expire-stale-sessions": {
        "task": "scavenger_hunt.worker.tasks.expire_stale_sessions",
        "schedule": 5 * 60,
    },
    "clear-expired-otps": {
        "task": "scavenger_hunt.worker.tasks.clear_expired_otps",
        "schedule": 15 * 60,
    },
}
