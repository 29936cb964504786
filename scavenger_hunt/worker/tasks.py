"""
Celery Tasks for periodic maintenance
"""
import logging
from datetime import datetime, timedelta

from celery import shared_task

from scavenger_hunt.config import settings
from scavenger_hunt.db.database import SessionLocal
from scavenger_hunt.db.models import User
from scavenger_hunt.services.game_service import game_service

logger = logging.getLogger(__name__)


def get_db_session():
    """Get database session for tasks"""
    return SessionLocal()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def expire_stale_sessions(self):
    """Close active hunt sessions that outlived SESSION_EXPIRY_MINUTES"""
    db = get_db_session()
    try:
        expired = game_service.expire_stale_sessions(db)
        return {"expired": expired}
    except Exception as e:
        logger.error(f"Session expiry failed: {e}")
        db.rollback()
        raise self.retry(exc=e)
    finally:
        db.close()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def clear_expired_otps(self):
    """Drop OTP hashes that expired more than OTP_PURGE_AFTER_HOURS ago"""
    cutoff = datetime.utcnow() - timedelta(hours=settings.OTP_PURGE_AFTER_HOURS)
    db = get_db_session()
    try:
        users = (
            db.query(User)
            .filter(User.otp_hash.isnot(None), User.otp_expires < cutoff)
            .all()
        )
        for user in users:
            user.otp_hash = None
            user.otp_expires = None
        db.commit()
        if users:
            logger.info(f"Cleared {len(users)} expired OTPs")
        return {"cleared": len(users)}
    except Exception as e:
        logger.error(f"OTP cleanup failed: {e}")
        db.rollback()
        raise self.retry(exc=e)
    finally:
        db.close()
