"""
Game Service - Scavenger hunt sessions: start, QR scans, hints, completion and expiry
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from scavenger_hunt.config import settings
from scavenger_hunt.db.models import (
    GameSession, SessionCheckpoint, SessionHint, SessionStatus, User
)
from scavenger_hunt.errors import (
    InvalidQRCodeError, NotFoundError, SessionNotActiveError
)
from scavenger_hunt.services.checkpoint_service import checkpoint_service
from scavenger_hunt.services.progress_service import progress_service
from scavenger_hunt.services.rewards_service import rewards_service
from scavenger_hunt.services.sms_service import mask_phone

logger = logging.getLogger(__name__)


class GameService:
    """Service for timed scavenger hunt sessions"""

    def _elapsed_seconds(self, session: GameSession, now: datetime) -> int:
        return max(0, int((now - session.start_time).total_seconds()))

    def _close(self, session: GameSession, status: SessionStatus, now: datetime) -> None:
        session.status = status.value
        session.end_time = now
        session.time_elapsed = self._elapsed_seconds(session, now)
        rewards_service.record_game_result(
            session.user, completed=False, elapsed_seconds=session.time_elapsed, now=now
        )

    def _is_stale(self, session: GameSession, now: datetime) -> bool:
        limit = timedelta(minutes=settings.SESSION_EXPIRY_MINUTES)
        return now - session.start_time > limit

    def get_active_session(self, db: Session, user: User) -> Optional[GameSession]:
        """The user's active session; a stale one is expired on the way out"""
        session = (
            db.query(GameSession)
            .filter(
                GameSession.user_id == user.id,
                GameSession.status == SessionStatus.ACTIVE.value,
            )
            .order_by(GameSession.start_time.desc())
            .first()
        )
        if session is None:
            return None

        now = datetime.utcnow()
        if self._is_stale(session, now):
            self._close(session, SessionStatus.EXPIRED, now)
            db.commit()
            logger.info(f"Session {session.session_id} expired")
            return None
        return session

    def require_active_session(self, db: Session, user: User) -> GameSession:
        session = self.get_active_session(db, user)
        if session is None:
            raise NotFoundError("No active game session. Start a new hunt first.")
        return session

    def start_session(
        self,
        db: Session,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> GameSession:
        """Start a hunt, or return the one already in progress"""
        existing = self.get_active_session(db, user)
        if existing is not None:
            return existing

        catalog = checkpoint_service.list_active(db)[: settings.HUNT_CHECKPOINT_COUNT]
        if not catalog:
            raise NotFoundError("No active checkpoints are configured")
        progress = progress_service.get_or_create(db, user)

        session = GameSession(
            session_id=uuid.uuid4().hex,
            user_id=user.id,
            start_time=datetime.utcnow(),
            status=SessionStatus.ACTIVE.value,
            total_checkpoints=len(catalog),
            completed_checkpoints=0,
            hint_credits=progress.hint_credits,
            hints_used=0,
            venue=catalog[0].venue,
            user_agent=user_agent,
            ip_address=ip_address,
            checkpoints=[
                SessionCheckpoint(
                    position=position,
                    checkpoint_id=cp.id,
                    location=cp.location,
                    clue=cp.clue,
                    hint=cp.hint,
                    qr_code=cp.qr_code,
                    latitude=cp.latitude,
                    longitude=cp.longitude,
                    scan_count=0,
                )
                for position, cp in enumerate(catalog)
            ],
        )
        db.add(session)
        db.commit()

        progress_service.start_hunt(db, user)
        logger.info(f"Session {session.session_id} started for {mask_phone(user.phone_number)}")
        return session

    def _next_open(self, session: GameSession) -> Optional[SessionCheckpoint]:
        return next((cp for cp in session.checkpoints if not cp.is_completed), None)

    def scan(
        self,
        db: Session,
        user: User,
        qr_data: str,
        checkpoint_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Validate a scanned QR payload against the active session's checkpoints"""
        session = self.require_active_session(db, user)

        if checkpoint_id is not None:
            target = next(
                (cp for cp in session.checkpoints if cp.checkpoint_id == checkpoint_id), None
            )
            if target is None:
                raise NotFoundError(f"Checkpoint {checkpoint_id} is not part of this hunt")
            matched = target.qr_code == qr_data
        else:
            target = next((cp for cp in session.checkpoints if cp.qr_code == qr_data), None)
            matched = target is not None
            if target is None:
                target = self._next_open(session)

        if not matched:
            if target is not None:
                checkpoint_service.record_scan(db, target.checkpoint_id, successful=False)
                db.commit()
            raise InvalidQRCodeError("Invalid QR code")

        now = datetime.utcnow()
        already_scanned = target.is_completed
        user.last_qr_scan_at = now
        target.scan_count += 1
        checkpoint_service.record_scan(db, target.checkpoint_id, successful=True)
        if not already_scanned:
            target.is_completed = True
            target.scanned_at = now
            session.completed_checkpoints += 1
            checkpoint_service.update_average_time(
                db, target.checkpoint_id, self._elapsed_seconds(session, now)
            )

        if session.completed_checkpoints >= session.total_checkpoints:
            self._complete(db, session, now)
        db.commit()

        progress_service.mark_checkpoint_complete(db, user, target.checkpoint_id, target.location)

        next_cp = self._next_open(session)
        return {
            "isValid": True,
            "alreadyScanned": already_scanned,
            "checkpoint": {
                "id": target.checkpoint_id,
                "location": target.location,
                "scannedAt": target.scanned_at,
                "scanCount": target.scan_count,
            },
            "nextClue": next_cp.clue if next_cp else None,
            "gameComplete": session.status == SessionStatus.COMPLETED.value,
            "progress": self._progress_block(session),
            "rewardTier": session.reward_tier,
            "rewardToken": session.reward_token,
        }

    def _complete(self, db: Session, session: GameSession, now: datetime) -> None:
        session.status = SessionStatus.COMPLETED.value
        session.end_time = now
        session.time_elapsed = self._elapsed_seconds(session, now)
        tier = rewards_service.tier_for_seconds(session.time_elapsed)
        session.reward_tier = tier.value

        user = session.user
        session.reward_token = rewards_service.generate_reward_token(user.phone_number, now)
        rewards_service.record_game_result(
            user, completed=True, elapsed_seconds=session.time_elapsed, tier=tier, now=now
        )
        rewards_service.ensure_voucher_code(db, user)
        logger.info(
            f"Session {session.session_id} completed in {session.time_elapsed}s ({tier.value})"
        )

    def use_hint(self, db: Session, user: User, checkpoint_id: int) -> Dict[str, Any]:
        """Reveal a hint in the active session. Revealing the same hint again is free."""
        session = self.require_active_session(db, user)
        target = next(
            (cp for cp in session.checkpoints if cp.checkpoint_id == checkpoint_id), None
        )
        if target is None:
            raise NotFoundError(f"Checkpoint {checkpoint_id} is not part of this hunt")

        already_revealed = any(h.checkpoint_id == checkpoint_id for h in session.hints)
        if not already_revealed:
            # Credits come from the player's single pool on the progress record
            progress, charged = progress_service.reveal_hint(db, user, checkpoint_id)
            session.hint_credits = progress.hint_credits
            if charged:
                session.hints_used += 1
            session.hints.append(
                SessionHint(
                    checkpoint_id=checkpoint_id,
                    hint_text=target.hint,
                    used_at=datetime.utcnow(),
                )
            )
            db.commit()

        return {
            "checkpointId": checkpoint_id,
            "hint": target.hint,
            "alreadyRevealed": already_revealed,
            "hintCredits": session.hint_credits,
            "hintsUsed": session.hints_used,
        }

    def abandon(self, db: Session, user: User) -> GameSession:
        session = self.get_active_session(db, user)
        if session is None:
            raise SessionNotActiveError("Game session is not active")
        self._close(session, SessionStatus.ABANDONED, datetime.utcnow())
        db.commit()
        logger.info(f"Session {session.session_id} abandoned")
        return session

    def expire_stale_sessions(self, db: Session, now: Optional[datetime] = None) -> int:
        """Close every active session older than the expiry window"""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(minutes=settings.SESSION_EXPIRY_MINUTES)
        stale = (
            db.query(GameSession)
            .filter(
                GameSession.status == SessionStatus.ACTIVE.value,
                GameSession.start_time < cutoff,
            )
            .all()
        )
        for session in stale:
            self._close(session, SessionStatus.EXPIRED, now)
        if stale:
            db.commit()
            logger.info(f"Expired {len(stale)} stale sessions")
        return len(stale)

    def get_progress(self, db: Session, user: User) -> Dict[str, Any]:
        """Hunt progress as shown on the hunt page"""
        progress = progress_service.get_or_create(db, user)
        total_found = len(progress.completed_checkpoints)

        latest = (
            db.query(GameSession)
            .filter(GameSession.user_id == user.id)
            .order_by(GameSession.start_time.desc())
            .first()
        )
        if latest is not None and latest.reward_tier:
            current_tier = latest.reward_tier
        else:
            started = progress.hunt_started_at or datetime.utcnow()
            elapsed = (datetime.utcnow() - started).total_seconds()
            current_tier = rewards_service.tier_for_seconds(elapsed).value

        return {
            "totalFound": total_found,
            "totalCheckpoints": progress.total_checkpoints,
            "currentTier": current_tier,
            "hintCredits": progress.hint_credits,
            "isCompleted": total_found >= progress.total_checkpoints,
        }

    def _progress_block(self, session: GameSession) -> Dict[str, Any]:
        return {
            "completed": session.completed_checkpoints,
            "total": session.total_checkpoints,
            "percentage": round(session.completion_percentage, 2),
        }

    def to_dict(self, session: GameSession, include_codes: bool = False) -> Dict[str, Any]:
        revealed = {h.checkpoint_id for h in session.hints}
        checkpoints = []
        for cp in session.checkpoints:
            item = {
                "id": cp.checkpoint_id,
                "location": cp.location,
                "clue": cp.clue,
                "hint": cp.hint if cp.checkpoint_id in revealed else None,
                "isCompleted": cp.is_completed,
                "scannedAt": cp.scanned_at,
                "scanCount": cp.scan_count,
            }
            if include_codes:
                item["qrCode"] = cp.qr_code
            checkpoints.append(item)

        return {
            "sessionId": session.session_id,
            "status": session.status,
            "startTime": session.start_time,
            "endTime": session.end_time,
            "timeElapsed": session.time_elapsed,
            "checkpoints": checkpoints,
            "totalCheckpoints": session.total_checkpoints,
            "completedCheckpoints": session.completed_checkpoints,
            "hintCredits": session.hint_credits,
            "hintsUsed": session.hints_used,
            "rewardTier": session.reward_tier,
            "rewardToken": session.reward_token,
            "progress": self._progress_block(session),
        }

    def history(self, db: Session, user: User, limit: int = 10) -> List[Dict[str, Any]]:
        sessions = (
            db.query(GameSession)
            .filter(GameSession.user_id == user.id)
            .order_by(GameSession.start_time.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "sessionId": s.session_id,
                "startTime": s.start_time,
                "endTime": s.end_time,
                "timeElapsed": s.time_elapsed,
                "status": s.status,
                "rewardTier": s.reward_tier,
                "completedCheckpoints": s.completed_checkpoints,
                "totalCheckpoints": s.total_checkpoints,
            }
            for s in sessions
        ]

    def leaderboard(self, db: Session, limit: int = 10) -> List[Dict[str, Any]]:
        rows = (
            db.query(GameSession, User.phone_number)
            .join(User, GameSession.user_id == User.id)
            .filter(
                GameSession.status == SessionStatus.COMPLETED.value,
                GameSession.completed_checkpoints >= GameSession.total_checkpoints,
            )
            .order_by(GameSession.time_elapsed.asc(), GameSession.end_time.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                "rank": index,
                "phoneNumber": mask_phone(phone),
                "timeElapsed": session.time_elapsed,
                "rewardTier": session.reward_tier,
                "completedAt": session.end_time,
                "completedCheckpoints": session.completed_checkpoints,
            }
            for index, (session, phone) in enumerate(rows, start=1)
        ]


game_service = GameService()
