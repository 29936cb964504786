"""
Progress Service - Per-user dashboard games, checkpoint completions, hints and resume state
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scavenger_hunt.config import settings
from scavenger_hunt.db.models import (
    CurrentPage, DashboardGame, DashboardGameProgress, ProgressCheckpoint,
    ProgressHint, User, UserProgress
)
from scavenger_hunt.errors import InvalidQRCodeError, NoCreditsError, ValidationError
from scavenger_hunt.services.checkpoint_service import checkpoint_service
from scavenger_hunt.services.sms_service import mask_phone

logger = logging.getLogger(__name__)


def parse_dashboard_game(game_id: str) -> DashboardGame:
    try:
        return DashboardGame(game_id)
    except ValueError:
        raise ValidationError(
            "Invalid game ID",
            details={"allowed": [g.value for g in DashboardGame]},
        )


def parse_page(page: str) -> CurrentPage:
    try:
        return CurrentPage(page)
    except ValueError:
        raise ValidationError(
            "Invalid page",
            details={"allowed": [p.value for p in CurrentPage]},
        )


class ProgressService:
    """Service for the denormalized per-user progress record"""

    def get_or_create(self, db: Session, user: User, touch_login: bool = False) -> UserProgress:
        """Load the user's progress, creating it on first use"""
        now = datetime.utcnow()
        progress = db.query(UserProgress).filter(UserProgress.user_id == user.id).first()

        if progress is None:
            progress = UserProgress(
                user_id=user.id,
                phone_number=user.phone_number,
                hint_credits=settings.HINT_CREDITS,
                total_checkpoints=settings.HUNT_CHECKPOINT_COUNT,
                game_started_at=now,
                games=[DashboardGameProgress(game=game.value) for game in DashboardGame],
            )
            db.add(progress)
            try:
                db.commit()
            except IntegrityError:
                # Another request created it first
                db.rollback()
                progress = db.query(UserProgress).filter(UserProgress.user_id == user.id).one()
            else:
                logger.info(f"Created progress for user {user.id}")

        if touch_login:
            progress.last_login_at = now
            progress.login_count = (progress.login_count or 0) + 1
            db.commit()

        return progress

    def _game(self, progress: UserProgress, game: DashboardGame) -> DashboardGameProgress:
        for entry in progress.games:
            if entry.game == game.value:
                return entry
        entry = DashboardGameProgress(game=game.value)
        progress.games.append(entry)
        return entry

    def _set_state(self, progress: UserProgress, page: CurrentPage, checkpoint: Optional[int] = None) -> None:
        progress.current_page = page.value
        if checkpoint is not None:
            progress.last_checkpoint = checkpoint
        progress.can_resume = page not in (CurrentPage.REGISTRATION, CurrentPage.COMPLETED)
        progress.last_activity_at = datetime.utcnow()

    def _refresh_completion(self, progress: UserProgress) -> None:
        """Apply the completion rules; completion flags only ever move forward"""
        now = datetime.utcnow()
        if progress.game_started_at:
            progress.total_time_spent = int((now - progress.game_started_at).total_seconds())

        checkpoints_done = len(progress.completed_checkpoints) >= progress.total_checkpoints
        hunt = self._game(progress, DashboardGame.SCAVENGER_HUNT)
        if checkpoints_done and not hunt.is_completed:
            hunt.is_completed = True
            hunt.completed_at = now

        all_games_done = all(
            self._game(progress, game).is_completed for game in DashboardGame
        )
        if all_games_done and checkpoints_done and not progress.is_game_completed:
            progress.is_game_completed = True
            progress.completed_at = now
            self._set_state(progress, CurrentPage.COMPLETED)
            logger.info(f"Game completed for {mask_phone(progress.phone_number)}")

    def completion_percentage(self, progress: UserProgress) -> int:
        done = sum(1 for entry in progress.games if entry.is_completed)
        return round(done / len(DashboardGame) * 100)

    def summary(self, progress: UserProgress) -> Dict[str, Any]:
        return {
            "dashboardGamesCompleted": sum(1 for entry in progress.games if entry.is_completed),
            "scavengerCheckpointsCompleted": len(progress.completed_checkpoints),
            "scavengerHuntCompleted": self._game(progress, DashboardGame.SCAVENGER_HUNT).is_completed,
            "totalHintsUsed": progress.total_hints_used,
            "hintCreditsRemaining": progress.hint_credits,
            "canResume": progress.can_resume,
            "currentPage": progress.current_page,
            "isGameCompleted": progress.is_game_completed,
        }

    def to_dict(self, progress: UserProgress) -> Dict[str, Any]:
        return {
            "userId": progress.user_id,
            "phoneNumber": progress.phone_number,
            "dashboardGames": {
                entry.game: {
                    "isStarted": entry.is_started,
                    "isCompleted": entry.is_completed,
                    "startedAt": entry.started_at,
                    "completedAt": entry.completed_at,
                    "completionTime": entry.completion_time,
                }
                for entry in progress.games
            },
            "scavengerHuntProgress": {
                "completedCheckpoints": [
                    {
                        "checkpointId": cp.checkpoint_id,
                        "location": cp.location,
                        "completedAt": cp.completed_at,
                        "scanCount": cp.scan_count,
                    }
                    for cp in progress.completed_checkpoints
                ],
                "hintCredits": progress.hint_credits,
                "revealedHints": sorted(h.checkpoint_id for h in progress.revealed_hints),
                "totalCheckpoints": progress.total_checkpoints,
                "currentCheckpoint": progress.current_checkpoint,
                "startedAt": progress.hunt_started_at,
                "lastActivityAt": progress.last_activity_at,
            },
            "gameStats": {
                "totalTimeSpent": progress.total_time_spent,
                "totalScans": progress.total_scans,
                "totalHintsUsed": progress.total_hints_used,
                "gameStartedAt": progress.game_started_at,
                "lastLoginAt": progress.last_login_at,
                "loginCount": progress.login_count,
            },
            "currentState": {
                "currentPage": progress.current_page,
                "lastCheckpoint": progress.last_checkpoint,
                "canResume": progress.can_resume,
            },
            "isGameCompleted": progress.is_game_completed,
            "completedAt": progress.completed_at,
            "finalScore": progress.final_score,
        }

    def start_hunt(self, db: Session, user: User) -> UserProgress:
        progress = self.get_or_create(db, user)
        hunt = self._game(progress, DashboardGame.SCAVENGER_HUNT)
        if not hunt.is_started:
            now = datetime.utcnow()
            hunt.is_started = True
            hunt.started_at = now
            progress.hunt_started_at = now
            logger.info(f"Scavenger hunt started for user {user.id}")
        if not progress.is_game_completed:
            self._set_state(progress, CurrentPage.SCAVENGER_HUNT)
        db.commit()
        return progress

    def complete_dashboard_game(
        self,
        db: Session,
        user: User,
        game_id: str,
        completion_time: Optional[int] = None,
    ) -> UserProgress:
        game = parse_dashboard_game(game_id)
        if game is DashboardGame.SCAVENGER_HUNT:
            # The hunt finishes through its checkpoints; this only starts it
            return self.start_hunt(db, user)

        progress = self.get_or_create(db, user)
        entry = self._game(progress, game)
        now = datetime.utcnow()
        if not entry.is_completed:
            entry.is_completed = True
            entry.completed_at = now
            if completion_time:
                entry.completion_time = completion_time
        user.last_qr_scan_at = now

        if not progress.is_game_completed:
            self._set_state(progress, CurrentPage.DASHBOARD)
        self._refresh_completion(progress)
        db.commit()
        logger.info(f"Dashboard game {game.value} completed for user {user.id}")
        return progress

    def mark_checkpoint_complete(
        self,
        db: Session,
        user: User,
        checkpoint_id: int,
        location: Optional[str] = None,
    ) -> Tuple[ProgressCheckpoint, bool]:
        """Record a found checkpoint. Re-scans only bump the scan count.

        Returns the completion entry and whether it was newly completed.
        """
        progress = self.get_or_create(db, user)
        now = datetime.utcnow()

        entry = next(
            (cp for cp in progress.completed_checkpoints if cp.checkpoint_id == checkpoint_id),
            None,
        )
        newly_completed = entry is None
        if newly_completed:
            entry = ProgressCheckpoint(
                checkpoint_id=checkpoint_id,
                location=location,
                completed_at=now,
                scan_count=1,
            )
            progress.completed_checkpoints.append(entry)
        else:
            entry.scan_count += 1

        progress.total_scans += 1
        progress.current_checkpoint = checkpoint_id
        user.last_qr_scan_at = now

        hunt = self._game(progress, DashboardGame.SCAVENGER_HUNT)
        if not hunt.is_started:
            hunt.is_started = True
            hunt.started_at = now
            progress.hunt_started_at = progress.hunt_started_at or now

        if not progress.is_game_completed:
            self._set_state(progress, CurrentPage.SCAVENGER_HUNT, checkpoint_id)
        self._refresh_completion(progress)
        db.commit()
        return entry, newly_completed

    def complete_checkpoint(
        self,
        db: Session,
        user: User,
        checkpoint_id: int,
        location: Optional[str] = None,
        qr_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Checkpoint completion reported by the client, optionally with the scanned payload"""
        checkpoint = checkpoint_service.get(db, checkpoint_id)
        if qr_code is not None:
            matched = qr_code == checkpoint.qr_code
            checkpoint_service.record_scan(db, checkpoint.id, matched)
            if not matched:
                db.commit()
                raise InvalidQRCodeError("Invalid QR code for this checkpoint")

        entry, newly_completed = self.mark_checkpoint_complete(
            db, user, checkpoint.id, location or checkpoint.location
        )
        progress = self.get_or_create(db, user)
        total_completed = len(progress.completed_checkpoints)
        return {
            "checkpointCompleted": checkpoint.id,
            "location": entry.location,
            "newlyCompleted": newly_completed,
            "scanCount": entry.scan_count,
            "totalCompleted": total_completed,
            "allCheckpointsCompleted": total_completed >= progress.total_checkpoints,
            "progress": self.summary(progress),
        }

    def reveal_hint(self, db: Session, user: User, checkpoint_id: int) -> Tuple[UserProgress, bool]:
        """
        Spend one credit from the player's hint pool, shared by game sessions
        and the progress API. Returns (progress, charged); a hint that is
        already revealed costs nothing. The caller commits.
        """
        progress = self.get_or_create(db, user)
        if any(h.checkpoint_id == checkpoint_id for h in progress.revealed_hints):
            return progress, False
        if progress.hint_credits <= 0:
            raise NoCreditsError("No hint credits remaining")

        now = datetime.utcnow()
        progress.hint_credits -= 1
        progress.revealed_hints.append(ProgressHint(checkpoint_id=checkpoint_id, revealed_at=now))
        progress.total_hints_used += 1
        progress.last_activity_at = now
        checkpoint_service.record_hint_usage(db, checkpoint_id)
        return progress, True

    def use_hint(self, db: Session, user: User, checkpoint_id: int) -> Dict[str, Any]:
        """Reveal a checkpoint hint. Revealing the same hint again is free."""
        checkpoint = checkpoint_service.get(db, checkpoint_id)
        progress, charged = self.reveal_hint(db, user, checkpoint_id)
        if charged:
            db.commit()

        return {
            "hintRevealed": checkpoint_id,
            "hint": checkpoint.hint,
            "alreadyRevealed": not charged,
            "hintsRemaining": progress.hint_credits,
            "totalHintsUsed": progress.total_hints_used,
        }

    def update_state(
        self,
        db: Session,
        user: User,
        page: str,
        checkpoint: Optional[int] = None,
    ) -> UserProgress:
        current_page = parse_page(page)
        progress = self.get_or_create(db, user)
        if progress.is_game_completed and current_page is not CurrentPage.COMPLETED:
            # Completion is one-way; the resume pointer stays on the completed page
            current_page = CurrentPage.COMPLETED
        self._set_state(progress, current_page, checkpoint)
        db.commit()
        return progress

    def complete_game(
        self,
        db: Session,
        user: User,
        final_score: Optional[int] = None,
        time_elapsed: Optional[int] = None,
    ) -> Dict[str, Any]:
        progress = self.get_or_create(db, user)
        self._refresh_completion(progress)
        if not progress.is_game_completed:
            db.commit()
            raise ValidationError(
                "Game is not finished yet",
                details=self.summary(progress),
            )

        if progress.final_score is None:
            progress.final_score = final_score or 0
        if time_elapsed and not progress.hunt_total_time:
            progress.hunt_total_time = time_elapsed
        db.commit()

        return {
            "gameCompleted": True,
            "finalScore": progress.final_score,
            "completionTime": progress.total_time_spent,
            "rank": self.rank(db, progress),
        }

    def rank(self, db: Session, progress: UserProgress) -> Optional[int]:
        if not progress.is_game_completed or progress.completed_at is None:
            return None
        better = db.query(UserProgress).filter(
            UserProgress.is_game_completed == True,
            UserProgress.completed_at < progress.completed_at,
        ).count()
        return better + 1

    def leaderboard(self, db: Session, limit: int = 10) -> List[Dict[str, Any]]:
        rows = (
            db.query(UserProgress)
            .filter(UserProgress.is_game_completed == True)
            .order_by(UserProgress.completed_at.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                "rank": index,
                "phoneNumber": mask_phone(row.phone_number),
                "totalTime": row.total_time_spent,
                "hintsUsed": row.total_hints_used,
                "completedAt": row.completed_at,
                "checkpointsFound": len(row.completed_checkpoints),
            }
            for index, row in enumerate(rows, start=1)
        ]

    def total_found(self, db: Session, user: User) -> int:
        progress = self.get_or_create(db, user)
        return len(progress.completed_checkpoints)


progress_service = ProgressService()
