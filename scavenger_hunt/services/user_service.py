"""
User Service - Profiles, preferences, personal stats, achievements and rankings
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from scavenger_hunt.db.models import GameSession, RewardTier, SessionStatus, User
from scavenger_hunt.errors import ForbiddenError
from scavenger_hunt.services.otp_service import require_phone
from scavenger_hunt.services.sms_service import mask_phone

logger = logging.getLogger(__name__)


ACHIEVEMENT_CATEGORIES = ["milestone", "completion", "performance", "consistency"]


class UserService:
    """Service for the player's own account"""

    def authorize(self, user: User, phone_number: str) -> None:
        """The path phone number must belong to the authenticated user"""
        if require_phone(phone_number) != user.phone_number:
            raise ForbiddenError("You can only access your own account")

    def profile(self, user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "phoneNumber": user.phone_number,
            "profile": {"name": user.name, "email": user.email, "avatar": user.avatar},
            "gameStats": self._game_stats(user),
            "preferences": self.preferences(user),
            "isVerified": user.is_verified,
            "createdAt": user.created_at,
        }

    def preferences(self, user: User) -> Dict[str, Any]:
        return {"language": user.language, "notifications": user.notifications}

    def _game_stats(self, user: User) -> Dict[str, Any]:
        return {
            "totalGames": user.total_games,
            "completedGames": user.completed_games,
            "bestTime": user.best_time,
            "totalRewards": user.total_rewards,
            "currentStreak": user.current_streak,
            "lastPlayedAt": user.last_played_at,
        }

    def update_profile(self, db: Session, user: User, changes: Dict[str, Any]) -> Dict[str, Any]:
        for field in ("name", "email", "avatar", "language", "notifications"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field])
        db.commit()
        logger.info(f"Profile updated for user {user.id}")
        return self.profile(user)

    def update_preferences(self, db: Session, user: User, changes: Dict[str, Any]) -> Dict[str, Any]:
        if changes.get("notifications") is not None:
            user.notifications = changes["notifications"]
        if changes.get("language") is not None:
            user.language = changes["language"]
        db.commit()
        return self.preferences(user)

    def _completed_sessions(self, db: Session, user: User):
        return db.query(GameSession).filter(
            GameSession.user_id == user.id,
            GameSession.status == SessionStatus.COMPLETED.value,
        )

    def rank(self, db: Session, user: User) -> Optional[int]:
        """Position by best completion time among players who finished"""
        if not user.completed_games or user.best_time is None:
            return None
        better = (
            db.query(func.count(User.id))
            .filter(
                User.completed_games > 0,
                User.best_time < user.best_time,
            )
            .scalar()
        )
        return (better or 0) + 1

    def stats(self, db: Session, user: User) -> Dict[str, Any]:
        completed = self._completed_sessions(db, user)
        total_play_time = completed.with_entities(func.sum(GameSession.time_elapsed)).scalar() or 0
        average_time = completed.with_entities(func.avg(GameSession.time_elapsed)).scalar()

        recent = (
            db.query(GameSession)
            .filter(GameSession.user_id == user.id)
            .order_by(GameSession.start_time.desc())
            .limit(5)
            .all()
        )

        stats = self._game_stats(user)
        stats.update(
            {
                "averageCompletionTime": round(average_time) if average_time is not None else None,
                "totalPlayTime": total_play_time,
                "rank": self.rank(db, user),
                "recentGames": [
                    {
                        "startedAt": s.start_time,
                        "completedAt": s.end_time,
                        "timeElapsed": s.time_elapsed,
                        "rewardTier": s.reward_tier,
                        "status": s.status,
                    }
                    for s in recent
                ],
            }
        )
        return stats

    def achievements(self, db: Session, user: User) -> Dict[str, Any]:
        unlocked: List[Dict[str, Any]] = []

        if user.total_games >= 1:
            unlocked.append({
                "id": "first_game",
                "title": "First Steps",
                "description": "Played your first scavenger hunt",
                "category": "milestone",
            })
        if user.completed_games >= 1:
            unlocked.append({
                "id": "first_completion",
                "title": "Hunt Master",
                "description": "Completed your first scavenger hunt",
                "category": "completion",
            })

        gold_games = (
            self._completed_sessions(db, user)
            .filter(GameSession.reward_tier == RewardTier.GOLD.value)
            .count()
        )
        if gold_games >= 1:
            unlocked.append({
                "id": "speed_demon",
                "title": "Speed Demon",
                "description": "Earned a Gold tier reward",
                "category": "performance",
            })
        if user.current_streak >= 3:
            unlocked.append({
                "id": "streak_3",
                "title": "On Fire!",
                "description": "Completed 3 games in a row",
                "category": "consistency",
            })
        if user.completed_games >= 10:
            unlocked.append({
                "id": "veteran",
                "title": "Hunt Veteran",
                "description": "Completed 10 scavenger hunts",
                "category": "milestone",
            })

        return {
            "achievements": unlocked,
            "totalAchievements": len(unlocked),
            "categories": {
                category: sum(1 for a in unlocked if a["category"] == category)
                for category in ACHIEVEMENT_CATEGORIES
            },
        }

    def delete(self, db: Session, user: User) -> None:
        """Delete the account along with its sessions and progress"""
        user_id = user.id
        db.delete(user)
        db.commit()
        logger.info(f"Deleted user {user_id}")

    def rankings(self, db: Session, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        query = db.query(User).filter(
            User.completed_games > 0,
            User.is_active == True,
            User.best_time.isnot(None),
        )
        total = query.count()
        users = (
            query.order_by(User.best_time.asc(), User.completed_games.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        offset = (page - 1) * limit
        return {
            "rankings": [
                {
                    "rank": offset + index,
                    "phoneNumber": mask_phone(u.phone_number),
                    "name": u.name,
                    "bestTime": u.best_time,
                    "completedGames": u.completed_games,
                    "totalRewards": u.total_rewards,
                }
                for index, u in enumerate(users, start=1)
            ],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }


user_service = UserService()
