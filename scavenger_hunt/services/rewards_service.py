"""
Rewards Service - Reward tiers, points, reward tokens and voucher codes
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from scavenger_hunt.db.models import RewardTier, User

logger = logging.getLogger(__name__)


class RewardsService:
    """Service for reward calculations"""

    # Tier thresholds, in minutes
    GOLD_UNDER_MINUTES = 20
    SILVER_MAX_MINUTES = 40

    TIER_POINTS = {
        RewardTier.GOLD: 100,
        RewardTier.SILVER: 75,
        RewardTier.BRONZE: 50,
    }

    VOUCHER_PREFIX = "TLB"
    VOUCHER_LENGTH = 6

    def calculate_tier(self, minutes: float) -> RewardTier:
        """Gold under 20 minutes, Silver from 20 to 40 inclusive, Bronze above 40"""
        if minutes < self.GOLD_UNDER_MINUTES:
            return RewardTier.GOLD
        if minutes <= self.SILVER_MAX_MINUTES:
            return RewardTier.SILVER
        return RewardTier.BRONZE

    def tier_for_seconds(self, seconds: float) -> RewardTier:
        return self.calculate_tier(seconds / 60)

    def generate_reward_token(self, phone_number: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.utcnow()
        stamp = str(int(now.timestamp() * 1000))[-6:]
        return f"TLB-{phone_number[-4:]}-{stamp}"

    def record_game_result(
        self,
        user: User,
        completed: bool,
        elapsed_seconds: int,
        tier: Optional[RewardTier] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Fold a finished session into the user's aggregate stats"""
        now = now or datetime.utcnow()
        user.total_games = (user.total_games or 0) + 1

        if completed:
            user.completed_games = (user.completed_games or 0) + 1
            if not user.best_time or elapsed_seconds < user.best_time:
                user.best_time = elapsed_seconds

            yesterday = now - timedelta(days=1)
            if not user.last_played_at or user.last_played_at < yesterday:
                user.current_streak = 1
            else:
                user.current_streak = (user.current_streak or 0) + 1

            if tier is not None:
                user.total_rewards = (user.total_rewards or 0) + self.TIER_POINTS[tier]

        user.last_played_at = now

    def _new_voucher_code(self) -> str:
        alphabet = string.ascii_uppercase + string.digits
        suffix = "".join(secrets.choice(alphabet) for _ in range(self.VOUCHER_LENGTH))
        return f"{self.VOUCHER_PREFIX}{suffix}"

    def ensure_voucher_code(self, db: Session, user: User) -> str:
        """Return the user's voucher code, assigning a new unique one if needed"""
        if user.voucher_code:
            return user.voucher_code

        code = self._new_voucher_code()
        while db.query(User.id).filter(User.voucher_code == code).first():
            code = self._new_voucher_code()

        user.voucher_code = code
        logger.info(f"Assigned voucher code to user {user.id}")
        return code


rewards_service = RewardsService()
