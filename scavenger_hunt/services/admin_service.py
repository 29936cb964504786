"""
Admin Service - Player reporting and prize-claim management
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from scavenger_hunt.db.models import (
    DashboardGameProgress, GameSession, PrizeClaim, PrizeType, ProgressCheckpoint,
    SessionStatus, User, UserProgress
)
from scavenger_hunt.errors import NotFoundError, ValidationError
from scavenger_hunt.services.otp_service import require_phone
from scavenger_hunt.services.rewards_service import rewards_service

logger = logging.getLogger(__name__)


def parse_prize_type(prize_type: str) -> PrizeType:
    try:
        return PrizeType(prize_type)
    except ValueError:
        raise ValidationError(
            "Invalid prize type",
            details={"allowed": [p.value for p in PrizeType]},
        )


class AdminService:
    """Read-side reporting over users and progress, plus claim toggles"""

    def list_users(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Users with their progress counts, newest first"""
        games_done = (
            db.query(
                DashboardGameProgress.progress_id.label("progress_id"),
                func.count(DashboardGameProgress.id).label("games_completed"),
            )
            .filter(DashboardGameProgress.is_completed == True)
            .group_by(DashboardGameProgress.progress_id)
            .subquery()
        )
        checkpoints_done = (
            db.query(
                ProgressCheckpoint.progress_id.label("progress_id"),
                func.count(ProgressCheckpoint.id).label("checkpoints_completed"),
            )
            .group_by(ProgressCheckpoint.progress_id)
            .subquery()
        )

        query = (
            db.query(
                User,
                UserProgress.is_game_completed,
                func.coalesce(games_done.c.games_completed, 0),
                func.coalesce(checkpoints_done.c.checkpoints_completed, 0),
            )
            .outerjoin(UserProgress, UserProgress.user_id == User.id)
            .outerjoin(games_done, games_done.c.progress_id == UserProgress.id)
            .outerjoin(checkpoints_done, checkpoints_done.c.progress_id == UserProgress.id)
        )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(User.phone_number.ilike(pattern), User.voucher_code.ilike(pattern))
            )

        total = query.count()
        rows = (
            query.options(selectinload(User.prize_claims))
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        users = [
            {
                "id": user.id,
                "phoneNumber": user.phone_number,
                "isVerified": user.is_verified,
                "createdAt": user.created_at,
                "voucherCode": user.voucher_code,
                "isClaimed": user.is_claimed,
                "claimedAt": user.claimed_at,
                "hasClaimed": self._has_claimed(user),
                "dashboardGamesCompleted": games,
                "checkpointsCompleted": checkpoints,
                "isGameCompleted": bool(completed),
            }
            for user, completed, games, checkpoints in rows
        ]
        return {
            "users": users,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }

    def stats(self, db: Session) -> Dict[str, Any]:
        total_users = db.query(func.count(User.id)).scalar() or 0
        verified_users = db.query(func.count(User.id)).filter(User.is_verified == True).scalar() or 0
        completed_hunts = (
            db.query(func.count(UserProgress.id))
            .filter(UserProgress.is_game_completed == True)
            .scalar()
            or 0
        )
        voucher_claims = db.query(func.count(User.id)).filter(User.is_claimed == True).scalar() or 0
        prize_claims = dict(
            db.query(PrizeClaim.prize_type, func.count(PrizeClaim.id))
            .group_by(PrizeClaim.prize_type)
            .all()
        )

        sessions_by_status = dict(
            db.query(GameSession.status, func.count(GameSession.id))
            .group_by(GameSession.status)
            .all()
        )
        tiers = dict(
            db.query(GameSession.reward_tier, func.count(GameSession.id))
            .filter(GameSession.status == SessionStatus.COMPLETED.value)
            .group_by(GameSession.reward_tier)
            .all()
        )
        avg_time = (
            db.query(func.avg(GameSession.time_elapsed))
            .filter(GameSession.status == SessionStatus.COMPLETED.value)
            .scalar()
        )

        return {
            "totalUsers": total_users,
            "verifiedUsers": verified_users,
            "totalProgress": db.query(func.count(UserProgress.id)).scalar() or 0,
            "completedHunts": completed_hunts,
            "totalPrizeClaims": sum(prize_claims.values()),
            "prizeClaims": {prize.value: prize_claims.get(prize.value, 0) for prize in PrizeType},
            "voucherClaims": voucher_claims,
            "sessions": {status.value: sessions_by_status.get(status.value, 0) for status in SessionStatus},
            "rewardTiers": {tier: count for tier, count in tiers.items() if tier},
            "averageCompletionTime": round(avg_time) if avg_time is not None else None,
        }

    def total_users(self, db: Session) -> int:
        return db.query(func.count(User.id)).scalar() or 0

    def _user_by_id(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def _has_claimed(self, user: User) -> Dict[str, bool]:
        claimed = {c.prize_type for c in user.prize_claims}
        return {prize.value: prize.value in claimed for prize in PrizeType}

    def set_prize_claim(
        self, db: Session, user_id: int, prize_type: str, claimed: bool
    ) -> Dict[str, Any]:
        """Mark or unmark one prize for a player"""
        prize = parse_prize_type(prize_type)
        user = self._user_by_id(db, user_id)
        existing = next((c for c in user.prize_claims if c.prize_type == prize.value), None)

        if claimed and existing is None:
            existing = PrizeClaim(prize_type=prize.value, claimed_at=datetime.utcnow())
            user.prize_claims.append(existing)
        elif not claimed and existing is not None:
            user.prize_claims.remove(existing)
            existing = None
        db.commit()
        logger.info(f"Prize {prize.value} for user {user.id} set to {claimed}")

        return {
            "userId": user.id,
            "prizeType": prize.value,
            "claimed": claimed,
            "claimedAt": existing.claimed_at if existing else None,
            "hasClaimed": self._has_claimed(user),
        }

    def toggle_claim(self, db: Session, user_id: int) -> Dict[str, Any]:
        user = self._user_by_id(db, user_id)
        user.is_claimed = not user.is_claimed
        user.claimed_at = datetime.utcnow() if user.is_claimed else None
        db.commit()
        logger.info(f"Claim status for user {user.id} set to {user.is_claimed}")
        return {"userId": user.id, "isClaimed": user.is_claimed, "claimedAt": user.claimed_at}

    def mark_claimed(self, db: Session, voucher_code: str) -> Dict[str, Any]:
        """Mark a voucher as redeemed. A second call reports the first claim."""
        code = voucher_code.strip().upper()
        user = db.query(User).filter(User.voucher_code == code).first()
        if not user:
            raise NotFoundError("Voucher code not found")

        already_claimed = bool(user.is_claimed)
        if not already_claimed:
            user.is_claimed = True
            user.claimed_at = datetime.utcnow()
            db.commit()
            logger.info(f"Voucher {code} claimed")

        return {
            "voucherCode": code,
            "phoneNumber": user.phone_number,
            "alreadyClaimed": already_claimed,
            "claimedAt": user.claimed_at,
        }

    def generate_voucher(self, db: Session, phone_number: str) -> Dict[str, Any]:
        phone = require_phone(phone_number)
        user = db.query(User).filter(User.phone_number == phone).first()
        if not user:
            raise NotFoundError("User not found")

        existed = bool(user.voucher_code)
        code = rewards_service.ensure_voucher_code(db, user)
        db.commit()
        return {"phoneNumber": phone, "voucherCode": code, "isNew": not existed}

    def check_claimed(self, db: Session, phone_number: str) -> Dict[str, Any]:
        phone = require_phone(phone_number)
        user = db.query(User).filter(User.phone_number == phone).first()
        if not user:
            raise NotFoundError("User not found")
        return {
            "phoneNumber": phone,
            "isClaimed": user.is_claimed,
            "claimedAt": user.claimed_at,
            "voucherCode": user.voucher_code,
            "hasClaimed": self._has_claimed(user),
        }


admin_service = AdminService()
