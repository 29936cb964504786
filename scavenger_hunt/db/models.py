"""
SQLAlchemy ORM Models for the Scavenger Hunt service
"""
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from scavenger_hunt.db.database import Base


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


class RewardTier(str, Enum):
    GOLD = "Gold"
    SILVER = "Silver"
    BRONZE = "Bronze"


class DashboardGame(str, Enum):
    """Closed set of dashboard mini-games; values are the public game ids"""
    LUNCHBOX_MATCHER = "lunchbox-matcher"
    CITY_RUN = "city-run"
    TALABEATS = "talabeats"
    SCAVENGER_HUNT = "scavenger-hunt"


class CurrentPage(str, Enum):
    REGISTRATION = "registration"
    OTP = "otp"
    DASHBOARD = "dashboard"
    SCAVENGER_HUNT = "scavenger-hunt"
    COMPLETED = "completed"


class PrizeType(str, Enum):
    """Prizes handed out at the venue, one claim each per player"""
    CARD_GAME = "cardGame"
    PUZZLE = "puzzle"
    CAR_RACE = "carRace"
    SCAVENGER_HUNT = "scavengerHunt"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    phone_number = Column(String(20), unique=True, nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)

    # OTP state, cleared after verification or exhausted attempts
    otp_hash = Column(String(100))
    otp_expires = Column(DateTime)
    otp_attempts = Column(Integer, default=0, nullable=False)
    last_otp_request = Column(DateTime)

    # Profile / preferences
    name = Column(String(50))
    email = Column(String(255))
    avatar = Column(String(500))
    language = Column(String(2), default="en", nullable=False)
    notifications = Column(Boolean, default=True, nullable=False)

    # Aggregate game stats
    total_games = Column(Integer, default=0, nullable=False)
    completed_games = Column(Integer, default=0, nullable=False)
    best_time = Column(Integer)  # seconds
    total_rewards = Column(Integer, default=0, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)
    last_played_at = Column(DateTime)
    last_qr_scan_at = Column(DateTime)

    # Voucher claim; per-prize claims live in prize_claims
    is_claimed = Column(Boolean, default=False, nullable=False)
    claimed_at = Column(DateTime)
    voucher_code = Column(String(32), unique=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    sessions = relationship(
        "GameSession", back_populates="user", cascade="all, delete-orphan"
    )
    progress = relationship(
        "UserProgress", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    prize_claims = relationship(
        "PrizeClaim", back_populates="user", cascade="all, delete-orphan"
    )


class PrizeClaim(Base):
    """A prize handed to a player; the row exists only while the prize is claimed"""
    __tablename__ = "prize_claims"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    prize_type = Column(String(20), nullable=False)
    claimed_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "prize_type", name="unique_user_prize"),
    )

    user = relationship("User", back_populates="prize_claims")


class Checkpoint(Base):
    __tablename__ = "checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(100), nullable=False)
    location = Column(String(255), nullable=False)
    description = Column(Text)
    clue = Column(Text, nullable=False)
    hint = Column(Text)
    qr_code = Column(String(100), unique=True, nullable=False)
    latitude = Column(Float)
    longitude = Column(Float)
    venue = Column(String(100), nullable=False)
    floor = Column(String(50))
    section = Column(String(100))
    difficulty = Column(String(10), default="medium", nullable=False)  # easy, medium, hard
    category = Column(String(20), nullable=False)  # retail, food, entertainment, services, landmarks
    is_active = Column(Boolean, default=True, nullable=False)
    order = Column(Integer, nullable=False)

    # Scan statistics
    total_scans = Column(Integer, default=0, nullable=False)
    successful_scans = Column(Integer, default=0, nullable=False)
    hints_used = Column(Integer, default=0, nullable=False)
    average_time_to_find = Column(Float)  # seconds

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_checkpoints_venue_active", "venue", "is_active"),
    )

    @property
    def success_rate(self) -> float:
        if not self.total_scans:
            return 0.0
        return (self.successful_scans / self.total_scans) * 100


class GameSession(Base):
    __tablename__ = "game_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    time_elapsed = Column(Integer, default=0, nullable=False)  # seconds
    status = Column(String(20), default=SessionStatus.ACTIVE.value, nullable=False)
    total_checkpoints = Column(Integer, nullable=False)
    completed_checkpoints = Column(Integer, default=0, nullable=False)
    reward_tier = Column(String(10))
    reward_token = Column(String(32))
    hint_credits = Column(Integer, nullable=False)
    hints_used = Column(Integer, default=0, nullable=False)
    venue = Column(String(100))
    city = Column(String(100))
    country = Column(String(100), default="Qatar")
    user_agent = Column(String(500))
    ip_address = Column(String(64))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_game_sessions_user_status", "user_id", "status"),
    )

    # Relationships
    user = relationship("User", back_populates="sessions")
    checkpoints = relationship(
        "SessionCheckpoint",
        back_populates="session",
        order_by="SessionCheckpoint.position",
        cascade="all, delete-orphan",
    )
    hints = relationship(
        "SessionHint", back_populates="session", cascade="all, delete-orphan"
    )

    @property
    def completion_percentage(self) -> float:
        if not self.total_checkpoints:
            return 0.0
        return (self.completed_checkpoints / self.total_checkpoints) * 100


class SessionCheckpoint(Base):
    __tablename__ = "session_checkpoints"

    id = Column(Integer, primary_key=True, index=True)
    session_pk = Column(Integer, ForeignKey("game_sessions.id"), nullable=False)
    position = Column(Integer, nullable=False)
    checkpoint_id = Column(Integer, ForeignKey("checkpoints.id"), nullable=False)
    location = Column(String(255), nullable=False)
    clue = Column(Text, nullable=False)
    hint = Column(Text)
    qr_code = Column(String(100), nullable=False)
    latitude = Column(Float)
    longitude = Column(Float)
    is_completed = Column(Boolean, default=False, nullable=False)
    scanned_at = Column(DateTime)
    scan_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_pk", "checkpoint_id", name="unique_session_checkpoint"),
    )

    session = relationship("GameSession", back_populates="checkpoints")


class SessionHint(Base):
    __tablename__ = "session_hints"

    id = Column(Integer, primary_key=True, index=True)
    session_pk = Column(Integer, ForeignKey("game_sessions.id"), nullable=False)
    checkpoint_id = Column(Integer, nullable=False)
    hint_text = Column(Text)
    used_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_pk", "checkpoint_id", name="unique_session_hint"),
    )

    session = relationship("GameSession", back_populates="hints")


class UserProgress(Base):
    __tablename__ = "user_progress"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False, index=True)

    # Scavenger hunt
    hint_credits = Column(Integer, nullable=False)
    total_checkpoints = Column(Integer, nullable=False)
    current_checkpoint = Column(Integer)
    hunt_started_at = Column(DateTime)
    hunt_total_time = Column(Integer)  # seconds, reported by the client
    last_activity_at = Column(DateTime)

    # Overall stats
    total_time_spent = Column(Integer, default=0, nullable=False)
    total_scans = Column(Integer, default=0, nullable=False)
    total_hints_used = Column(Integer, default=0, nullable=False)
    game_started_at = Column(DateTime)
    last_login_at = Column(DateTime)
    login_count = Column(Integer, default=0, nullable=False)

    # Resume pointer
    current_page = Column(String(20), default=CurrentPage.REGISTRATION.value, nullable=False)
    last_checkpoint = Column(Integer)
    can_resume = Column(Boolean, default=False, nullable=False)

    # Completion (one-way)
    is_game_completed = Column(Boolean, default=False, nullable=False, index=True)
    completed_at = Column(DateTime)
    final_score = Column(Integer)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="progress")
    games = relationship(
        "DashboardGameProgress", back_populates="progress", cascade="all, delete-orphan"
    )
    completed_checkpoints = relationship(
        "ProgressCheckpoint",
        back_populates="progress",
        order_by="ProgressCheckpoint.completed_at",
        cascade="all, delete-orphan",
    )
    revealed_hints = relationship(
        "ProgressHint", back_populates="progress", cascade="all, delete-orphan"
    )


class DashboardGameProgress(Base):
    __tablename__ = "dashboard_game_progress"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(Integer, ForeignKey("user_progress.id"), nullable=False)
    game = Column(String(30), nullable=False)  # DashboardGame value
    is_started = Column(Boolean, default=False, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    completion_time = Column(Integer)  # seconds

    __table_args__ = (
        UniqueConstraint("progress_id", "game", name="unique_progress_game"),
    )

    progress = relationship("UserProgress", back_populates="games")


class ProgressCheckpoint(Base):
    __tablename__ = "progress_checkpoints"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(Integer, ForeignKey("user_progress.id"), nullable=False)
    checkpoint_id = Column(Integer, nullable=False)
    location = Column(String(255))
    completed_at = Column(DateTime, nullable=False)
    scan_count = Column(Integer, default=1, nullable=False)

    __table_args__ = (
        UniqueConstraint("progress_id", "checkpoint_id", name="unique_progress_checkpoint"),
    )

    progress = relationship("UserProgress", back_populates="completed_checkpoints")


class ProgressHint(Base):
    __tablename__ = "progress_hints"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(Integer, ForeignKey("user_progress.id"), nullable=False)
    checkpoint_id = Column(Integer, nullable=False)
    revealed_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("progress_id", "checkpoint_id", name="unique_progress_hint"),
    )

    progress = relationship("UserProgress", back_populates="revealed_hints")
