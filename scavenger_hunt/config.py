"""
Configuration module for the Scavenger Hunt service
Loads environment variables and provides settings
"""
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    APP_DEBUG: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Database
    DATABASE_URL: str = "sqlite:///./scavenger_hunt.db"
    SEED_CHECKPOINTS: bool = True

    # Auth tokens
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 7
    JWT_COOKIE_NAME: str = "jwt"
    COOKIE_SECURE: bool = False

    # OTP
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 10
    OTP_COOLDOWN_SECONDS: int = 120
    OTP_MAX_ATTEMPTS: int = 5
    OTP_BCRYPT_ROUNDS: int = 10
    # Expired codes are kept this long so verify can still report them as expired
    OTP_PURGE_AFTER_HOURS: int = 24

    # SMS gateway (bypass mode only logs the code)
    OTP_BYPASS: bool = True
    SMS_BASE_URL: str = "https://bhsms.net/httpget/"
    SMS_USERNAME: str = ""
    SMS_API_KEY: str = ""
    SMS_TIMEOUT_SEC: int = 10

    # Game
    HINT_CREDITS: int = 3
    HUNT_CHECKPOINT_COUNT: int = 8
    HUNT_VENUE: str = "Talabat HQ"
    SESSION_EXPIRY_MINUTES: int = 180

    # Admin
    ADMIN_API_KEY: str = "admin-api-key"

    # Rate limiting (fixed windows, per client IP)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SEC: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_OTP_MAX: int = 5
    RATE_LIMIT_VERIFY_MAX: int = 10
    RATE_LIMIT_REDIS_URL: Optional[str] = None

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
