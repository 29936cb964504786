"""
OTP Service - Issues and verifies one-time passcodes for phone login
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
from sqlalchemy.orm import Session

from scavenger_hunt.config import settings
from scavenger_hunt.db.models import User
from scavenger_hunt.errors import (
    AppError, CooldownError, ExpiredError, InvalidOTPError, NotFoundError,
    TooManyAttemptsError, ValidationError
)
from scavenger_hunt.services.progress_service import progress_service
from scavenger_hunt.services.sms_service import SMSService, format_phone, normalize_phone, sms_service
from scavenger_hunt.services.token_service import TokenService, token_service

logger = logging.getLogger(__name__)


def require_phone(phone_number: str) -> str:
    normalized = normalize_phone(phone_number)
    if normalized is None:
        raise ValidationError(
            "Validation failed",
            details=[{"field": "phoneNumber", "message": "Please enter a valid Qatar phone number"}],
        )
    return normalized


class OTPService:
    """Phone-number login: request a code, then trade it for a session token"""

    def __init__(self, sms: Optional[SMSService] = None, tokens: Optional[TokenService] = None):
        self.sms = sms or sms_service
        self.tokens = tokens or token_service

    def generate_code(self) -> str:
        return "".join(str(secrets.randbelow(10)) for _ in range(settings.OTP_LENGTH))

    def hash_code(self, code: str) -> str:
        salt = bcrypt.gensalt(rounds=settings.OTP_BCRYPT_ROUNDS)
        return bcrypt.hashpw(code.encode("utf-8"), salt).decode("utf-8")

    def check_code(self, code: str, otp_hash: str) -> bool:
        return bcrypt.checkpw(code.encode("utf-8"), otp_hash.encode("utf-8"))

    def _check_cooldown(self, user: User, now: datetime) -> None:
        if not user.last_otp_request:
            return
        elapsed = (now - user.last_otp_request).total_seconds()
        remaining = settings.OTP_COOLDOWN_SECONDS - elapsed
        if remaining > 0:
            wait = int(remaining) + (1 if remaining % 1 else 0)
            raise CooldownError(
                f"Please wait {wait} seconds before requesting another OTP",
                retry_after=wait,
            )

    def _clear_otp(self, user: User) -> None:
        user.otp_hash = None
        user.otp_expires = None

    async def request_otp(
        self,
        db: Session,
        phone_number: str,
        require_existing: bool = False,
    ) -> Dict[str, Any]:
        """Issue a fresh OTP for the phone number, creating the user on first contact"""
        phone = require_phone(phone_number)
        now = datetime.utcnow()

        user = db.query(User).filter(User.phone_number == phone).first()
        if user is None and require_existing:
            raise NotFoundError("User not found. Please register first.")
        if user is not None:
            self._check_cooldown(user, now)

        code = self.generate_code()
        result = await self.sms.send_otp(phone, code)
        if not result.get("success"):
            raise AppError("Failed to send OTP. Please try again.")

        if user is None:
            user = User(phone_number=phone)
            db.add(user)

        user.otp_hash = self.hash_code(code)
        user.otp_expires = now + timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
        user.otp_attempts = 0
        user.last_otp_request = now
        db.commit()

        logger.info(f"OTP issued for {format_phone(phone)}")
        return {
            "otpSent": True,
            "expiresIn": settings.OTP_EXPIRY_MINUTES * 60,
        }

    def verify_otp(self, db: Session, phone_number: str, otp_code: str) -> Dict[str, Any]:
        """Check a candidate code and, on success, issue a session token"""
        phone = require_phone(phone_number)
        now = datetime.utcnow()

        user = db.query(User).filter(User.phone_number == phone).first()
        if user is None:
            raise NotFoundError("User not found. Please register first.")
        if not user.otp_hash:
            raise NotFoundError("No pending OTP. Please request a new code.")

        if user.otp_attempts >= settings.OTP_MAX_ATTEMPTS:
            self._clear_otp(user)
            db.commit()
            raise TooManyAttemptsError("Too many failed attempts. Please request a new OTP.")

        if user.otp_expires is None or user.otp_expires < now:
            self._clear_otp(user)
            db.commit()
            raise ExpiredError("OTP has expired. Please request a new code.")

        if not self.check_code(otp_code, user.otp_hash):
            user.otp_attempts += 1
            remaining = settings.OTP_MAX_ATTEMPTS - user.otp_attempts
            if remaining <= 0:
                self._clear_otp(user)
                db.commit()
                logger.warning(f"OTP attempts exhausted for {format_phone(phone)}")
                raise TooManyAttemptsError("Too many failed attempts. Please request a new OTP.")
            db.commit()
            raise InvalidOTPError(
                "Invalid OTP",
                details={"attemptsRemaining": remaining},
            )

        self._clear_otp(user)
        user.otp_attempts = 0
        user.is_verified = True
        db.commit()

        progress_service.get_or_create(db, user, touch_login=True)
        token, expires_at = self.tokens.issue(user.id, user.phone_number)
        logger.info(f"User {user.id} verified")

        return {
            "session": {
                "userId": user.id,
                "phoneNumber": user.phone_number,
                "isVerified": True,
            },
            "token": token,
            "expiresAt": expires_at,
        }


otp_service = OTPService()
