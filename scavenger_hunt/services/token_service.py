"""
Token Service - Signs and verifies session JWTs
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple

import jwt

from scavenger_hunt.config import settings
from scavenger_hunt.errors import UnauthorizedError

logger = logging.getLogger(__name__)


class TokenService:
    """HS256 JWTs carrying the user id and phone number"""

    def __init__(self, secret: str = None, algorithm: str = None, expires_days: int = None):
        self.secret = secret or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.expires_days = expires_days or settings.JWT_EXPIRES_DAYS

    def issue(self, user_id: int, phone_number: str) -> Tuple[str, datetime]:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(days=self.expires_days)
        payload = {
            "sub": str(user_id),
            "phone_number": phone_number,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return token, expires_at

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"JWT verification failed: {e}")
            raise UnauthorizedError("Invalid token")


token_service = TokenService()
