"""
FastAPI dependencies for the Scavenger Hunt service
"""
from typing import Callable, Generator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from scavenger_hunt.config import settings
from scavenger_hunt.db.database import SessionLocal
from scavenger_hunt.db.models import User
from scavenger_hunt.errors import RateLimitedError, UnauthorizedError
from scavenger_hunt.services.otp_service import OTPService
from scavenger_hunt.services.sms_service import SMSService, sms_service
from scavenger_hunt.services.token_service import token_service


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_sms_service() -> SMSService:
    return sms_service


def get_otp_service(sms: SMSService = Depends(get_sms_service)) -> OTPService:
    return OTPService(sms=sms)


def _bearer_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return request.cookies.get(settings.JWT_COOKIE_NAME)


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token (or auth cookie) to a verified user"""
    token = _bearer_token(request, authorization)
    if not token:
        raise UnauthorizedError("Authentication required")

    payload = token_service.decode(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise UnauthorizedError("User no longer exists")
    if not user.is_verified:
        raise UnauthorizedError("Phone number is not verified")
    return user


async def verify_admin_key(x_admin_key: Optional[str] = Header(None)) -> str:
    """Verify the admin API key"""
    if not x_admin_key or x_admin_key != settings.ADMIN_API_KEY:
        raise UnauthorizedError("Invalid or missing admin key")
    return x_admin_key


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit(scope: str, max_requests: int, window_sec: Optional[int] = None) -> Callable:
    """Dependency factory enforcing a per-IP fixed window for one route group"""

    async def dependency(request: Request) -> None:
        limiter = request.app.state.rate_limiter
        result = limiter.hit(
            scope,
            client_ip(request),
            max_requests,
            window_sec or settings.RATE_LIMIT_WINDOW_SEC,
        )
        if not result.allowed:
            raise RateLimitedError(
                "Too many requests. Please try again later.",
                retry_after=result.retry_after,
            )

    return dependency
