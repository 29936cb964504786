"""
Auth Router - Phone registration, OTP verification and logout
"""
import logging

from fastapi import APIRouter, Depends, Response
from pydantic import Field
from sqlalchemy.orm import Session

from scavenger_hunt.api.common import CamelModel, ok
from scavenger_hunt.config import settings
from scavenger_hunt.dependencies import get_db, get_otp_service, rate_limit
from scavenger_hunt.services.otp_service import OTPService

logger = logging.getLogger(__name__)
router = APIRouter()

otp_limit = rate_limit("otp", settings.RATE_LIMIT_OTP_MAX)
verify_limit = rate_limit("verify", settings.RATE_LIMIT_VERIFY_MAX)


class PhoneRequest(CamelModel):
    phone_number: str = Field(..., min_length=1, max_length=20)


class VerifyRequest(CamelModel):
    phone_number: str = Field(..., min_length=1, max_length=20)
    otp_code: str = Field(..., pattern=r"^\d{4,8}$")


@router.post("/register", dependencies=[Depends(otp_limit)])
async def register(
    body: PhoneRequest,
    db: Session = Depends(get_db),
    otp: OTPService = Depends(get_otp_service),
):
    """Create the user on first contact and send a login code"""
    result = await otp.request_otp(db, body.phone_number)
    return ok(result, "OTP sent successfully")


@router.post("/verify-otp", dependencies=[Depends(verify_limit)])
async def verify_otp(
    body: VerifyRequest,
    response: Response,
    db: Session = Depends(get_db),
    otp: OTPService = Depends(get_otp_service),
):
    """Trade a valid code for a session token, also set as an HTTP-only cookie"""
    result = otp.verify_otp(db, body.phone_number, body.otp_code)
    response.set_cookie(
        key=settings.JWT_COOKIE_NAME,
        value=result["token"],
        max_age=settings.JWT_EXPIRES_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return ok(result, "OTP verified successfully")


@router.post("/resend-otp", dependencies=[Depends(otp_limit)])
async def resend_otp(
    body: PhoneRequest,
    db: Session = Depends(get_db),
    otp: OTPService = Depends(get_otp_service),
):
    result = await otp.request_otp(db, body.phone_number, require_existing=True)
    return ok(result, "OTP resent successfully")


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(settings.JWT_COOKIE_NAME)
    return ok(message="Logged out successfully")
