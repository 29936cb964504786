"""
SMS Service - Delivers OTP codes through the HTTP SMS gateway
"""
import logging
import re
from typing import Any, Dict, Optional

import httpx

from scavenger_hunt.config import settings

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^(\+974|974)?(\d{8})$")


def normalize_phone(phone_number: str) -> Optional[str]:
    """Return the phone number as +974XXXXXXXX, or None if it is not a valid local number"""
    cleaned = re.sub(r"\s", "", phone_number or "")
    match = PHONE_PATTERN.match(cleaned)
    if not match:
        return None
    return f"+974{match.group(2)}"


def is_valid_phone(phone_number: str) -> bool:
    return normalize_phone(phone_number) is not None


def format_phone(phone_number: str) -> str:
    """Format for display: +974 XXXX XXXX"""
    digits = re.sub(r"\D", "", phone_number or "")
    if digits.startswith("974") and len(digits) == 11:
        digits = digits[3:]
    if len(digits) == 8:
        return f"+974 {digits[:4]} {digits[4:]}"
    return phone_number


MASK_PATTERN = re.compile(r"(\+974)(\d{4})(\d{4})")


def mask_phone(phone_number: str) -> str:
    """+974XXXXXXXX becomes +974****XXXX; anything else is returned unchanged"""
    return MASK_PATTERN.sub(r"\1****\3", phone_number or "")


class SMSService:
    """Service for sending OTP text messages"""

    def __init__(
        self,
        bypass: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = settings.SMS_BASE_URL
        self.username = settings.SMS_USERNAME
        self.api_key = settings.SMS_API_KEY
        self.timeout = settings.SMS_TIMEOUT_SEC
        self.bypass = settings.OTP_BYPASS if bypass is None else bypass
        self._transport = transport

    async def send_otp(self, phone_number: str, otp_code: str) -> Dict[str, Any]:
        """Send an OTP code. In bypass mode the code is only written to the log."""
        to = normalize_phone(phone_number) or phone_number
        message = (
            f"Your Talabat OTP is {otp_code}. "
            f"Valid for {settings.OTP_EXPIRY_MINUTES} minutes."
        )

        if self.bypass:
            logger.warning(f"SMS bypass mode - OTP for {to}: {otp_code}")
            return {"success": True, "bypass": True, "to": to}

        params = {
            "username": self.username,
            "apikey": self.api_key,
            "to": to.lstrip("+"),
            "text": message,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.base_url, params=params)
            body = response.text
        except httpx.HTTPError as e:
            logger.error(f"SMS gateway error for {format_phone(to)}: {e}")
            return {"success": False, "error": str(e)}

        if response.is_success and ("ORDERID:" in body or "success" in body.lower()):
            logger.info(f"OTP sent to {format_phone(to)}")
            return {"success": True, "bypass": False, "to": to, "response": body}

        logger.error(f"SMS gateway rejected message to {format_phone(to)}: {body[:200]}")
        return {"success": False, "error": body}


sms_service = SMSService()
