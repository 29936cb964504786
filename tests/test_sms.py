"""Phone number helpers, the SMS gateway client and session tokens."""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest

from scavenger_hunt.errors import UnauthorizedError
from scavenger_hunt.services.sms_service import SMSService, format_phone, mask_phone, normalize_phone
from scavenger_hunt.services.token_service import TokenService


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12345678", "+97412345678"),
        ("+97412345678", "+97412345678"),
        ("97412345678", "+97412345678"),
        ("1234 5678", "+97412345678"),
        ("1234567", None),
        ("+9741234567890", None),
        ("+44 1234 5678", None),
        ("", None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_format_and_mask_phone():
    assert format_phone("+97412345678") == "+974 1234 5678"
    assert format_phone("12345678") == "+974 1234 5678"
    assert format_phone("123") == "123"
    assert mask_phone("+97412345678") == "+974****5678"
    assert mask_phone("12345678") == "12345678"


def gateway(status_code, text, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text=text)

    return httpx.MockTransport(handler)


def test_send_otp_through_gateway():
    seen = []
    service = SMSService(bypass=False, transport=gateway(200, "ORDERID:12345", seen))
    result = asyncio.run(service.send_otp("12345678", "482913"))

    assert result["success"] is True
    assert result["bypass"] is False
    params = seen[0].url.params
    assert params["to"] == "97412345678"
    assert "482913" in params["text"]


def test_gateway_rejection_is_reported():
    service = SMSService(bypass=False, transport=gateway(200, "ERROR: invalid apikey"))
    result = asyncio.run(service.send_otp("12345678", "482913"))
    assert result["success"] is False
    assert "invalid apikey" in result["error"]

    service = SMSService(bypass=False, transport=gateway(502, "Bad Gateway"))
    assert asyncio.run(service.send_otp("12345678", "482913"))["success"] is False


def test_gateway_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = SMSService(bypass=False, transport=httpx.MockTransport(handler))
    result = asyncio.run(service.send_otp("12345678", "482913"))
    assert result["success"] is False
    assert "connection refused" in result["error"]


def test_bypass_does_not_call_gateway():
    seen = []
    service = SMSService(bypass=True, transport=gateway(200, "ORDERID:1", seen))
    result = asyncio.run(service.send_otp("12345678", "482913"))
    assert result == {"success": True, "bypass": True, "to": "+97412345678"}
    assert seen == []


def test_token_round_trip():
    tokens = TokenService(secret="s3cret", expires_days=7)
    token, expires_at = tokens.issue(42, "+97412345678")
    payload = tokens.decode(token)

    assert payload["sub"] == "42"
    assert payload["phone_number"] == "+97412345678"
    assert expires_at - datetime.now(timezone.utc) > timedelta(days=6)


def test_token_rejections():
    tokens = TokenService(secret="s3cret")
    token, _ = tokens.issue(1, "+97412345678")

    with pytest.raises(UnauthorizedError):
        TokenService(secret="other").decode(token)
    with pytest.raises(UnauthorizedError):
        tokens.decode("not-a-token")

    expired = jwt.encode(
        {"sub": "1", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "s3cret",
        algorithm="HS256",
    )
    with pytest.raises(UnauthorizedError) as excinfo:
        tokens.decode(expired)
    assert excinfo.value.message == "Token has expired"
