"""
Application error taxonomy and the FastAPI handlers that render it
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scavenger_hunt.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error carrying an HTTP status and a machine-readable code"""

    status_code = 500
    code = "server_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class InvalidOTPError(ValidationError):
    code = "invalid_otp"


class InvalidQRCodeError(ValidationError):
    code = "invalid_qr_code"


class NoCreditsError(ValidationError):
    code = "no_credits"


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class SessionNotActiveError(ConflictError):
    code = "session_not_active"


class ExpiredError(AppError):
    status_code = 410
    code = "expired"


class RateLimitedError(AppError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str, retry_after: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class CooldownError(RateLimitedError):
    code = "cooldown"


class TooManyAttemptsError(RateLimitedError):
    code = "too_many_attempts"


def error_body(message: str, code: str, details: Optional[Any] = None) -> dict:
    body = {"success": False, "error": message, "code": code}
    if details is not None:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")

    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.details),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", ValidationError.code, details),
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_body(
            str(exc) if settings.APP_DEBUG else "An unexpected error occurred",
            AppError.code,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
