"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses of the form
``{"error": ..., "code": ...}``.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def headers(self) -> Optional[dict]:
        return None


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class OtpFailure(str, enum.Enum):
    """Why an OTP challenge or verification token was refused."""
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"
    EXPIRED = "EXPIRED"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    TOKEN_INVALID = "TOKEN_INVALID"


class OtpError(ValidationError):
    error_code = "otp_error"

    def __init__(self, reason: OtpFailure, message: str) -> None:
        super().__init__(message, details={"reason": reason.value})
        self.reason = reason


class CatalogReferenceError(ValidationError):
    """A line item points at an unknown, inactive or unpriced catalog entry."""
    error_code = "invalid_catalog_reference"


class AmountMismatchError(ValidationError):
    error_code = "amount_mismatch"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class DuplicatePaymentError(ConflictError):
    error_code = "duplicate_payment"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, *, retry_after: Optional[int] = None) -> None:
        details = {"retryAfterSec": retry_after} if retry_after is not None else None
        super().__init__(message, details=details)
        self.retry_after = retry_after

    def headers(self) -> Optional[dict]:
        if self.retry_after is None:
            return None
        return {"Retry-After": str(self.retry_after)}


class StorageError(AppError):
    status_code = 500
    error_code = "storage_error"


class DeliveryUnavailableError(AppError):
    status_code = 503
    error_code = "delivery_unavailable"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers(),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or None
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content=ValidationError(message, field=field).to_dict(),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
