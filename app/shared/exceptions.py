"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.enums import RejectionReasonEnum

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {}


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


_REJECTION_STATUS_CODES: dict[RejectionReasonEnum, int] = {
    RejectionReasonEnum.FULL: 409,
    RejectionReasonEnum.ALREADY_ENROLLED: 409,
    RejectionReasonEnum.ALREADY_WAITLISTED: 409,
    RejectionReasonEnum.NOT_FULL: 409,
    RejectionReasonEnum.WAITLIST_DISABLED: 422,
    RejectionReasonEnum.SCHEDULE_UNRESOLVABLE: 422,
    RejectionReasonEnum.CANCELLATION_WINDOW_CLOSED: 403,
    RejectionReasonEnum.NOT_ELIGIBLE: 403,
}

_REJECTION_MESSAGES: dict[RejectionReasonEnum, str] = {
    RejectionReasonEnum.FULL: "Program is full",
    RejectionReasonEnum.ALREADY_ENROLLED: "Already enrolled in this program",
    RejectionReasonEnum.ALREADY_WAITLISTED: "Already on the waitlist for this program",
    RejectionReasonEnum.NOT_FULL: "Program is not full",
    RejectionReasonEnum.WAITLIST_DISABLED: "Waitlist is not enabled",
    RejectionReasonEnum.SCHEDULE_UNRESOLVABLE: "Program schedule cannot be resolved",
    RejectionReasonEnum.CANCELLATION_WINDOW_CLOSED: (
        "Je kunt je niet meer uitschrijven: de annuleringsperiode is verstreken. "
        "Neem contact op met de studio voor hulp."
    ),
    RejectionReasonEnum.NOT_ELIGIBLE: "Operation is not allowed for this enrollment",
}


class OutcomeRejectedException(AppException):
    """HTTP-edge wrapper for a typed engine rejection."""

    def __init__(self, reason: RejectionReasonEnum, extra: dict[str, Any] | None = None) -> None:
        self.reason = reason
        self.status_code = _REJECTION_STATUS_CODES[reason]
        self.code = reason.value
        self.extra = extra or {}
        super().__init__(_REJECTION_MESSAGES[reason])

    def details(self) -> dict[str, Any]:
        return self.extra


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message, **exc.details()}},
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
