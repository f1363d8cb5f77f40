"""
Custom exception hierarchy for classmetrics.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class ClassMetricsException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AuthenticationRequiredError(ClassMetricsException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self):
        super().__init__(message="Authentication required.")


class UserNotFoundError(ClassMetricsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: int | None = None):
        super().__init__(
            message="User not found.",
            details={"user_id": user_id} if user_id is not None else {},
        )


class TermNotFoundError(ClassMetricsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "TERM_NOT_FOUND"

    def __init__(self, term_id: int):
        super().__init__(
            message=f"Term {term_id} not found or unauthorized.",
            details={"term_id": term_id},
        )


class CourseNotFoundError(ClassMetricsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "COURSE_NOT_FOUND"

    def __init__(self, course_id: int):
        super().__init__(
            message=f"Course {course_id} not found or unauthorized.",
            details={"course_id": course_id},
        )


class TermAlreadyCompletedError(ClassMetricsException):
    http_status = status.HTTP_409_CONFLICT
    code = "TERM_ALREADY_COMPLETED"

    def __init__(self, term_id: int):
        super().__init__(
            message=f"Term {term_id} is already completed.",
            details={"term_id": term_id},
        )


class FieldNotPatchableError(ClassMetricsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "FIELD_NOT_PATCHABLE"

    def __init__(self, fields: list[str]):
        super().__init__(
            message=f"Fields not patchable: {', '.join(fields)}",
            details={"fields": fields},
        )


class InvalidPeriodTypeError(ClassMetricsException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INVALID_PERIOD_TYPE"

    def __init__(self, period_type: str):
        super().__init__(
            message=f"Invalid period type: {period_type}",
            details={"period_type": period_type},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def classmetrics_exception_handler(
    request: Request, exc: ClassMetricsException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
