"""Custom exceptions and RFC 7807 Problem Detail error handlers.

Three families sit on top of ``AppException``:

  - ``PolicyViolation``       — a leave request the rules do not allow
  - ``AttendanceStateError``  — a check-in/out that is illegal right now
  - ``TransientFailure``      — storage trouble; retry the whole operation

All of them render as ``application/problem+json`` with a stable ``type``
slug so clients can branch on the reason without parsing ``detail``.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

BASE_ERROR_URI = "https://hrms.local/errors"

logger = logging.getLogger(__name__)


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=f"An entry with {field}='{value}' already exists.",
            errors={field: [f"'{value}' is already in use."]},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class _RuleError(AppException):
    """Shared shape for rule/state errors: subclasses only set class attributes."""

    status: int = 422
    slug: str = "rule-error"
    heading: str = "Rule Error"

    def __init__(self, detail: str, errors: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            status_code=self.status,
            error_type=self.slug,
            title=self.heading,
            detail=detail,
            errors=errors,
        )


# ── Leave policy violations ─────────────────────────────────────────

class PolicyViolation(_RuleError):
    slug = "policy-violation"
    heading = "Policy Violation"


class OverlapConflict(PolicyViolation):
    status = 409
    slug = "overlap-conflict"
    heading = "Overlapping Leave"

    def __init__(self) -> None:
        super().__init__(
            "You already have a pending or approved leave request during this period."
        )


class LeaveGapViolation(PolicyViolation):
    slug = "leave-gap-violation"
    heading = "Leave Gap Violation"


class NonWorkingDayRequest(PolicyViolation):
    slug = "non-working-day"
    heading = "Non-Working Day Requested"

    def __init__(self, day: date) -> None:
        self.day = day
        super().__init__(
            f"{day.isoformat()} ({day.strftime('%A')}) is not a working day.",
            errors={"dates": [day.isoformat()]},
        )


class ZeroDayRequest(PolicyViolation):
    slug = "zero-day-request"
    heading = "Zero-Day Request"

    def __init__(self) -> None:
        super().__init__(
            "The selected range does not consume any leave days "
            "(all days may be weekends or holidays)."
        )


class QuotaNotConfigured(PolicyViolation):
    slug = "quota-not-configured"
    heading = "Quota Not Configured"

    def __init__(self, leave_type_name: str, year: int) -> None:
        super().__init__(
            f"No {leave_type_name} quota has been set for {year}. Please contact HR."
        )


class QuotaExceeded(PolicyViolation):
    status = 409
    slug = "quota-exceeded"
    heading = "Quota Exceeded"

    def __init__(self, available: Decimal, requested: Decimal) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient quota. Available: {available}, requested: {requested}.",
            errors={"available": str(available), "requested": str(requested)},
        )


class InvalidLeaveTransition(_RuleError):
    status = 409
    slug = "invalid-transition"
    heading = "Invalid Status Transition"


class LeaveTypeInUse(_RuleError):
    status = 409
    slug = "leave-type-in-use"
    heading = "Leave Type In Use"

    def __init__(self, type_name: str, quotas: int, requests: int) -> None:
        super().__init__(
            f"{type_name} is still referenced by {quotas} quota(s) and "
            f"{requests} leave request(s) and cannot be deleted.",
            errors={"quotas": quotas, "requests": requests},
        )


# ── Attendance state errors ─────────────────────────────────────────

class AttendanceStateError(_RuleError):
    slug = "attendance-state"
    heading = "Attendance Not Allowed"


class AlreadyCheckedIn(AttendanceStateError):
    status = 409
    slug = "already-checked-in"
    heading = "Already Checked In"


class AlreadyCheckedOut(AttendanceStateError):
    status = 409
    slug = "already-checked-out"
    heading = "Already Checked Out"


class NoCheckInFound(AttendanceStateError):
    slug = "no-check-in"
    heading = "No Check-In Found"


class PolicyMissing(AttendanceStateError):
    slug = "policy-missing"
    heading = "Attendance Policy Missing"


class SpecialHoliday(AttendanceStateError):
    slug = "special-holiday"
    heading = "Special Holiday"


class CheckInWindowClosed(AttendanceStateError):
    slug = "check-in-window-closed"
    heading = "Check-In Window Closed"


class TooEarly(AttendanceStateError):
    slug = "too-early"
    heading = "Too Early"


class FullDayLeaveActive(AttendanceStateError):
    slug = "full-day-leave"
    heading = "On Leave Today"


class TooEarlyForHalfDay(AttendanceStateError):
    slug = "too-early-for-half-day"
    heading = "Too Early For Half-Day Shift"


class TooEarlyToCheckOut(AttendanceStateError):
    slug = "too-early-to-check-out"
    heading = "Too Early To Check Out"


class CheckOutBeforeCheckIn(AttendanceStateError):
    slug = "check-out-before-check-in"
    heading = "Check-Out Before Check-In"


# ── System errors ───────────────────────────────────────────────────

class TransientFailure(AppException):
    """503 — storage unavailable or a concurrent write won; retry from scratch."""

    def __init__(self, detail: str = "Temporary failure, please retry.") -> None:
        super().__init__(
            status_code=503,
            error_type="transient-failure",
            title="Service Unavailable",
            detail=detail,
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_storage_error(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.warning("Transient storage failure on %s: %s", request.url.path, exc)
    return await _handle_app_exception(request, TransientFailure())


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(OperationalError, _handle_storage_error)      # type: ignore[arg-type]
    app.add_exception_handler(StaleDataError, _handle_storage_error)        # type: ignore[arg-type]
