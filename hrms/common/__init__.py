"""Common module — enums, clock, exceptions and shared wiring."""

from hrms.common.clock import Clock, system_clock
from hrms.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DailyStatus,
    DayPart,
    LeaveDuration,
    LeaveStatus,
    NotificationType,
    UserRole,
)
from hrms.common.exceptions import (
    AppException,
    AttendanceStateError,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    PolicyViolation,
    TransientFailure,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Clock
    "Clock",
    "system_clock",
    # Constants / Enums
    "ACTIVE_LEAVE_STATUSES",
    "DailyStatus",
    "DayPart",
    "LeaveDuration",
    "LeaveStatus",
    "NotificationType",
    "UserRole",
    # Exceptions
    "AppException",
    "AttendanceStateError",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "PolicyViolation",
    "TransientFailure",
    "ValidationException",
    "register_exception_handlers",
]
