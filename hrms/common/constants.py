"""Enums and constants for the leave & attendance engine — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    worker = "worker"
    hr = "hr"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveDuration(str, enum.Enum):
    full = "full"
    half_morning = "half_morning"
    half_afternoon = "half_afternoon"

    @property
    def is_half(self) -> bool:
        return self is not LeaveDuration.full


class DayPart(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"


# Statuses that block an overlapping request
ACTIVE_LEAVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


# ── Attendance ──────────────────────────────────────────────────────

class DailyStatus(str, enum.Enum):
    present = "present"
    late = "late"
    leave = "leave"
    holiday = "holiday"
    weekend = "weekend"
    absent = "absent"
    upcoming = "upcoming"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    new_request = "new_request"
    approval = "approval"
    rejection = "rejection"
    request_cancelled = "request_cancelled"


# ── Misc constants ──────────────────────────────────────────────────

POLICY_ID = 1                       # the single AttendancePolicy row
DAYS_QUANTUM = Decimal("0.01")      # quota precision
HALF_DAY = Decimal("0.5")
WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
TIME_FORMAT = "%H:%M"
