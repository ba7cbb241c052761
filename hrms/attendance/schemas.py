"""Attendance Pydantic v2 schemas — check in/out, records, history.

Naming conventions:
  - *Response / *Out    → response bodies (read)
  - *Day / *Summary     → computed read representations
"""


import datetime as dt
import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from hrms.common.constants import DailyStatus


# ═════════════════════════════════════════════════════════════════════
# Check in / out
# ═════════════════════════════════════════════════════════════════════


class TimeRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    work_date: date
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    is_late: bool


class PunchResponse(BaseModel):
    """Response after a check-in or check-out."""

    message: str
    record: TimeRecordOut


# ═════════════════════════════════════════════════════════════════════
# History / summaries
# ═════════════════════════════════════════════════════════════════════


class AttendanceDay(BaseModel):
    date: dt.date
    day: str
    status: DailyStatus
    check_in: Optional[str] = None   # HH:MM local time
    check_out: Optional[str] = None
    details: str = ""


class MonthlyLateSummary(BaseModel):
    year: int
    month: int
    late_count: int
    late_limit: int
    is_exceeded: bool
