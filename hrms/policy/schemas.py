"""Policy Pydantic v2 schemas — attendance policy and holidays."""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from hrms.common.constants import TIME_FORMAT


class SpecialHolidayItem(BaseModel):
    date: dt.date
    description: Optional[str] = Field(None, max_length=200)


# ═════════════════════════════════════════════════════════════════════
# Attendance Policy
# ═════════════════════════════════════════════════════════════════════


class AttendancePolicyUpdate(BaseModel):
    """Full replacement of the attendance policy (HR only)."""

    start_time: time = Field(..., description="Work start, HH:MM local time")
    end_time: time
    break_start_time: time
    break_end_time: time
    grace_minutes: int = Field(0, ge=0, le=240)
    working_days: list[int] = Field(
        default_factory=lambda: [1, 2, 3, 4, 5],
        description="Weekday indices, 0 = Sunday … 6 = Saturday",
    )
    leave_gap_days: int = Field(0, ge=0, le=365)
    special_holidays: list[SpecialHolidayItem] = Field(default_factory=list)

    @field_validator("working_days")
    @classmethod
    def _valid_weekdays(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("working_days entries must be between 0 (Sun) and 6 (Sat).")
        return sorted(set(v))

    @model_validator(mode="after")
    def _ordered_times(self) -> "AttendancePolicyUpdate":
        if not (
            self.start_time < self.break_start_time
            < self.break_end_time < self.end_time
        ):
            raise ValueError(
                "Times must satisfy start < break start < break end < end."
            )
        return self


class AttendancePolicyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_time: time
    end_time: time
    break_start_time: time
    break_end_time: time
    grace_minutes: int
    working_days: list[int]
    leave_gap_days: int
    special_holidays: list[SpecialHolidayItem]
    version: int
    updated_at: Optional[datetime] = None

    @field_validator("special_holidays", mode="before")
    @classmethod
    def _coerce_legacy(cls, v):
        return [
            item if isinstance(item, dict) else {"date": item}
            for item in (v or [])
        ]

    @field_serializer("start_time", "end_time", "break_start_time", "break_end_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime(TIME_FORMAT)


# ═════════════════════════════════════════════════════════════════════
# Holidays
# ═════════════════════════════════════════════════════════════════════


class HolidayCreate(BaseModel):
    holiday_date: date
    name: str = Field(..., min_length=1, max_length=200)


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    holiday_date: date
    name: str
