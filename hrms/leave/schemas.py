"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import LeaveDuration, LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    display_name: Optional[str] = None


class LeaveTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type_name: str
    is_paid: bool = True


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    type_name: str = Field(..., min_length=1, max_length=100)
    is_paid: bool = True
    default_days: Decimal = Field(Decimal("0"), ge=0, max_digits=6, decimal_places=2)
    can_carry_forward: bool = False
    max_carry_days: Decimal = Field(Decimal("0"), ge=0, max_digits=6, decimal_places=2)


class LeaveTypeUpdate(BaseModel):
    type_name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_paid: Optional[bool] = None
    default_days: Optional[Decimal] = Field(None, ge=0, max_digits=6, decimal_places=2)
    can_carry_forward: Optional[bool] = None
    max_carry_days: Optional[Decimal] = Field(None, ge=0, max_digits=6, decimal_places=2)


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type_name: str
    is_paid: bool
    default_days: Decimal
    can_carry_forward: bool
    max_carry_days: Decimal


# ═════════════════════════════════════════════════════════════════════
# Leave Quota
# ═════════════════════════════════════════════════════════════════════


class QuotaAssignment(BaseModel):
    leave_type_id: uuid.UUID
    total_days: Decimal = Field(..., ge=0, max_digits=6, decimal_places=2)


class QuotaBulkUpdate(BaseModel):
    """HR payload: set the yearly allotment of several leave types at once."""

    year: int = Field(..., ge=2000, le=2100)
    quotas: list[QuotaAssignment] = Field(..., min_length=1)


class LeaveQuotaOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total_days: Decimal
    carried_over_days: Decimal
    used_days: Decimal
    available_days: Decimal

    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create / Preview
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    start_duration: LeaveDuration = LeaveDuration.full
    end_duration: LeaveDuration = LeaveDuration.full
    reason: Optional[str] = Field(None, max_length=1000)
    attachment_ref: Optional[str] = Field(
        None,
        max_length=500,
        description="Reference returned by the upload service",
    )

    @model_validator(mode="after")
    def _check_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("end_date must be on or after start_date.")
        return self


class LeavePreviewRequest(BaseModel):
    start_date: date
    end_date: date
    start_duration: LeaveDuration = LeaveDuration.full
    end_duration: LeaveDuration = LeaveDuration.full


class LeavePreviewOut(BaseModel):
    start_date: date
    end_date: date
    total_days: Decimal


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    start_duration: LeaveDuration
    end_duration: LeaveDuration
    total_days_requested: Decimal
    status: LeaveStatus
    reason: Optional[str] = None
    attachment_ref: Optional[str] = None
    approved_by_hr_id: Optional[uuid.UUID] = None
    approval_date: Optional[datetime] = None
    requested_at: datetime

    # Enriched by the service
    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Carry-forward
# ═════════════════════════════════════════════════════════════════════


class CarryForwardRequest(BaseModel):
    from_year: int = Field(..., ge=2000, le=2099)


class CarryForwardOut(BaseModel):
    from_year: int
    to_year: int
    employees: int
    quotas_written: int
