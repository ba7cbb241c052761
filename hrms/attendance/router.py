"""Attendance router — check in/out, history, late summary, records.

All endpoints require authentication. The all-employee record view is HR only.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.attendance.schemas import (
    AttendanceDay,
    MonthlyLateSummary,
    PunchResponse,
    TimeRecordOut,
)
from hrms.attendance.service import AttendanceGate
from hrms.auth.dependencies import get_current_user, require_hr
from hrms.common.clock import Clock
from hrms.common.pagination import PaginatedResponse, PaginationParams
from hrms.common.rate_limit import ATTENDANCE_PUNCH_LIMIT, limiter
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.dependencies import get_clock

router = APIRouter(prefix="", tags=["attendance"])


# ── POST /check-in ──────────────────────────────────────────────────

@router.post("/check-in", response_model=PunchResponse, status_code=201)
@limiter.limit(ATTENDANCE_PUNCH_LIMIT)
async def check_in(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Check in for today. Lateness is decided here and never recomputed."""
    return await AttendanceGate.check_in(db, employee.id, clock=clock)


# ── POST /check-out ─────────────────────────────────────────────────

@router.post("/check-out", response_model=PunchResponse)
@limiter.limit(ATTENDANCE_PUNCH_LIMIT)
async def check_out(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await AttendanceGate.check_out(db, employee.id, clock=clock)


# ── GET /history ────────────────────────────────────────────────────

@router.get("/history", response_model=list[AttendanceDay])
async def my_history(
    from_date: date = Query(...),
    to_date: date = Query(...),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await AttendanceGate.get_attendance_history(
        db, employee.id, from_date, to_date, clock=clock,
    )


# ── GET /history/{employee_id} ──────────────────────────────────────

@router.get("/history/{employee_id}", response_model=list[AttendanceDay])
async def employee_history(
    employee_id: uuid.UUID,
    from_date: date = Query(...),
    to_date: date = Query(...),
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await AttendanceGate.get_attendance_history(
        db, employee_id, from_date, to_date, clock=clock,
    )


# ── GET /late-summary ───────────────────────────────────────────────

@router.get("/late-summary", response_model=MonthlyLateSummary)
async def late_summary(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Late check-ins this month against the monthly limit."""
    return await AttendanceGate.get_monthly_late_summary(db, employee.id, clock=clock)


# ── GET /records/mine ───────────────────────────────────────────────

@router.get("/records/mine", response_model=PaginatedResponse[TimeRecordOut])
async def my_records(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceGate.list_records(
        db, pagination, employee_id=employee.id, from_date=from_date, to_date=to_date,
    )


# ── GET /records ────────────────────────────────────────────────────

@router.get("/records", response_model=PaginatedResponse[TimeRecordOut])
async def all_records(
    employee_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceGate.list_records(
        db, pagination, employee_id=employee_id, from_date=from_date, to_date=to_date,
    )
