"""Policy router — attendance policy and holiday calendar.

Reads are open to every authenticated employee; writes are HR only.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_hr
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.policy.schemas import (
    AttendancePolicyOut,
    AttendancePolicyUpdate,
    HolidayCreate,
    HolidayOut,
)
from hrms.policy.service import PolicyService

router = APIRouter(prefix="", tags=["policy"])


# ── GET /attendance-policy ──────────────────────────────────────────

@router.get("/attendance-policy", response_model=AttendancePolicyOut)
async def get_attendance_policy(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await PolicyService.require_policy(db)


# ── PUT /attendance-policy ──────────────────────────────────────────

@router.put("/attendance-policy", response_model=AttendancePolicyOut)
async def update_attendance_policy(
    body: AttendancePolicyUpdate,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the company attendance policy."""
    return await PolicyService.upsert_policy(db, body, updated_by=employee.id)


# ── GET /holidays ───────────────────────────────────────────────────

@router.get("/holidays", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await PolicyService.list_holidays(db, year=year)


# ── POST /holidays ──────────────────────────────────────────────────

@router.post("/holidays", response_model=HolidayOut, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await PolicyService.create_holiday(db, body)


# ── DELETE /holidays/{id} ───────────────────────────────────────────

@router.delete("/holidays/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    await PolicyService.delete_holiday(db, holiday_id)
