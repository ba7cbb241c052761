"""Leave router — requests, HR decisions, quotas, leave types, carry-forward.

All endpoints require authentication. HR-only endpoints use ``require_hr``.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_hr
from hrms.common.clock import Clock
from hrms.common.constants import LeaveStatus
from hrms.common.pagination import PaginatedResponse, PaginationParams
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.dependencies import get_clock, get_file_store, get_notifier
from hrms.files.store import FileStore
from hrms.leave.carry_forward import CarryForwardProcessor
from hrms.leave.quota import QuotaLedger
from hrms.leave.schemas import (
    CarryForwardOut,
    CarryForwardRequest,
    LeavePreviewOut,
    LeavePreviewRequest,
    LeaveQuotaOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
    QuotaBulkUpdate,
)
from hrms.leave.service import LeaveService
from hrms.notifications.service import Notifier

router = APIRouter(prefix="", tags=["leave"])


# ═════════════════════════════════════════════════════════════════════
# Employee endpoints
# ═════════════════════════════════════════════════════════════════════


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def apply_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    """Apply for leave. Checks gap policy, overlap, working days and quota."""
    return await LeaveService.submit_leave(
        db, employee, body, clock=clock, notifier=notifier,
    )


# ── POST /preview ───────────────────────────────────────────────────

@router.post("/preview", response_model=LeavePreviewOut)
async def preview_leave(
    body: LeavePreviewRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.preview_total_days(db, body)


# ── GET /requests/mine ──────────────────────────────────────────────

@router.get("/requests/mine", response_model=PaginatedResponse[LeaveRequestOut])
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_my_requests(
        db, employee.id, pagination, status=status,
    )


# ── GET /requests/pending ───────────────────────────────────────────
# Registered before /requests/{request_id} so the literal path wins.

@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def pending_requests(
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    """HR review queue, oldest first."""
    return await LeaveService.get_pending_requests(db)


# ── GET /requests/all ───────────────────────────────────────────────
# Registered before /requests/{request_id} so the literal path wins.

@router.get("/requests/all", response_model=list[LeaveRequestOut])
async def all_requests(
    from_date: date = Query(...),
    to_date: date = Query(...),
    status: Optional[LeaveStatus] = Query(None),
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    """Every request overlapping the range, for the HR leave calendar."""
    return await LeaveService.get_all_requests(db, from_date, to_date, status=status)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, employee)


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    file_store: FileStore = Depends(get_file_store),
):
    """Withdraw one of your own pending requests."""
    return await LeaveService.cancel_leave(
        db, request_id, employee, notifier=notifier, file_store=file_store,
    )


# ── GET /quotas ─────────────────────────────────────────────────────

@router.get("/quotas", response_model=list[LeaveQuotaOut])
async def my_quotas(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """The caller's quotas; ``year`` defaults to the current local year."""
    return await QuotaLedger.get_quotas(db, employee.id, year or clock.today().year)


# ═════════════════════════════════════════════════════════════════════
# HR endpoints
# ═════════════════════════════════════════════════════════════════════


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    """Approve a pending request. Debits the quota."""
    return await LeaveService.approve_leave(
        db, request_id, employee, clock=clock, notifier=notifier,
    )


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    return await LeaveService.reject_leave(
        db, request_id, employee, clock=clock, notifier=notifier,
    )


# ── DELETE /requests/{id} ───────────────────────────────────────────

@router.delete("/requests/{request_id}", status_code=204)
async def delete_leave(
    request_id: uuid.UUID,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    file_store: FileStore = Depends(get_file_store),
):
    """Delete a request. Approved days are returned to the quota."""
    await LeaveService.delete_leave(
        db, request_id, employee, notifier=notifier, file_store=file_store,
    )


# ── GET /employees/{id}/quotas ──────────────────────────────────────

@router.get("/employees/{employee_id}/quotas", response_model=list[LeaveQuotaOut])
async def employee_quotas(
    employee_id: uuid.UUID,
    year: int = Query(..., ge=2000, le=2100),
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await QuotaLedger.get_quotas(db, employee_id, year)


# ── PUT /employees/{id}/quotas ──────────────────────────────────────

@router.put("/employees/{employee_id}/quotas", response_model=list[LeaveQuotaOut])
async def set_employee_quotas(
    employee_id: uuid.UUID,
    body: QuotaBulkUpdate,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    """Set yearly allotments. ``used_days`` and carry-over are preserved."""
    return await QuotaLedger.set_quotas(db, employee_id, body.year, body.quotas)


# ── POST /employees/{id}/quotas/seed ────────────────────────────────

@router.post("/employees/{employee_id}/quotas/seed", response_model=list[LeaveQuotaOut])
async def seed_employee_quotas(
    employee_id: uuid.UUID,
    year: int = Query(..., ge=2000, le=2100),
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await QuotaLedger.seed_default_quotas(db, employee_id, year)


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_types(db)


# ── POST /types ─────────────────────────────────────────────────────

@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_leave_type(db, body)


# ── POST /types/seed ────────────────────────────────────────────────

@router.post("/types/seed", response_model=list[LeaveTypeOut])
async def seed_leave_types(
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.seed_default_leave_types(db)


# ── PATCH /types/{id} ───────────────────────────────────────────────

@router.patch("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_leave_type(db, leave_type_id, body)


# ── DELETE /types/{id} ──────────────────────────────────────────────

@router.delete("/types/{leave_type_id}", status_code=204)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    """Delete a leave type nothing refers to yet."""
    await LeaveService.delete_leave_type(db, leave_type_id)


# ── POST /carry-forward ─────────────────────────────────────────────

@router.post("/carry-forward", response_model=CarryForwardOut)
async def carry_forward(
    body: CarryForwardRequest,
    employee: Employee = Depends(require_hr),
    db: AsyncSession = Depends(get_db),
):
    """Roll unused balances of ``from_year`` into the next year."""
    return await CarryForwardProcessor.run(db, body.from_year)
