"""Notification endpoints — list, mark read, unread count, delete."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user
from hrms.common.pagination import PaginationParams
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
)
from hrms.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.get_notifications(
        db, employee.id, pagination, is_read=is_read,
    )


# ── GET /unread-count ───────────────────────────────────────────────
# Registered before /{notification_id}/read so the literal path wins.

@router.get("/unread-count")
async def unread_count(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, employee.id)
    return {"data": {"count": count}}


# ── PUT /read-all ───────────────────────────────────────────────────

@router.put("/read-all")
async def mark_all_read(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, employee.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── PUT /{notification_id}/read ─────────────────────────────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }


# ── DELETE /clear-all ───────────────────────────────────────────────
# Registered before /{notification_id} so the literal path wins.

@router.delete("/clear-all")
async def clear_all(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.clear_all(db, employee.id)
    return {"message": "All notifications cleared", "data": {"count": count}}


# ── DELETE /{notification_id} ───────────────────────────────────────

@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_notification(db, notification_id, employee.id)
