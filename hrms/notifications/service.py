"""Notification service — inbox persistence, the push Notifier and leave dispatchers.

Inbox rows are written in the caller's transaction. The push goes through a
``Notifier`` once that transaction has committed, and is fire-and-forget: a
failing channel is logged and never undoes the state change that triggered it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.after_commit import defer_until_commit
from hrms.common.constants import LeaveStatus, NotificationType, UserRole
from hrms.common.exceptions import ForbiddenException, NotFoundException
from hrms.common.pagination import PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.notifications.models import Notification
from hrms.notifications.schemas import (
    NotificationEvent,
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


# ── Push channel ────────────────────────────────────────────────────


class Notifier:
    """Real-time delivery of a ``NotificationEvent`` to one employee."""

    async def notify(self, employee_id: uuid.UUID, event: NotificationEvent) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Default channel: records the event in the application log."""

    async def notify(self, employee_id: uuid.UUID, event: NotificationEvent) -> None:
        logger.info(
            "notify %s: %s (%s)", employee_id, event.type.value, event.title,
        )


async def dispatch(
    notifier: Notifier,
    employee_id: uuid.UUID,
    event: NotificationEvent,
) -> None:
    """Push ``event``; failures are logged and swallowed."""
    try:
        await notifier.notify(employee_id, event)
    except Exception:
        logger.warning(
            "Notifier failed for employee %s (%s)", employee_id, event.type.value,
            exc_info=True,
        )


# ── Inbox service ───────────────────────────────────────────────────


class NotificationService:
    """Async inbox operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        event: NotificationEvent,
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient_id,
            type=event.type,
            title=event.title,
            message=event.message,
            leave_request_id=event.leave_request_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )
        if is_read is not None:
            query = query.where(Notification.is_read == is_read)

        rows, meta = await paginate(db, query, pagination)
        unread = await NotificationService.get_unread_count(db, employee_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, employee_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(db: AsyncSession, employee_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> None:
        """Remove one notification from its owner's inbox."""
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only delete your own notifications.")

        await db.delete(notification)
        await db.flush()

    @staticmethod
    async def clear_all(db: AsyncSession, employee_id: uuid.UUID) -> int:
        result = await db.execute(
            delete(Notification).where(Notification.recipient_id == employee_id)
        )
        await db.flush()
        logger.info("Cleared %s notification(s) for %s", result.rowcount, employee_id)
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def delete_for_request(
        db: AsyncSession,
        leave_request_id: uuid.UUID,
        notification_type: Optional[NotificationType] = None,
    ) -> int:
        query = delete(Notification).where(
            Notification.leave_request_id == leave_request_id
        )
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)
        result = await db.execute(query)
        return result.rowcount  # type: ignore[return-value]


# ── Leave dispatchers ───────────────────────────────────────────────
# Called by the leave service with the ORM request object.


async def _active_hr_ids(db: AsyncSession) -> list[uuid.UUID]:
    result = await db.execute(
        select(Employee.id).where(
            Employee.role == UserRole.hr,
            Employee.is_active.is_(True),
        )
    )
    return list(result.scalars().all())


def _period(leave_request) -> str:
    if leave_request.start_date == leave_request.end_date:
        return f"on {leave_request.start_date.isoformat()}"
    return (
        f"from {leave_request.start_date.isoformat()} "
        f"to {leave_request.end_date.isoformat()}"
    )


async def notify_new_request(
    db: AsyncSession,
    notifier: Notifier,
    leave_request,  # hrms.leave.models.LeaveRequest
    requester: Employee,
) -> None:
    """Tell every active HR employee that a request awaits review."""
    event = NotificationEvent(
        type=NotificationType.new_request,
        title="New Leave Request",
        message=(
            f"{requester.display_name} requested {leave_request.total_days_requested} "
            f"day(s) of leave {_period(leave_request)}."
        ),
        leave_request_id=leave_request.id,
    )
    for hr_id in await _active_hr_ids(db):
        await NotificationService.create_notification(db, recipient_id=hr_id, event=event)
        defer_until_commit(db, dispatch, notifier, hr_id, event)


async def notify_leave_decision(
    db: AsyncSession,
    notifier: Notifier,
    leave_request,  # hrms.leave.models.LeaveRequest
) -> None:
    """Tell the requester their request was approved or rejected."""
    approved = leave_request.status == LeaveStatus.approved
    event = NotificationEvent(
        type=NotificationType.approval if approved else NotificationType.rejection,
        title="Leave Request Approved" if approved else "Leave Request Rejected",
        message=(
            f"Your leave request {_period(leave_request)} has been "
            f"{'approved' if approved else 'rejected'}."
        ),
        leave_request_id=leave_request.id,
    )
    await NotificationService.create_notification(
        db, recipient_id=leave_request.employee_id, event=event,
    )
    defer_until_commit(db, dispatch, notifier, leave_request.employee_id, event)


async def notify_request_withdrawn(
    db: AsyncSession,
    notifier: Notifier,
    leave_request,  # hrms.leave.models.LeaveRequest
) -> None:
    """Drop HR's "new request" inbox entries and ask HR clients to refresh."""
    await NotificationService.delete_for_request(
        db, leave_request.id, NotificationType.new_request,
    )
    event = NotificationEvent(
        type=NotificationType.request_cancelled,
        title="Leave Request Withdrawn",
        message=f"A leave request {_period(leave_request)} is no longer pending.",
        leave_request_id=leave_request.id,
        refresh_only=True,
    )
    for hr_id in await _active_hr_ids(db):
        defer_until_commit(db, dispatch, notifier, hr_id, event)


default_notifier: Notifier = LogNotifier()
