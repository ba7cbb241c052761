"""Leave service layer — request lifecycle, sizing, listings and leave types.

Business logic:
  - Submission guards, in order: gap policy, overlap, non-working weekday,
    zero-day, quota (pending requests reserved)
  - Pending → Approved (quota re-check + debit) / Rejected / Cancelled (owner)
  - Administrative deletion, reversing the debit of an approved request
  - Approved-leave lookup for the attendance gate
  - HR calendar listing; leave types cannot be deleted while referenced
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.clock import Clock, system_clock
from hrms.common.constants import ACTIVE_LEAVE_STATUSES, LeaveStatus, UserRole
from hrms.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InvalidLeaveTransition,
    LeaveGapViolation,
    LeaveTypeInUse,
    NonWorkingDayRequest,
    NotFoundException,
    OverlapConflict,
    ValidationException,
    ZeroDayRequest,
)
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.files.store import FileStore, default_file_store, release_attachment
from hrms.leave.calculator import calculate_total_days
from hrms.leave.models import LeaveQuota, LeaveRequest, LeaveType
from hrms.leave.quota import QuotaLedger
from hrms.leave.schemas import (
    LeavePreviewOut,
    LeavePreviewRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from hrms.notifications.service import (
    NotificationService,
    Notifier,
    default_notifier,
    notify_leave_decision,
    notify_new_request,
    notify_request_withdrawn,
)
from hrms.policy.calendar import is_working_weekday, iter_dates
from hrms.policy.models import AttendancePolicy
from hrms.policy.service import PolicyService

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES = (
    dict(type_name="Annual Leave", is_paid=True, default_days=Decimal("6"),
         can_carry_forward=True, max_carry_days=Decimal("5")),
    dict(type_name="Sick Leave", is_paid=True, default_days=Decimal("30"),
         can_carry_forward=False, max_carry_days=Decimal("0")),
    dict(type_name="Unpaid Leave", is_paid=False, default_days=Decimal("0"),
         can_carry_forward=False, max_carry_days=Decimal("0")),
)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: sizing, submission, decisions, listings."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        query = select(LeaveRequest).where(LeaveRequest.id == request_id)
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        leave_request = result.scalars().first()
        if leave_request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_request

    @staticmethod
    def _require_pending(leave_request: LeaveRequest, action: str) -> None:
        if leave_request.status != LeaveStatus.pending:
            raise InvalidLeaveTransition(
                f"Cannot {action} a request that is already "
                f"{leave_request.status.value}."
            )

    @staticmethod
    async def size_request(
        db: AsyncSession,
        start_date: date,
        end_date: date,
        start_duration,
        end_duration,
        policy: Optional[AttendancePolicy],
    ) -> Decimal:
        """Working-day cost of a range under the current policy and holidays."""
        holidays = await PolicyService.get_non_working_dates(
            db, start_date, end_date, policy,
        )
        return calculate_total_days(
            start_date, end_date, start_duration, end_duration, policy, holidays,
        )

    # ─────────────────────────────────────────────────────────────────
    # Submission guards
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _check_gap_policy(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
        policy: Optional[AttendancePolicy],
        today: date,
    ) -> None:
        if policy is None or policy.leave_gap_days <= 0:
            return
        gap = policy.leave_gap_days

        # Filing lead time: start may be exactly ``gap`` days from today
        if (start_date - today).days < gap:
            raise LeaveGapViolation(
                f"Leave must be requested at least {gap} day(s) in advance."
            )

        previous = await db.execute(
            select(LeaveRequest.end_date)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.end_date < start_date,
            )
            .order_by(LeaveRequest.end_date.desc())
            .limit(1)
        )
        last_end = previous.scalar()
        if last_end is not None and (start_date - last_end).days - 1 < gap:
            raise LeaveGapViolation(
                f"Policy requires a {gap}-day gap from your previous leave "
                f"ending {last_end.isoformat()}.",
                errors={"start_date": [last_end.isoformat()]},
            )

        following = await db.execute(
            select(LeaveRequest.start_date)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date > end_date,
            )
            .order_by(LeaveRequest.start_date.asc())
            .limit(1)
        )
        next_start = following.scalar()
        # Measured from the requested start, like the backward check
        if next_start is not None and (next_start - start_date).days - 1 < gap:
            raise LeaveGapViolation(
                f"Policy requires a {gap}-day gap from your upcoming leave "
                f"starting {next_start.isoformat()}.",
                errors={"end_date": [next_start.isoformat()]},
            )

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> None:
        result = await db.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            ).limit(1)
        )
        if result.scalar() is not None:
            raise OverlapConflict()

    @staticmethod
    def _check_working_weekdays(
        start_date: date,
        end_date: date,
        policy: Optional[AttendancePolicy],
    ) -> None:
        for day in iter_dates(start_date, end_date):
            if not is_working_weekday(day, policy):
                raise NonWorkingDayRequest(day)

    # ─────────────────────────────────────────────────────────────────
    # Preview / submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def preview_total_days(
        db: AsyncSession,
        data: LeavePreviewRequest,
    ) -> LeavePreviewOut:
        """Cost of a prospective request; nothing is saved."""
        policy = await PolicyService.get_policy(db)
        total = await LeaveService.size_request(
            db, data.start_date, data.end_date,
            data.start_duration, data.end_duration, policy,
        )
        return LeavePreviewOut(
            start_date=data.start_date, end_date=data.end_date, total_days=total,
        )

    @staticmethod
    async def submit_leave(
        db: AsyncSession,
        employee: Employee,
        data: LeaveRequestCreate,
        *,
        clock: Clock = system_clock,
        notifier: Notifier = default_notifier,
    ) -> LeaveRequestOut:
        """Create a Pending request after every submission guard passes."""
        leave_type = await db.get(LeaveType, data.leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", data.leave_type_id)

        policy = await PolicyService.get_policy(db)

        # ── 1. Gap policy ───────────────────────────────────────────
        await LeaveService._check_gap_policy(
            db, employee.id, data.start_date, data.end_date, policy, clock.today(),
        )

        # ── 2. Overlap ──────────────────────────────────────────────
        await LeaveService._check_overlap(
            db, employee.id, data.start_date, data.end_date,
        )

        # ── 3. Non-working weekday ──────────────────────────────────
        LeaveService._check_working_weekdays(data.start_date, data.end_date, policy)

        # ── 4. Zero-day ─────────────────────────────────────────────
        total_days = await LeaveService.size_request(
            db, data.start_date, data.end_date,
            data.start_duration, data.end_duration, policy,
        )
        if total_days <= 0:
            raise ZeroDayRequest()

        # ── 5. Quota (other pending requests reserved) ──────────────
        await QuotaLedger.check_availability(
            db, employee.id, leave_type.id, total_days, data.start_date.year,
            include_pending=True,
        )

        leave_request = LeaveRequest(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            start_duration=data.start_duration,
            end_duration=data.end_duration,
            total_days_requested=total_days,
            reason=data.reason,
            attachment_ref=data.attachment_ref,
            status=LeaveStatus.pending,
            requested_at=clock.now(),
        )
        db.add(leave_request)
        await db.flush()
        await db.refresh(leave_request, attribute_names=["employee", "leave_type"])

        logger.info(
            "Leave request %s submitted by %s: %s day(s) of %s",
            leave_request.id, employee.employee_code, total_days, leave_type.type_name,
        )
        await notify_new_request(db, notifier, leave_request, employee)
        return LeaveRequestOut.model_validate(leave_request)

    # ─────────────────────────────────────────────────────────────────
    # HR decisions
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        hr: Employee,
        *,
        clock: Clock = system_clock,
        notifier: Notifier = default_notifier,
    ) -> LeaveRequestOut:
        """Pending → Approved: re-check the quota, debit it, stamp, notify."""
        leave_request = await LeaveService._load_request(db, request_id, for_update=True)
        LeaveService._require_pending(leave_request, "approve")

        year = leave_request.start_date.year
        await QuotaLedger.check_availability(
            db, leave_request.employee_id, leave_request.leave_type_id,
            leave_request.total_days_requested, year,
        )
        await QuotaLedger.debit(
            db, leave_request.employee_id, leave_request.leave_type_id,
            year, leave_request.total_days_requested,
        )

        leave_request.status = LeaveStatus.approved
        leave_request.approved_by_hr_id = hr.id
        leave_request.approval_date = clock.now()
        await db.flush()

        logger.info("Leave request %s approved by %s", leave_request.id, hr.employee_code)
        await notify_leave_decision(db, notifier, leave_request)
        return LeaveRequestOut.model_validate(leave_request)

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        hr: Employee,
        *,
        clock: Clock = system_clock,
        notifier: Notifier = default_notifier,
    ) -> LeaveRequestOut:
        """Pending → Rejected. The ledger is untouched."""
        leave_request = await LeaveService._load_request(db, request_id, for_update=True)
        LeaveService._require_pending(leave_request, "reject")

        leave_request.status = LeaveStatus.rejected
        leave_request.approved_by_hr_id = hr.id
        leave_request.approval_date = clock.now()
        await db.flush()

        logger.info("Leave request %s rejected by %s", leave_request.id, hr.employee_code)
        await notify_leave_decision(db, notifier, leave_request)
        return LeaveRequestOut.model_validate(leave_request)

    # ─────────────────────────────────────────────────────────────────
    # Cancellation / deletion
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        employee: Employee,
        *,
        notifier: Notifier = default_notifier,
        file_store: FileStore = default_file_store,
    ) -> LeaveRequestOut:
        """Pending → Cancelled by its owner; the attachment is released."""
        leave_request = await LeaveService._load_request(db, request_id, for_update=True)
        if leave_request.employee_id != employee.id:
            raise ForbiddenException("You can only cancel your own leave requests.")
        LeaveService._require_pending(leave_request, "cancel")

        await release_attachment(file_store, leave_request.attachment_ref)
        leave_request.attachment_ref = None
        leave_request.status = LeaveStatus.cancelled
        await db.flush()

        logger.info("Leave request %s cancelled by its owner", leave_request.id)
        await notify_request_withdrawn(db, notifier, leave_request)
        return LeaveRequestOut.model_validate(leave_request)

    @staticmethod
    async def delete_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        hr: Employee,
        *,
        notifier: Notifier = default_notifier,
        file_store: FileStore = default_file_store,
    ) -> None:
        """Remove a request outright. An approved request gives its days back."""
        leave_request = await LeaveService._load_request(db, request_id, for_update=True)
        status = leave_request.status

        if status == LeaveStatus.approved:
            await QuotaLedger.credit(
                db, leave_request.employee_id, leave_request.leave_type_id,
                leave_request.start_date.year, leave_request.total_days_requested,
            )
        elif status == LeaveStatus.pending:
            await notify_request_withdrawn(db, notifier, leave_request)

        await release_attachment(file_store, leave_request.attachment_ref)
        await NotificationService.delete_for_request(db, leave_request.id)
        await db.delete(leave_request)
        await db.flush()

        logger.info(
            "Leave request %s (%s) deleted by %s",
            request_id, status.value, hr.employee_code,
        )

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer: Employee,
    ) -> LeaveRequestOut:
        leave_request = await LeaveService._load_request(db, request_id)
        if viewer.role != UserRole.hr and leave_request.employee_id != viewer.id:
            raise ForbiddenException("You can only view your own leave requests.")
        return LeaveRequestOut.model_validate(leave_request)

    @staticmethod
    async def get_my_requests(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """The employee's own requests, newest first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.requested_at.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        rows, meta = await paginate(db, query, pagination)
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveRequestOut.model_validate(r) for r in rows],
            meta=meta,
        )

    @staticmethod
    async def get_pending_requests(db: AsyncSession) -> list[LeaveRequestOut]:
        """Every pending request, oldest first (HR queue)."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .order_by(LeaveRequest.requested_at.asc())
        )
        return [LeaveRequestOut.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def get_all_requests(
        db: AsyncSession,
        from_date: date,
        to_date: date,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> list[LeaveRequestOut]:
        """Every employee's requests overlapping ``[from_date, to_date]`` (HR calendar)."""
        if from_date > to_date:
            raise ValidationException(
                {"date_range": ["from_date must be before or equal to to_date."]}
            )
        query = (
            select(LeaveRequest)
            .where(
                LeaveRequest.start_date <= to_date,
                LeaveRequest.end_date >= from_date,
            )
            .order_by(LeaveRequest.start_date.asc(), LeaveRequest.requested_at.asc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        result = await db.execute(query)
        return [LeaveRequestOut.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def get_approved_leave_for_day(
        db: AsyncSession,
        employee_id: uuid.UUID,
        day: date,
    ) -> Optional[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= day,
                LeaveRequest.end_date >= day,
            )
            .order_by(LeaveRequest.start_date)
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def get_approved_leaves_between(
        db: AsyncSession,
        employee_id: uuid.UUID,
        from_date: date,
        to_date: date,
    ) -> list[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= to_date,
                LeaveRequest.end_date >= from_date,
            )
        )
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Leave types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_types(db: AsyncSession) -> list[LeaveTypeOut]:
        result = await db.execute(select(LeaveType).order_by(LeaveType.type_name))
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession,
        type_name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveType.id).where(LeaveType.type_name == type_name)
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).scalar() is not None:
            raise ConflictError("type_name", type_name)

    @staticmethod
    async def create_leave_type(db: AsyncSession, data: LeaveTypeCreate) -> LeaveTypeOut:
        await LeaveService._ensure_unique_name(db, data.type_name)
        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()
        logger.info("Leave type %s created", leave_type.type_name)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
    ) -> LeaveTypeOut:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)

        changes = data.model_dump(exclude_unset=True)
        if "type_name" in changes:
            await LeaveService._ensure_unique_name(db, changes["type_name"], leave_type_id)
        for field, value in changes.items():
            setattr(leave_type, field, value)
        await db.flush()
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def delete_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> None:
        """Remove a leave type that no quota or request refers to."""
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)

        quotas = (await db.execute(
            select(func.count()).select_from(LeaveQuota)
            .where(LeaveQuota.leave_type_id == leave_type_id)
        )).scalar_one()
        requests = (await db.execute(
            select(func.count()).select_from(LeaveRequest)
            .where(LeaveRequest.leave_type_id == leave_type_id)
        )).scalar_one()
        if quotas or requests:
            raise LeaveTypeInUse(leave_type.type_name, quotas, requests)

        type_name = leave_type.type_name
        await db.delete(leave_type)
        await db.flush()
        logger.info("Leave type %s deleted", type_name)

    @staticmethod
    async def seed_default_leave_types(db: AsyncSession) -> list[LeaveTypeOut]:
        """Create Annual, Sick and Unpaid leave when missing."""
        result = await db.execute(select(LeaveType.type_name))
        have = set(result.scalars().all())
        for defaults in DEFAULT_LEAVE_TYPES:
            if defaults["type_name"] not in have:
                db.add(LeaveType(**defaults))
        await db.flush()
        return await LeaveService.get_leave_types(db)
