"""Quota ledger — availability checks and guarded debit/credit of leave quotas.

``available = total_days + carried_over_days - used_days`` never goes below
zero: every debit is a single ``UPDATE … WHERE available >= days`` so two
concurrent approvals cannot both spend the last days, and the row is locked
(``SELECT … FOR UPDATE``) for the check that precedes it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import DAYS_QUANTUM, LeaveStatus
from hrms.common.exceptions import (
    NotFoundException,
    QuotaExceeded,
    QuotaNotConfigured,
    ValidationException,
)
from hrms.core_hr.models import Employee
from hrms.leave.models import LeaveQuota, LeaveRequest, LeaveType
from hrms.leave.schemas import QuotaAssignment

logger = logging.getLogger(__name__)


def _days(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(DAYS_QUANTUM)


class QuotaCheck(NamedTuple):
    ok: bool
    available_days: Optional[Decimal]


class QuotaLedger:
    """Async ledger operations over ``LeaveQuota`` rows."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)
        return leave_type

    @staticmethod
    async def get_quota(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        *,
        for_update: bool = False,
    ) -> Optional[LeaveQuota]:
        query = select(LeaveQuota).where(
            LeaveQuota.employee_id == employee_id,
            LeaveQuota.leave_type_id == leave_type_id,
            LeaveQuota.year == year,
        )
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_pending_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        *,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> Decimal:
        """Sum of ``total_days_requested`` over pending requests starting in ``year``."""
        query = select(
            func.coalesce(func.sum(LeaveRequest.total_days_requested), 0)
        ).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.leave_type_id == leave_type_id,
            LeaveRequest.status == LeaveStatus.pending,
            LeaveRequest.start_date >= date(year, 1, 1),
            LeaveRequest.start_date <= date(year, 12, 31),
        )
        if exclude_request_id is not None:
            query = query.where(LeaveRequest.id != exclude_request_id)
        result = await db.execute(query)
        return _days(result.scalar_one())

    # ─────────────────────────────────────────────────────────────────
    # Availability / debit / credit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def check_availability(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        requested_days: Decimal,
        year: int,
        *,
        include_pending: bool = False,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> QuotaCheck:
        """Raise unless ``requested_days`` fit in the quota.

        Unpaid types always pass. With ``include_pending`` the employee's
        other pending requests of the same type and year are reserved first.
        """
        leave_type = await QuotaLedger._get_leave_type(db, leave_type_id)
        if not leave_type.is_paid:
            return QuotaCheck(ok=True, available_days=None)

        quota = await QuotaLedger.get_quota(
            db, employee_id, leave_type_id, year, for_update=True,
        )
        if quota is None:
            raise QuotaNotConfigured(leave_type.type_name, year)

        available = quota.available_days
        if include_pending:
            available -= await QuotaLedger.get_pending_days(
                db, employee_id, leave_type_id, year,
                exclude_request_id=exclude_request_id,
            )

        requested = _days(requested_days)
        if requested > available:
            raise QuotaExceeded(available=available, requested=requested)
        return QuotaCheck(ok=True, available_days=available)

    @staticmethod
    async def debit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
    ) -> None:
        """Add ``days`` to ``used_days``.

        Unpaid types and a missing quota row are silent no-ops. A debit that
        would overdraw the quota raises ``QuotaExceeded`` and changes nothing.
        """
        leave_type = await QuotaLedger._get_leave_type(db, leave_type_id)
        if not leave_type.is_paid:
            return

        amount = _days(days)
        result = await db.execute(
            update(LeaveQuota)
            .where(
                LeaveQuota.employee_id == employee_id,
                LeaveQuota.leave_type_id == leave_type_id,
                LeaveQuota.year == year,
                LeaveQuota.total_days + LeaveQuota.carried_over_days
                - LeaveQuota.used_days >= amount,
            )
            .values(used_days=LeaveQuota.used_days + amount)
        )
        if result.rowcount:
            logger.info(
                "Debited %s day(s) of %s for employee %s (%s)",
                amount, leave_type.type_name, employee_id, year,
            )
            return

        quota = await QuotaLedger.get_quota(db, employee_id, leave_type_id, year)
        if quota is None:
            logger.warning(
                "No %s quota for employee %s in %s; debit of %s skipped",
                leave_type.type_name, employee_id, year, amount,
            )
            return
        raise QuotaExceeded(available=quota.available_days, requested=amount)

    @staticmethod
    async def credit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
    ) -> None:
        """Give ``days`` back (administrative reversal). ``used_days`` floors at 0."""
        leave_type = await QuotaLedger._get_leave_type(db, leave_type_id)
        if not leave_type.is_paid:
            return

        quota = await QuotaLedger.get_quota(
            db, employee_id, leave_type_id, year, for_update=True,
        )
        if quota is None:
            logger.warning(
                "No %s quota for employee %s in %s; credit of %s skipped",
                leave_type.type_name, employee_id, year, days,
            )
            return

        quota.used_days = max(_days(quota.used_days) - _days(days), Decimal("0.00"))
        await db.flush()
        logger.info(
            "Credited %s day(s) of %s back to employee %s (%s)",
            _days(days), leave_type.type_name, employee_id, year,
        )

    # ─────────────────────────────────────────────────────────────────
    # Quota administration
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_quotas(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveQuota]:
        result = await db.execute(
            select(LeaveQuota)
            .join(LeaveType, LeaveQuota.leave_type_id == LeaveType.id)
            .where(
                LeaveQuota.employee_id == employee_id,
                LeaveQuota.year == year,
            )
            .order_by(LeaveType.type_name)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def set_quotas(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        assignments: list[QuotaAssignment],
    ) -> list[LeaveQuota]:
        """Bulk upsert of ``total_days`` for one employee and year."""
        if await db.get(Employee, employee_id) is None:
            raise NotFoundException("Employee", employee_id)

        for item in assignments:
            await QuotaLedger._get_leave_type(db, item.leave_type_id)
            quota = await QuotaLedger.get_quota(
                db, employee_id, item.leave_type_id, year, for_update=True,
            )
            total = _days(item.total_days)
            if quota is None:
                db.add(LeaveQuota(
                    employee_id=employee_id,
                    leave_type_id=item.leave_type_id,
                    year=year,
                    total_days=total,
                    carried_over_days=Decimal("0.00"),
                    used_days=Decimal("0.00"),
                ))
                continue

            if total + _days(quota.carried_over_days) < _days(quota.used_days):
                raise ValidationException({
                    "total_days": [
                        f"{total} is below the {quota.used_days} day(s) already used."
                    ]
                })
            quota.total_days = total

        await db.flush()
        logger.info("Set %d quota(s) for employee %s in %s", len(assignments), employee_id, year)
        return await QuotaLedger.get_quotas(db, employee_id, year)

    @staticmethod
    async def seed_default_quotas(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveQuota]:
        """Create any missing quota rows from each leave type's ``default_days``."""
        if await db.get(Employee, employee_id) is None:
            raise NotFoundException("Employee", employee_id)

        existing = await db.execute(
            select(LeaveQuota.leave_type_id).where(
                LeaveQuota.employee_id == employee_id,
                LeaveQuota.year == year,
            )
        )
        have = set(existing.scalars().all())

        types = await db.execute(select(LeaveType))
        created = 0
        for leave_type in types.scalars().all():
            if leave_type.id in have:
                continue
            db.add(LeaveQuota(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                year=year,
                total_days=_days(leave_type.default_days),
                carried_over_days=Decimal("0.00"),
                used_days=Decimal("0.00"),
            ))
            created += 1

        await db.flush()
        logger.info("Seeded %d default quota(s) for employee %s in %s", created, employee_id, year)
        return await QuotaLedger.get_quotas(db, employee_id, year)
