"""Year-end carry-forward of unused leave.

For every active employee and every leave type that allows it, the unused
balance of ``from_year`` (capped at ``max_carry_days``) becomes the
``carried_over_days`` of ``from_year + 1``. The target row's ``total_days``
is reset to the type's ``default_days``; its ``used_days`` is kept, so the
run can be repeated safely.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import DAYS_QUANTUM
from hrms.core_hr.models import Employee
from hrms.leave.models import LeaveQuota, LeaveType
from hrms.leave.schemas import CarryForwardOut

logger = logging.getLogger(__name__)


def carry_amount(quota: LeaveQuota | None, leave_type: LeaveType) -> Decimal:
    """Unused days of ``quota`` clamped to ``[0, max_carry_days]``."""
    if quota is None:
        return Decimal("0.00")
    unused = (
        Decimal(quota.total_days) + Decimal(quota.carried_over_days)
        - Decimal(quota.used_days)
    )
    cap = Decimal(leave_type.max_carry_days)
    return min(max(unused, Decimal("0")), cap).quantize(DAYS_QUANTUM)


class CarryForwardProcessor:
    """Runs the carry-forward for a whole year in the caller's transaction."""

    @staticmethod
    async def run(db: AsyncSession, from_year: int) -> CarryForwardOut:
        to_year = from_year + 1

        employees = (
            await db.execute(select(Employee.id).where(Employee.is_active.is_(True)))
        ).scalars().all()
        leave_types = (
            await db.execute(
                select(LeaveType).where(LeaveType.can_carry_forward.is_(True))
            )
        ).scalars().all()

        if not employees or not leave_types:
            logger.info("Carry-forward %s → %s: nothing to do", from_year, to_year)
            return CarryForwardOut(
                from_year=from_year, to_year=to_year,
                employees=len(employees), quotas_written=0,
            )

        type_ids = [lt.id for lt in leave_types]
        result = await db.execute(
            select(LeaveQuota).where(
                LeaveQuota.employee_id.in_(employees),
                LeaveQuota.leave_type_id.in_(type_ids),
                LeaveQuota.year.in_((from_year, to_year)),
            )
        )
        quotas = {
            (q.employee_id, q.leave_type_id, q.year): q
            for q in result.scalars().all()
        }

        written = 0
        for employee_id in employees:
            for leave_type in leave_types:
                previous = quotas.get((employee_id, leave_type.id, from_year))
                carried = carry_amount(previous, leave_type)
                target = quotas.get((employee_id, leave_type.id, to_year))

                if target is None:
                    db.add(LeaveQuota(
                        employee_id=employee_id,
                        leave_type_id=leave_type.id,
                        year=to_year,
                        total_days=Decimal(leave_type.default_days),
                        carried_over_days=carried,
                        used_days=Decimal("0.00"),
                    ))
                else:
                    # Never drop below what the target year has already used
                    target.total_days = max(
                        Decimal(leave_type.default_days),
                        Decimal(target.used_days) - carried,
                    )
                    target.carried_over_days = carried
                written += 1

        await db.flush()
        logger.info(
            "Carry-forward %s → %s: %d quota row(s) for %d employee(s)",
            from_year, to_year, written, len(employees),
        )
        return CarryForwardOut(
            from_year=from_year, to_year=to_year,
            employees=len(employees), quotas_written=written,
        )
