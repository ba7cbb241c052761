"""Policy service layer — the attendance policy singleton and the holiday calendar."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import extract, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import POLICY_ID
from hrms.common.exceptions import ConflictError, NotFoundException
from hrms.policy.calendar import special_holiday_dates
from hrms.policy.models import AttendancePolicy, Holiday
from hrms.policy.schemas import AttendancePolicyUpdate, HolidayCreate

logger = logging.getLogger(__name__)


class PolicyService:
    """Read/upsert the single attendance policy; maintain holidays."""

    # ─────────────────────────────────────────────────────────────────
    # Attendance policy
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_policy(db: AsyncSession) -> Optional[AttendancePolicy]:
        """Fetch the policy row, or ``None`` when HR has not configured one."""
        result = await db.execute(
            select(AttendancePolicy).where(AttendancePolicy.id == POLICY_ID)
        )
        return result.scalars().first()

    @staticmethod
    async def require_policy(db: AsyncSession) -> AttendancePolicy:
        policy = await PolicyService.get_policy(db)
        if policy is None:
            raise NotFoundException("AttendancePolicy", POLICY_ID)
        return policy

    @staticmethod
    async def upsert_policy(
        db: AsyncSession,
        data: AttendancePolicyUpdate,
        updated_by: Optional[uuid.UUID] = None,
    ) -> AttendancePolicy:
        """Create or replace the policy. Each write bumps ``version``."""
        policy = await PolicyService.get_policy(db)
        if policy is None:
            policy = AttendancePolicy(id=POLICY_ID)
            db.add(policy)

        policy.start_time = data.start_time
        policy.end_time = data.end_time
        policy.break_start_time = data.break_start_time
        policy.break_end_time = data.break_end_time
        policy.grace_minutes = data.grace_minutes
        policy.working_days = list(data.working_days)
        policy.leave_gap_days = data.leave_gap_days
        policy.special_holidays = [
            {"date": item.date.isoformat(), "description": item.description}
            for item in sorted(data.special_holidays, key=lambda h: h.date)
        ]
        policy.updated_by = updated_by

        await db.flush()
        await db.refresh(policy)
        logger.info("Attendance policy saved (version %s) by %s", policy.version, updated_by)
        return policy

    # ─────────────────────────────────────────────────────────────────
    # Holidays
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_holiday_dates(
        db: AsyncSession,
        from_date: date,
        to_date: date,
    ) -> set[date]:
        """Regular holiday dates in ``[from_date, to_date]``."""
        result = await db.execute(
            select(Holiday.holiday_date).where(
                Holiday.holiday_date >= from_date,
                Holiday.holiday_date <= to_date,
            )
        )
        return set(result.scalars().all())

    @staticmethod
    async def get_non_working_dates(
        db: AsyncSession,
        from_date: date,
        to_date: date,
        policy: Optional[AttendancePolicy],
    ) -> set[date]:
        """Regular holidays plus the policy's special holidays."""
        holidays = await PolicyService.get_holiday_dates(db, from_date, to_date)
        return holidays | special_holiday_dates(policy)

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
    ) -> list[Holiday]:
        query = select(Holiday).order_by(Holiday.holiday_date)
        if year is not None:
            query = query.where(extract("year", Holiday.holiday_date) == year)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def create_holiday(db: AsyncSession, data: HolidayCreate) -> Holiday:
        existing = await db.execute(
            select(Holiday.id).where(Holiday.holiday_date == data.holiday_date)
        )
        if existing.scalar() is not None:
            raise ConflictError("holiday_date", data.holiday_date.isoformat())

        holiday = Holiday(holiday_date=data.holiday_date, name=data.name)
        db.add(holiday)
        await db.flush()
        logger.info("Holiday %s (%s) created", holiday.holiday_date, holiday.name)
        return holiday

    @staticmethod
    async def delete_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> None:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", holiday_id)
        await db.delete(holiday)
        await db.flush()
        logger.info("Holiday %s deleted", holiday.holiday_date)
