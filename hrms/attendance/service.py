"""Attendance service layer — the check-in/check-out gate and attendance reads.

Business logic:
  - Check in against the attendance policy, approved leave and special holidays
  - Late detection (target time + grace minutes), decided once at check-in
  - Check out no earlier than the end of the working window
  - Daily history, monthly late summary, record listings
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.attendance.models import TimeRecord
from hrms.attendance.schemas import (
    AttendanceDay,
    MonthlyLateSummary,
    PunchResponse,
    TimeRecordOut,
)
from hrms.common.clock import Clock, system_clock
from hrms.common.constants import TIME_FORMAT, DailyStatus, DayPart, LeaveDuration
from hrms.common.exceptions import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    CheckInWindowClosed,
    CheckOutBeforeCheckIn,
    FullDayLeaveActive,
    NoCheckInFound,
    PolicyMissing,
    SpecialHoliday,
    TooEarly,
    TooEarlyForHalfDay,
    TooEarlyToCheckOut,
    ValidationException,
)
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.config import settings
from hrms.leave.calculator import FULL_DAY, day_parts_on, durations_on
from hrms.leave.models import LeaveRequest
from hrms.leave.service import LeaveService
from hrms.policy.calendar import is_working_weekday, iter_dates, special_holiday_dates
from hrms.policy.service import PolicyService

logger = logging.getLogger(__name__)

# ── Constants ───────────────────────────────────────────────────────

MAX_HISTORY_DAYS = 92


def _has_half_afternoon(leave: Optional[LeaveRequest], day: date) -> bool:
    if leave is None:
        return False
    flags = durations_on(
        leave.start_date, leave.end_date,
        leave.start_duration, leave.end_duration, day,
    )
    return LeaveDuration.half_afternoon in flags


def _leave_parts(leave: Optional[LeaveRequest], day: date) -> frozenset[DayPart]:
    if leave is None:
        return frozenset()
    return day_parts_on(
        leave.start_date, leave.end_date,
        leave.start_duration, leave.end_duration, day,
    )


def _hhmm(clock: Clock, value: Optional[datetime]) -> Optional[str]:
    return clock.localize(value).strftime(TIME_FORMAT) if value else None


# ═════════════════════════════════════════════════════════════════════
# AttendanceGate
# ═════════════════════════════════════════════════════════════════════


class AttendanceGate:
    """Async attendance operations: check in/out, history, listings."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_record(
        db: AsyncSession,
        employee_id: uuid.UUID,
        work_date: date,
    ) -> Optional[TimeRecord]:
        result = await db.execute(
            select(TimeRecord).where(
                TimeRecord.employee_id == employee_id,
                TimeRecord.work_date == work_date,
            )
        )
        return result.scalars().first()

    @staticmethod
    def _validate_date_range(from_date: date, to_date: date) -> None:
        if from_date > to_date:
            raise ValidationException(
                {"date_range": ["from_date must be before or equal to to_date."]}
            )
        if (to_date - from_date).days >= MAX_HISTORY_DAYS:
            raise ValidationException(
                {"date_range": [f"Date range cannot exceed {MAX_HISTORY_DAYS} days."]}
            )

    # ── Check in ────────────────────────────────────────────────────

    @staticmethod
    async def check_in(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        clock: Clock = system_clock,
    ) -> PunchResponse:
        """Create today's TimeRecord after every check-in guard passes."""
        now = clock.now()
        today = now.date()

        if await AttendanceGate._get_record(db, employee_id, today) is not None:
            raise AlreadyCheckedIn("You have already checked in today.")

        policy = await PolicyService.get_policy(db)
        if policy is None:
            raise PolicyMissing("No attendance policy has been configured.")

        if today in special_holiday_dates(policy):
            raise SpecialHoliday(f"{today.isoformat()} is a special holiday.")

        leave = await LeaveService.get_approved_leave_for_day(db, employee_id, today)
        parts = _leave_parts(leave, today)

        # ── Window deadline ─────────────────────────────────────────
        if _has_half_afternoon(leave, today):
            deadline = clock.at(today, policy.break_start_time)
        else:
            deadline = clock.at(today, policy.end_time)
        if now > deadline:
            raise CheckInWindowClosed(
                f"Check-in closed at {deadline.strftime(TIME_FORMAT)}."
            )

        # ── Earliest check-in ───────────────────────────────────────
        opens_at = clock.at(today, policy.start_time) - timedelta(
            hours=settings.EARLY_CHECK_IN_HOURS
        )
        if now < opens_at:
            raise TooEarly(
                f"Check-in opens at {opens_at.strftime(TIME_FORMAT)}."
            )

        # ── Approved leave ──────────────────────────────────────────
        if parts == FULL_DAY:
            raise FullDayLeaveActive(
                "You are on approved leave for the whole day; no check-in needed."
            )

        target: time = policy.start_time
        if parts == {DayPart.morning}:
            if now < clock.at(today, policy.break_start_time):
                raise TooEarlyForHalfDay(
                    "Morning leave is approved; check in from "
                    f"{policy.break_start_time.strftime(TIME_FORMAT)}."
                )
            target = policy.break_end_time

        late_after = clock.at(today, target) + timedelta(minutes=policy.grace_minutes)
        is_late = now > late_after

        record = TimeRecord(
            employee_id=employee_id,
            work_date=today,
            check_in_time=now.astimezone(timezone.utc),
            is_late=is_late,
        )
        try:
            async with db.begin_nested():
                db.add(record)
                await db.flush()
        except IntegrityError:
            raise AlreadyCheckedIn("You have already checked in today.") from None

        logger.info(
            "Employee %s checked in on %s%s",
            employee_id, today, " (late)" if is_late else "",
        )
        message = (
            "Check-in successful, but recorded as late."
            if is_late else "Check-in successful."
        )
        return PunchResponse(message=message, record=TimeRecordOut.model_validate(record))

    # ── Check out ───────────────────────────────────────────────────

    @staticmethod
    async def check_out(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        clock: Clock = system_clock,
    ) -> PunchResponse:
        """Close today's TimeRecord. A rejected check-out changes nothing."""
        now = clock.now()
        today = now.date()

        record = await AttendanceGate._get_record(db, employee_id, today)
        if record is None:
            raise NoCheckInFound("No check-in found for today.")
        if record.check_out_time is not None:
            raise AlreadyCheckedOut("You have already checked out today.")

        policy = await PolicyService.get_policy(db)
        if policy is None:
            raise PolicyMissing("No attendance policy has been configured.")

        leave = await LeaveService.get_approved_leave_for_day(db, employee_id, today)
        if _has_half_afternoon(leave, today):
            earliest = clock.at(today, policy.break_start_time)
        else:
            earliest = clock.at(today, policy.end_time)
        if now < earliest:
            raise TooEarlyToCheckOut(
                f"Check-out opens at {earliest.strftime(TIME_FORMAT)}."
            )

        if now < clock.localize(record.check_in_time):
            raise CheckOutBeforeCheckIn("Check-out cannot be earlier than check-in.")

        record.check_out_time = now.astimezone(timezone.utc)
        await db.flush()

        logger.info("Employee %s checked out on %s", employee_id, today)
        return PunchResponse(
            message="Check-out successful.",
            record=TimeRecordOut.model_validate(record),
        )

    # ── History ─────────────────────────────────────────────────────

    @staticmethod
    async def get_attendance_history(
        db: AsyncSession,
        employee_id: uuid.UUID,
        from_date: date,
        to_date: date,
        *,
        clock: Clock = system_clock,
    ) -> list[AttendanceDay]:
        """One entry per calendar day in ``[from_date, to_date]``.

        Precedence: time record (present/late), approved leave, holiday,
        non-working weekday, then absent; absent future days are upcoming.
        """
        AttendanceGate._validate_date_range(from_date, to_date)

        policy = await PolicyService.get_policy(db)
        holidays = await PolicyService.get_non_working_dates(
            db, from_date, to_date, policy,
        )
        result = await db.execute(
            select(TimeRecord).where(
                TimeRecord.employee_id == employee_id,
                TimeRecord.work_date >= from_date,
                TimeRecord.work_date <= to_date,
            )
        )
        records = {r.work_date: r for r in result.scalars().all()}
        leaves = await LeaveService.get_approved_leaves_between(
            db, employee_id, from_date, to_date,
        )
        today = clock.today()

        history: list[AttendanceDay] = []
        for day in iter_dates(from_date, to_date):
            record = records.get(day)
            leave = next(
                (lv for lv in leaves if lv.start_date <= day <= lv.end_date), None,
            )
            details = ""

            if record is not None:
                status = DailyStatus.late if record.is_late else DailyStatus.present
                details = "Late arrival" if record.is_late else ""
            elif leave is not None:
                status = DailyStatus.leave
                details = leave.leave_type.type_name
            elif day in holidays:
                status = DailyStatus.holiday
            elif not is_working_weekday(day, policy):
                status = DailyStatus.weekend
            elif day > today:
                status = DailyStatus.upcoming
            else:
                status = DailyStatus.absent

            history.append(AttendanceDay(
                date=day,
                day=calendar.day_name[day.weekday()],
                status=status,
                check_in=_hhmm(clock, record.check_in_time) if record else None,
                check_out=_hhmm(clock, record.check_out_time) if record else None,
                details=details,
            ))
        return history

    @staticmethod
    async def get_monthly_late_summary(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        clock: Clock = system_clock,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> MonthlyLateSummary:
        """Late check-ins in a month (default: the current local month)."""
        today = clock.today()
        year = year or today.year
        month = month or today.month
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])

        result = await db.execute(
            select(func.count())
            .select_from(TimeRecord)
            .where(
                TimeRecord.employee_id == employee_id,
                TimeRecord.is_late.is_(True),
                TimeRecord.work_date >= first,
                TimeRecord.work_date <= last,
            )
        )
        late_count = result.scalar_one()
        limit = settings.MONTHLY_LATE_LIMIT
        return MonthlyLateSummary(
            year=year,
            month=month,
            late_count=late_count,
            late_limit=limit,
            is_exceeded=late_count > limit,
        )

    # ── Listings ────────────────────────────────────────────────────

    @staticmethod
    async def list_records(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> PaginatedResponse[TimeRecordOut]:
        """Time records, newest work date first."""
        query = select(TimeRecord).order_by(
            TimeRecord.work_date.desc(), TimeRecord.check_in_time.desc(),
        )
        if employee_id is not None:
            query = query.where(TimeRecord.employee_id == employee_id)
        if from_date is not None:
            query = query.where(TimeRecord.work_date >= from_date)
        if to_date is not None:
            query = query.where(TimeRecord.work_date <= to_date)

        rows, meta = await paginate(db, query, pagination)
        return PaginatedResponse[TimeRecordOut](
            data=[TimeRecordOut.model_validate(r) for r in rows],
            meta=meta,
        )
