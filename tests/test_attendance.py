"""Attendance gate test suite — check-in/out guards, lateness, history, summaries.

Policy under test: 09:00–18:00, break 12:00–13:00, 5 grace minutes,
Monday–Friday, Asia/Bangkok. 2025-03-03 is a Monday.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select

from hrms.attendance.models import TimeRecord
from hrms.attendance.service import AttendanceGate
from hrms.common.constants import DailyStatus, LeaveDuration, LeaveStatus
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
from hrms.policy.models import Holiday
from tests.conftest import auth_header, seed_leave_request, seed_policy

MONDAY = date(2025, 3, 3)
BANGKOK = ZoneInfo("Asia/Bangkok")


def _local(day: date, hour: int, minute: int = 0) -> datetime:
    """A Bangkok wall-clock time stored as UTC, as the gate stores it."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=BANGKOK).astimezone(
        timezone.utc
    )


async def _seed_record(db, employee_id, day, *, hour=8, minute=55, is_late=False, out_hour=None):
    record = TimeRecord(
        employee_id=employee_id,
        work_date=day,
        check_in_time=_local(day, hour, minute),
        check_out_time=_local(day, out_hour) if out_hour is not None else None,
        is_late=is_late,
    )
    db.add(record)
    await db.commit()
    return record


# ═════════════════════════════════════════════════════════════════════
# 1. Check in
# ═════════════════════════════════════════════════════════════════════


class TestCheckIn:
    """Tests for AttendanceGate.check_in()."""

    async def test_within_grace_is_on_time(self, db, worker, policy, clock):
        clock.set(MONDAY, 9, 4)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)

        assert result.record.is_late is False
        assert result.record.work_date == MONDAY
        assert result.message == "Check-in successful."

    async def test_after_grace_is_late(self, db, worker, policy, clock):
        clock.set(MONDAY, 9, 6)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)

        assert result.record.is_late is True
        assert "late" in result.message

    async def test_exactly_at_grace_boundary_is_on_time(self, db, worker, policy, clock):
        clock.set(MONDAY, 9, 5)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)
        assert result.record.is_late is False

    async def test_second_check_in_same_day_rejected(self, db, worker, policy, clock):
        clock.set(MONDAY, 8, 50)
        await AttendanceGate.check_in(db, worker.id, clock=clock)

        clock.set(MONDAY, 9, 30)
        with pytest.raises(AlreadyCheckedIn):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

    async def test_concurrent_check_in_caught_by_unique_constraint(
        self, db, worker, policy, clock, monkeypatch,
    ):
        clock.set(MONDAY, 8, 50)
        first = await AttendanceGate.check_in(db, worker.id, clock=clock)

        # A racing request read the day before the first insert landed
        async def stale_read(db, employee_id, work_date):
            return None

        monkeypatch.setattr(AttendanceGate, "_get_record", staticmethod(stale_read))
        clock.set(MONDAY, 8, 55)
        with pytest.raises(AlreadyCheckedIn):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

        rows = (await db.execute(
            select(TimeRecord).where(TimeRecord.employee_id == worker.id)
        )).scalars().all()
        assert [r.id for r in rows] == [first.record.id]

    async def test_no_policy(self, db, worker, clock):
        with pytest.raises(PolicyMissing):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

    async def test_special_holiday_blocks_check_in(self, db, worker, clock):
        await seed_policy(db, special_holidays=[{"date": "2025-03-03", "description": "Founders Day"}])
        with pytest.raises(SpecialHoliday):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

    async def test_before_window_opens(self, db, worker, policy, clock):
        clock.set(MONDAY, 4, 59)
        with pytest.raises(TooEarly):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

        clock.set(MONDAY, 5, 0)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)
        assert result.record.is_late is False

    async def test_after_end_of_day(self, db, worker, policy, clock):
        clock.set(MONDAY, 18, 1)
        with pytest.raises(CheckInWindowClosed):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

    async def test_full_day_leave_blocks_check_in(self, db, worker, policy, annual, clock):
        await seed_leave_request(db, worker.id, annual.id, MONDAY, MONDAY)
        with pytest.raises(FullDayLeaveActive):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

    async def test_pending_leave_does_not_block(self, db, worker, policy, annual, clock):
        await seed_leave_request(
            db, worker.id, annual.id, MONDAY, MONDAY, status=LeaveStatus.pending,
        )
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)
        assert result.record.is_late is False

    async def test_morning_leave_shifts_start_to_break_end(
        self, db, worker, policy, annual, clock,
    ):
        await seed_leave_request(
            db, worker.id, annual.id, MONDAY, MONDAY,
            start_duration=LeaveDuration.half_morning, total_days=Decimal("0.5"),
        )

        clock.set(MONDAY, 11, 0)
        with pytest.raises(TooEarlyForHalfDay):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

        clock.set(MONDAY, 13, 4)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)
        assert result.record.is_late is False

    async def test_morning_leave_late_after_break_end_grace(
        self, db, worker, policy, annual, clock,
    ):
        await seed_leave_request(
            db, worker.id, annual.id, MONDAY, MONDAY,
            start_duration=LeaveDuration.half_morning, total_days=Decimal("0.5"),
        )
        clock.set(MONDAY, 13, 10)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)
        assert result.record.is_late is True

    async def test_afternoon_leave_closes_window_at_break_start(
        self, db, worker, policy, annual, clock,
    ):
        await seed_leave_request(
            db, worker.id, annual.id, MONDAY, MONDAY,
            end_duration=LeaveDuration.half_afternoon, total_days=Decimal("0.5"),
        )
        clock.set(MONDAY, 12, 1)
        with pytest.raises(CheckInWindowClosed):
            await AttendanceGate.check_in(db, worker.id, clock=clock)

    async def test_multi_day_leave_ending_with_morning_half(
        self, db, worker, policy, annual, clock,
    ):
        # Fri 28 Feb → Mon 3 Mar (morning only): Monday afternoon is worked
        await seed_leave_request(
            db, worker.id, annual.id, date(2025, 2, 28), MONDAY,
            end_duration=LeaveDuration.half_morning, total_days=Decimal("1.5"),
        )
        clock.set(MONDAY, 13, 0)
        result = await AttendanceGate.check_in(db, worker.id, clock=clock)
        assert result.record.is_late is False


# ═════════════════════════════════════════════════════════════════════
# 2. Check out
# ═════════════════════════════════════════════════════════════════════


class TestCheckOut:
    """Tests for AttendanceGate.check_out()."""

    async def test_early_check_out_rejected_and_record_unchanged(self, db, worker, policy, clock):
        clock.set(MONDAY, 8, 50)
        await AttendanceGate.check_in(db, worker.id, clock=clock)

        clock.set(MONDAY, 17, 30)
        with pytest.raises(TooEarlyToCheckOut):
            await AttendanceGate.check_out(db, worker.id, clock=clock)

        record = (await db.execute(select(TimeRecord))).scalars().one()
        assert record.check_out_time is None

        clock.set(MONDAY, 18, 5)
        result = await AttendanceGate.check_out(db, worker.id, clock=clock)
        assert result.record.check_out_time is not None
        assert result.record.is_late is False

    async def test_no_check_in(self, db, worker, policy, clock):
        clock.set(MONDAY, 18, 30)
        with pytest.raises(NoCheckInFound):
            await AttendanceGate.check_out(db, worker.id, clock=clock)

    async def test_second_check_out_rejected(self, db, worker, policy, clock):
        await _seed_record(db, worker.id, MONDAY, out_hour=18)
        clock.set(MONDAY, 18, 30)
        with pytest.raises(AlreadyCheckedOut):
            await AttendanceGate.check_out(db, worker.id, clock=clock)

    async def test_afternoon_leave_allows_leaving_at_break_start(
        self, db, worker, policy, annual, clock,
    ):
        await seed_leave_request(
            db, worker.id, annual.id, MONDAY, MONDAY,
            start_duration=LeaveDuration.half_afternoon, total_days=Decimal("0.5"),
        )
        await AttendanceGate.check_in(db, worker.id, clock=clock)

        clock.set(MONDAY, 11, 59)
        with pytest.raises(TooEarlyToCheckOut):
            await AttendanceGate.check_out(db, worker.id, clock=clock)

        clock.set(MONDAY, 12, 0)
        result = await AttendanceGate.check_out(db, worker.id, clock=clock)
        assert result.message == "Check-out successful."

    async def test_check_out_cannot_precede_check_in(self, db, worker, policy, clock):
        await _seed_record(db, worker.id, MONDAY, hour=18, minute=30)
        clock.set(MONDAY, 18, 10)
        with pytest.raises(CheckOutBeforeCheckIn):
            await AttendanceGate.check_out(db, worker.id, clock=clock)


# ═════════════════════════════════════════════════════════════════════
# 3. History / summaries
# ═════════════════════════════════════════════════════════════════════


class TestHistory:

    async def test_daily_statuses(self, client, db, worker, policy, annual, clock):
        # Today: Wednesday 2025-03-05
        clock.set(date(2025, 3, 5), 12)
        await _seed_record(db, worker.id, MONDAY, out_hour=18)
        await _seed_record(db, worker.id, date(2025, 3, 4), hour=9, minute=20, is_late=True)
        await seed_leave_request(db, worker.id, annual.id, date(2025, 3, 5), date(2025, 3, 5))
        db.add(Holiday(holiday_date=date(2025, 3, 6), name="Company Day"))
        await db.commit()

        resp = await client.get(
            "/api/v1/attendance/history",
            params={"from_date": "2025-02-28", "to_date": "2025-03-09"},
            headers=auth_header(worker),
        )

        assert resp.status_code == 200
        days = {d["date"]: d for d in resp.json()}
        assert days["2025-02-28"]["status"] == DailyStatus.absent.value
        assert days["2025-03-01"]["status"] == DailyStatus.weekend.value
        assert days["2025-03-03"]["status"] == DailyStatus.present.value
        assert days["2025-03-03"]["check_in"] == "08:55"
        assert days["2025-03-03"]["check_out"] == "18:00"
        assert days["2025-03-04"]["status"] == DailyStatus.late.value
        assert days["2025-03-05"]["status"] == DailyStatus.leave.value
        assert days["2025-03-05"]["details"] == "Annual Leave"
        assert days["2025-03-06"]["status"] == DailyStatus.holiday.value
        assert days["2025-03-07"]["status"] == DailyStatus.upcoming.value
        assert days["2025-03-09"]["day"] == "Sunday"
        assert len(days) == 10

    async def test_range_too_long_rejected(self, db, worker, policy, clock):
        with pytest.raises(ValidationException):
            await AttendanceGate.get_attendance_history(
                db, worker.id, date(2025, 1, 1), date(2025, 6, 1), clock=clock,
            )

    async def test_monthly_late_summary(self, db, worker, policy, clock):
        for day in (3, 4, 5, 6, 7, 10):
            await _seed_record(db, worker.id, date(2025, 3, day), hour=9, minute=30, is_late=True)
        await _seed_record(db, worker.id, date(2025, 2, 28), hour=9, minute=30, is_late=True)
        await _seed_record(db, worker.id, date(2025, 3, 11))

        summary = await AttendanceGate.get_monthly_late_summary(db, worker.id, clock=clock)

        assert (summary.year, summary.month) == (2025, 3)
        assert summary.late_count == 6
        assert summary.late_limit == 5
        assert summary.is_exceeded is True

    async def test_at_limit_is_not_exceeded(self, db, worker, policy, clock):
        for day in (3, 4, 5, 6, 7):
            await _seed_record(db, worker.id, date(2025, 3, day), hour=9, minute=30, is_late=True)
        summary = await AttendanceGate.get_monthly_late_summary(db, worker.id, clock=clock)
        assert summary.is_exceeded is False


# ═════════════════════════════════════════════════════════════════════
# 4. API endpoints
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceAPI:

    async def test_check_in_and_duplicate(self, client, worker, policy, clock):
        clock.set(MONDAY, 9, 10)
        resp = await client.post("/api/v1/attendance/check-in", headers=auth_header(worker))
        assert resp.status_code == 201
        assert resp.json()["record"]["is_late"] is True

        resp = await client.post("/api/v1/attendance/check-in", headers=auth_header(worker))
        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/already-checked-in")

    async def test_policy_missing_is_problem_detail(self, client, worker):
        resp = await client.post("/api/v1/attendance/check-in", headers=auth_header(worker))
        assert resp.status_code == 422
        assert resp.json()["type"].endswith("/policy-missing")

    async def test_records_listing_is_hr_only(self, client, db, worker, hr, policy):
        await _seed_record(db, worker.id, MONDAY)

        resp = await client.get("/api/v1/attendance/records", headers=auth_header(worker))
        assert resp.status_code == 403

        resp = await client.get("/api/v1/attendance/records", headers=auth_header(hr))
        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["employee_id"] == str(worker.id)
