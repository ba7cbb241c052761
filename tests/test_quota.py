"""Quota ledger tests — availability, guarded debit, credit, HR administration."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import LeaveStatus
from hrms.common.exceptions import QuotaExceeded, QuotaNotConfigured, ValidationException
from hrms.leave.quota import QuotaLedger
from hrms.leave.schemas import QuotaAssignment
from tests.conftest import seed_leave_request, seed_leave_type, seed_quota


class TestCheckAvailability:

    async def test_enough_days(self, db: AsyncSession, worker, annual):
        await seed_quota(db, worker.id, annual.id, total_days=Decimal("5"))
        check = await QuotaLedger.check_availability(db, worker.id, annual.id, Decimal("5"), 2025)
        assert check.ok is True
        assert check.available_days == Decimal("5")

    async def test_exceeded_reports_available_and_requested(self, db: AsyncSession, worker, annual):
        await seed_quota(db, worker.id, annual.id, total_days=Decimal("2"), used_days=Decimal("1.5"))
        with pytest.raises(QuotaExceeded) as exc_info:
            await QuotaLedger.check_availability(db, worker.id, annual.id, Decimal("1"), 2025)
        assert exc_info.value.status_code == 409
        assert exc_info.value.errors == {"available": "0.50", "requested": "1.00"}

    async def test_missing_row(self, db: AsyncSession, worker, annual):
        with pytest.raises(QuotaNotConfigured):
            await QuotaLedger.check_availability(db, worker.id, annual.id, Decimal("1"), 2025)

    async def test_unpaid_type_always_passes(self, db: AsyncSession, worker, unpaid):
        check = await QuotaLedger.check_availability(db, worker.id, unpaid.id, Decimal("40"), 2025)
        assert check.ok is True
        assert check.available_days is None

    async def test_pending_requests_are_reserved(self, db: AsyncSession, worker, annual):
        await seed_quota(db, worker.id, annual.id, total_days=Decimal("3"))
        await seed_leave_request(
            db, worker.id, annual.id, date(2025, 3, 10), date(2025, 3, 11),
            status=LeaveStatus.pending, total_days=Decimal("2"),
        )
        await QuotaLedger.check_availability(db, worker.id, annual.id, Decimal("2"), 2025)
        with pytest.raises(QuotaExceeded):
            await QuotaLedger.check_availability(
                db, worker.id, annual.id, Decimal("2"), 2025, include_pending=True,
            )


class TestDebitCredit:

    async def test_debit_increments_used(self, db: AsyncSession, worker, annual):
        quota = await seed_quota(db, worker.id, annual.id, total_days=Decimal("5"))
        await QuotaLedger.debit(db, worker.id, annual.id, 2025, Decimal("1.5"))
        await db.refresh(quota)
        assert quota.used_days == Decimal("1.5")
        assert quota.available_days == Decimal("3.50")

    async def test_debit_that_would_overdraw_changes_nothing(self, db: AsyncSession, worker, annual):
        quota = await seed_quota(db, worker.id, annual.id, total_days=Decimal("1"))
        with pytest.raises(QuotaExceeded):
            await QuotaLedger.debit(db, worker.id, annual.id, 2025, Decimal("2"))
        await db.refresh(quota)
        assert quota.used_days == Decimal("0")

    async def test_debit_without_quota_row_is_a_silent_no_op(self, db: AsyncSession, worker, annual):
        await QuotaLedger.debit(db, worker.id, annual.id, 2025, Decimal("3"))
        assert await QuotaLedger.get_quota(db, worker.id, annual.id, 2025) is None

    async def test_debit_of_unpaid_type_is_a_no_op(self, db: AsyncSession, worker, unpaid):
        quota = await seed_quota(db, worker.id, unpaid.id, total_days=Decimal("0"))
        await QuotaLedger.debit(db, worker.id, unpaid.id, 2025, Decimal("3"))
        await db.refresh(quota)
        assert quota.used_days == Decimal("0")

    async def test_credit_floors_at_zero(self, db: AsyncSession, worker, annual):
        quota = await seed_quota(db, worker.id, annual.id, used_days=Decimal("1"))
        await QuotaLedger.credit(db, worker.id, annual.id, 2025, Decimal("2.5"))
        await db.refresh(quota)
        assert quota.used_days == Decimal("0")

    async def test_carried_days_count_towards_availability(self, db: AsyncSession, worker, annual):
        await seed_quota(
            db, worker.id, annual.id,
            total_days=Decimal("1"), carried_over_days=Decimal("2"),
        )
        await QuotaLedger.debit(db, worker.id, annual.id, 2025, Decimal("3"))
        quota = await QuotaLedger.get_quota(db, worker.id, annual.id, 2025)
        await db.refresh(quota)
        assert quota.available_days == Decimal("0")


class TestQuotaAdministration:

    async def test_set_quotas_creates_and_updates(self, db: AsyncSession, worker, annual):
        sick = await seed_leave_type(db, type_name="Sick Leave", can_carry_forward=False)
        await seed_quota(db, worker.id, annual.id, total_days=Decimal("6"), used_days=Decimal("2"))

        quotas = await QuotaLedger.set_quotas(db, worker.id, 2025, [
            QuotaAssignment(leave_type_id=annual.id, total_days=Decimal("8")),
            QuotaAssignment(leave_type_id=sick.id, total_days=Decimal("30")),
        ])

        by_name = {q.leave_type.type_name: q for q in quotas}
        assert by_name["Annual Leave"].total_days == Decimal("8")
        assert by_name["Annual Leave"].used_days == Decimal("2")
        assert by_name["Sick Leave"].total_days == Decimal("30")

    async def test_set_quota_below_used_rejected(self, db: AsyncSession, worker, annual):
        await seed_quota(db, worker.id, annual.id, total_days=Decimal("6"), used_days=Decimal("4"))
        with pytest.raises(ValidationException):
            await QuotaLedger.set_quotas(db, worker.id, 2025, [
                QuotaAssignment(leave_type_id=annual.id, total_days=Decimal("3")),
            ])

    async def test_seed_default_quotas_only_fills_gaps(self, db: AsyncSession, worker, annual, unpaid):
        await seed_quota(db, worker.id, annual.id, total_days=Decimal("2"))
        quotas = await QuotaLedger.seed_default_quotas(db, worker.id, 2025)

        by_name = {q.leave_type.type_name: q for q in quotas}
        assert by_name["Annual Leave"].total_days == Decimal("2")
        assert by_name["Unpaid Leave"].total_days == Decimal("0")
        assert len(quotas) == 2
