"""Leave ORM models: LeaveType, LeaveQuota, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import LeaveDuration, LeaveStatus
from hrms.core_hr.models import Employee
from hrms.database import Base


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    type_name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    is_paid: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    default_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    can_carry_forward: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False
    )
    max_carry_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<LeaveType {self.type_name}>"


class LeaveQuota(Base):
    """Per (employee, leave type, year) ledger row."""

    __tablename__ = "leave_quotas"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type_id", "year", name="uq_leave_quota"
        ),
        sa.CheckConstraint("used_days >= 0", name="ck_quota_used_non_negative"),
        sa.CheckConstraint(
            "total_days + carried_over_days - used_days >= 0",
            name="ck_quota_available_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    carried_over_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    used_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    leave_type: Mapped[LeaveType] = relationship(lazy="selectin")

    @property
    def available_days(self) -> Decimal:
        return (
            Decimal(self.total_days) + Decimal(self.carried_over_days)
            - Decimal(self.used_days)
        ).quantize(Decimal("0.01"))


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_request_dates"),
        sa.Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    start_duration: Mapped[LeaveDuration] = mapped_column(
        sa.Enum(LeaveDuration, name="leave_duration"),
        nullable=False,
        default=LeaveDuration.full,
    )
    end_duration: Mapped[LeaveDuration] = mapped_column(
        sa.Enum(LeaveDuration, name="leave_duration"),
        nullable=False,
        default=LeaveDuration.full,
    )
    # Sized once at submission; later policy edits never change it
    total_days_requested: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    attachment_ref: Mapped[Optional[str]] = mapped_column(sa.String(500))
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )
    approved_by_hr_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    approval_date: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    requested_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    leave_type: Mapped[LeaveType] = relationship(lazy="selectin")
    employee: Mapped[Employee] = relationship(
        foreign_keys=[employee_id], lazy="selectin"
    )

    @property
    def is_single_day(self) -> bool:
        return self.start_date == self.end_date
