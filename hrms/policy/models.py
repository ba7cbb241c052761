"""Policy ORM models: AttendancePolicy (single versioned row), Holiday."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import POLICY_ID
from hrms.database import Base


class AttendancePolicy(Base):
    """The company-wide work-time policy. Exactly one row, ``id = 1``."""

    __tablename__ = "attendance_policy"
    __table_args__ = (
        sa.CheckConstraint("grace_minutes >= 0", name="ck_policy_grace_non_negative"),
        sa.CheckConstraint("leave_gap_days >= 0", name="ck_policy_gap_non_negative"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, default=POLICY_ID)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    break_start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    break_end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    grace_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    # Weekday indices, 0 = Sunday … 6 = Saturday
    working_days: Mapped[list] = mapped_column(JSONB, nullable=False)
    leave_gap_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    # [{"date": "YYYY-MM-DD", "description": "..."}]
    special_holidays: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )

    __mapper_args__ = {"version_id_col": version}


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    holiday_date: Mapped[date] = mapped_column(sa.Date, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
