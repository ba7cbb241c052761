"""Attendance ORM models: TimeRecord."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.core_hr.models import Employee
from hrms.database import Base


class TimeRecord(Base):
    """One check-in/check-out pair per employee per local work date."""

    __tablename__ = "time_records"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "work_date", name="uq_time_record_employee_date"),
        sa.Index("ix_time_records_work_date", "work_date"),
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
    work_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    check_in_time: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    check_out_time: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    # Decided once at check-in; policy edits never change it
    is_late: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    # Relationships
    employee: Mapped[Employee] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<TimeRecord {self.employee_id} {self.work_date}>"
