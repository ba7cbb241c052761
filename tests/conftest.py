"""Shared test fixtures — async DB, client, fixed clock, collaborators, factories.

Reusable across all test modules (policy, leave, attendance, notifications).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrms.common.after_commit import discard_after_commit, run_after_commit
from hrms.common.clock import Clock
from hrms.common.constants import LeaveDuration, LeaveStatus, UserRole
from hrms.config import settings
from hrms.database import Base, get_db
from hrms.dependencies import get_clock, get_file_store, get_notifier
from hrms.files.store import FileStore
from hrms.main import create_app
from hrms.notifications.schemas import NotificationEvent
from hrms.notifications.service import Notifier

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrms.attendance.models  # noqa: F401
import hrms.core_hr.models  # noqa: F401
import hrms.leave.models  # noqa: F401
import hrms.notifications.models  # noqa: F401
import hrms.policy.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f"),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrms.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            discard_after_commit(session)
            await session.rollback()
            raise
        else:
            await run_after_commit(session)
        finally:
            await session.close()


# ── Clock / collaborators ───────────────────────────────────────────

TZ = "Asia/Bangkok"


class FixedClock(Clock):
    """Clock frozen at ``current`` until a test moves it."""

    def __init__(self, current: Optional[datetime] = None) -> None:
        super().__init__(TZ)
        self.current = current or datetime(2025, 3, 3, 9, 0, tzinfo=self.tz)

    def now(self) -> datetime:
        return self.current

    def set(self, day: date, hour: int, minute: int = 0) -> None:
        self.current = datetime.combine(day, time(hour, minute), tzinfo=self.tz)


class RecordingNotifier(Notifier):
    """Collects every pushed event as ``(employee_id, event)``."""

    def __init__(self) -> None:
        self.sent: list[tuple[uuid.UUID, NotificationEvent]] = []

    async def notify(self, employee_id: uuid.UUID, event: NotificationEvent) -> None:
        self.sent.append((employee_id, event))


@pytest.fixture
def clock() -> FixedClock:
    """Monday 2025-03-03 09:00 Asia/Bangkok."""
    return FixedClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def file_store() -> AsyncMock:
    return AsyncMock(spec=FileStore)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(clock, notifier, file_store):
    """Create a fresh app instance with DB and collaborators overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_notifier] = lambda: notifier
    application.dependency_overrides[get_file_store] = lambda: file_store
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


async def commit_and_push(db: AsyncSession) -> None:
    """Commit like ``get_db`` does, then send the pushes queued meanwhile."""
    await db.commit()
    await run_after_commit(db)


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    role: UserRole = UserRole.worker,
    first_name: str = "Somchai",
    last_name: str = "Jaidee",
    is_active: bool = True,
) -> dict:
    code = f"EMP-{uuid.uuid4().hex[:6].upper()}"
    return dict(
        id=uuid.uuid4(),
        employee_code=code,
        first_name=first_name,
        last_name=last_name,
        email=f"{code.lower()}@example.com",
        role=role,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs):
    from hrms.core_hr.models import Employee

    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.commit()
    return employee


async def seed_policy(
    db: AsyncSession,
    *,
    grace_minutes: int = 5,
    working_days: Optional[list[int]] = None,
    leave_gap_days: int = 0,
    special_holidays: Optional[list[dict]] = None,
):
    """09:00–18:00 with a 12:00–13:00 break, Monday–Friday."""
    from hrms.policy.models import AttendancePolicy

    policy = AttendancePolicy(
        id=1,
        start_time=time(9, 0),
        end_time=time(18, 0),
        break_start_time=time(12, 0),
        break_end_time=time(13, 0),
        grace_minutes=grace_minutes,
        working_days=working_days if working_days is not None else [1, 2, 3, 4, 5],
        leave_gap_days=leave_gap_days,
        special_holidays=special_holidays or [],
    )
    db.add(policy)
    await db.commit()
    return policy


async def seed_leave_type(
    db: AsyncSession,
    *,
    type_name: str = "Annual Leave",
    is_paid: bool = True,
    default_days: Decimal = Decimal("6"),
    can_carry_forward: bool = True,
    max_carry_days: Decimal = Decimal("5"),
):
    from hrms.leave.models import LeaveType

    leave_type = LeaveType(
        type_name=type_name,
        is_paid=is_paid,
        default_days=default_days,
        can_carry_forward=can_carry_forward,
        max_carry_days=max_carry_days,
    )
    db.add(leave_type)
    await db.commit()
    return leave_type


async def seed_quota(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    year: int = 2025,
    total_days: Decimal = Decimal("10"),
    carried_over_days: Decimal = Decimal("0"),
    used_days: Decimal = Decimal("0"),
):
    from hrms.leave.models import LeaveQuota

    quota = LeaveQuota(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        year=year,
        total_days=total_days,
        carried_over_days=carried_over_days,
        used_days=used_days,
    )
    db.add(quota)
    await db.commit()
    return quota


async def seed_leave_request(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    start_date: date,
    end_date: date,
    *,
    status: LeaveStatus = LeaveStatus.approved,
    start_duration: LeaveDuration = LeaveDuration.full,
    end_duration: LeaveDuration = LeaveDuration.full,
    total_days: Decimal = Decimal("1"),
):
    """Insert a request directly, bypassing submission guards."""
    from hrms.leave.models import LeaveRequest

    leave_request = LeaveRequest(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        start_date=start_date,
        end_date=end_date,
        start_duration=start_duration,
        end_duration=end_duration,
        total_days_requested=total_days,
        status=status,
        requested_at=datetime.now(timezone.utc),
    )
    db.add(leave_request)
    await db.commit()
    return leave_request


@pytest.fixture
async def worker(db):
    return await seed_employee(db)


@pytest.fixture
async def hr(db):
    return await seed_employee(db, role=UserRole.hr, first_name="Malee", last_name="Srisuk")


@pytest.fixture
async def policy(db):
    return await seed_policy(db)


@pytest.fixture
async def annual(db):
    return await seed_leave_type(db)


@pytest.fixture
async def unpaid(db):
    return await seed_leave_type(
        db,
        type_name="Unpaid Leave",
        is_paid=False,
        default_days=Decimal("0"),
        can_carry_forward=False,
        max_carry_days=Decimal("0"),
    )


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.worker,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=8)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.role)}"}
