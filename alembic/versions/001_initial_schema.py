"""001 – Initial schema: employees, policy, holidays, leave, attendance, notifications.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+07:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["worker", "hr"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("leave_duration", ["full", "half_morning", "half_afternoon"]),
    (
        "notification_type",
        ["new_request", "approval", "rejection", "request_cancelled"],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code VARCHAR(20)  NOT NULL UNIQUE,
            first_name    VARCHAR(100) NOT NULL,
            last_name     VARCHAR(100) NOT NULL,
            email         VARCHAR(255) NOT NULL UNIQUE,
            role          user_role NOT NULL DEFAULT 'worker',
            is_active     BOOLEAN NOT NULL DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. attendance_policy ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_policy (
            id               INTEGER PRIMARY KEY DEFAULT 1 CHECK (id = 1),
            start_time       TIME NOT NULL,
            end_time         TIME NOT NULL,
            break_start_time TIME NOT NULL,
            break_end_time   TIME NOT NULL,
            grace_minutes    INTEGER NOT NULL DEFAULT 0,
            working_days     JSONB NOT NULL DEFAULT '[1, 2, 3, 4, 5]',
            leave_gap_days   INTEGER NOT NULL DEFAULT 0,
            special_holidays JSONB NOT NULL DEFAULT '[]',
            version          INTEGER NOT NULL DEFAULT 1,
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_by       UUID REFERENCES employees(id),
            CONSTRAINT ck_policy_grace_non_negative CHECK (grace_minutes >= 0),
            CONSTRAINT ck_policy_gap_non_negative CHECK (leave_gap_days >= 0),
            CONSTRAINT ck_policy_time_order CHECK (
                start_time < break_start_time
                AND break_start_time < break_end_time
                AND break_end_time < end_time
            )
        )
    """)

    # ── 3. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            holiday_date DATE NOT NULL UNIQUE,
            name         VARCHAR(200) NOT NULL,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 4. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            type_name         VARCHAR(100) NOT NULL UNIQUE,
            is_paid           BOOLEAN NOT NULL DEFAULT TRUE,
            default_days      NUMERIC(6,2) NOT NULL DEFAULT 0,
            can_carry_forward BOOLEAN NOT NULL DEFAULT FALSE,
            max_carry_days    NUMERIC(6,2) NOT NULL DEFAULT 0,
            created_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. leave_quotas ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_quotas (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id),
            year              INTEGER NOT NULL,
            total_days        NUMERIC(6,2) NOT NULL DEFAULT 0,
            carried_over_days NUMERIC(6,2) NOT NULL DEFAULT 0,
            used_days         NUMERIC(6,2) NOT NULL DEFAULT 0,
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_quota UNIQUE (employee_id, leave_type_id, year),
            CONSTRAINT ck_quota_used_non_negative CHECK (used_days >= 0),
            CONSTRAINT ck_quota_available_non_negative
                CHECK (total_days + carried_over_days - used_days >= 0)
        )
    """)

    # ── 6. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id          UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id        UUID NOT NULL REFERENCES leave_types(id),
            start_date           DATE NOT NULL,
            end_date             DATE NOT NULL,
            start_duration       leave_duration NOT NULL DEFAULT 'full',
            end_duration         leave_duration NOT NULL DEFAULT 'full',
            total_days_requested NUMERIC(6,2) NOT NULL,
            reason               TEXT,
            attachment_ref       VARCHAR(500),
            status               leave_status NOT NULL DEFAULT 'pending',
            approved_by_hr_id    UUID REFERENCES employees(id),
            approval_date        TIMESTAMPTZ,
            requested_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (start_date <= end_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee_dates
            ON leave_requests(employee_id, start_date, end_date)
    """)
    op.execute("CREATE INDEX ix_leave_requests_status ON leave_requests(status)")

    # ── 7. time_records ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE time_records (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            work_date      DATE NOT NULL,
            check_in_time  TIMESTAMPTZ NOT NULL,
            check_out_time TIMESTAMPTZ,
            is_late        BOOLEAN NOT NULL DEFAULT FALSE,
            CONSTRAINT uq_time_record_employee_date UNIQUE (employee_id, work_date)
        )
    """)
    op.execute("CREATE INDEX ix_time_records_work_date ON time_records(work_date)")

    # ── 8. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type             notification_type NOT NULL,
            title            VARCHAR(200) NOT NULL,
            message          TEXT NOT NULL,
            leave_request_id UUID REFERENCES leave_requests(id) ON DELETE SET NULL,
            is_read          BOOLEAN NOT NULL DEFAULT FALSE,
            read_at          TIMESTAMPTZ,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX idx_notif_recipient_read
            ON notifications(recipient_id, is_read)
    """)
    op.execute("CREATE INDEX ix_notifications_recipient_id ON notifications(recipient_id)")

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    op.execute("""
        INSERT INTO leave_types
            (type_name, is_paid, default_days, can_carry_forward, max_carry_days)
        VALUES
            ('Annual Leave', TRUE,   6, TRUE,  5),
            ('Sick Leave',   TRUE,  30, FALSE, 0),
            ('Unpaid Leave', FALSE,  0, FALSE, 0)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "notifications",
        "time_records",
        "leave_requests",
        "leave_quotas",
        "leave_types",
        "holidays",
        "attendance_policy",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
