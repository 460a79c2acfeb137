"""001 – Initial schema: directory, leave ledger, requests, routing, permissions.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:30:00.000000+00:00
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
    ("user_role", ["admin", "hr", "manager", "employee"]),
    (
        "permission",
        [
            "leave.request",
            "leave.approve",
            "leave.configure",
            "approvers.manage",
            "permissions.manage",
        ],
    ),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
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
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. organizations ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            code        VARCHAR(50)  NOT NULL UNIQUE,
            name        VARCHAR(200) NOT NULL,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id),
            name            VARCHAR(150) NOT NULL,
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_dept_org_name UNIQUE (organization_id, name)
        )
    """)

    # ── 3. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id),
            department_id   UUID REFERENCES departments(id),
            employee_code   VARCHAR(20)  NOT NULL UNIQUE,
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100) NOT NULL,
            email           VARCHAR(255) NOT NULL UNIQUE,
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")

    # ── 4. role_assignments / role_permissions ────────────────────────────
    op.execute("""
        CREATE TABLE role_assignments (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role        user_role NOT NULL,
            assigned_by UUID REFERENCES employees(id),
            assigned_at TIMESTAMPTZ DEFAULT NOW(),
            revoked_at  TIMESTAMPTZ,
            is_active   BOOLEAN DEFAULT TRUE
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_role_active
            ON role_assignments(employee_id)
            WHERE is_active = TRUE
    """)

    op.execute("""
        CREATE TABLE role_permissions (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            role            user_role  NOT NULL,
            permission      permission NOT NULL,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_role_permission UNIQUE (organization_id, role, permission)
        )
    """)

    # ── 5. leave_categories ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_categories (
            id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id         UUID NOT NULL REFERENCES organizations(id),
            code                    VARCHAR(30)  NOT NULL,
            name                    VARCHAR(100) NOT NULL,
            description             TEXT,
            default_allowance       INTEGER,          -- NULL = unbounded
            max_paid_days           INTEGER,
            requires_document       BOOLEAN NOT NULL DEFAULT FALSE,
            requires_advance_notice BOOLEAN NOT NULL DEFAULT FALSE,
            notice_days             INTEGER NOT NULL DEFAULT 0,
            is_active               BOOLEAN NOT NULL DEFAULT TRUE,
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_category_org_code UNIQUE (organization_id, code),
            CONSTRAINT ck_leave_category_notice CHECK (notice_days >= 0)
        )
    """)

    # ── 6. leave_entitlements ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_entitlements (
            id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            leave_category_id UUID NOT NULL REFERENCES leave_categories(id),
            year              INTEGER NOT NULL,
            granted           INTEGER NOT NULL DEFAULT 0,
            carried_over      INTEGER NOT NULL DEFAULT 0,
            used              INTEGER NOT NULL DEFAULT 0,
            pending           INTEGER NOT NULL DEFAULT 0,
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_entitlement UNIQUE (employee_id, leave_category_id, year),
            CONSTRAINT ck_leave_entitlement_used    CHECK (used >= 0),
            CONSTRAINT ck_leave_entitlement_pending CHECK (pending >= 0),
            CONSTRAINT ck_leave_entitlement_available
                CHECK (granted + carried_over - used - pending >= 0)
        )
    """)

    # ── 7. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            leave_category_id UUID NOT NULL REFERENCES leave_categories(id),
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            total_days        INTEGER NOT NULL,
            reserved          BOOLEAN NOT NULL DEFAULT FALSE,
            reason            TEXT NOT NULL,
            document_ref      TEXT,
            status            leave_status NOT NULL DEFAULT 'pending',
            decided_by        UUID REFERENCES employees(id),
            decided_at        TIMESTAMPTZ,
            decision_note     TEXT,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_total_days CHECK (total_days >= 1)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_status "
        "ON leave_requests(employee_id, status)"
    )
    op.execute(
        "CREATE INDEX idx_leave_requests_pending "
        "ON leave_requests(created_at DESC) WHERE status = 'pending'"
    )

    # ── 8. department_approvers ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE department_approvers (
            id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            department_id UUID NOT NULL REFERENCES departments(id) ON DELETE CASCADE,
            approver_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            "order"       INTEGER NOT NULL,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_department_approver UNIQUE (department_id, approver_id),
            CONSTRAINT ck_department_approver_order CHECK ("order" >= 1)
        )
    """)
    op.execute(
        "CREATE INDEX ix_department_approvers_approver "
        "ON department_approvers(approver_id)"
    )

    # ── 9. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "department_approvers",
        "leave_requests",
        "leave_entitlements",
        "leave_categories",
        "role_permissions",
        "role_assignments",
        "employees",
        "departments",
        "organizations",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
