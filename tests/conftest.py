"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

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

from hrcore.auth.service import AuthorizationService
from hrcore.common.constants import Role
from hrcore.config import settings
from hrcore.database import Base, get_db
from hrcore.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrcore.approvals.models  # noqa: F401
import hrcore.auth.models  # noqa: F401
import hrcore.common.audit  # noqa: F401
import hrcore.leave.models  # noqa: F401
import hrcore.organization.models  # noqa: F401

from hrcore.approvals.models import ApprovalAssignment
from hrcore.auth.models import RoleAssignment
from hrcore.leave.models import EntitlementRecord, LeaveCategory
from hrcore.organization.models import Department, Employee, Organization

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

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
YEAR = 2026

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
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
    from hrcore.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
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


# ── Model factories ─────────────────────────────────────────────────

def _now() -> datetime:
    return datetime.now(timezone.utc)


async def add_department(db: AsyncSession, organization_id: uuid.UUID, name: str) -> Department:
    department = Department(
        id=uuid.uuid4(),
        organization_id=organization_id,
        name=name,
        is_active=True,
        created_at=_now(),
    )
    db.add(department)
    await db.flush()
    return department


async def add_employee(
    db: AsyncSession,
    organization_id: uuid.UUID,
    department_id: Optional[uuid.UUID],
    *,
    first_name: str,
    role: Role = Role.employee,
    is_active: bool = True,
) -> Employee:
    """Insert an employee and, unless plain ``employee``, an active role."""
    employee = Employee(
        id=uuid.uuid4(),
        organization_id=organization_id,
        department_id=department_id,
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name="Tester",
        email=f"{first_name.lower()}.{uuid.uuid4().hex[:6]}@example.com",
        is_active=is_active,
        created_at=_now(),
    )
    db.add(employee)
    await db.flush()
    if role != Role.employee:
        db.add(RoleAssignment(
            employee_id=employee.id,
            role=role,
            assigned_at=_now(),
            is_active=True,
        ))
        await db.flush()
    return employee


async def add_category(
    db: AsyncSession,
    organization_id: uuid.UUID,
    code: str,
    *,
    default_allowance: Optional[int] = None,
    requires_document: bool = False,
    requires_advance_notice: bool = False,
    notice_days: int = 0,
    is_active: bool = True,
) -> LeaveCategory:
    category = LeaveCategory(
        id=uuid.uuid4(),
        organization_id=organization_id,
        code=code,
        name=code.title() + " Leave",
        default_allowance=default_allowance,
        requires_document=requires_document,
        requires_advance_notice=requires_advance_notice,
        notice_days=notice_days,
        is_active=is_active,
        created_at=_now(),
        updated_at=_now(),
    )
    db.add(category)
    await db.flush()
    return category


async def add_entitlement(
    db: AsyncSession,
    employee_id: uuid.UUID,
    category_id: uuid.UUID,
    *,
    granted: int,
    carried_over: int = 0,
    used: int = 0,
    pending: int = 0,
    year: int = YEAR,
) -> EntitlementRecord:
    record = EntitlementRecord(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_category_id=category_id,
        year=year,
        granted=granted,
        carried_over=carried_over,
        used=used,
        pending=pending,
        updated_at=_now(),
    )
    db.add(record)
    await db.flush()
    return record


async def add_approver(
    db: AsyncSession,
    department_id: uuid.UUID,
    approver_id: uuid.UUID,
    order: int,
) -> ApprovalAssignment:
    assignment = ApprovalAssignment(
        id=uuid.uuid4(),
        department_id=department_id,
        approver_id=approver_id,
        order=order,
        created_at=_now(),
    )
    db.add(assignment)
    await db.flush()
    return assignment


# ── Organization fixtures ───────────────────────────────────────────

@pytest.fixture
async def org(db) -> Organization:
    """Organization with the default role → permission matrix seeded."""
    organization = Organization(
        id=uuid.uuid4(), code="ACME", name="Acme Corp", created_at=_now(),
    )
    db.add(organization)
    await db.flush()
    await AuthorizationService(db).seed_defaults(organization.id)
    return organization


@pytest.fixture
async def engineering(db, org) -> Department:
    return await add_department(db, org.id, "Engineering")


@pytest.fixture
async def sales(db, org) -> Department:
    return await add_department(db, org.id, "Sales")


@pytest.fixture
async def hr_admin(db, org) -> Employee:
    return await add_employee(db, org.id, None, first_name="Hana", role=Role.admin)


@pytest.fixture
async def manager(db, org, engineering) -> Employee:
    """Engineering manager, ranked first in the Engineering chain."""
    employee = await add_employee(
        db, org.id, engineering.id, first_name="Mira", role=Role.manager,
    )
    await add_approver(db, engineering.id, employee.id, 1)
    return employee


@pytest.fixture
async def employee(db, org, engineering) -> Employee:
    return await add_employee(db, org.id, engineering.id, first_name="Eli")


@pytest.fixture
async def annual(db, org) -> LeaveCategory:
    return await add_category(db, org.id, "ANNUAL", default_allowance=10)


@pytest.fixture
async def unpaid(db, org) -> LeaveCategory:
    return await add_category(db, org.id, "UNPAID", default_allowance=None)


@pytest.fixture
async def annual_balance(db, employee, annual) -> EntitlementRecord:
    """10 granted ANNUAL days for ``employee`` in the test year."""
    return await add_entitlement(db, employee.id, annual.id, granted=10)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token the way the external login layer does."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(employee_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id)}"}
