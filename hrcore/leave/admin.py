"""Leave administration — categories, yearly provisioning, allotment edits.

All mutations require the ``leave.configure`` permission within the
category's organization and write an audit entry.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrcore.auth.service import AuthorizationService
from hrcore.common.audit import create_audit_entry
from hrcore.common.constants import Permission
from hrcore.common.exceptions import (
    ConflictError,
    NotAuthorized,
    ValidationException,
    violates_constraint,
)
from hrcore.leave.models import EntitlementRecord, LeaveCategory
from hrcore.leave.schemas import (
    EntitlementAllotment,
    LeaveCategoryCreate,
    LeaveCategoryUpdate,
)
from hrcore.organization.directory import OrganizationDirectory
from hrcore.organization.models import Employee

logger = logging.getLogger(__name__)

_CATEGORY_FIELDS = (
    "name",
    "description",
    "default_allowance",
    "max_paid_days",
    "requires_document",
    "requires_advance_notice",
    "notice_days",
)


def _snapshot(category: LeaveCategory) -> dict[str, Any]:
    return {field: getattr(category, field) for field in ("code", "is_active") + _CATEGORY_FIELDS}


class LeaveAdminService:
    """HR-facing configuration of leave categories and entitlements."""

    def __init__(
        self,
        db: AsyncSession,
        authz: Optional[AuthorizationService] = None,
    ) -> None:
        self.db = db
        self.authz = authz or AuthorizationService(db)
        self.directory = OrganizationDirectory(db)

    async def _authorize(
        self,
        organization_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> Employee:
        actor = await self.directory.get_employee(actor_id)
        if actor.organization_id != organization_id:
            raise NotAuthorized("You cannot configure another organization's leave.")
        await self.authz.require(actor, Permission.leave_configure)
        return actor

    # ── Categories ──────────────────────────────────────────────────

    async def list_categories(
        self,
        organization_id: uuid.UUID,
        is_active: Optional[bool] = None,
    ) -> list[LeaveCategory]:
        query = (
            select(LeaveCategory)
            .where(LeaveCategory.organization_id == organization_id)
            .order_by(LeaveCategory.code)
        )
        if is_active is not None:
            query = query.where(LeaveCategory.is_active.is_(is_active))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_category(
        self,
        organization_id: uuid.UUID,
        data: LeaveCategoryCreate,
        *,
        actor_id: uuid.UUID,
    ) -> LeaveCategory:
        await self._authorize(organization_id, actor_id)

        code = data.code.strip().upper()
        existing = await self.db.execute(
            select(LeaveCategory.id).where(
                LeaveCategory.organization_id == organization_id,
                LeaveCategory.code == code,
            )
        )
        if existing.scalar() is not None:
            raise ConflictError("code", code)

        now = datetime.now(timezone.utc)
        category = LeaveCategory(
            organization_id=organization_id,
            code=code,
            is_active=True,
            created_at=now,
            updated_at=now,
            **data.model_dump(exclude={"code"}),
        )
        self.db.add(category)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if violates_constraint(
                exc,
                "uq_leave_category_org_code",
                "leave_categories.organization_id",
                "leave_categories.code",
            ):
                raise ConflictError("code", code)
            raise

        await create_audit_entry(
            self.db,
            action="create",
            entity_type="leave_category",
            entity_id=category.id,
            actor_id=actor_id,
            new_values=_snapshot(category),
        )
        logger.info("Leave category %s created in organization %s", code, organization_id)
        return category

    async def update_category(
        self,
        category_id: uuid.UUID,
        changes: LeaveCategoryUpdate,
        *,
        actor_id: uuid.UUID,
    ) -> LeaveCategory:
        """Partial update; only fields present in the payload are touched."""
        category = await self.directory.get_leave_category(category_id)
        await self._authorize(category.organization_id, actor_id)

        old_values = _snapshot(category)
        for field, value in changes.model_dump(exclude_unset=True).items():
            setattr(category, field, value)
        category.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="update",
            entity_type="leave_category",
            entity_id=category.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=_snapshot(category),
        )
        return category

    async def toggle_category(
        self,
        category_id: uuid.UUID,
        *,
        actor_id: uuid.UUID,
    ) -> LeaveCategory:
        """Flip ``is_active``; categories are never deleted."""
        category = await self.directory.get_leave_category(category_id)
        await self._authorize(category.organization_id, actor_id)

        category.is_active = not category.is_active
        category.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="toggle",
            entity_type="leave_category",
            entity_id=category.id,
            actor_id=actor_id,
            old_values={"is_active": not category.is_active},
            new_values={"is_active": category.is_active},
        )
        logger.info(
            "Leave category %s is now %s",
            category.code, "active" if category.is_active else "inactive",
        )
        return category

    # ── Entitlements ────────────────────────────────────────────────

    async def provision_entitlements(
        self,
        organization_id: uuid.UUID,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Create missing records for active employees × active bounded categories.

        Existing records are left untouched, so running this twice is safe.
        ``actor_id=None`` is reserved for the provisioning script.
        """
        if actor_id is not None:
            await self._authorize(organization_id, actor_id)

        categories = [
            c for c in await self.list_categories(organization_id, is_active=True)
            if not c.is_unbounded
        ]
        result = await self.db.execute(
            select(Employee.id).where(
                Employee.organization_id == organization_id,
                Employee.is_active.is_(True),
            )
        )
        employee_ids = list(result.scalars().all())
        if not categories or not employee_ids:
            return 0

        result = await self.db.execute(
            select(EntitlementRecord.employee_id, EntitlementRecord.leave_category_id)
            .where(
                EntitlementRecord.year == year,
                EntitlementRecord.employee_id.in_(employee_ids),
            )
        )
        existing = {(row.employee_id, row.leave_category_id) for row in result.all()}

        now = datetime.now(timezone.utc)
        created = 0
        for employee_id in employee_ids:
            for category in categories:
                if (employee_id, category.id) in existing:
                    continue
                self.db.add(EntitlementRecord(
                    employee_id=employee_id,
                    leave_category_id=category.id,
                    year=year,
                    granted=category.default_allowance,
                    carried_over=0,
                    used=0,
                    pending=0,
                    updated_at=now,
                ))
                created += 1
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="provision",
            entity_type="leave_entitlements",
            entity_id=organization_id,
            actor_id=actor_id,
            new_values={"year": year, "created": created},
        )
        logger.info(
            "Provisioned %d entitlement record(s) for organization %s, year %d",
            created, organization_id, year,
        )
        return created

    async def set_allotment(
        self,
        data: EntitlementAllotment,
        *,
        actor_id: uuid.UUID,
    ) -> EntitlementRecord:
        """Create or edit granted / carried-over days of one entitlement record."""
        employee = await self.directory.get_employee(data.employee_id, active_only=False)
        await self._authorize(employee.organization_id, actor_id)
        category = await self.directory.get_leave_category(
            data.leave_category_id, organization_id=employee.organization_id,
        )
        if category.is_unbounded:
            raise ValidationException({
                "leave_category_id": [
                    f"{category.code} has no allowance limit; it takes no entitlement."
                ],
            })

        result = await self.db.execute(
            select(EntitlementRecord)
            .where(
                EntitlementRecord.employee_id == employee.id,
                EntitlementRecord.leave_category_id == category.id,
                EntitlementRecord.year == data.year,
            )
            .execution_options(populate_existing=True)
        )
        record = result.scalars().first()
        now = datetime.now(timezone.utc)

        if record is None:
            old_values = None
            record = EntitlementRecord(
                employee_id=employee.id,
                leave_category_id=category.id,
                year=data.year,
                granted=data.granted,
                carried_over=data.carried_over,
                used=0,
                pending=0,
                updated_at=now,
            )
            self.db.add(record)
        else:
            available = data.granted + data.carried_over - record.used - record.pending
            if available < 0:
                raise ValidationException({
                    "granted": [
                        f"Allotment would leave {available} days available; "
                        f"{record.used} used and {record.pending} pending."
                    ],
                })
            old_values = {"granted": record.granted, "carried_over": record.carried_over}
            record.granted = data.granted
            record.carried_over = data.carried_over
            record.updated_at = now
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="allot",
            entity_type="leave_entitlement",
            entity_id=record.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={
                "year": data.year,
                "granted": data.granted,
                "carried_over": data.carried_over,
            },
        )

        result = await self.db.execute(
            select(EntitlementRecord)
            .where(EntitlementRecord.id == record.id)
            .options(selectinload(EntitlementRecord.leave_category))
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()
