"""Authorization service — persisted per-organization role → permission checks.

Every mutating leave / routing operation calls :meth:`AuthorizationService.require`
with the acting employee; the grant is read from ``role_permissions`` on each
call, so permission edits take effect immediately.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrcore.auth.models import RoleAssignment, RolePermission
from hrcore.common.audit import create_audit_entry
from hrcore.common.constants import DEFAULT_ROLE_PERMISSIONS, Permission, Role
from hrcore.common.exceptions import NotAuthorized
from hrcore.organization.directory import OrganizationDirectory
from hrcore.organization.models import Employee

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Role resolution and permission enforcement for one session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.directory = OrganizationDirectory(db)

    # ── Queries ─────────────────────────────────────────────────────

    async def get_role(self, employee_id: uuid.UUID) -> Role:
        """Active role of an employee; ``employee`` when none is assigned."""
        result = await self.db.execute(
            select(RoleAssignment.role)
            .where(
                RoleAssignment.employee_id == employee_id,
                RoleAssignment.is_active.is_(True),
            )
            .order_by(RoleAssignment.assigned_at.desc())
            .limit(1)
        )
        role = result.scalar()
        return role if role is not None else Role.employee

    async def get_role_permissions(
        self,
        organization_id: uuid.UUID,
        role: Role,
    ) -> list[Permission]:
        result = await self.db.execute(
            select(RolePermission.permission).where(
                RolePermission.organization_id == organization_id,
                RolePermission.role == role,
            )
        )
        return sorted(result.scalars().all(), key=lambda p: p.value)

    async def has_permission(
        self,
        employee: Employee,
        permission: Permission,
    ) -> bool:
        role = await self.get_role(employee.id)
        result = await self.db.execute(
            select(RolePermission.id).where(
                RolePermission.organization_id == employee.organization_id,
                RolePermission.role == role,
                RolePermission.permission == permission,
            )
        )
        return result.scalar() is not None

    async def require(
        self,
        employee: Employee,
        permission: Permission,
    ) -> None:
        """Raise :class:`NotAuthorized` unless *employee* holds *permission*."""
        if not await self.has_permission(employee, permission):
            logger.warning(
                "Permission %s denied for employee %s", permission.value, employee.id,
            )
            raise NotAuthorized(
                f"Permission '{permission.value}' is not granted to your role."
            )

    # ── Administration ──────────────────────────────────────────────

    async def seed_defaults(self, organization_id: uuid.UUID) -> int:
        """Insert the default role matrix for an organization; returns rows added."""
        result = await self.db.execute(
            select(RolePermission.role, RolePermission.permission).where(
                RolePermission.organization_id == organization_id,
            )
        )
        existing = {(row.role, row.permission) for row in result.all()}

        added = 0
        for role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
            for permission in permissions:
                if (role, permission) in existing:
                    continue
                self.db.add(RolePermission(
                    organization_id=organization_id,
                    role=role,
                    permission=permission,
                ))
                added += 1
        await self.db.flush()
        logger.info(
            "Seeded %d default role permissions for organization %s",
            added, organization_id,
        )
        return added

    async def set_role_permissions(
        self,
        organization_id: uuid.UUID,
        role: Role,
        permissions: Iterable[Permission],
        *,
        actor_id: uuid.UUID,
    ) -> list[Permission]:
        """Replace the permission set of *role* within *organization_id*."""
        actor = await self.directory.get_employee(actor_id)
        if actor.organization_id != organization_id:
            raise NotAuthorized("You cannot manage another organization's roles.")
        await self.require(actor, Permission.permissions_manage)

        old = await self.get_role_permissions(organization_id, role)
        new = sorted(set(permissions), key=lambda p: p.value)

        await self.db.execute(
            delete(RolePermission).where(
                RolePermission.organization_id == organization_id,
                RolePermission.role == role,
            )
        )
        for permission in new:
            self.db.add(RolePermission(
                organization_id=organization_id,
                role=role,
                permission=permission,
            ))
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="update",
            entity_type="role_permissions",
            entity_id=organization_id,
            actor_id=actor_id,
            old_values={"role": role.value, "permissions": [p.value for p in old]},
            new_values={"role": role.value, "permissions": [p.value for p in new]},
        )
        return new

    async def assign_role(
        self,
        employee_id: uuid.UUID,
        role: Role,
        *,
        actor_id: uuid.UUID,
    ) -> RoleAssignment:
        """Give *employee_id* a single active role, revoking any previous one."""
        actor = await self.directory.get_employee(actor_id)
        await self.require(actor, Permission.permissions_manage)

        employee = await self.directory.get_employee(employee_id)
        if employee.organization_id != actor.organization_id:
            raise NotAuthorized("You cannot manage another organization's roles.")

        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(RoleAssignment).where(
                RoleAssignment.employee_id == employee_id,
                RoleAssignment.is_active.is_(True),
            )
        )
        previous: Optional[Role] = None
        for assignment in result.scalars().all():
            previous = assignment.role
            assignment.is_active = False
            assignment.revoked_at = now

        assignment = RoleAssignment(
            employee_id=employee_id,
            role=role,
            assigned_by=actor_id,
            assigned_at=now,
            is_active=True,
        )
        self.db.add(assignment)
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="assign_role",
            entity_type="employee",
            entity_id=employee_id,
            actor_id=actor_id,
            old_values={"role": previous.value if previous else None},
            new_values={"role": role.value},
        )
        return assignment
