"""Permission administration router — role matrix and role assignment."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrcore.auth.dependencies import get_current_user
from hrcore.auth.schemas import (
    RoleAssignmentOut,
    RoleAssignRequest,
    RolePermissionsOut,
    RolePermissionsUpdate,
)
from hrcore.auth.service import AuthorizationService
from hrcore.common.constants import Role
from hrcore.database import get_db
from hrcore.organization.models import Employee

router = APIRouter(prefix="", tags=["permissions"])


@router.get("/roles/{role}", response_model=RolePermissionsOut)
async def get_role_permissions(
    role: Role,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    permissions = await AuthorizationService(db).get_role_permissions(
        employee.organization_id, role,
    )
    return RolePermissionsOut(
        organization_id=employee.organization_id, role=role, permissions=permissions,
    )


@router.put("/roles/{role}", response_model=RolePermissionsOut)
async def set_role_permissions(
    role: Role,
    body: RolePermissionsUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace a role's permission set in the caller's organization."""
    permissions = await AuthorizationService(db).set_role_permissions(
        employee.organization_id, role, body.permissions, actor_id=employee.id,
    )
    return RolePermissionsOut(
        organization_id=employee.organization_id, role=role, permissions=permissions,
    )


@router.put("/employees/{employee_id}/role", response_model=RoleAssignmentOut)
async def assign_role(
    employee_id: uuid.UUID,
    body: RoleAssignRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    assignment = await AuthorizationService(db).assign_role(
        employee_id, body.role, actor_id=employee.id,
    )
    return RoleAssignmentOut(employee_id=assignment.employee_id, role=assignment.role)
