"""Permission administration schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel

from hrcore.common.constants import Permission, Role


class RolePermissionsOut(BaseModel):
    organization_id: uuid.UUID
    role: Role
    permissions: list[Permission]


class RolePermissionsUpdate(BaseModel):
    permissions: list[Permission]


class RoleAssignRequest(BaseModel):
    role: Role


class RoleAssignmentOut(BaseModel):
    employee_id: uuid.UUID
    role: Role
