"""Approval routing Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrcore.organization.schemas import EmployeeBrief


class ApproverAssign(BaseModel):
    """Add an approver to a department chain; ``order`` is clamped to 1..N+1."""

    approver_id: uuid.UUID
    order: int = Field(1, ge=1)


class ApprovalAssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    department_id: uuid.UUID
    approver_id: uuid.UUID
    order: int
    approver: Optional[EmployeeBrief] = None


class ApprovalChainOut(BaseModel):
    department_id: uuid.UUID
    approvers: list[ApprovalAssignmentOut]
