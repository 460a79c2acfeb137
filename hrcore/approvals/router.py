"""Approval routing router — per-department approver chains."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrcore.approvals.schemas import (
    ApprovalAssignmentOut,
    ApprovalChainOut,
    ApproverAssign,
)
from hrcore.approvals.service import ApprovalRouting
from hrcore.auth.dependencies import get_current_user
from hrcore.auth.service import AuthorizationService
from hrcore.common.exceptions import NotFoundException
from hrcore.database import get_db
from hrcore.organization.directory import OrganizationDirectory
from hrcore.organization.models import Employee

router = APIRouter(prefix="", tags=["approvals"])


def _routing(db: AsyncSession) -> ApprovalRouting:
    return ApprovalRouting(db, AuthorizationService(db))


async def _chain(routing: ApprovalRouting, department_id: uuid.UUID) -> ApprovalChainOut:
    chain = await routing.list_chain(department_id)
    return ApprovalChainOut(
        department_id=department_id,
        approvers=[ApprovalAssignmentOut.model_validate(entry) for entry in chain],
    )


@router.get("/{department_id}/approvers", response_model=ApprovalChainOut)
async def list_approvers(
    department_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approval chain of a department, ordered by rank."""
    department = await OrganizationDirectory(db).get_department(department_id)
    if department.organization_id != employee.organization_id:
        raise NotFoundException("Department", str(department_id))
    return await _chain(_routing(db), department_id)


@router.post("/{department_id}/approvers", response_model=ApprovalChainOut, status_code=201)
async def assign_approver(
    department_id: uuid.UUID,
    body: ApproverAssign,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Insert an approver at ``order``; later approvers shift down."""
    routing = _routing(db)
    await routing.assign(
        department_id, body.approver_id, body.order, actor_id=employee.id,
    )
    return await _chain(routing, department_id)


@router.delete("/{department_id}/approvers/{approver_id}", response_model=ApprovalChainOut)
async def unassign_approver(
    department_id: uuid.UUID,
    approver_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    routing = _routing(db)
    await routing.unassign(department_id, approver_id, actor_id=employee.id)
    return await _chain(routing, department_id)
