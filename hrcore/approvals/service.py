"""Approval routing — ordered per-department approver chains.

Any approver listed for a department (at any rank) may decide pending leave
requests of that department's members, except their own. Chain orders are
kept contiguous (1..N) on every insert and removal.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrcore.approvals.models import ApprovalAssignment
from hrcore.auth.service import AuthorizationService
from hrcore.common.audit import create_audit_entry
from hrcore.common.constants import LeaveStatus, Permission
from hrcore.common.exceptions import (
    DuplicateApprover,
    NotAuthorized,
    NotFoundException,
    violates_constraint,
)
from hrcore.leave.models import LeaveRequest
from hrcore.organization.directory import OrganizationDirectory
from hrcore.organization.models import Department, Employee

logger = logging.getLogger(__name__)


class ApprovalRouting:
    """Resolve and maintain department approval chains."""

    def __init__(self, db: AsyncSession, authz: AuthorizationService) -> None:
        self.db = db
        self.authz = authz
        self.directory = OrganizationDirectory(db)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    async def list_chain(self, department_id: uuid.UUID) -> list[ApprovalAssignment]:
        """Chain entries ordered by rank, approver eager-loaded."""
        result = await self.db.execute(
            select(ApprovalAssignment)
            .where(ApprovalAssignment.department_id == department_id)
            .options(selectinload(ApprovalAssignment.approver))
            .order_by(ApprovalAssignment.order.asc(), ApprovalAssignment.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_approvers(self, department_id: uuid.UUID) -> list[uuid.UUID]:
        return [a.approver_id for a in await self.list_chain(department_id)]

    async def is_approver_for(
        self,
        department_id: uuid.UUID,
        approver_id: uuid.UUID,
    ) -> bool:
        result = await self.db.execute(
            select(ApprovalAssignment.id).where(
                ApprovalAssignment.department_id == department_id,
                ApprovalAssignment.approver_id == approver_id,
            )
        )
        return result.scalar() is not None

    async def list_actionable_requests(
        self,
        approver_id: uuid.UUID,
    ) -> list[LeaveRequest]:
        """Pending requests from members of every department the approver serves.

        Empty when the approver's role lacks ``leave.approve``, since such a
        chain member could not decide any of them.
        """
        approver = await self.directory.get_employee(approver_id)
        if not await self.authz.has_permission(approver, Permission.leave_approve):
            return []

        departments = select(ApprovalAssignment.department_id).where(
            ApprovalAssignment.approver_id == approver_id,
        )
        result = await self.db.execute(
            select(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .where(
                Employee.department_id.in_(departments),
                LeaveRequest.employee_id != approver_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_category),
            )
            .order_by(LeaveRequest.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Administration
    # ─────────────────────────────────────────────────────────────────

    async def _authorize_admin(
        self,
        department: Department,
        actor_id: uuid.UUID,
    ) -> Employee:
        actor = await self.directory.get_employee(actor_id)
        if actor.organization_id != department.organization_id:
            raise NotAuthorized("You cannot manage another organization's departments.")
        await self.authz.require(actor, Permission.approvers_manage)
        return actor

    @staticmethod
    def _resequence(chain: list[ApprovalAssignment]) -> None:
        for position, entry in enumerate(chain, start=1):
            entry.order = position

    async def assign(
        self,
        department_id: uuid.UUID,
        approver_id: uuid.UUID,
        order: int,
        *,
        actor_id: uuid.UUID,
    ) -> ApprovalAssignment:
        """Insert *approver_id* at rank *order* (clamped to 1..N+1)."""
        department = await self.directory.get_department(department_id)
        await self._authorize_admin(department, actor_id)

        approver = await self.directory.get_employee(approver_id)
        if approver.organization_id != department.organization_id:
            raise NotFoundException("Employee", str(approver_id))

        chain = await self.list_chain(department_id)
        if any(entry.approver_id == approver_id for entry in chain):
            raise DuplicateApprover(department_id, approver_id)

        position = min(max(order, 1), len(chain) + 1)
        assignment = ApprovalAssignment(
            department_id=department_id,
            approver_id=approver_id,
            order=position,
        )
        chain.insert(position - 1, assignment)
        self._resequence(chain)

        self.db.add(assignment)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if violates_constraint(
                exc,
                "uq_department_approver",
                "department_approvers.department_id",
                "department_approvers.approver_id",
            ):
                raise DuplicateApprover(department_id, approver_id)
            raise

        await create_audit_entry(
            self.db,
            action="assign",
            entity_type="department_approver",
            entity_id=assignment.id,
            actor_id=actor_id,
            new_values={
                "department_id": str(department_id),
                "approver_id": str(approver_id),
                "order": position,
            },
        )
        logger.info(
            "Approver %s assigned to department %s at rank %d",
            approver_id, department_id, position,
        )
        return assignment

    async def unassign(
        self,
        department_id: uuid.UUID,
        approver_id: uuid.UUID,
        *,
        actor_id: uuid.UUID,
    ) -> list[ApprovalAssignment]:
        """Remove *approver_id* and close the gap; returns the remaining chain."""
        department = await self.directory.get_department(department_id)
        await self._authorize_admin(department, actor_id)

        chain = await self.list_chain(department_id)
        target = next((e for e in chain if e.approver_id == approver_id), None)
        if target is None:
            raise NotFoundException("ApprovalAssignment", f"{department_id}/{approver_id}")

        old_order = target.order
        await self.db.delete(target)
        remaining = [e for e in chain if e is not target]
        self._resequence(remaining)
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="unassign",
            entity_type="department_approver",
            entity_id=target.id,
            actor_id=actor_id,
            old_values={
                "department_id": str(department_id),
                "approver_id": str(approver_id),
                "order": old_order,
            },
        )
        logger.info(
            "Approver %s removed from department %s; %d remaining",
            approver_id, department_id, len(remaining),
        )
        return remaining
