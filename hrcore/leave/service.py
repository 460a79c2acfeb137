"""Leave request workflow — submit, decide, preview and listings.

Business logic:
  - total_days = (end_date - start_date).days + 1 (inclusive, calendar days)
  - a request is charged entirely to the year of its start date
  - submit reserves days through the ledger before the request row is
    written; both share the request-scoped transaction
  - pending → approved | rejected exactly once; the status change and the
    ledger commit/release happen in the same transaction
  - a decision settles the ledger only if submit reserved days, whatever the
    category's allowance has become since
  - advance-notice and supporting-document rules are advisory (preview only)
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import extract, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrcore.approvals.service import ApprovalRouting
from hrcore.auth.service import AuthorizationService
from hrcore.common.audit import create_audit_entry
from hrcore.common.constants import (
    LeaveDecision,
    LeaveStatus,
    LeaveWarning,
    Permission,
)
from hrcore.common.exceptions import (
    AlreadyDecided,
    InvalidDateRange,
    NotAuthorized,
    NotFoundException,
    SelfApproval,
)
from hrcore.leave.ledger import EntitlementLedger
from hrcore.leave.models import LeaveRequest
from hrcore.leave.schemas import LeavePreview
from hrcore.organization.directory import OrganizationDirectory
from hrcore.organization.models import Employee

logger = logging.getLogger(__name__)


def count_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar-day count; raises :class:`InvalidDateRange` if < 1."""
    total = (end_date - start_date).days + 1
    if total <= 0:
        raise InvalidDateRange(start_date, end_date)
    return total


class LeaveWorkflow:
    """Leave request state machine bound to one session / transaction."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[EntitlementLedger] = None,
        routing: Optional[ApprovalRouting] = None,
        authz: Optional[AuthorizationService] = None,
    ) -> None:
        self.db = db
        self.directory = OrganizationDirectory(db)
        self.authz = authz or AuthorizationService(db)
        self.ledger = ledger or EntitlementLedger(db)
        self.routing = routing or ApprovalRouting(db, self.authz)

    # ─────────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────────

    async def _load_request(self, request_id: uuid.UUID) -> LeaveRequest:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_category),
            )
            .execution_options(populate_existing=True)
        )
        leave_request = result.scalars().first()
        if leave_request is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_request

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequest:
        return await self._load_request(request_id)

    async def list_requests(
        self,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveRequest]:
        """Requests of one employee, newest first; *year* filters on start date."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_category),
            )
            .order_by(LeaveRequest.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if year is not None:
            query = query.where(extract("year", LeaveRequest.start_date) == year)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def can_view(self, viewer: Employee, employee: Employee) -> bool:
        """Own records, HR configurers of the same organization, or chain approvers."""
        if viewer.id == employee.id:
            return True
        if viewer.organization_id != employee.organization_id:
            return False
        if await self.authz.has_permission(viewer, Permission.leave_configure):
            return True
        if employee.department_id is None:
            return False
        return await self.routing.is_approver_for(employee.department_id, viewer.id)

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    async def submit(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: str,
        document_ref: Optional[str] = None,
    ) -> LeaveRequest:
        """Reserve balance and create a pending leave request.

        Raises:
            NotFoundException: unknown/inactive employee or category.
            NotAuthorized: the employee's role lacks ``leave.request``.
            InvalidDateRange: end date before start date.
            NoEntitlementRecord / InsufficientBalance: from the ledger.
        """
        employee = await self.directory.get_employee(employee_id)
        await self.authz.require(employee, Permission.leave_request)

        category = await self.directory.get_leave_category(
            category_id,
            organization_id=employee.organization_id,
            active_only=True,
        )

        total_days = count_days(start_date, end_date)
        year = start_date.year

        record = await self.ledger.reserve(employee.id, category.id, year, total_days)

        now = datetime.now(timezone.utc)
        leave_request = LeaveRequest(
            employee_id=employee.id,
            leave_category_id=category.id,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            reserved=record is not None,
            reason=reason,
            document_ref=document_ref,
            status=LeaveStatus.pending,
            created_at=now,
            updated_at=now,
        )
        self.db.add(leave_request)
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=employee.id,
            new_values={
                "leave_category": category.code,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "total_days": total_days,
                "reserved": leave_request.reserved,
                "status": LeaveStatus.pending.value,
            },
        )
        logger.info(
            "Leave request %s submitted by %s: %s x%d from %s",
            leave_request.id, employee.id, category.code, total_days, start_date,
        )
        return await self._load_request(leave_request.id)

    # ─────────────────────────────────────────────────────────────────
    # Preview
    # ─────────────────────────────────────────────────────────────────

    async def preview(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        start_date: date,
        end_date: date,
        document_ref: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LeavePreview:
        """Side-effect-free check of what :meth:`submit` would see."""
        employee = await self.directory.get_employee(employee_id)
        category = await self.directory.get_leave_category(
            category_id,
            organization_id=employee.organization_id,
            active_only=True,
        )
        total_days = count_days(start_date, end_date)
        year = start_date.year
        today = today or date.today()

        warnings: list[LeaveWarning] = []
        messages: list[str] = []
        available: Optional[int] = None
        can_request = True

        if not category.is_unbounded:
            record = await self.ledger.find_balance(employee.id, category.id, year)
            if record is None:
                can_request = False
                warnings.append(LeaveWarning.no_entitlement)
                messages.append(
                    f"No {category.name} entitlement is provisioned for {year}."
                )
            else:
                available = record.available
                if available < total_days:
                    can_request = False
                    warnings.append(LeaveWarning.insufficient_balance)
                    messages.append(
                        f"Insufficient balance: {available} days remaining."
                    )

        if category.requires_advance_notice and category.notice_days > 0:
            if (start_date - today).days < category.notice_days:
                warnings.append(LeaveWarning.advance_notice)
                messages.append(
                    f"{category.name} should be requested at least "
                    f"{category.notice_days} days in advance."
                )

        if category.requires_document and not document_ref:
            warnings.append(LeaveWarning.document_required)
            messages.append(f"{category.name} requires a supporting document.")

        return LeavePreview(
            total_days=total_days,
            year=year,
            available=available,
            can_request=can_request,
            warnings=warnings,
            messages=messages,
        )

    # ─────────────────────────────────────────────────────────────────
    # Decide
    # ─────────────────────────────────────────────────────────────────

    async def decide(
        self,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        decision: LeaveDecision,
        note: Optional[str] = None,
    ) -> LeaveRequest:
        """Approve or reject a pending request and settle the ledger.

        Check order: NotFound → AlreadyDecided → SelfApproval → NotAuthorized.
        """
        leave_request = await self._load_request(request_id)
        if leave_request.status != LeaveStatus.pending:
            raise AlreadyDecided(request_id, leave_request.status.value)

        if leave_request.employee_id == approver_id:
            logger.warning("Self-approval attempt on leave request %s", request_id)
            raise SelfApproval()

        approver = await self.directory.get_employee(approver_id)
        owner = leave_request.employee
        if approver.organization_id != owner.organization_id:
            raise NotAuthorized("You cannot decide requests of another organization.")
        await self.authz.require(approver, Permission.leave_approve)
        if owner.department_id is None or not await self.routing.is_approver_for(
            owner.department_id, approver.id,
        ):
            logger.warning(
                "Employee %s is not in the approval chain for request %s",
                approver.id, request_id,
            )
            raise NotAuthorized(
                "You are not an approver for this employee's department."
            )

        new_status = LeaveStatus(decision.value)
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == request_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .values(
                status=new_status,
                decided_by=approver.id,
                decided_at=now,
                decision_note=note,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self._load_request(request_id)
            raise AlreadyDecided(request_id, current.status.value)

        settle = (
            self.ledger.commit_used
            if new_status == LeaveStatus.approved
            else self.ledger.release
        )
        await settle(
            leave_request.employee_id,
            leave_request.leave_category_id,
            leave_request.year,
            leave_request.total_days,
            reserved=leave_request.reserved,
        )

        await create_audit_entry(
            self.db,
            action=new_status.value,
            entity_type="leave_request",
            entity_id=request_id,
            actor_id=approver.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": new_status.value, "note": note},
        )
        logger.info(
            "Leave request %s %s by %s", request_id, new_status.value, approver.id,
        )
        return await self._load_request(request_id)
