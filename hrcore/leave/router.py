"""Leave router — balances, requests, decisions, category and entitlement admin.

All endpoints require a bearer token. Permission checks (leave.request,
leave.approve, leave.configure) are enforced by the services against the
caller's organization role matrix.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrcore.auth.dependencies import get_current_user
from hrcore.common.exceptions import NotAuthorized
from hrcore.common.rate_limit import limiter
from hrcore.config import settings
from hrcore.database import get_db
from hrcore.leave.admin import LeaveAdminService
from hrcore.leave.ledger import EntitlementLedger
from hrcore.leave.schemas import (
    EntitlementAllotment,
    EntitlementOut,
    LeaveCategoryCreate,
    LeaveCategoryOut,
    LeaveCategoryUpdate,
    LeaveDecisionRequest,
    LeavePreview,
    LeavePreviewRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    ProvisionOut,
    ProvisionRequest,
)
from hrcore.leave.service import LeaveWorkflow
from hrcore.organization.directory import OrganizationDirectory
from hrcore.organization.models import Employee

router = APIRouter(prefix="", tags=["leave"])


async def _resolve_subject(
    workflow: LeaveWorkflow,
    caller: Employee,
    employee_id: Optional[uuid.UUID],
) -> Employee:
    """Employee whose records are being read; the caller unless one is named."""
    if employee_id is None or employee_id == caller.id:
        return caller
    subject = await OrganizationDirectory(workflow.db).get_employee(
        employee_id, active_only=False,
    )
    if not await workflow.can_view(caller, subject):
        raise NotAuthorized("You cannot view this employee's leave.")
    return subject


# ── GET /entitlements ───────────────────────────────────────────────

@router.get("/entitlements", response_model=list[EntitlementOut])
async def list_entitlements(
    employee_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Balances per category for one employee and year (default: caller, this year)."""
    workflow = LeaveWorkflow(db)
    subject = await _resolve_subject(workflow, employee, employee_id)
    return await EntitlementLedger(db).list_balances(
        subject.id, year or date.today().year,
    )


# ── POST /entitlements/provision ────────────────────────────────────

@router.post("/entitlements/provision", response_model=ProvisionOut)
async def provision_entitlements(
    body: ProvisionRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    created = await LeaveAdminService(db).provision_entitlements(
        employee.organization_id, body.year, actor_id=employee.id,
    )
    return ProvisionOut(
        organization_id=employee.organization_id, year=body.year, created=created,
    )


# ── PUT /entitlements ───────────────────────────────────────────────

@router.put("/entitlements", response_model=EntitlementOut)
async def set_allotment(
    body: EntitlementAllotment,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create or edit an employee's granted / carried-over days."""
    return await LeaveAdminService(db).set_allotment(body, actor_id=employee.id)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=list[LeaveRequestOut])
async def list_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    workflow = LeaveWorkflow(db)
    subject = await _resolve_subject(workflow, employee, employee_id)
    return await workflow.list_requests(subject.id, year=year)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(settings.RATE_LIMIT_SUBMIT)
async def submit_request(
    request: Request,
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Reserves the days against the caller's balance."""
    return await LeaveWorkflow(db).submit(
        employee.id,
        body.leave_category_id,
        body.start_date,
        body.end_date,
        body.reason,
        document_ref=body.document_ref,
    )


# ── POST /requests/preview ──────────────────────────────────────────

@router.post("/requests/preview", response_model=LeavePreview)
async def preview_request(
    body: LeavePreviewRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Advisory checks (balance, notice, document) without creating anything."""
    return await LeaveWorkflow(db).preview(
        employee.id,
        body.leave_category_id,
        body.start_date,
        body.end_date,
        document_ref=body.document_ref,
    )


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    workflow = LeaveWorkflow(db)
    leave_request = await workflow.get_request(request_id)
    await _resolve_subject(workflow, employee, leave_request.employee_id)
    return leave_request


# ── POST /requests/{id}/decision ────────────────────────────────────

@router.post("/requests/{request_id}/decision", response_model=LeaveRequestOut)
async def decide_request(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a pending request from a department you approve for."""
    return await LeaveWorkflow(db).decide(
        request_id, employee.id, body.decision, note=body.note,
    )


# ── GET /approvals ──────────────────────────────────────────────────

@router.get("/approvals", response_model=list[LeaveRequestOut])
async def list_actionable(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pending requests the caller can act on, newest first."""
    return await LeaveWorkflow(db).routing.list_actionable_requests(employee.id)


# ── Categories ──────────────────────────────────────────────────────

@router.get("/categories", response_model=list[LeaveCategoryOut])
async def list_categories(
    is_active: Optional[bool] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveAdminService(db).list_categories(
        employee.organization_id, is_active=is_active,
    )


@router.post("/categories", response_model=LeaveCategoryOut, status_code=201)
async def create_category(
    body: LeaveCategoryCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveAdminService(db).create_category(
        employee.organization_id, body, actor_id=employee.id,
    )


@router.patch("/categories/{category_id}", response_model=LeaveCategoryOut)
async def update_category(
    category_id: uuid.UUID,
    body: LeaveCategoryUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveAdminService(db).update_category(
        category_id, body, actor_id=employee.id,
    )


@router.post("/categories/{category_id}/toggle", response_model=LeaveCategoryOut)
async def toggle_category(
    category_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Activate / deactivate a category. Existing balances are kept."""
    return await LeaveAdminService(db).toggle_category(
        category_id, actor_id=employee.id,
    )
