"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request / *Update  → request bodies (write)
  - *Out                          → response bodies (read)
  - *Brief                        → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hrcore.common.constants import LeaveDecision, LeaveStatus, LeaveWarning
from hrcore.organization.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Leave Category
# ═════════════════════════════════════════════════════════════════════


class LeaveCategoryBrief(BaseModel):
    """Minimal category info embedded in balances and requests."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str


class LeaveCategoryOut(BaseModel):
    """Full leave category representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    default_allowance: Optional[int] = None
    max_paid_days: Optional[int] = None
    requires_document: bool = False
    requires_advance_notice: bool = False
    notice_days: int = 0
    is_active: bool = True


class LeaveCategoryCreate(BaseModel):
    """Payload for creating a leave category. ``default_allowance=None`` = unbounded."""

    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    default_allowance: Optional[int] = Field(None, ge=0)
    max_paid_days: Optional[int] = Field(None, ge=0)
    requires_document: bool = False
    requires_advance_notice: bool = False
    notice_days: int = Field(0, ge=0)


class LeaveCategoryUpdate(BaseModel):
    """Partial update of a leave category.

    Omitted fields are left alone. Only ``description``, ``default_allowance``
    and ``max_paid_days`` may be cleared with an explicit ``null``.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    default_allowance: Optional[int] = Field(None, ge=0)
    max_paid_days: Optional[int] = Field(None, ge=0)
    requires_document: Optional[bool] = None
    requires_advance_notice: Optional[bool] = None
    notice_days: Optional[int] = Field(None, ge=0)

    @field_validator(
        "name", "requires_document", "requires_advance_notice", "notice_days",
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


# ═════════════════════════════════════════════════════════════════════
# Entitlement
# ═════════════════════════════════════════════════════════════════════


class EntitlementOut(BaseModel):
    """Balance for a single category with the derived available field."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_category_id: uuid.UUID
    year: int
    granted: int
    carried_over: int
    used: int
    pending: int
    available: int

    leave_category: Optional[LeaveCategoryBrief] = None


class EntitlementAllotment(BaseModel):
    """HR edit of an entitlement's granted / carried-over days."""

    employee_id: uuid.UUID
    leave_category_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    granted: int = Field(..., ge=0)
    carried_over: int = Field(0, ge=0)


class ProvisionRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)


class ProvisionOut(BaseModel):
    organization_id: uuid.UUID
    year: int
    created: int


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request (dates inclusive)."""

    leave_category_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field(..., min_length=1, max_length=1000)
    document_ref: Optional[str] = Field(None, max_length=1000)


class LeavePreviewRequest(BaseModel):
    leave_category_id: uuid.UUID
    start_date: date
    end_date: date
    document_ref: Optional[str] = None


class LeavePreview(BaseModel):
    """Advisory result shown to the user before submitting."""

    total_days: int
    year: int
    available: Optional[int] = None
    can_request: bool
    warnings: list[LeaveWarning] = []
    messages: list[str] = []


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_category_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: int
    reserved: bool = False
    reason: str
    document_ref: Optional[str] = None
    status: LeaveStatus
    decided_by: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = None
    decision_note: Optional[str] = None
    created_at: Optional[datetime] = None

    # Enriched by router
    employee: Optional[EmployeeBrief] = None
    leave_category: Optional[LeaveCategoryBrief] = None


class LeaveDecisionRequest(BaseModel):
    """Payload for approving or rejecting a pending request."""

    decision: LeaveDecision
    note: Optional[str] = Field(None, max_length=500)
