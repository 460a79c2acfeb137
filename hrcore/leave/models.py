"""Leave ORM models: LeaveCategory, EntitlementRecord, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrcore.common.constants import LeaveStatus
from hrcore.database import Base

if TYPE_CHECKING:
    from hrcore.organization.models import Employee


class LeaveCategory(Base):
    __tablename__ = "leave_categories"
    __table_args__ = (
        sa.UniqueConstraint(
            "organization_id", "code", name="uq_leave_category_org_code"
        ),
        sa.CheckConstraint("notice_days >= 0", name="ck_leave_category_notice"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    # NULL = unbounded: never gated by the ledger
    default_allowance: Mapped[Optional[int]] = mapped_column(sa.Integer)
    max_paid_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    requires_document: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, server_default=sa.text("FALSE")
    )
    requires_advance_notice: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, server_default=sa.text("FALSE")
    )
    notice_days: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("0")
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, server_default=sa.text("TRUE")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    entitlements: Mapped[list[EntitlementRecord]] = relationship(
        back_populates="leave_category"
    )
    requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="leave_category"
    )

    @property
    def is_unbounded(self) -> bool:
        return self.default_allowance is None


class EntitlementRecord(Base):
    __tablename__ = "leave_entitlements"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_category_id", "year", name="uq_leave_entitlement"
        ),
        sa.CheckConstraint("used >= 0", name="ck_leave_entitlement_used"),
        sa.CheckConstraint("pending >= 0", name="ck_leave_entitlement_pending"),
        sa.CheckConstraint(
            "granted + carried_over - used - pending >= 0",
            name="ck_leave_entitlement_available",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_categories.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    granted: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("0")
    )
    carried_over: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("0")
    )
    used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("0")
    )
    pending: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("0")
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="entitlements"
    )
    leave_category: Mapped[LeaveCategory] = relationship(
        back_populates="entitlements"
    )

    @property
    def available(self) -> int:
        return self.granted + self.carried_over - self.used - self.pending

    def __repr__(self) -> str:
        return (
            f"<EntitlementRecord {self.employee_id}/{self.leave_category_id}/"
            f"{self.year} available={self.available}>"
        )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("total_days >= 1", name="ck_leave_request_total_days"),
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_categories.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    # True when submit held total_days as pending in the ledger
    reserved: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE")
    )
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    document_ref: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
        server_default="pending",
    )
    decided_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    decision_note: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    decider: Mapped[Optional["Employee"]] = relationship(
        foreign_keys=[decided_by]
    )
    leave_category: Mapped[LeaveCategory] = relationship(back_populates="requests")

    @property
    def year(self) -> int:
        return self.start_date.year
