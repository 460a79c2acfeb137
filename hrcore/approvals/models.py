"""Approval routing ORM model: ApprovalAssignment."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrcore.database import Base

if TYPE_CHECKING:
    from hrcore.organization.models import Department, Employee


class ApprovalAssignment(Base):
    """``approver_id`` is the N-th ranked approver for ``department_id``."""

    __tablename__ = "department_approvers"
    __table_args__ = (
        sa.UniqueConstraint(
            "department_id", "approver_id", name="uq_department_approver"
        ),
        sa.CheckConstraint('"order" >= 1', name="ck_department_approver_order"),
        sa.Index("ix_department_approvers_approver", "approver_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    order: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    department: Mapped["Department"] = relationship(back_populates="approvers")
    approver: Mapped["Employee"] = relationship(foreign_keys=[approver_id])

    def __repr__(self) -> str:
        return f"<ApprovalAssignment {self.department_id} #{self.order} {self.approver_id}>"
