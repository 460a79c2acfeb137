"""Enums and constants for HR Core — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class Role(str, enum.Enum):
    admin = "admin"
    hr = "hr"
    manager = "manager"
    employee = "employee"


class Permission(str, enum.Enum):
    leave_request = "leave.request"
    leave_approve = "leave.approve"
    leave_configure = "leave.configure"
    approvers_manage = "approvers.manage"
    permissions_manage = "permissions.manage"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveDecision(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"


class LeaveWarning(str, enum.Enum):
    no_entitlement = "no_entitlement"
    insufficient_balance = "insufficient_balance"
    advance_notice = "advance_notice"
    document_required = "document_required"


# ── Role-based permissions ──────────────────────────────────────────
# Seeded per organization into role_permissions; the table is the source
# of truth once an organization exists.

DEFAULT_ROLE_PERMISSIONS: dict[Role, list[Permission]] = {
    Role.admin: list(Permission),
    Role.hr: [
        Permission.leave_request,
        Permission.leave_approve,
        Permission.leave_configure,
        Permission.approvers_manage,
    ],
    Role.manager: [
        Permission.leave_request,
        Permission.leave_approve,
    ],
    Role.employee: [
        Permission.leave_request,
    ],
}
