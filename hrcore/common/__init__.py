"""Common module — shared utilities for HR Core."""

from hrcore.common.audit import AuditTrail, create_audit_entry
from hrcore.common.constants import (
    DEFAULT_ROLE_PERMISSIONS,
    LeaveDecision,
    LeaveStatus,
    LeaveWarning,
    Permission,
    Role,
)
from hrcore.common.exceptions import (
    AlreadyDecided,
    AppException,
    ConflictError,
    DuplicateApprover,
    InsufficientBalance,
    InvalidDateRange,
    LedgerConflict,
    NoEntitlementRecord,
    NotAuthorized,
    NotFoundException,
    SelfApproval,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "LeaveDecision",
    "LeaveStatus",
    "LeaveWarning",
    "Permission",
    "Role",
    "DEFAULT_ROLE_PERMISSIONS",
    # Exceptions
    "AlreadyDecided",
    "AppException",
    "ConflictError",
    "DuplicateApprover",
    "InsufficientBalance",
    "InvalidDateRange",
    "LedgerConflict",
    "NoEntitlementRecord",
    "NotAuthorized",
    "NotFoundException",
    "SelfApproval",
    "ValidationException",
    "register_exception_handlers",
]
