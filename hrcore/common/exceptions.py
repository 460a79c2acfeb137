"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://hr-core.local/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=f"An entry with {field}='{value}' already exists.",
            errors={field: [f"'{value}' is already in use."]},
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── Leave / routing errors ──────────────────────────────────────────

class InvalidDateRange(AppException):
    """422 — end date before start date."""

    def __init__(self, start_date: Any, end_date: Any) -> None:
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            status_code=422,
            error_type="invalid-date-range",
            title="Invalid Date Range",
            detail=f"End date {end_date} is before start date {start_date}.",
            errors={"end_date": ["must be on or after start_date."]},
        )


class NoEntitlementRecord(AppException):
    """409 — bounded category with no provisioned entitlement (HR setup defect)."""

    def __init__(self, employee_id: Any, category_id: Any, year: int) -> None:
        self.employee_id = employee_id
        self.category_id = category_id
        self.year = year
        super().__init__(
            status_code=409,
            error_type="no-entitlement-record",
            title="No Entitlement Record",
            detail=(
                f"No leave entitlement is provisioned for year {year}. "
                "Please contact HR."
            ),
        )


class InsufficientBalance(AppException):
    """422 — requested days exceed the available balance."""

    def __init__(self, remaining: int, requested: int) -> None:
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            status_code=422,
            error_type="insufficient-balance",
            title="Insufficient Balance",
            detail=f"Insufficient balance: {remaining} days remaining.",
            errors={
                "balance": [
                    f"Insufficient balance: {remaining} days remaining, "
                    f"{requested} requested."
                ],
                "remaining": [str(remaining)],
            },
        )


class AlreadyDecided(AppException):
    """409 — request is no longer pending."""

    def __init__(self, request_id: Any, status: str) -> None:
        self.request_id = request_id
        self.status = status
        super().__init__(
            status_code=409,
            error_type="already-decided",
            title="Already Decided",
            detail=f"Leave request '{request_id}' is already {status}.",
        )


class NotAuthorized(AppException):
    """403 — caller may not perform this action."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="not-authorized",
            title="Not Authorized",
            detail=detail,
        )


class SelfApproval(AppException):
    """403 — approver owns the request."""

    def __init__(self) -> None:
        super().__init__(
            status_code=403,
            error_type="self-approval",
            title="Self Approval",
            detail="You cannot decide on your own leave request.",
        )


class DuplicateApprover(AppException):
    """409 — approver already in the department's chain."""

    def __init__(self, department_id: Any, approver_id: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="duplicate-approver",
            title="Duplicate Approver",
            detail=(
                f"Employee '{approver_id}' is already an approver "
                f"for department '{department_id}'."
            ),
        )


class LedgerConflict(AppException):
    """409 — commit/release found fewer pending days than the request holds."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=409,
            error_type="ledger-conflict",
            title="Ledger Conflict",
            detail=detail,
        )


# ── IntegrityError classification ───────────────────────────────────

def violates_constraint(exc: Exception, constraint: str, *columns: str) -> bool:
    """True if a database integrity error was raised by *constraint*.

    PostgreSQL names the constraint in the message. SQLite only lists the
    qualified columns of a unique index, so *columns* (``table.column``) are
    matched as that exact list.
    """
    err = str(getattr(exc, "orig", exc))
    if f'"{constraint}"' in err:
        return True
    if columns:
        return err.strip().endswith(f"UNIQUE constraint failed: {', '.join(columns)}")
    return False


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
