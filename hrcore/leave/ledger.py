"""Entitlement ledger — per (employee, category, year) leave balances.

Business logic:
  - available = granted + carried_over - used - pending
  - reserve / commit_used / release are single conditional UPDATE statements,
    so concurrent callers serialize on the entitlement row inside the
    database and a lost update cannot happen
  - categories with no default allowance are unbounded: never gated, and the
    ledger neither requires nor writes a record for them
  - commit_used / release follow whether the request actually reserved days
    (``reserved``), so a category edited between submit and decision still
    settles what was held
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from hrcore.common.exceptions import (
    InsufficientBalance,
    LedgerConflict,
    NoEntitlementRecord,
    NotFoundException,
    ValidationException,
)
from hrcore.leave.models import EntitlementRecord, LeaveCategory
from hrcore.organization.directory import OrganizationDirectory

logger = logging.getLogger(__name__)

_AVAILABLE = (
    EntitlementRecord.granted
    + EntitlementRecord.carried_over
    - EntitlementRecord.used
    - EntitlementRecord.pending
)


class EntitlementLedger:
    """Atomic balance operations over ``leave_entitlements``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.directory = OrganizationDirectory(db)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _check_days(days: int) -> None:
        if days < 1:
            raise ValidationException(
                {"days": [f"Day count must be a positive integer, got {days}."]}
            )

    @staticmethod
    def _key(employee_id: uuid.UUID, category_id: uuid.UUID, year: int):
        return (
            EntitlementRecord.employee_id == employee_id,
            EntitlementRecord.leave_category_id == category_id,
            EntitlementRecord.year == year,
        )

    async def _find(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
    ) -> Optional[EntitlementRecord]:
        """Re-read a record, overwriting any stale copy in the identity map."""
        result = await self.db.execute(
            select(EntitlementRecord)
            .where(*self._key(employee_id, category_id, year))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _category(self, category_id: uuid.UUID) -> LeaveCategory:
        return await self.directory.get_leave_category(category_id)

    @staticmethod
    def _holds(category: LeaveCategory, reserved: Optional[bool]) -> bool:
        if reserved is None:
            return not category.is_unbounded
        return reserved

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    async def get_balance(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
    ) -> EntitlementRecord:
        record = await self._find(employee_id, category_id, year)
        if record is None:
            raise NotFoundException(
                "EntitlementRecord", f"{employee_id}/{category_id}/{year}",
            )
        return record

    async def find_balance(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
    ) -> Optional[EntitlementRecord]:
        return await self._find(employee_id, category_id, year)

    async def list_balances(
        self,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[EntitlementRecord]:
        result = await self.db.execute(
            select(EntitlementRecord)
            .join(LeaveCategory, EntitlementRecord.leave_category_id == LeaveCategory.id)
            .where(
                EntitlementRecord.employee_id == employee_id,
                EntitlementRecord.year == year,
            )
            .options(selectinload(EntitlementRecord.leave_category))
            .order_by(LeaveCategory.code)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────

    async def reserve(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
        days: int,
    ) -> Optional[EntitlementRecord]:
        """Hold *days* against the balance: ``pending += days``.

        Returns the updated record, or ``None`` for unbounded categories.
        Raises :class:`InsufficientBalance` (with the remaining balance) or
        :class:`NoEntitlementRecord`.
        """
        self._check_days(days)
        category = await self._category(category_id)
        if category.is_unbounded:
            return None

        result = await self.db.execute(
            update(EntitlementRecord)
            .where(
                *self._key(employee_id, category_id, year),
                _AVAILABLE >= days,
            )
            .values(
                pending=EntitlementRecord.pending + days,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )

        record = await self._find(employee_id, category_id, year)
        if result.rowcount == 1:
            logger.info(
                "Reserved %d day(s) for %s/%s/%d (pending=%d)",
                days, employee_id, category.code, year, record.pending,
            )
            return record

        if record is None:
            logger.warning(
                "No entitlement record for %s/%s/%d", employee_id, category.code, year,
            )
            raise NoEntitlementRecord(employee_id, category_id, year)

        logger.warning(
            "Insufficient balance for %s/%s/%d: requested %d, available %d",
            employee_id, category.code, year, days, record.available,
        )
        raise InsufficientBalance(remaining=record.available, requested=days)

    async def commit_used(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
        days: int,
        *,
        reserved: Optional[bool] = None,
    ) -> Optional[EntitlementRecord]:
        """Consume a reservation on approval: ``pending -= days; used += days``.

        *reserved* says whether days were held at submit time; ``None`` falls
        back to the category's current bound.
        """
        self._check_days(days)
        category = await self._category(category_id)
        if not self._holds(category, reserved):
            return None

        result = await self.db.execute(
            update(EntitlementRecord)
            .where(
                *self._key(employee_id, category_id, year),
                EntitlementRecord.pending >= days,
            )
            .values(
                pending=EntitlementRecord.pending - days,
                used=EntitlementRecord.used + days,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return await self._after_settle(
            result.rowcount, "commit", employee_id, category, year, days,
        )

    async def release(
        self,
        employee_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
        days: int,
        *,
        reserved: Optional[bool] = None,
    ) -> Optional[EntitlementRecord]:
        """Return a reservation to the available pool on rejection: ``pending -= days``."""
        self._check_days(days)
        category = await self._category(category_id)
        if not self._holds(category, reserved):
            return None

        result = await self.db.execute(
            update(EntitlementRecord)
            .where(
                *self._key(employee_id, category_id, year),
                EntitlementRecord.pending >= days,
            )
            .values(
                pending=EntitlementRecord.pending - days,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return await self._after_settle(
            result.rowcount, "release", employee_id, category, year, days,
        )

    async def _after_settle(
        self,
        rowcount: int,
        action: str,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        year: int,
        days: int,
    ) -> EntitlementRecord:
        record = await self._find(employee_id, category.id, year)
        if rowcount == 1:
            logger.info(
                "Ledger %s of %d day(s) for %s/%s/%d (used=%d, pending=%d)",
                action, days, employee_id, category.code, year,
                record.used, record.pending,
            )
            return record

        if record is None:
            raise NoEntitlementRecord(employee_id, category.id, year)
        logger.error(
            "Ledger %s of %d day(s) for %s/%s/%d found only %d pending",
            action, days, employee_id, category.code, year, record.pending,
        )
        raise LedgerConflict(
            f"Cannot {action} {days} day(s): only {record.pending} pending "
            f"for year {year}."
        )
