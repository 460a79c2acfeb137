"""Read-only lookups against the organization directory.

The leave core consumes ``get_employee`` and ``get_leave_category``;
routing administration also resolves departments here.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrcore.common.exceptions import NotFoundException
from hrcore.leave.models import LeaveCategory
from hrcore.organization.models import Department, Employee


class OrganizationDirectory:
    """Async lookups for employees, departments and leave categories."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_employee(
        self,
        employee_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> Employee:
        query = select(Employee).where(Employee.id == employee_id)
        if active_only:
            query = query.where(Employee.is_active.is_(True))
        employee = (await self.db.execute(query)).scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    async def get_department(self, department_id: uuid.UUID) -> Department:
        result = await self.db.execute(
            select(Department).where(Department.id == department_id)
        )
        department = result.scalars().first()
        if department is None:
            raise NotFoundException("Department", str(department_id))
        return department

    async def get_leave_category(
        self,
        category_id: uuid.UUID,
        *,
        organization_id: Optional[uuid.UUID] = None,
        active_only: bool = False,
    ) -> LeaveCategory:
        """Load a category, optionally scoped to an organization / active only."""
        query = select(LeaveCategory).where(LeaveCategory.id == category_id)
        if organization_id is not None:
            query = query.where(LeaveCategory.organization_id == organization_id)
        if active_only:
            query = query.where(LeaveCategory.is_active.is_(True))
        category = (await self.db.execute(query)).scalars().first()
        if category is None:
            raise NotFoundException("LeaveCategory", str(category_id))
        return category
