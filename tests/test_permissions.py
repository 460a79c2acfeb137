"""Authorization tests — persisted role matrix, role assignment, enforcement."""

from __future__ import annotations

from datetime import date

import pytest

from hrcore.auth.service import AuthorizationService
from hrcore.common.constants import (
    DEFAULT_ROLE_PERMISSIONS,
    LeaveDecision,
    Permission,
    Role,
)
from hrcore.common.exceptions import NotAuthorized
from hrcore.leave.service import LeaveWorkflow
from tests.conftest import YEAR, add_employee


class TestRoleResolution:
    async def test_employee_without_assignment_has_employee_role(self, db, employee):
        assert await AuthorizationService(db).get_role(employee.id) == Role.employee

    async def test_assigned_role(self, db, manager):
        assert await AuthorizationService(db).get_role(manager.id) == Role.manager

    async def test_seed_defaults_is_idempotent(self, db, org):
        authz = AuthorizationService(db)

        assert await authz.seed_defaults(org.id) == 0
        for role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
            assert await authz.get_role_permissions(org.id, role) == sorted(
                permissions, key=lambda p: p.value,
            )


class TestEnforcement:
    async def test_has_permission_reads_matrix(self, db, employee, manager):
        authz = AuthorizationService(db)

        assert await authz.has_permission(employee, Permission.leave_request)
        assert not await authz.has_permission(employee, Permission.leave_approve)
        assert await authz.has_permission(manager, Permission.leave_approve)

    async def test_require_raises(self, db, employee):
        with pytest.raises(NotAuthorized):
            await AuthorizationService(db).require(employee, Permission.leave_configure)

    async def test_permission_change_applies_on_next_call(
        self, db, org, employee, manager, hr_admin, annual, annual_balance,
    ):
        authz = AuthorizationService(db)
        workflow = LeaveWorkflow(db, authz=authz)
        request = await workflow.submit(
            employee.id, annual.id, date(YEAR, 3, 2), date(YEAR, 3, 2), "Errand",
        )

        await authz.set_role_permissions(
            org.id, Role.manager, [Permission.leave_request], actor_id=hr_admin.id,
        )
        with pytest.raises(NotAuthorized):
            await workflow.decide(request.id, manager.id, LeaveDecision.approved)

        await authz.set_role_permissions(
            org.id, Role.manager,
            [Permission.leave_request, Permission.leave_approve],
            actor_id=hr_admin.id,
        )
        decided = await workflow.decide(request.id, manager.id, LeaveDecision.approved)
        assert decided.decided_by == manager.id


class TestAdministration:
    async def test_set_role_permissions_requires_permissions_manage(self, db, org, manager):
        with pytest.raises(NotAuthorized):
            await AuthorizationService(db).set_role_permissions(
                org.id, Role.employee, list(Permission), actor_id=manager.id,
            )

    async def test_set_role_permissions_deduplicates(self, db, org, hr_admin):
        authz = AuthorizationService(db)

        result = await authz.set_role_permissions(
            org.id, Role.employee,
            [Permission.leave_request, Permission.leave_request],
            actor_id=hr_admin.id,
        )

        assert result == [Permission.leave_request]
        assert await authz.get_role_permissions(org.id, Role.employee) == [
            Permission.leave_request,
        ]

    async def test_assign_role_replaces_previous(self, db, org, employee, hr_admin):
        authz = AuthorizationService(db)

        await authz.assign_role(employee.id, Role.manager, actor_id=hr_admin.id)
        await authz.assign_role(employee.id, Role.hr, actor_id=hr_admin.id)

        assert await authz.get_role(employee.id) == Role.hr
        assert await authz.has_permission(employee, Permission.leave_configure)

    async def test_assign_role_requires_permissions_manage(self, db, org, engineering, manager):
        target = await add_employee(db, org.id, engineering.id, first_name="Tia")

        with pytest.raises(NotAuthorized):
            await AuthorizationService(db).assign_role(
                target.id, Role.admin, actor_id=manager.id,
            )
