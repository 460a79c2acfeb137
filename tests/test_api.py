"""HTTP API tests — leave, approvals and permission endpoints via httpx."""

from __future__ import annotations

import uuid

import pytest

from hrcore.common.constants import Role
from tests.conftest import (
    YEAR,
    add_employee,
    add_entitlement,
    auth_headers,
    create_access_token,
)

LEAVE = "/api/v1/leave"


def _submission(category_id, start: str = f"{YEAR}-03-10", end: str = f"{YEAR}-03-12") -> dict:
    return {
        "leave_category_id": str(category_id),
        "start_date": start,
        "end_date": end,
        "reason": "Family trip",
    }


# ═════════════════════════════════════════════════════════════════════
# System / identity
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_requires_bearer_token(client):
    resp = await client.get(f"{LEAVE}/requests")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(client, db, employee):
    await db.commit()
    token = create_access_token(employee.id, expired=True)

    resp = await client.get(
        f"{LEAVE}/requests", headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_type_rejected(client, db, employee):
    await db.commit()
    token = create_access_token(employee.id, token_type="refresh")

    resp = await client.get(
        f"{LEAVE}/requests", headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# Submit / decide
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_submit_and_approve_flow(client, db, employee, manager, annual, annual_balance):
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests", json=_submission(annual.id), headers=auth_headers(employee.id),
    )
    assert resp.status_code == 201
    created = resp.json()
    assert created["status"] == "pending"
    assert created["total_days"] == 3
    assert created["leave_category"]["code"] == "ANNUAL"

    resp = await client.get(f"{LEAVE}/approvals", headers=auth_headers(manager.id))
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [created["id"]]

    resp = await client.post(
        f"{LEAVE}/requests/{created['id']}/decision",
        json={"decision": "approved", "note": "Have fun"},
        headers=auth_headers(manager.id),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["decided_by"] == str(manager.id)

    resp = await client.get(
        f"{LEAVE}/entitlements", params={"year": YEAR}, headers=auth_headers(employee.id),
    )
    assert resp.status_code == 200
    [balance] = resp.json()
    assert (balance["used"], balance["pending"], balance["available"]) == (3, 0, 7)


@pytest.mark.asyncio
async def test_insufficient_balance_problem_detail(client, db, employee, annual):
    await add_entitlement(db, employee.id, annual.id, granted=2)
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests", json=_submission(annual.id), headers=auth_headers(employee.id),
    )

    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    body = resp.json()
    assert body["type"].endswith("/insufficient-balance")
    assert body["detail"] == "Insufficient balance: 2 days remaining."
    assert body["errors"]["remaining"] == ["2"]


@pytest.mark.asyncio
async def test_invalid_date_range_is_422(client, db, employee, annual, annual_balance):
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests",
        json=_submission(annual.id, start=f"{YEAR}-03-12", end=f"{YEAR}-03-10"),
        headers=auth_headers(employee.id),
    )

    assert resp.status_code == 422
    assert resp.json()["type"].endswith("/invalid-date-range")


@pytest.mark.asyncio
async def test_missing_entitlement_is_409(client, db, employee, annual):
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests", json=_submission(annual.id), headers=auth_headers(employee.id),
    )

    assert resp.status_code == 409
    assert resp.json()["type"].endswith("/no-entitlement-record")


@pytest.mark.asyncio
async def test_body_validation_is_problem_json(client, db, employee):
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests", json={"reason": ""}, headers=auth_headers(employee.id),
    )

    assert resp.status_code == 422
    assert "leave_category_id" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_self_approval_is_403(client, db, employee, manager, annual, annual_balance):
    await db.commit()
    resp = await client.post(
        f"{LEAVE}/requests", json=_submission(annual.id), headers=auth_headers(employee.id),
    )
    request_id = resp.json()["id"]

    resp = await client.post(
        f"{LEAVE}/requests/{request_id}/decision",
        json={"decision": "approved"},
        headers=auth_headers(employee.id),
    )

    assert resp.status_code == 403
    assert resp.json()["type"].endswith("/self-approval")


@pytest.mark.asyncio
async def test_second_decision_is_409(client, db, employee, manager, annual, annual_balance):
    await db.commit()
    resp = await client.post(
        f"{LEAVE}/requests", json=_submission(annual.id), headers=auth_headers(employee.id),
    )
    request_id = resp.json()["id"]
    decide_url = f"{LEAVE}/requests/{request_id}/decision"

    first = await client.post(
        decide_url, json={"decision": "rejected"}, headers=auth_headers(manager.id),
    )
    second = await client.post(
        decide_url, json={"decision": "approved"}, headers=auth_headers(manager.id),
    )

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["type"].endswith("/already-decided")


@pytest.mark.asyncio
async def test_preview_reports_warnings(client, db, employee, annual):
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests/preview",
        json={
            "leave_category_id": str(annual.id),
            "start_date": f"{YEAR}-03-10",
            "end_date": f"{YEAR}-03-10",
        },
        headers=auth_headers(employee.id),
    )

    assert resp.status_code == 200
    assert resp.json()["can_request"] is False
    assert resp.json()["warnings"] == ["no_entitlement"]


@pytest.mark.asyncio
async def test_colleague_cannot_read_requests(client, db, org, engineering, employee):
    colleague = await add_employee(db, org.id, engineering.id, first_name="Col")
    await db.commit()

    resp = await client.get(
        f"{LEAVE}/requests",
        params={"employee_id": str(employee.id)},
        headers=auth_headers(colleague.id),
    )

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_approver_can_read_member_requests(client, db, employee, manager):
    await db.commit()

    resp = await client.get(
        f"{LEAVE}/requests",
        params={"employee_id": str(employee.id)},
        headers=auth_headers(manager.id),
    )

    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_unknown_request_is_404(client, db, employee):
    await db.commit()

    resp = await client.get(
        f"{LEAVE}/requests/{uuid.uuid4()}", headers=auth_headers(employee.id),
    )

    assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# Administration
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_category_lifecycle(client, db, hr_admin):
    await db.commit()
    headers = auth_headers(hr_admin.id)

    resp = await client.post(
        f"{LEAVE}/categories",
        json={"code": "study", "name": "Study Leave", "default_allowance": 5},
        headers=headers,
    )
    assert resp.status_code == 201
    category_id = resp.json()["id"]

    dup = await client.post(
        f"{LEAVE}/categories", json={"code": "STUDY", "name": "Again"}, headers=headers,
    )
    assert dup.status_code == 409

    resp = await client.patch(
        f"{LEAVE}/categories/{category_id}", json={"notice_days": 14}, headers=headers,
    )
    assert resp.json()["notice_days"] == 14

    resp = await client.post(f"{LEAVE}/categories/{category_id}/toggle", headers=headers)
    assert resp.json()["is_active"] is False

    resp = await client.get(f"{LEAVE}/categories", params={"is_active": "true"}, headers=headers)
    assert resp.json() == []


@pytest.mark.asyncio
async def test_category_patch_with_null_name_is_422(client, db, hr_admin, annual):
    await db.commit()

    resp = await client.patch(
        f"{LEAVE}/categories/{annual.id}", json={"name": None}, headers=auth_headers(hr_admin.id),
    )

    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert "name" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_provision_and_allot(client, db, hr_admin, employee, annual):
    await db.commit()
    headers = auth_headers(hr_admin.id)

    resp = await client.post(
        f"{LEAVE}/entitlements/provision", json={"year": YEAR}, headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["created"] == 2

    resp = await client.put(
        f"{LEAVE}/entitlements",
        json={
            "employee_id": str(employee.id),
            "leave_category_id": str(annual.id),
            "year": YEAR,
            "granted": 12,
            "carried_over": 2,
        },
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["available"] == 14


@pytest.mark.asyncio
async def test_employee_cannot_configure(client, db, employee):
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/categories",
        json={"code": "X", "name": "X"},
        headers=auth_headers(employee.id),
    )

    assert resp.status_code == 403
    assert resp.json()["type"].endswith("/not-authorized")


# ═════════════════════════════════════════════════════════════════════
# Approval chains
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_approver_chain_endpoints(client, db, org, engineering, manager, hr_admin):
    deputy = await add_employee(db, org.id, None, first_name="Dep", role=Role.manager)
    await db.commit()
    headers = auth_headers(hr_admin.id)
    url = f"/api/v1/departments/{engineering.id}/approvers"

    resp = await client.post(url, json={"approver_id": str(deputy.id), "order": 1}, headers=headers)
    assert resp.status_code == 201
    assert [(a["approver_id"], a["order"]) for a in resp.json()["approvers"]] == [
        (str(deputy.id), 1), (str(manager.id), 2),
    ]

    dup = await client.post(url, json={"approver_id": str(deputy.id)}, headers=headers)
    assert dup.status_code == 409
    assert dup.json()["type"].endswith("/duplicate-approver")

    resp = await client.delete(f"{url}/{deputy.id}", headers=headers)
    assert resp.status_code == 200
    assert [(a["approver_id"], a["order"]) for a in resp.json()["approvers"]] == [
        (str(manager.id), 1),
    ]

    resp = await client.get(url, headers=auth_headers(manager.id))
    assert resp.json()["approvers"][0]["approver"]["full_name"] == "Mira Tester"


# ═════════════════════════════════════════════════════════════════════
# Permissions
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_role_permission_endpoints(client, db, hr_admin, employee):
    await db.commit()
    headers = auth_headers(hr_admin.id)

    resp = await client.get("/api/v1/permissions/roles/employee", headers=headers)
    assert resp.json()["permissions"] == ["leave.request"]

    resp = await client.put(
        "/api/v1/permissions/roles/employee",
        json={"permissions": ["leave.request", "leave.approve"]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["permissions"] == ["leave.approve", "leave.request"]

    resp = await client.put(
        f"/api/v1/permissions/employees/{employee.id}/role",
        json={"role": "hr"},
        headers=headers,
    )
    assert resp.json() == {"employee_id": str(employee.id), "role": "hr"}

    resp = await client.put(
        "/api/v1/permissions/roles/admin",
        json={"permissions": []},
        headers=auth_headers(employee.id),
    )
    assert resp.status_code == 403
