"""API tests through the ASGI app with an in-memory database."""

from decimal import Decimal

import pytest
from cryptography.fernet import Fernet

from hr_payroll import crypto
from hr_payroll.crypto import derive_key
from hr_payroll.services.permission_service import ALL_PERMISSIONS

pytestmark = pytest.mark.asyncio

API = "/api/v1"


async def _create(client, headers, path, payload):
    response = await client.post(f"{API}{path}", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _funded_employee(client, headers):
    """Employee split 0.60 on a budgeted position and 0.40 on the hub grant."""
    employee = await _create(
        client,
        headers,
        "/employees",
        {"staff_id": "EMP100", "organization": "SMRU", "first_name_en": "Api"},
    )
    employment = await _create(
        client,
        headers,
        "/employments",
        {
            "employee_id": employee["id"],
            "start_date": "2025-01-01",
            "pass_probation_salary": "30000.00",
        },
    )
    grant = await _create(
        client,
        headers,
        "/grants",
        {"code": "GR-001", "name": "Malaria Research", "organization": "SMRU"},
    )
    item = await _create(
        client,
        headers,
        f"/grants/{grant['id']}/items",
        {"grant_position": "Research Assistant", "grant_position_number": 1, "budget_line_code": "BL-01"},
    )
    hub = await _create(
        client,
        headers,
        "/grants",
        {"code": "S0031", "name": "SMRU Other Fund", "organization": "SMRU", "is_hub": True},
    )
    await _create(
        client,
        headers,
        "/allocations",
        {
            "employment_id": employment["id"],
            "allocations": [
                {"fte": "0.60", "grant_item_id": item["id"]},
                {"fte": "0.40", "allocation_type": "org_funded", "org_funded_grant_id": hub["id"]},
            ],
        },
    )
    return employee, employment, item


class TestHealth:
    """Health endpoints need no caller."""

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "healthy"
        assert body["encryption"] == "unused"
        assert body["missing_permissions"] == len(ALL_PERMISSIONS)
        assert body["status"] == "degraded"

    async def test_healthy_once_permissions_are_seeded(self, client, seeded_permissions):
        body = (await client.get("/health")).json()
        assert body["missing_permissions"] == 0
        assert body["status"] == "healthy"

    async def test_rotated_key_is_reported(self, client, admin_headers, monkeypatch):
        employee, _, _ = await _funded_employee(client, admin_headers)
        await _create(
            client, admin_headers, "/payrolls", {"employee_id": employee["id"], "pay_period": "2025-03"}
        )
        assert (await client.get("/health")).json()["encryption"] == "healthy"

        rotated = Fernet(derive_key("a-different-app-key"))
        monkeypatch.setattr(crypto, "get_cipher", lambda: rotated)
        body = (await client.get("/health")).json()
        assert body["encryption"] == "key_mismatch"
        assert body["status"] == "degraded"

    async def test_live(self, client):
        response = await client.get("/live")
        assert response.json() == {"status": "alive"}


class TestAuthorization:
    """Callers are identified by X-User-ID and checked per permission."""

    async def test_missing_header(self, client):
        response = await client.get(f"{API}/employees")
        assert response.status_code == 401

    async def test_malformed_header(self, client):
        response = await client.get(f"{API}/employees", headers={"X-User-ID": "not-a-uuid"})
        assert response.status_code == 401

    async def test_missing_permission(self, client, make_user):
        headers = await make_user("employee")
        response = await client.get(f"{API}/payrolls", headers=headers)
        assert response.status_code == 403
        assert "payroll.read" in response.json()["detail"]

    async def test_who_am_i(self, client, make_user):
        headers = await make_user("employee")
        response = await client.get(f"{API}/users/me", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["roles"] == ["employee"]
        assert body["permissions"] == sorted(body["permissions"])
        assert "leave_request.create" in body["permissions"]
        assert "payroll.read" not in body["permissions"]


class TestPayrollFlow:
    """From employee to processed payroll."""

    async def test_preview_then_process(self, client, admin_headers):
        employee, _, _ = await _funded_employee(client, admin_headers)
        request = {"employee_id": employee["id"], "pay_period": "2025-03"}

        preview = await client.post(f"{API}/payrolls/preview", json=request, headers=admin_headers)
        assert preview.status_code == 200, preview.text
        assert Decimal(preview.json()["totals"]["net_salary"]) == Decimal("28650.00")

        processed = await client.post(f"{API}/payrolls", json=request, headers=admin_headers)
        assert processed.status_code == 201, processed.text
        payrolls = processed.json()["payrolls"]
        assert len(payrolls) == 2
        codes = sorted(p["grant_allocations"][0]["grant_code"] for p in payrolls)
        assert codes == ["GR-001", "S0031"]

        again = await client.post(f"{API}/payrolls", json=request, headers=admin_headers)
        assert again.status_code == 409
        assert again.json()["code"] == "DUPLICATE_PAYROLL"

        listing = await client.get(
            f"{API}/payrolls",
            params={"employee_id": employee["id"], "pay_period": "2025-03"},
            headers=admin_headers,
        )
        assert listing.json()["total"] == 2

    async def test_fte_over_one_is_rejected(self, client, admin_headers):
        _, employment, item = await _funded_employee(client, admin_headers)

        response = await client.post(
            f"{API}/allocations",
            json={
                "employment_id": employment["id"],
                "allocations": [{"fte": "0.10", "grant_item_id": item["id"]}],
            },
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "FTE_EXCEEDED"

    async def test_invalid_pay_period(self, client, admin_headers):
        employee, _, _ = await _funded_employee(client, admin_headers)
        response = await client.post(
            f"{API}/payrolls",
            json={"employee_id": employee["id"], "pay_period": "2025-13"},
            headers=admin_headers,
        )
        assert response.status_code == 422


class TestRecycleBin:
    """Soft-deleted employees can be listed and restored."""

    async def test_delete_list_restore(self, client, admin_headers):
        employee = await _create(
            client,
            admin_headers,
            "/employees",
            {"staff_id": "EMP200", "organization": "SMRU", "first_name_en": "Gone"},
        )

        response = await client.delete(f"{API}/employees/{employee['id']}", headers=admin_headers)
        assert response.status_code == 204

        trash = await client.get(f"{API}/recycle-bin/employees", headers=admin_headers)
        assert [entry["label"] for entry in trash.json()] == ["EMP200"]

        restored = await client.post(
            f"{API}/recycle-bin/employees/{employee['id']}/restore", headers=admin_headers
        )
        assert restored.status_code == 204

        fetched = await client.get(f"{API}/employees/{employee['id']}", headers=admin_headers)
        assert fetched.status_code == 200
        assert fetched.json()["deleted_at"] is None

    async def test_unknown_model(self, client, admin_headers):
        response = await client.get(f"{API}/recycle-bin/grants", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_repaid_payroll_restore_conflicts(self, client, admin_headers):
        employee, _, _ = await _funded_employee(client, admin_headers)
        request = {"employee_id": employee["id"], "pay_period": "2025-03"}
        processed = await client.post(f"{API}/payrolls", json=request, headers=admin_headers)
        first = [p["id"] for p in processed.json()["payrolls"]]
        for payroll_id in first:
            response = await client.delete(f"{API}/payrolls/{payroll_id}", headers=admin_headers)
            assert response.status_code == 204
        again = await client.post(f"{API}/payrolls", json=request, headers=admin_headers)
        assert again.status_code == 201

        response = await client.post(
            f"{API}/recycle-bin/payrolls/{first[0]}/restore", headers=admin_headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_PAYROLL"


class TestAdvances:
    """Advances fronted for another organization's grant."""

    async def test_list_and_settle(self, client, admin_headers):
        employee = await _create(
            client,
            admin_headers,
            "/employees",
            {"staff_id": "EMP300", "organization": "SMRU", "first_name_en": "Cross"},
        )
        employment = await _create(
            client,
            admin_headers,
            "/employments",
            {
                "employee_id": employee["id"],
                "start_date": "2025-01-01",
                "pass_probation_salary": "30000.00",
            },
        )
        await _create(
            client,
            admin_headers,
            "/grants",
            {"code": "S0031", "name": "SMRU Other Fund", "organization": "SMRU", "is_hub": True},
        )
        grant = await _create(
            client,
            admin_headers,
            "/grants",
            {"code": "BHF-01", "name": "Border Health", "organization": "BHF"},
        )
        item = await _create(
            client,
            admin_headers,
            f"/grants/{grant['id']}/items",
            {"grant_position": "Nurse", "grant_position_number": 1},
        )
        await _create(
            client,
            admin_headers,
            "/allocations",
            {
                "employment_id": employment["id"],
                "allocations": [{"fte": "1.00", "grant_item_id": item["id"]}],
            },
        )
        await _create(
            client,
            admin_headers,
            "/payrolls",
            {"employee_id": employee["id"], "pay_period": "2025-03"},
        )

        listing = await client.get(
            f"{API}/advances", params={"organization": "BHF"}, headers=admin_headers
        )
        assert listing.status_code == 200
        [advance] = listing.json()
        assert advance["from_organization"] == "SMRU"
        assert advance["is_settled"] is False

        settled = await client.post(
            f"{API}/advances/{advance['id']}/settle",
            json={"settlement_date": "2025-04-30"},
            headers=admin_headers,
        )
        assert settled.status_code == 200, settled.text
        assert settled.json()["settlement_date"] == "2025-04-30"

        again = await client.post(
            f"{API}/advances/{advance['id']}/settle", json={}, headers=admin_headers
        )
        assert again.status_code == 409

        open_advances = await client.get(
            f"{API}/advances", params={"settled": "false"}, headers=admin_headers
        )
        assert open_advances.json() == []
