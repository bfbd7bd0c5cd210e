"""API endpoint integration tests.

Drives the FastAPI app end to end over an in-memory record store.
"""

from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wage_ledger.api.app import create_app
from wage_ledger.store import Collections, InMemoryRecordStore

from conftest import make_settings

pytestmark = pytest.mark.asyncio

MANAGER = {"X-User-Id": "mgr-1", "X-User-Role": "manager"}
VIEWER = {"X-User-Id": "viewer-1", "X-User-Role": "user"}
PHONE = "9876543210"


@pytest.fixture
def api_store() -> InMemoryRecordStore:
    return InMemoryRecordStore(
        {
            Collections.EMPLOYEES: [
                {"id": "emp-a", "name": "Asha", "daily_rate": "500"},
                {"id": "emp-b", "name": "Ravi", "daily_rate": "600"},
                {"id": "emp-c", "name": "Meena"},
            ]
        }
    )


@pytest_asyncio.fixture
async def client(api_store: InMemoryRecordStore) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app(store=api_store, settings=make_settings())
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def mark_week(client: AsyncClient, employee_id: str) -> None:
    for day in range(1, 6):
        response = await client.post(
            "/api/v1/attendance",
            headers=MANAGER,
            json={
                "employee_id": employee_id,
                "attendance_date": f"2024-01-0{day}",
                "status": "present",
                "check_in": "09:00",
                "check_out": "18:00",
                "overtime_hours": "2" if day == 3 else None,
            },
        )
        assert response.status_code == 200, response.text


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] == "healthy"
        assert "timestamp" in data

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestAuthHeaders:
    async def test_missing_user_is_401(self, client: AsyncClient):
        response = await client.get("/api/v1/attendance/daily", params={"date": "2024-01-02"})
        assert response.status_code == 401

    async def test_viewer_cannot_write(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/advances",
            headers=VIEWER,
            json={"employee_id": "emp-a", "amount": "100"},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "PERMISSION"


class TestPayrollFlow:
    """Preview, commit and re-commit over HTTP."""

    async def test_preview_then_commit(self, client: AsyncClient):
        await mark_week(client, "emp-a")
        response = await client.post(
            "/api/v1/advances",
            headers=MANAGER,
            json={"employee_id": "emp-a", "amount": "300", "advance_date": "2024-01-03"},
        )
        assert response.status_code == 201, response.text
        assert response.json()["status"] == "pending"

        preview = await client.get(
            "/api/v1/payroll/emp-a/preview",
            headers=VIEWER,
            params={"period_start": "2024-01-01", "period_end": "2024-01-07"},
        )
        assert preview.status_code == 200, preview.text
        body = preview.json()
        assert Decimal(body["basic_salary"]) == Decimal("2500")
        assert Decimal(body["overtime_amount"]) == Decimal("187.50")
        assert Decimal(body["advance_deductions"]) == Decimal("300")
        assert Decimal(body["net_salary"]) == Decimal("2387.50")

        commit = await client.post(
            "/api/v1/payroll/emp-a/commit",
            headers=MANAGER,
            json={
                "period_start": "2024-01-01",
                "period_end": "2024-01-07",
                "payment_method": "upi",
                "payment_date": "2024-01-08",
            },
        )
        assert commit.status_code == 200, commit.text
        first = commit.json()
        assert first["is_new"] is True
        assert first["payment"]["calculation_id"] == body["calculation_id"]

        again = await client.post(
            "/api/v1/payroll/emp-a/commit",
            headers=MANAGER,
            json={"period_start": "2024-01-01", "period_end": "2024-01-07"},
        )
        assert again.status_code == 200
        assert again.json()["is_new"] is False
        assert again.json()["payment"]["id"] == first["payment"]["id"]

        advances = await client.get("/api/v1/employees/emp-a/advances", headers=VIEWER)
        assert [a["status"] for a in advances.json()] == ["deducted"]

    async def test_overlapping_commit_is_409(self, client: AsyncClient):
        await mark_week(client, "emp-a")
        await client.post(
            "/api/v1/payroll/emp-a/commit",
            headers=MANAGER,
            json={"period_start": "2024-01-01", "period_end": "2024-01-07"},
        )
        response = await client.post(
            "/api/v1/payroll/emp-a/commit",
            headers=MANAGER,
            json={"period_start": "2024-01-05", "period_end": "2024-01-12"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    async def test_unknown_employee_is_404(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/payroll/ghost/preview",
            headers=VIEWER,
            params={"period_start": "2024-01-01", "period_end": "2024-01-07"},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_inverted_period_is_400(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/payroll/emp-a/preview",
            headers=VIEWER,
            params={"period_start": "2024-01-07", "period_end": "2024-01-01"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION"

    async def test_bulk_pay_isolates_failures(self, client: AsyncClient):
        await mark_week(client, "emp-b")
        await mark_week(client, "emp-c")

        response = await client.post(
            "/api/v1/payroll/bulk-pay",
            headers=MANAGER,
            json={
                "employee_ids": ["emp-b", "ghost", "emp-c"],
                "period_start": "2024-01-01",
                "period_end": "2024-01-07",
            },
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["succeeded"] == ["emp-b", "emp-c"]
        assert data["failed"][0]["id"] == "ghost"
        assert data["failed"][0]["error_kind"] == "not_found"
        assert data["details"]["emp-c"]["rate_defaulted"] is True
        assert Decimal(data["details"]["emp-b"]["net_salary"]) == Decimal("3225.00")

    async def test_mark_all_then_pay_present(self, client: AsyncClient):
        marked = await client.post(
            "/api/v1/attendance/mark-all",
            headers=MANAGER,
            json={"employee_ids": ["emp-a", "emp-b"], "attendance_date": "2024-02-01"},
        )
        assert marked.status_code == 200
        assert marked.json()["succeeded"] == ["emp-a", "emp-b"]

        daily = await client.get(
            "/api/v1/attendance/daily", headers=VIEWER, params={"date": "2024-02-01"}
        )
        assert daily.json()["present"] == 2
        assert daily.json()["not_marked"] == 1

        paid = await client.post(
            "/api/v1/payroll/bulk-pay",
            headers=MANAGER,
            json={"period_start": "2024-02-01"},
        )
        assert paid.json()["succeeded"] == ["emp-a", "emp-b"]

        totals = await client.get(
            "/api/v1/reports/salary-totals", headers=VIEWER, params={"group_by": "month"}
        )
        [february] = totals.json()
        assert february["label"] == "2024-02"
        assert Decimal(february["amount"]) == Decimal("1100.00")

        summary = await client.get("/api/v1/employees/emp-a/summary", headers=VIEWER)
        assert Decimal(summary.json()["total_salary"]) == Decimal("500.00")


class TestAttendanceEndpoints:
    async def test_bulk_entries_report_per_item(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/attendance/bulk",
            headers=MANAGER,
            json={
                "entries": [
                    {"employee_id": "emp-a", "attendance_date": "2024-01-01", "status": "present"},
                    {"employee_id": "ghost", "attendance_date": "2024-01-01", "status": "present"},
                ]
            },
        )
        data = response.json()
        assert data["succeeded"] == ["emp-a@2024-01-01"]
        assert data["failed"][0]["error_kind"] == "not_found"

    async def test_mark_and_delete(self, client: AsyncClient, api_store: InMemoryRecordStore):
        marked = await client.post(
            "/api/v1/attendance",
            headers=MANAGER,
            json={"employee_id": "emp-a", "attendance_date": "2024-01-02", "status": "absent"},
        )
        assert marked.json()["work_hours"] == "0"

        deleted = await client.delete(f"/api/v1/attendance/{marked.json()['id']}", headers=MANAGER)
        assert deleted.status_code == 204
        assert api_store.count(Collections.ATTENDANCE) == 0

    async def test_bad_status_is_422(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/attendance",
            headers=MANAGER,
            json={"employee_id": "emp-a", "attendance_date": "2024-01-02", "status": "holiday"},
        )
        assert response.status_code == 422


class TestReceivablesEndpoints:
    async def create_invoice(self, client: AsyncClient, price: str) -> dict:
        response = await client.post(
            "/api/v1/invoices",
            headers=MANAGER,
            json={
                "customer_phone": "+91 98765 43210",
                "items": [{"description": "Cement", "quantity": "1", "price": price}],
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def test_balance_after_invoices_and_advance(self, client: AsyncClient):
        await self.create_invoice(client, "1200")
        await self.create_invoice(client, "800")
        advance = await client.post(
            f"/api/v1/customers/{PHONE}/advances",
            headers=MANAGER,
            json={"amount": "500", "method": "upi"},
        )
        assert advance.status_code == 201

        balance = await client.get("/api/v1/customers/09876543210/balance", headers=VIEWER)

        assert balance.status_code == 200
        data = balance.json()
        assert data["customer_key"] == PHONE
        assert Decimal(data["balance"]) == Decimal("-1500.00")
        assert len(data["pending_invoices"]) == 2

    async def test_mark_paid_twice_is_409(self, client: AsyncClient, api_store):
        invoice = await self.create_invoice(client, "1200")

        first = await client.post(
            f"/api/v1/invoices/{invoice['id']}/mark-paid", headers=MANAGER, json={"method": "cash"}
        )
        second = await client.post(
            f"/api/v1/invoices/{invoice['id']}/mark-paid", headers=MANAGER, json={}
        )

        assert first.status_code == 200
        assert Decimal(first.json()["amount"]) == Decimal("1200.00")
        assert second.status_code == 409
        assert second.json()["code"] == "INVALID_TRANSITION"
        assert api_store.count(Collections.PAYMENTS) == 1

    async def test_bad_phone_is_400(self, client: AsyncClient):
        response = await client.get("/api/v1/customers/12345/balance", headers=VIEWER)
        assert response.status_code == 400


class TestEmployeeEndpoints:
    async def test_create_then_preview(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/employees",
            headers=MANAGER,
            json={"name": "Kiran", "daily_rate": "650", "phone": "+91 98765 43210"},
        )
        assert response.status_code == 201, response.text
        created = response.json()
        assert created["id"] == "EMP0001"
        assert created["phone"] == PHONE
        assert created["status"] == "active"

        await client.post(
            "/api/v1/attendance",
            headers=MANAGER,
            json={"employee_id": "EMP0001", "attendance_date": "2024-01-02"},
        )
        preview = await client.get(
            "/api/v1/payroll/EMP0001/preview",
            headers=VIEWER,
            params={"period_start": "2024-01-02", "period_end": "2024-01-02"},
        )
        assert preview.status_code == 200, preview.text
        assert Decimal(preview.json()["net_salary"]) == Decimal("650")

    async def test_patch_changes_only_sent_fields(self, client: AsyncClient):
        response = await client.patch(
            "/api/v1/employees/emp-b", headers=MANAGER, json={"daily_rate": "750"}
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert Decimal(body["daily_rate"]) == Decimal("750")
        assert body["name"] == "Ravi"

        fetched = await client.get("/api/v1/employees/emp-b", headers=VIEWER)
        assert Decimal(fetched.json()["daily_rate"]) == Decimal("750")

    async def test_bad_phone_is_400(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/employees",
            headers=MANAGER,
            json={"name": "Kiran", "daily_rate": "650", "phone": "12345"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION"

    async def test_zero_rate_is_422(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/employees", headers=MANAGER, json={"name": "Kiran", "daily_rate": "0"}
        )
        assert response.status_code == 422

    async def test_duplicate_id_is_409(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/employees",
            headers=MANAGER,
            json={"id": "emp-a", "name": "Other", "daily_rate": "500"},
        )
        assert response.status_code == 409

    async def test_list_by_status(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/employees/emp-c/status", headers=MANAGER, json={"status": "inactive"}
        )
        assert response.status_code == 200, response.text

        active = await client.get(
            "/api/v1/employees", headers=VIEWER, params={"status": "active"}
        )
        assert [e["id"] for e in active.json()] == ["emp-a", "emp-b"]

    async def test_unknown_employee_is_404(self, client: AsyncClient):
        response = await client.get("/api/v1/employees/ghost", headers=VIEWER)
        assert response.status_code == 404
