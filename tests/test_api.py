"""API endpoint tests.

Tests the FastAPI endpoints for payroll runs, line items and YTD totals.
"""

from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from payroll_batch.api import create_app
from payroll_batch.api.dependencies import get_db_session
from tests.conftest import PAY_DATE_1, make_entry


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client bound to the test database."""
    app = create_app(session_factory)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_run(client: AsyncClient, period_id) -> dict:
    response = await client.post(
        "/api/v1/payroll-runs",
        json={
            "period_id": str(period_id),
            "pay_date": PAY_DATE_1.isoformat(),
            "pay_frequency_default": "biweekly",
            "created_by": "payroll.clerk",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["engine_version"]
        assert "checked_at" in data

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_readiness_reports_database_outage(self, session_factory):
        class UnreachableSession:
            async def execute(self, statement):
                raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

        app = create_app(session_factory)
        app.dependency_overrides[get_db_session] = UnreachableSession
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            ready = await client.get("/ready")
            health = await client.get("/health")

        assert ready.status_code == 503
        assert ready.json()["status"] == "unavailable"
        assert health.status_code == 200
        assert health.json()["status"] == "degraded"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestPayrollRunEndpoints:
    """Test payroll run endpoints."""

    async def test_calculate_payroll(self, client: AsyncClient, seeded):
        """POST /api/v1/payroll-runs should calculate and persist a run."""
        data = await create_run(client, seeded.period_1_id)

        assert data["status"] == "completed"
        assert data["total_employees"] == 3
        assert data["errors"] == []
        items = {i["employee_name"]: i for i in data["line_items"]}
        assert Decimal(items["Alice Anders"]["gross_pay"]) == Decimal("2000.00")
        assert Decimal(items["Bob Brown"]["net_pay"]) == Decimal("1500.50")

    async def test_calculate_payroll_unknown_period(self, client: AsyncClient, seeded):
        response = await client.post(
            "/api/v1/payroll-runs",
            json={"period_id": str(uuid4()), "pay_date": "2024-01-19"},
        )

        assert response.status_code == 404
        assert "not found" in response.json()["detail"]

    async def test_calculate_payroll_rejects_unknown_frequency(self, client: AsyncClient, seeded):
        response = await client.post(
            "/api/v1/payroll-runs",
            json={
                "period_id": str(seeded.period_1_id),
                "pay_date": "2024-01-19",
                "pay_frequency_default": "fortnightly",
            },
        )

        assert response.status_code == 422

    async def test_get_and_list_runs(self, client: AsyncClient, seeded):
        created = await create_run(client, seeded.period_1_id)

        response = await client.get(f"/api/v1/payroll-runs/{created['run_id']}")
        assert response.status_code == 200
        run = response.json()
        assert run["status"] == "completed"
        assert run["created_by"] == "payroll.clerk"
        assert Decimal(run["total_gross"]) == Decimal("4820.00")
        assert run["finalized_at"] is None

        response = await client.get(
            "/api/v1/payroll-runs", params={"period_id": str(seeded.period_1_id)}
        )
        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_get_run_not_found(self, client: AsyncClient):
        response = await client.get(f"/api/v1/payroll-runs/{uuid4()}")
        assert response.status_code == 404

    async def test_run_errors_exposed(self, client: AsyncClient, seeded, add_all):
        await add_all(
            make_entry(seeded.period_1_id, date(2024, 1, 2), code="E999", first_name="Zed", last_name="Quinn", duration="8")
        )
        created = await create_run(client, seeded.period_1_id)

        run = (await client.get(f"/api/v1/payroll-runs/{created['run_id']}")).json()
        assert run["status"] == "completed_with_errors"
        assert run["error_count"] == 1
        assert run["errors"][0]["employee_name"] == "Zed Quinn"

    async def test_finalize_run(self, client: AsyncClient, seeded):
        created = await create_run(client, seeded.period_1_id)

        response = await client.post(f"/api/v1/payroll-runs/{created['run_id']}/finalize")
        assert response.status_code == 200
        assert response.json()["status"] == "finalized"
        assert response.json()["finalized_at"] is not None

        response = await client.post(f"/api/v1/payroll-runs/{created['run_id']}/finalize")
        assert response.status_code == 409

    async def test_finalize_unknown_run(self, client: AsyncClient):
        response = await client.post(f"/api/v1/payroll-runs/{uuid4()}/finalize")
        assert response.status_code == 404


class TestLineItemEndpoints:
    """Test line item listing and overrides."""

    async def test_list_line_items(self, client: AsyncClient, seeded):
        created = await create_run(client, seeded.period_1_id)

        response = await client.get("/api/v1/line-items", params={"run_id": created["run_id"]})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [i["employee_name"] for i in data["items"]] == [
            "Alice Anders",
            "Bob Brown",
            "Carol Chen",
        ]

        response = await client.get(
            "/api/v1/line-items", params={"employee_id": str(seeded.bob.employee_id)}
        )
        assert response.json()["total"] == 1

    async def test_override_line_item(self, client: AsyncClient, seeded):
        created = await create_run(client, seeded.period_1_id)
        alice = next(i for i in created["line_items"] if i["employee_name"] == "Alice Anders")

        response = await client.post(
            f"/api/v1/line-items/{alice['line_item_id']}/override",
            json={"new_gross_amount": "2500.00", "reason": "Signing bonus", "actor": "hr.lead"},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["is_override"] is True
        assert Decimal(data["gross_pay"]) == Decimal("2500.00")
        assert Decimal(data["net_pay"]) == Decimal("2237.50")
        assert data["override_reason"] == "Signing bonus"

    async def test_override_requires_reason(self, client: AsyncClient, seeded):
        created = await create_run(client, seeded.period_1_id)
        item_id = created["line_items"][0]["line_item_id"]

        response = await client.post(
            f"/api/v1/line-items/{item_id}/override",
            json={"new_gross_amount": "100", "reason": ""},
        )

        assert response.status_code == 422

    async def test_override_after_finalize_conflicts(self, client: AsyncClient, seeded):
        created = await create_run(client, seeded.period_1_id)
        await client.post(f"/api/v1/payroll-runs/{created['run_id']}/finalize")
        item_id = created["line_items"][0]["line_item_id"]

        response = await client.post(
            f"/api/v1/line-items/{item_id}/override",
            json={"new_gross_amount": "100", "reason": "Too late"},
        )

        assert response.status_code == 409

    async def test_override_unknown_line_item(self, client: AsyncClient):
        response = await client.post(
            f"/api/v1/line-items/{uuid4()}/override",
            json={"new_gross_amount": "100", "reason": "Missing"},
        )

        assert response.status_code == 404


class TestYtdEndpoints:
    """Test YTD summary endpoint."""

    async def test_get_ytd_summary(self, client: AsyncClient, seeded):
        await create_run(client, seeded.period_1_id)

        response = await client.get(f"/api/v1/employees/{seeded.bob.employee_id}/ytd/2024")

        assert response.status_code == 200
        data = response.json()
        assert data["year"] == 2024
        assert Decimal(data["ytd_gross_pay"]) == Decimal("1900.00")
        assert Decimal(data["ytd_loan_deduction"]) == Decimal("200.00")

    async def test_ytd_summary_not_found(self, client: AsyncClient, seeded):
        response = await client.get(f"/api/v1/employees/{seeded.bob.employee_id}/ytd/2023")
        assert response.status_code == 404
