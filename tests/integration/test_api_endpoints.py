"""API endpoint tests against a SQLite-backed app."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.models import AuditLog, Bonus


async def _audit_actions(session) -> list[str]:
    result = await session.execute(select(AuditLog.action_type).order_by(AuditLog.id))
    return list(result.scalars().all())


class TestHealthEndpoints:
    """Test health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Test health check reports the database."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    @pytest.mark.asyncio
    async def test_liveness_and_readiness(self, client):
        """Test liveness and readiness endpoints."""
        assert (await client.get("/live")).json() == {"status": "alive"}
        assert (await client.get("/ready")).json() == {"status": "ready"}


class TestSalaryEndpoints:
    """Test basic salary and record endpoints."""

    @pytest.mark.asyncio
    async def test_mutation_requires_actor(self, client, staff):
        """Test writes without X-Actor-ID are rejected."""
        response = await client.post(
            "/api/v1/salary/basic",
            json={"employee_id": staff.alice.id, "basic_salary": 6000},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_set_and_get_basic_salary(self, client, session, staff, hr_headers):
        """Test a salary write is readable and audited after commit."""
        response = await client.post(
            "/api/v1/salary/basic",
            json={"employee_id": staff.alice.id, "basic_salary": "6000.00"},
            headers=hr_headers,
        )
        assert response.status_code == 201

        response = await client.get(
            "/api/v1/salary/basic", params={"employee_id": staff.alice.id}
        )
        assert Decimal(response.json()["basic_salary"]) == Decimal("6000")

        rows = (await session.execute(select(AuditLog))).scalars().all()
        assert [(r.action_type, r.actor_id, r.actor_role) for r in rows] == [
            ("SET_BASIC_SALARY", "hr-7", "HR")
        ]
        assert rows[0].target_table == "salaries"

    @pytest.mark.asyncio
    async def test_validation_error_shape(self, client, staff, hr_headers):
        """Test engine validation errors map to 400 with a code."""
        response = await client.post(
            "/api/v1/salary/deductions",
            json={
                "employee_id": staff.alice.id,
                "name": "Pension",
                "type": "Statutory",
                "basis": "Percent",
                "effective_date": "2024-01-01",
            },
            headers=hr_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert "percent" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_employee_is_404(self, client, staff, hr_headers):
        """Test writes for missing employees map to 404."""
        response = await client.post(
            "/api/v1/salary/bonuses",
            json={"employee_id": 90210, "amount": 100, "effective_date": "2024-01-10"},
            headers=hr_headers,
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_deduction_lifecycle(self, client, staff, hr_headers):
        """Test a deduction reduces net until it is stopped."""
        created = await client.post(
            "/api/v1/salary/deductions",
            json={
                "employee_id": staff.bob.id,
                "name": "Loan",
                "type": "Loan",
                "basis": "Fixed",
                "amount": "150",
                "effective_date": "2024-01-01",
            },
            headers=hr_headers,
        )
        assert created.status_code == 201
        deduction_id = created.json()["id"]

        summary = await client.get(
            "/api/v1/payroll/summary",
            params={"month": 3, "year": 2024, "search": "Bob"},
        )
        assert Decimal(summary.json()["items"][0]["net"]) == Decimal("3850")

        stopped = await client.patch(
            f"/api/v1/salary/deductions/{deduction_id}/status",
            json={"status": "Inactive"},
            headers=hr_headers,
        )
        assert stopped.status_code == 200
        assert stopped.json()["status"] == "Inactive"

        summary = await client.get(
            "/api/v1/payroll/summary",
            params={"month": 3, "year": 2024, "search": "Bob"},
        )
        assert Decimal(summary.json()["items"][0]["net"]) == Decimal("4000")

    @pytest.mark.asyncio
    async def test_list_allowances_includes_names(self, client, staff, hr_headers):
        """Test allowance listings carry employee names."""
        await client.post(
            "/api/v1/salary/allowances",
            json={
                "employee_id": staff.bob.id,
                "description": "Meal",
                "amount": "20",
                "effective_from": "2024-01-01",
            },
            headers=hr_headers,
        )

        response = await client.get("/api/v1/salary/allowances")

        assert [(a["name"], a["employee_name"]) for a in response.json()] == [
            ("Meal", "Bob Osei")
        ]


class TestOvertimeEndpoints:
    """Test overtime rule and adjustment endpoints."""

    @pytest.mark.asyncio
    async def test_rule_then_capped_adjustment(self, client, org, staff, hr_headers):
        """Test the cap error carries its own code and status."""
        rule = await client.put(
            f"/api/v1/overtime/rules/{org.junior.id}",
            json={"rate": "50", "max_hours": "20"},
            headers=hr_headers,
        )
        assert rule.status_code == 200
        assert Decimal(rule.json()["rate"]) == Decimal("50")

        over = await client.post(
            "/api/v1/overtime/adjustments",
            json={"employee_id": staff.alice.id, "hours": "25"},
            headers=hr_headers,
        )
        assert over.status_code == 400
        assert over.json()["code"] == "CAP_EXCEEDED"

        ok = await client.post(
            "/api/v1/overtime/adjustments",
            json={"employee_id": staff.alice.id, "hours": "20"},
            headers=hr_headers,
        )
        assert ok.status_code == 201
        assert Decimal(ok.json()["amount"]) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_missing_rule(self, client, org, staff, hr_headers):
        """Test a grade without a rule maps to 404."""
        response = await client.post(
            "/api/v1/overtime/adjustments",
            json={"employee_id": staff.bob.id, "hours": "3"},
            headers=hr_headers,
        )

        assert response.status_code == 404
        assert response.json()["code"] == "RULE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_get_rule_not_found(self, client, org):
        """Test reading a rule that was never set."""
        response = await client.get(f"/api/v1/overtime/rules/{org.senior.id}")

        assert response.status_code == 404


class TestPayrollEndpoints:
    """Test aggregation, run and payslip endpoints."""

    @pytest.mark.asyncio
    async def test_invalid_month(self, client, staff):
        """Test an out-of-range month is a 400."""
        response = await client.get("/api/v1/payroll/earnings", params={"month": 13, "year": 2024})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_earnings_filtered_by_department(self, client, org, staff):
        """Test earnings rows for one department."""
        response = await client.get(
            "/api/v1/payroll/earnings",
            params={"month": 1, "year": 2024, "department_id": org.engineering.id},
        )

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["name"] == "Alice Martin"
        assert data["items"][0]["department"] == "Engineering"
        assert Decimal(data["items"][0]["gross"]) == Decimal("5000")

    @pytest.mark.asyncio
    async def test_earnings_without_period(self, client, staff, hr_headers):
        """Test earnings sum every month when month and year are omitted."""
        for effective_date in ("2023-05-10", "2024-02-10"):
            created = await client.post(
                "/api/v1/salary/bonuses",
                json={
                    "employee_id": staff.bob.id,
                    "amount": 100,
                    "effective_date": effective_date,
                },
                headers=hr_headers,
            )
            assert created.status_code == 201

        response = await client.get("/api/v1/payroll/earnings", params={"search": "Bob"})
        partial = await client.get("/api/v1/payroll/earnings", params={"month": 2})

        assert response.status_code == 200
        row = response.json()["items"][0]
        assert Decimal(row["bonus"]) == Decimal("200")
        assert Decimal(row["gross"]) == Decimal("4200")
        assert partial.status_code == 400

    @pytest.mark.asyncio
    async def test_run_twice_and_list_latest(self, client, session, staff, hr_headers):
        """Test repeated runs append and latest keeps one row per employee."""
        for _ in range(2):
            response = await client.post(
                "/api/v1/payroll/run", json={"month": 1, "year": 2024}, headers=hr_headers
            )
            assert response.status_code == 201
            assert response.json()["count"] == 3

        all_cycles = await client.get("/api/v1/payroll/cycles", params={"month": 1, "year": 2024})
        latest = await client.get(
            "/api/v1/payroll/cycles", params={"month": 1, "year": 2024, "latest": "true"}
        )

        assert all_cycles.json()["total"] == 6
        assert latest.json()["total"] == 3
        assert await _audit_actions(session) == ["RUN_PAYROLL", "RUN_PAYROLL"]

    @pytest.mark.asyncio
    async def test_payslip(self, client, staff):
        """Test payslip data for an employee."""
        response = await client.get(
            "/api/v1/payroll/payslip",
            params={"employee_id": staff.alice.id, "month": 1, "year": 2024},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Alice Martin"
        assert Decimal(data["summary"]["net"]) == Decimal("5000")
        assert data["items"] == []

    @pytest.mark.asyncio
    async def test_payslip_unknown_employee(self, client, staff):
        """Test payslip for a missing employee."""
        response = await client.get(
            "/api/v1/payroll/payslip",
            params={"employee_id": 4040, "month": 1, "year": 2024},
        )

        assert response.status_code == 404


class TestCompensationEndpoints:
    """Test batch compensation endpoints."""

    @pytest.mark.asyncio
    async def test_preview_then_apply(self, client, session, staff, hr_headers):
        """Test preview totals match the applied batch."""
        body = {
            "type": "Bonus",
            "mode": "percent",
            "percent": "10",
            "period_month": "2024-02",
            "employee_ids": [staff.alice.id, staff.bob.id],
            "note": "Q1 award",
        }

        preview = await client.post("/api/v1/compensation/preview", json=body)
        applied = await client.post("/api/v1/compensation/apply", json=body, headers=hr_headers)

        assert preview.status_code == 200
        assert applied.status_code == 201
        assert Decimal(preview.json()["total"]) == Decimal("900")
        assert Decimal(applied.json()["total"]) == Decimal("900")
        assert applied.json()["applied_count"] == 2
        assert all(line["record_id"] for line in applied.json()["lines"])
        assert await _audit_actions(session) == ["BATCH_APPLY_BONUS", "BATCH_APPLY_BONUS"]

    @pytest.mark.asyncio
    async def test_apply_with_unknown_employee_writes_nothing(
        self, client, session, staff, hr_headers
    ):
        """Test a batch naming a missing employee inserts no rows."""
        response = await client.post(
            "/api/v1/compensation/apply",
            json={
                "type": "Bonus",
                "mode": "fixed",
                "amount": 500,
                "period_month": "2024-02",
                "employee_ids": [staff.alice.id, staff.bob.id, 999999],
            },
            headers=hr_headers,
        )

        assert response.status_code == 404
        count = await session.scalar(select(func.count()).select_from(Bonus))
        assert count == 0

    @pytest.mark.asyncio
    async def test_failed_apply_records_failures(
        self, client, session, staff, hr_headers, monkeypatch
    ):
        """Test a failed batch write is a 500 and leaves FAILURE audit rows."""

        async def failing_flush(*args, **kwargs):
            raise OperationalError("INSERT INTO bonuses", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AsyncSession, "flush", failing_flush)

        response = await client.post(
            "/api/v1/compensation/apply",
            json={
                "type": "Bonus",
                "mode": "fixed",
                "amount": 500,
                "period_month": "2024-02",
                "employee_ids": [staff.alice.id, staff.bob.id],
            },
            headers=hr_headers,
        )
        monkeypatch.undo()

        assert response.status_code == 500
        assert response.json()["code"] == "PERSISTENCE_ERROR"
        rows = (await session.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()
        assert [(row.action_type, row.status) for row in rows] == [
            ("BATCH_APPLY_BONUS", "FAILURE"),
            ("BATCH_APPLY_BONUS", "FAILURE"),
        ]
        assert [row.after_state["employee_id"] for row in rows] == [staff.alice.id, staff.bob.id]
        assert "disk I/O error" in rows[0].error_message
        count = await session.scalar(select(func.count()).select_from(Bonus))
        assert count == 0

    @pytest.mark.asyncio
    async def test_filter_cohort_and_reimbursement_listing(self, client, org, staff, hr_headers):
        """Test a filter-derived reimbursement batch."""
        response = await client.post(
            "/api/v1/compensation/apply",
            json={
                "type": "Reimbursement",
                "mode": "fixed",
                "amount": "25.5",
                "period_month": "2024-04",
                "filter": {"department_id": org.sales.id},
                "category": "Travel",
            },
            headers=hr_headers,
        )
        assert response.status_code == 201
        assert response.json()["applied_count"] == 2

        listed = await client.get(
            "/api/v1/compensation/reimbursements", params={"month": 4, "year": 2024}
        )
        assert sorted(r["employee_id"] for r in listed.json()) == sorted(
            [staff.bob.id, staff.dave.id]
        )

    @pytest.mark.asyncio
    async def test_bad_period(self, client, staff):
        """Test a malformed target month."""
        response = await client.post(
            "/api/v1/compensation/preview",
            json={
                "type": "Bonus",
                "amount": 10,
                "period_month": "Feb 2024",
                "employee_ids": [staff.alice.id],
            },
        )

        assert response.status_code == 400
