"""Tests for payslip assembly."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from compensation_engine.calculators.period import PayPeriod
from compensation_engine.exceptions import NotFoundError
from compensation_engine.models import (
    Allowance,
    Bonus,
    Deduction,
    OvertimeAdjustment,
    PayrollCycle,
)
from compensation_engine.services.payslip_service import PayslipService

MAR_2024 = PayPeriod(month=3, year=2024)


class TestPayslip:
    """Test itemized payslip data."""

    @pytest.mark.asyncio
    async def test_items_add_up_to_summary(self, session, staff):
        """Test itemized lines match the period summary."""
        employee_id = staff.alice.id
        session.add_all(
            [
                Allowance(
                    employee_id=employee_id,
                    name="Housing",
                    amount=Decimal("300.00"),
                    taxable=False,
                    frequency="Monthly",
                    effective_from=date(2024, 1, 1),
                    status="Active",
                ),
                OvertimeAdjustment(
                    employee_id=employee_id,
                    hours=Decimal("2.5"),
                    rate=Decimal("40"),
                    created_at=datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc),
                ),
                Bonus(
                    employee_id=employee_id,
                    amount=Decimal("150.00"),
                    reason="Spot award",
                    bonus_type="Bonus",
                    effective_date=date(2024, 3, 20),
                ),
                Deduction(
                    employee_id=employee_id,
                    name="Pension",
                    type="Statutory",
                    basis="Percent",
                    percent=Decimal("5"),
                    effective_date=date(2024, 1, 1),
                    status="Active",
                ),
                Deduction(
                    employee_id=employee_id,
                    name="Broken",
                    type="Other",
                    basis="Percent",
                    effective_date=date(2024, 1, 1),
                    status="Active",
                ),
            ]
        )
        await session.commit()

        slip = await PayslipService(session).build(employee_id, MAR_2024)

        assert slip.full_name == "Alice Martin"
        assert slip.department == "Engineering"
        assert [i.label for i in slip.items_of("allowance")] == ["Housing"]
        assert [i.amount for i in slip.items_of("overtime")] == [Decimal("100.00")]
        assert [i.label for i in slip.items_of("bonus")] == ["Spot award"]
        assert [(i.label, i.amount) for i in slip.items_of("deduction")] == [
            ("Pension", Decimal("250.00"))
        ]
        assert slip.summary.gross == Decimal("5550.00")
        assert slip.summary.total_deductions == sum(
            i.amount for i in slip.items_of("deduction")
        )
        assert slip.summary.net == Decimal("5300.00")

    @pytest.mark.asyncio
    async def test_building_does_not_snapshot(self, session, staff):
        """Test payslip assembly never writes payroll cycles."""
        await PayslipService(session).build(staff.bob.id, MAR_2024)

        count = await session.scalar(select(func.count()).select_from(PayrollCycle))
        assert count == 0

    @pytest.mark.asyncio
    async def test_unknown_employee(self, session, staff):
        """Test a payslip for a missing employee."""
        with pytest.raises(NotFoundError):
            await PayslipService(session).build(55555, MAR_2024)
