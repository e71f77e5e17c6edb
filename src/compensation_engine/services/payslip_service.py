"""Payslip assembly: period summary plus itemized records."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.calculators.aggregation import AggregationEngine
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.calculators.types import EmployeeSummary
from compensation_engine.exceptions import NotFoundError
from compensation_engine.models import Department, Employee


@dataclass
class PayslipItem:
    """One itemized line on a payslip."""

    kind: str  # allowance | overtime | bonus | deduction
    label: str
    amount: Decimal
    record_id: int


@dataclass
class Payslip:
    """Everything a renderer needs for one employee and period."""

    employee_id: int
    full_name: str
    email: str | None
    department: str | None
    period: PayPeriod
    summary: EmployeeSummary
    items: list[PayslipItem] = field(default_factory=list)

    def items_of(self, kind: str) -> list[PayslipItem]:
        return [item for item in self.items if item.kind == kind]


class PayslipService:
    """Builds payslip data from the same loaders the aggregation uses.

    Itemized amounts therefore add up to the summary figures. Rendering is
    left to the caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.engine = AggregationEngine(session)

    async def build(self, employee_id: int, period: PayPeriod) -> Payslip:
        """Assemble a payslip.

        Raises:
            NotFoundError: If the employee does not exist
        """
        result = await self.session.execute(
            select(Employee, Department.name)
            .outerjoin(Department, Department.id == Employee.department_id)
            .where(Employee.id == employee_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("employee", employee_id)
        employee, department = row

        summary = await self.engine.summarize_employee(employee_id, period)
        window = period.window()
        ids = [employee_id]

        items: list[PayslipItem] = []
        for allowance in await self.engine.load_allowances(ids, window):
            items.append(
                PayslipItem("allowance", allowance.name, allowance.amount, allowance.id)
            )
        for adjustment in await self.engine.load_overtime(ids, window):
            items.append(
                PayslipItem(
                    "overtime",
                    f"Overtime {adjustment.hours} h @ {adjustment.rate}",
                    adjustment.amount,
                    adjustment.id,
                )
            )
        for bonus in await self.engine.load_bonuses(ids, window):
            items.append(
                PayslipItem("bonus", bonus.reason or bonus.bonus_type, bonus.amount, bonus.id)
            )
        for deduction in await self.engine.load_deductions(ids, window):
            amount = self.engine.price_deduction(deduction, summary.basic)
            if amount is None:
                continue
            items.append(PayslipItem("deduction", deduction.name, amount, deduction.id))

        return Payslip(
            employee_id=employee.id,
            full_name=employee.full_name,
            email=employee.email,
            department=department,
            period=period,
            summary=summary,
            items=items,
        )
