"""Payroll aggregation engine - folds compensation records into period summaries."""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.calculators.filters import EmployeeFilter
from compensation_engine.calculators.money import ZERO, percent_of, round_to_cents
from compensation_engine.calculators.period import PayPeriod, PeriodWindow
from compensation_engine.calculators.types import (
    DeductionBasis,
    EmployeeSummary,
    RecordStatus,
)
from compensation_engine.exceptions import NotFoundError
from compensation_engine.models import (
    Allowance,
    BasicSalary,
    Bonus,
    Deduction,
    Department,
    Employee,
    OvertimeAdjustment,
)

logger = logging.getLogger(__name__)


class AggregationEngine:
    """Combines basic salary and compensation records into period summaries.

    Each record family has its own period semantics:
    - Allowances: Active and interval overlapping the window
    - Overtime: adjustments created within the window, hours x captured rate
    - Bonuses: effective_date within the window
    - Deductions: Active with effective_date on or before the window end
      (cumulative); Percent basis priced against the current basic salary

    A missing basic salary counts as zero and a malformed deduction is
    skipped; neither aborts the run.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def summarize(
        self,
        period: PayPeriod | None,
        employee_filter: EmployeeFilter | None = None,
    ) -> list[EmployeeSummary]:
        """Summarize every matched employee for a period.

        A period of None drops the window, so every record counts.
        Employees with no contributions still get an all-zero row.
        """
        employee_filter = employee_filter or EmployeeFilter()
        summaries = await self._load_employees(employee_filter)
        if not summaries:
            return []

        employee_ids = list(summaries)
        window = period.window() if period is not None else None

        basics = await self.current_basic_salaries(employee_ids)

        allowances = self._fold(
            (a.employee_id, a.amount) for a in await self.load_allowances(employee_ids, window)
        )
        overtime = self._fold(
            (o.employee_id, o.amount) for o in await self.load_overtime(employee_ids, window)
        )
        bonuses = self._fold(
            (b.employee_id, b.amount) for b in await self.load_bonuses(employee_ids, window)
        )

        deductions: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for ded in await self.load_deductions(employee_ids, window):
            amount = self.price_deduction(ded, basics.get(ded.employee_id, ZERO))
            if amount is None:
                logger.warning(
                    "Skipping malformed deduction %s for employee %s (basis=%s, percent=%s, amount=%s)",
                    ded.id,
                    ded.employee_id,
                    ded.basis,
                    ded.percent,
                    ded.amount,
                )
                continue
            deductions[ded.employee_id] += amount

        for employee_id, summary in summaries.items():
            summary.basic = basics.get(employee_id, ZERO)
            summary.allowances = round_to_cents(allowances.get(employee_id, ZERO))
            summary.overtime = round_to_cents(overtime.get(employee_id, ZERO))
            summary.bonus = round_to_cents(bonuses.get(employee_id, ZERO))
            summary.total_deductions = round_to_cents(deductions.get(employee_id, ZERO))

        logger.debug("Summarized %d employees for %s", len(summaries), period or "all time")
        return list(summaries.values())

    async def summarize_employee(self, employee_id: int, period: PayPeriod) -> EmployeeSummary:
        """Summarize a single employee, active or not.

        Raises:
            NotFoundError: If the employee does not exist
        """
        rows = await self.summarize(period, EmployeeFilter.for_ids([employee_id]))
        if not rows:
            raise NotFoundError("employee", employee_id)
        return rows[0]

    @staticmethod
    def price_deduction(deduction: Deduction, basic: Decimal) -> Decimal | None:
        """Resolve a deduction's amount for this evaluation.

        Returns None for malformed rows: a Percent basis without a percent,
        a percent on a non-Percent basis, or a Fixed basis without an amount.
        """
        if deduction.basis == DeductionBasis.PERCENT.value:
            if deduction.percent is None:
                return None
            return percent_of(basic, deduction.percent)

        if deduction.basis == DeductionBasis.FIXED.value:
            if deduction.percent is not None or deduction.amount is None:
                return None
            return deduction.amount

        return None

    # === Data Loading Methods ===

    async def current_basic_salaries(self, employee_ids: list[int]) -> dict[int, Decimal]:
        """Latest basic salary per employee (highest row id wins)."""
        if not employee_ids:
            return {}
        latest = (
            select(
                BasicSalary.employee_id,
                func.max(BasicSalary.id).label("latest_id"),
            )
            .where(BasicSalary.employee_id.in_(employee_ids))
            .group_by(BasicSalary.employee_id)
            .subquery()
        )
        result = await self.session.execute(
            select(BasicSalary.employee_id, BasicSalary.basic_salary).join(
                latest, BasicSalary.id == latest.c.latest_id
            )
        )
        return {employee_id: amount for employee_id, amount in result.all()}

    async def current_basic_salary(self, employee_id: int) -> Decimal:
        """Current basic salary, or zero when none has been set."""
        basics = await self.current_basic_salaries([employee_id])
        return basics.get(employee_id, ZERO)

    async def load_allowances(
        self, employee_ids: list[int], window: PeriodWindow | None
    ) -> list[Allowance]:
        """Active allowances whose interval overlaps the window."""
        query = select(Allowance).where(
            Allowance.employee_id.in_(employee_ids),
            Allowance.status == RecordStatus.ACTIVE.value,
        )
        if window is not None:
            query = query.where(
                (Allowance.effective_from.is_(None) | (Allowance.effective_from <= window.last_day)),
                (Allowance.effective_to.is_(None) | (Allowance.effective_to >= window.first_day)),
            )
        result = await self.session.execute(query.order_by(Allowance.id))
        return list(result.scalars().all())

    async def load_overtime(
        self, employee_ids: list[int], window: PeriodWindow | None
    ) -> list[OvertimeAdjustment]:
        """Overtime adjustments created within the window."""
        query = select(OvertimeAdjustment).where(
            OvertimeAdjustment.employee_id.in_(employee_ids)
        )
        if window is not None:
            query = query.where(
                OvertimeAdjustment.created_at >= window.start_datetime,
                OvertimeAdjustment.created_at < window.end_datetime_exclusive,
            )
        result = await self.session.execute(query.order_by(OvertimeAdjustment.id))
        return list(result.scalars().all())

    async def load_bonuses(
        self, employee_ids: list[int], window: PeriodWindow | None
    ) -> list[Bonus]:
        """Bonuses whose effective date falls within the window."""
        query = select(Bonus).where(Bonus.employee_id.in_(employee_ids))
        if window is not None:
            query = query.where(
                Bonus.effective_date >= window.first_day,
                Bonus.effective_date <= window.last_day,
            )
        result = await self.session.execute(query.order_by(Bonus.id))
        return list(result.scalars().all())

    async def load_deductions(
        self, employee_ids: list[int], window: PeriodWindow | None
    ) -> list[Deduction]:
        """Active deductions effective on or before the window end."""
        query = select(Deduction).where(
            Deduction.employee_id.in_(employee_ids),
            Deduction.status == RecordStatus.ACTIVE.value,
        )
        if window is not None:
            query = query.where(Deduction.effective_date <= window.last_day)
        result = await self.session.execute(query.order_by(Deduction.id))
        return list(result.scalars().all())

    async def _load_employees(
        self, employee_filter: EmployeeFilter
    ) -> dict[int, EmployeeSummary]:
        query = employee_filter.apply(
            select(Employee.id, Employee.full_name, Department.name).outerjoin(
                Department, Department.id == Employee.department_id
            )
        ).order_by(Employee.id)
        result = await self.session.execute(query)
        return {
            employee_id: EmployeeSummary(
                employee_id=employee_id,
                full_name=full_name,
                department=department,
            )
            for employee_id, full_name, department in result.all()
        }

    @staticmethod
    def _fold(pairs) -> dict[int, Decimal]:
        totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for employee_id, amount in pairs:
            totals[employee_id] += amount
        return totals
