"""Bulk compensation actions across a cohort of employees."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.audit import Actor, AuditedResult, AuditEntry, model_state
from compensation_engine.calculators.aggregation import AggregationEngine
from compensation_engine.calculators.filters import EmployeeFilter
from compensation_engine.calculators.money import ZERO, percent_of, round_to_cents, to_decimal
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.calculators.types import (
    ApplyMode,
    BatchLine,
    BatchResult,
    CompensationType,
)
from compensation_engine.exceptions import NotFoundError, PersistenceError, ValidationError
from compensation_engine.models import Allowance, Bonus, Employee, Reimbursement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchRequest:
    """Validated parameters of a batch compensation action."""

    compensation_type: CompensationType
    mode: ApplyMode
    value: Decimal  # literal amount in fixed mode, percent in percent mode
    period: PayPeriod
    employee_ids: tuple[int, ...] | None = None
    employee_filter: EmployeeFilter | None = None
    note: str | None = None
    category: str | None = None

    @classmethod
    def build(
        cls,
        compensation_type: Any,
        mode: Any,
        period: PayPeriod | str,
        amount: Any = None,
        percent: Any = None,
        employee_ids: list[int] | None = None,
        employee_filter: EmployeeFilter | None = None,
        note: str | None = None,
        category: str | None = None,
    ) -> BatchRequest:
        """Validate loosely typed input into a request.

        Raises:
            ValidationError: On unsupported type/mode, a missing or
                non-numeric amount/percent, or no cohort selection
        """
        try:
            comp_type = CompensationType(compensation_type)
        except ValueError:
            raise ValidationError(f"Unsupported compensation type {compensation_type!r}")
        try:
            apply_mode = ApplyMode(mode)
        except ValueError:
            raise ValidationError(f"Unsupported mode {mode!r}; expected fixed or percent")

        if apply_mode is ApplyMode.FIXED:
            value = to_decimal(amount, "amount")
            if value == 0:
                raise ValidationError("amount must not be zero")
            if value < 0 and comp_type is not CompensationType.CORRECTION:
                raise ValidationError("Only corrections may carry a negative amount")
        else:
            value = to_decimal(percent, "percent")
            if value <= 0:
                raise ValidationError("percent must be positive")

        if isinstance(period, str):
            period = PayPeriod.parse(period)

        ids: tuple[int, ...] | None = None
        if employee_ids is not None:
            try:
                # Deduplicate, keep the caller's order
                ids = tuple(dict.fromkeys(int(i) for i in employee_ids))
            except (TypeError, ValueError):
                raise ValidationError("employee_ids must be integers")
            if not ids:
                raise ValidationError("employee_ids must not be empty")
        elif employee_filter is None:
            raise ValidationError("Provide employee_ids or an employee filter")

        return cls(
            compensation_type=comp_type,
            mode=apply_mode,
            value=value,
            period=period,
            employee_ids=ids,
            employee_filter=employee_filter,
            note=note,
            category=category,
        )


class CompensationBatchApplier:
    """Computes and persists one compensation record per cohort member.

    Amounts:
    - fixed: the literal amount for every employee
    - percent: percent/100 x the employee's current basic salary
    Each amount is rounded to cents once, per employee. preview() and
    apply() share the computation.

    apply() is all-or-nothing: every insert happens in the caller's
    transaction and any failure rolls the whole batch back.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.engine = AggregationEngine(session)

    async def preview(self, request: BatchRequest) -> BatchResult:
        """Compute per-employee amounts without writing anything."""
        return BatchResult(
            compensation_type=request.compensation_type,
            mode=request.mode,
            period=request.period,
            lines=await self._compute_lines(request),
        )

    async def apply(self, actor: Actor, request: BatchRequest) -> AuditedResult[BatchResult]:
        """Persist one record per employee, with one audit entry per record.

        Raises:
            NotFoundError: If any explicit employee id does not exist
            ValidationError: If the cohort is empty
            PersistenceError: If any insert fails (nothing is kept)
        """
        lines = await self._compute_lines(request)
        if not lines:
            raise ValidationError("No employees matched the cohort")

        rows = [self._build_row(actor, request, line) for line in lines]
        action_type = f"BATCH_APPLY_{request.compensation_type.value.upper()}"
        table = request.compensation_type.target_table

        self.session.add_all(rows)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Batch %s for %s rolled back (%d employees): %s",
                request.compensation_type.value,
                request.period,
                len(rows),
                e,
            )
            failures = [
                AuditEntry(
                    actor=actor,
                    action_type=action_type,
                    target_table=table,
                    after_state={
                        "employee_id": line.employee_id,
                        "amount": str(line.amount),
                    },
                    status="FAILURE",
                    error_message=str(e),
                )
                for line in lines
            ]
            raise PersistenceError(
                f"Batch {request.compensation_type.value} failed; no records were applied",
                failures,
            ) from e

        entries: list[AuditEntry] = []
        for line, row in zip(lines, rows):
            line.record_id = row.id
            entries.append(
                AuditEntry(
                    actor=actor,
                    action_type=action_type,
                    target_table=table,
                    target_id=row.id,
                    after_state=model_state(row),
                )
            )

        result = BatchResult(
            compensation_type=request.compensation_type,
            mode=request.mode,
            period=request.period,
            lines=lines,
        )
        logger.info(
            "Applied %s (%s) to %d employees for %s, total %s",
            request.compensation_type.value,
            request.mode.value,
            result.applied_count,
            request.period,
            result.total,
        )
        return AuditedResult(value=result, entries=entries)

    async def list_reimbursements(
        self,
        employee_id: int | None = None,
        period: PayPeriod | None = None,
    ) -> list[Reimbursement]:
        query = select(Reimbursement)
        if employee_id is not None:
            query = query.where(Reimbursement.employee_id == employee_id)
        if period is not None:
            query = query.where(
                Reimbursement.period_month == period.month,
                Reimbursement.period_year == period.year,
            )
        result = await self.session.execute(query.order_by(Reimbursement.id.desc()))
        return list(result.scalars().all())

    async def _compute_lines(self, request: BatchRequest) -> list[BatchLine]:
        employees = await self._resolve_cohort(request)
        if request.mode is ApplyMode.PERCENT:
            basics = await self.engine.current_basic_salaries([e.id for e in employees])
        else:
            basics = {}

        lines: list[BatchLine] = []
        for employee in employees:
            basic = basics.get(employee.id, ZERO)
            if request.mode is ApplyMode.PERCENT:
                amount = percent_of(basic, request.value)
            else:
                amount = round_to_cents(request.value)
            lines.append(
                BatchLine(
                    employee_id=employee.id,
                    full_name=employee.full_name,
                    basic=basic,
                    amount=amount,
                )
            )
        return lines

    async def _resolve_cohort(self, request: BatchRequest) -> list[Employee]:
        if request.employee_ids is not None:
            result = await self.session.execute(
                select(Employee).where(Employee.id.in_(request.employee_ids))
            )
            found = {e.id: e for e in result.scalars().all()}
            missing = [i for i in request.employee_ids if i not in found]
            if missing:
                raise NotFoundError(
                    "employee",
                    missing,
                    f"Employees not found: {', '.join(str(i) for i in missing)}",
                )
            return [found[i] for i in request.employee_ids]

        query = request.employee_filter.apply(select(Employee)).order_by(Employee.id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _build_row(
        actor: Actor, request: BatchRequest, line: BatchLine
    ) -> Bonus | Allowance | Reimbursement:
        period = request.period
        comp_type = request.compensation_type

        if comp_type is CompensationType.ALLOWANCE:
            return Allowance(
                employee_id=line.employee_id,
                name=request.note or f"Allowance {period}",
                category=request.category,
                amount=line.amount,
                taxable=False,
                frequency="One-time",
                effective_from=period.first_day,
                effective_to=period.last_day,
                status="Active",
            )

        if comp_type is CompensationType.REIMBURSEMENT:
            return Reimbursement(
                employee_id=line.employee_id,
                amount=line.amount,
                category=request.category,
                note=request.note,
                period_month=period.month,
                period_year=period.year,
                created_by=actor.id,
            )

        return Bonus(
            employee_id=line.employee_id,
            amount=line.amount,
            reason=request.note or f"{comp_type.value} {period}",
            bonus_type=comp_type.value,
            effective_date=period.last_day,
            created_by=actor.id,
        )
