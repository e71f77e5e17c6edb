"""Compensation record store - basic salary, allowances, overtime, bonuses, deductions."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import extract, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.audit import Actor, AuditedResult, AuditEntry, model_state
from compensation_engine.calculators.aggregation import AggregationEngine
from compensation_engine.calculators.money import to_decimal
from compensation_engine.calculators.overtime_rules import OvertimeRuleResolver
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.calculators.types import DeductionBasis, DeductionType, RecordStatus
from compensation_engine.exceptions import NotFoundError, PersistenceError, ValidationError
from compensation_engine.models import (
    Allowance,
    Base,
    BasicSalary,
    Bonus,
    Deduction,
    Employee,
    OvertimeAdjustment,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class CompensationService:
    """Writes and lists the per-employee compensation records.

    Every write validates its input and the referenced employee before
    touching the store, flushes inside the caller's transaction, and returns
    the audit entry describing it. The caller commits.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.engine = AggregationEngine(session)
        self.rules = OvertimeRuleResolver(session)

    # ===== Basic salary =====

    async def get_basic_salary(self, employee_id: int) -> Decimal:
        """Current basic salary, zero when none has been set."""
        return await self.engine.current_basic_salary(employee_id)

    async def set_basic_salary(
        self, actor: Actor, employee_id: int, basic_salary: Any
    ) -> AuditedResult[BasicSalary]:
        """Append a new basic salary row; history is retained."""
        amount = to_decimal(basic_salary, "basic_salary")
        if amount < 0:
            raise ValidationError("basic_salary must not be negative")
        await self._require_employee(employee_id)

        previous = await self.engine.current_basic_salaries([employee_id])
        before = (
            {"employee_id": employee_id, "basic_salary": str(previous[employee_id])}
            if employee_id in previous
            else None
        )
        row = BasicSalary(employee_id=employee_id, basic_salary=amount)
        return await self._insert(row, actor, "SET_BASIC_SALARY", before=before)

    # ===== Allowances =====

    async def add_allowance(
        self,
        actor: Actor,
        employee_id: int,
        description: str,
        amount: Any,
        category: str | None = None,
        taxable: bool = False,
        frequency: str = "Monthly",
        effective_from: date | None = None,
        effective_to: date | None = None,
        status: str = RecordStatus.ACTIVE.value,
    ) -> AuditedResult[Allowance]:
        """Add an allowance active over [effective_from, effective_to]."""
        if not description:
            raise ValidationError("description is required")
        value = to_decimal(amount, "amount")
        if effective_from and effective_to and effective_to < effective_from:
            raise ValidationError("effective_to must not be before effective_from")
        self._check_status(status)
        await self._require_employee(employee_id)

        row = Allowance(
            employee_id=employee_id,
            name=description,
            category=category,
            amount=value,
            taxable=bool(taxable),
            frequency=frequency or "Monthly",
            effective_from=effective_from,
            effective_to=effective_to,
            status=status,
        )
        return await self._insert(row, actor, "ADD_ALLOWANCE")

    async def list_allowances(
        self, employee_id: int | None = None
    ) -> list[tuple[Allowance, str]]:
        """Allowances with employee names, newest first."""
        query = select(Allowance, Employee.full_name).join(
            Employee, Employee.id == Allowance.employee_id
        )
        if employee_id is not None:
            query = query.where(Allowance.employee_id == employee_id)
        result = await self.session.execute(
            query.order_by(Allowance.created_at.desc(), Allowance.id.desc())
        )
        return [(row, name) for row, name in result.all()]

    # ===== Bonuses =====

    async def add_bonus(
        self,
        actor: Actor,
        employee_id: int,
        amount: Any,
        effective_date: date | None,
        reason: str | None = None,
    ) -> AuditedResult[Bonus]:
        """Add a point-in-time bonus."""
        value = to_decimal(amount, "amount")
        if value <= 0:
            raise ValidationError("amount must be positive")
        if effective_date is None:
            raise ValidationError("effective_date is required")
        await self._require_employee(employee_id)

        row = Bonus(
            employee_id=employee_id,
            amount=value,
            reason=reason,
            bonus_type="Bonus",
            effective_date=effective_date,
            created_by=actor.id,
        )
        return await self._insert(row, actor, "ADD_BONUS")

    async def list_bonuses(self, employee_id: int | None = None) -> list[tuple[Bonus, str]]:
        query = select(Bonus, Employee.full_name).join(Employee, Employee.id == Bonus.employee_id)
        if employee_id is not None:
            query = query.where(Bonus.employee_id == employee_id)
        result = await self.session.execute(
            query.order_by(Bonus.effective_date.desc(), Bonus.id.desc())
        )
        return [(row, name) for row, name in result.all()]

    # ===== Deductions =====

    async def create_deduction(
        self,
        actor: Actor,
        employee_id: int,
        name: str,
        type: str,
        basis: str,
        effective_date: date | None,
        percent: Any = None,
        amount: Any = None,
        status: str = RecordStatus.ACTIVE.value,
    ) -> AuditedResult[Deduction]:
        """Create a Fixed or Percent deduction.

        Percent deductions store only the percent; the amount is priced
        against the current basic salary whenever payroll is aggregated.
        """
        if not name or not type or not basis or effective_date is None:
            raise ValidationError("name, type, basis and effective_date are required")
        if type not in {t.value for t in DeductionType}:
            raise ValidationError(f"Unsupported deduction type {type!r}")
        self._check_status(status)

        if basis == DeductionBasis.PERCENT.value:
            percent_value = to_decimal(percent, "percent")
            if not Decimal("0") < percent_value <= Decimal("100"):
                raise ValidationError("percent must be greater than 0 and at most 100")
            amount_value = None
        elif basis == DeductionBasis.FIXED.value:
            amount_value = to_decimal(amount, "amount")
            if amount_value < 0:
                raise ValidationError("amount must not be negative")
            percent_value = None
        else:
            raise ValidationError(f"Unsupported basis {basis!r}; expected Fixed or Percent")

        await self._require_employee(employee_id)

        row = Deduction(
            employee_id=employee_id,
            name=name,
            type=type,
            basis=basis,
            percent=percent_value,
            amount=amount_value,
            effective_date=effective_date,
            status=status,
        )
        return await self._insert(row, actor, "CREATE_DEDUCTION")

    async def set_deduction_status(
        self, actor: Actor, deduction_id: int, status: str
    ) -> AuditedResult[Deduction]:
        """Activate or stop a deduction.

        Setting Inactive is how a cumulative deduction stops applying.
        """
        self._check_status(status)
        deduction = await self.session.get(Deduction, deduction_id)
        if deduction is None:
            raise NotFoundError("deduction", deduction_id)

        before = model_state(deduction, ("id", "employee_id", "status"))
        entry = AuditEntry(
            actor=actor,
            action_type="UPDATE_DEDUCTION_STATUS",
            target_table="deductions",
            target_id=deduction_id,
            before_state=before,
            after_state={**before, "status": status},
        )
        deduction.status = status
        deduction.updated_at = datetime.now(timezone.utc)
        await self._flush_or_fail([entry], f"Failed to update deduction {deduction_id}")
        return AuditedResult(value=deduction, entries=[entry])

    async def list_deductions(
        self, period: PayPeriod | None = None
    ) -> list[tuple[Deduction, str]]:
        """Deductions with employee names; optionally those effective in one month."""
        query = select(Deduction, Employee.full_name).join(
            Employee, Employee.id == Deduction.employee_id
        )
        if period is not None:
            query = query.where(
                extract("month", Deduction.effective_date) == period.month,
                extract("year", Deduction.effective_date) == period.year,
            )
        result = await self.session.execute(
            query.order_by(Deduction.effective_date.desc(), Deduction.id.desc())
        )
        return [(row, name) for row, name in result.all()]

    # ===== Overtime adjustments =====

    async def create_overtime_adjustment(
        self,
        actor: Actor,
        employee_id: int,
        hours: Any,
        reason: str | None = None,
        grade_id: int | None = None,
        rate: Any = None,
        created_at: datetime | None = None,
    ) -> AuditedResult[OvertimeAdjustment]:
        """Record overtime hours with the rate captured now.

        The captured rate is never re-derived, so later rule changes leave
        existing adjustments untouched.
        """
        hours_value = to_decimal(hours, "hours")
        if hours_value <= 0:
            raise ValidationError("hours must be positive")
        rate_value = to_decimal(rate, "rate", required=False)
        if rate_value is not None and rate_value < 0:
            raise ValidationError("rate must not be negative")

        resolved = await self.rules.resolve_rate_for_adjustment(
            employee_id, hours_value, grade_id=grade_id, rate=rate_value
        )

        row = OvertimeAdjustment(
            employee_id=employee_id,
            grade_id=resolved.grade_id,
            hours=hours_value,
            rate=resolved.rate,
            reason=reason,
            created_by=actor.id,
        )
        if created_at is not None:
            row.created_at = created_at
        return await self._insert(row, actor, "ADD_OVERTIME_ADJUSTMENT")

    async def list_overtime(
        self, employee_id: int | None = None
    ) -> list[tuple[OvertimeAdjustment, str]]:
        query = select(OvertimeAdjustment, Employee.full_name).join(
            Employee, Employee.id == OvertimeAdjustment.employee_id
        )
        if employee_id is not None:
            query = query.where(OvertimeAdjustment.employee_id == employee_id)
        result = await self.session.execute(
            query.order_by(OvertimeAdjustment.created_at.desc(), OvertimeAdjustment.id.desc())
        )
        return [(row, name) for row, name in result.all()]

    # ===== Helpers =====

    async def _require_employee(self, employee_id: int | None) -> Employee:
        if employee_id is None:
            raise ValidationError("employee_id is required")
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("employee", employee_id)
        return employee

    @staticmethod
    def _check_status(status: str) -> None:
        if status not in {s.value for s in RecordStatus}:
            raise ValidationError(f"Unsupported status {status!r}")

    async def _insert(
        self,
        row: ModelT,
        actor: Actor,
        action_type: str,
        before: dict[str, Any] | None = None,
    ) -> AuditedResult[ModelT]:
        table = row.__tablename__
        pending_state = model_state(row)
        self.session.add(row)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("%s failed: %s", action_type, e)
            entry = AuditEntry(
                actor=actor,
                action_type=action_type,
                target_table=table,
                before_state=before,
                after_state=pending_state,
                status="FAILURE",
                error_message=str(e),
            )
            raise PersistenceError(f"Failed to write {table}", [entry]) from e

        entry = AuditEntry(
            actor=actor,
            action_type=action_type,
            target_table=table,
            target_id=row.id,
            before_state=before,
            after_state=model_state(row),
        )
        return AuditedResult(value=row, entries=[entry])

    async def _flush_or_fail(self, entries: list[AuditEntry], message: str) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("%s: %s", message, e)
            raise PersistenceError(message, [entry.as_failure(str(e)) for entry in entries]) from e
