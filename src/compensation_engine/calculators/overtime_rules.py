"""Overtime rule resolution by grade."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.audit import Actor, AuditedResult, AuditEntry, model_state
from compensation_engine.calculators.money import to_decimal
from compensation_engine.exceptions import (
    CapExceededError,
    NotFoundError,
    PersistenceError,
    RuleNotFoundError,
    ValidationError,
)
from compensation_engine.models import Employee, Grade, OvertimeRule

logger = logging.getLogger(__name__)

RULE_FIELDS = ("id", "grade_id", "rate", "max_hours")


@dataclass(frozen=True)
class ResolvedRate:
    """Rate to capture on a new overtime adjustment."""

    rate: Decimal
    grade_id: int | None
    max_hours: Decimal | None = None  # None when an explicit rate bypassed the cap


class OvertimeRuleResolver:
    """Maps grades to overtime rates and monthly hour caps.

    Rate selection for a new adjustment:
    1. If the caller supplies a rate, use it verbatim (no cap check)
    2. Otherwise resolve the grade (explicit override, else the employee's)
    3. Look up the grade's rule; missing rule is an error
    4. Reject hours above the rule's max_hours
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_rule(self, grade_id: int) -> OvertimeRule | None:
        result = await self.session.execute(
            select(OvertimeRule).where(OvertimeRule.grade_id == grade_id)
        )
        return result.scalar_one_or_none()

    async def get_rule(self, grade_id: int) -> OvertimeRule:
        """Get the current rule for a grade.

        Raises:
            RuleNotFoundError: If the grade has no rule
        """
        rule = await self.find_rule(grade_id)
        if rule is None:
            raise RuleNotFoundError(grade_id)
        return rule

    async def list_rules(self) -> list[tuple[OvertimeRule, str]]:
        """All rules with their grade names, ordered by grade level."""
        result = await self.session.execute(
            select(OvertimeRule, Grade.name)
            .join(Grade, Grade.id == OvertimeRule.grade_id)
            .order_by(Grade.level, Grade.id)
        )
        return [(rule, name) for rule, name in result.all()]

    async def upsert_rule(
        self,
        grade_id: int,
        rate: Any,
        max_hours: Any,
        actor: Actor,
    ) -> AuditedResult[OvertimeRule]:
        """Insert or replace the rule for a grade.

        Raises:
            ValidationError: If rate or max_hours is missing or non-numeric
            NotFoundError: If the grade does not exist
            PersistenceError: If the write fails
        """
        rate_value = to_decimal(rate, "rate")
        max_hours_value = to_decimal(max_hours, "max_hours")
        if rate_value < 0 or max_hours_value < 0:
            raise ValidationError("rate and max_hours must not be negative")

        if await self.session.get(Grade, grade_id) is None:
            raise NotFoundError("grade", grade_id)

        existing = await self.find_rule(grade_id)
        before = model_state(existing, RULE_FIELDS) if existing is not None else None
        entry = AuditEntry(
            actor=actor,
            action_type="UPSERT_OVERTIME_RULE",
            target_table="overtime_rules",
            target_id=grade_id,
            before_state=before,
            after_state={
                "grade_id": grade_id,
                "rate": str(rate_value),
                "max_hours": str(max_hours_value),
            },
        )

        try:
            stmt = self._upsert_statement(grade_id, rate_value, max_hours_value)
            if stmt is not None:
                await self.session.execute(stmt)
            elif existing is None:
                self.session.add(
                    OvertimeRule(grade_id=grade_id, rate=rate_value, max_hours=max_hours_value)
                )
            else:
                await self.session.execute(
                    update(OvertimeRule)
                    .where(OvertimeRule.grade_id == grade_id)
                    .values(rate=rate_value, max_hours=max_hours_value, updated_at=func.now())
                )
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Overtime rule upsert failed for grade %s: %s", grade_id, e)
            raise PersistenceError(
                f"Failed to save overtime rule for grade {grade_id}",
                [entry.as_failure(str(e))],
            ) from e

        rule = await self.find_rule(grade_id)
        if rule is not None:
            await self.session.refresh(rule)
        logger.info("Overtime rule for grade %s set to %s/h, cap %s h", grade_id, rate_value, max_hours_value)
        return AuditedResult(value=rule, entries=[entry])

    async def resolve_rate_for_adjustment(
        self,
        employee_id: int,
        hours: Decimal,
        grade_id: int | None = None,
        rate: Decimal | None = None,
    ) -> ResolvedRate:
        """Resolve the rate for a new overtime adjustment.

        Raises:
            NotFoundError: If the employee or an explicit grade does not exist
            ValidationError: If no grade can be determined
            RuleNotFoundError: If the grade has no rule
            CapExceededError: If hours exceed the grade's cap
        """
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("employee", employee_id)

        if grade_id is not None and await self.session.get(Grade, grade_id) is None:
            raise NotFoundError("grade", grade_id)
        resolved_grade = grade_id if grade_id is not None else employee.grade_id

        # Explicit rate wins and skips the cap check
        if rate is not None:
            return ResolvedRate(rate=rate, grade_id=resolved_grade)

        if resolved_grade is None:
            raise ValidationError(
                f"Employee {employee_id} has no grade; supply grade_id or an explicit rate"
            )

        rule = await self.get_rule(resolved_grade)
        if hours > rule.max_hours:
            raise CapExceededError(resolved_grade, hours, rule.max_hours)

        return ResolvedRate(rate=rule.rate, grade_id=resolved_grade, max_hours=rule.max_hours)

    def _upsert_statement(self, grade_id: int, rate: Decimal, max_hours: Decimal):
        """Replace-on-conflict insert keyed by grade_id.

        Returns None for dialects without ON CONFLICT support.
        """
        values = {"grade_id": grade_id, "rate": rate, "max_hours": max_hours}
        dialect = self.session.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            return None

        stmt = insert(OvertimeRule).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["grade_id"],
            set_={
                "rate": stmt.excluded.rate,
                "max_hours": stmt.excluded.max_hours,
                "updated_at": func.now(),
            },
        )
