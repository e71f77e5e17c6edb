"""Payroll cycle writer - append-only snapshots of period summaries."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.audit import Actor, AuditedResult, AuditEntry
from compensation_engine.calculators.aggregation import AggregationEngine
from compensation_engine.calculators.filters import EmployeeFilter
from compensation_engine.calculators.money import ZERO
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.calculators.types import EmployeeSummary
from compensation_engine.exceptions import PersistenceError
from compensation_engine.models import PayrollCycle

logger = logging.getLogger(__name__)


@dataclass
class PayrollRunResult:
    """Outcome of one payroll run."""

    run_id: str
    period: PayPeriod
    generated_at: datetime
    summaries: list[EmployeeSummary] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.summaries)

    @property
    def total_gross(self) -> Decimal:
        return sum((s.gross for s in self.summaries), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((s.net for s in self.summaries), ZERO)


class PayrollCycleService:
    """Persists aggregation results as immutable payroll snapshots.

    Runs are never deduplicated: running a period twice writes two full
    sets of rows, each set tagged with its own run_id. Readers wanting the
    current figures take the most recent row per employee.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.engine = AggregationEngine(session)

    async def run_for_period(
        self, actor: Actor, period: PayPeriod
    ) -> AuditedResult[PayrollRunResult]:
        """Summarize all active employees and snapshot each summary.

        Raises:
            PersistenceError: If any insert fails (no snapshot of the run is kept)
        """
        summaries = await self.engine.summarize(period, EmployeeFilter())
        result = PayrollRunResult(
            run_id=uuid.uuid4().hex,
            period=period,
            generated_at=datetime.now(timezone.utc),
            summaries=summaries,
        )
        entry = AuditEntry(
            actor=actor,
            action_type="RUN_PAYROLL",
            target_table="payroll_cycles",
            target_id=result.run_id,
            after_state={
                "period_month": period.month,
                "period_year": period.year,
                "count": result.count,
                "total_gross": str(result.total_gross),
                "total_net": str(result.total_net),
            },
        )

        self.session.add_all(
            PayrollCycle(
                run_id=result.run_id,
                employee_id=summary.employee_id,
                period_month=period.month,
                period_year=period.year,
                gross_earnings=summary.gross,
                total_deductions=summary.total_deductions,
                net_salary=summary.net,
                generated_at=result.generated_at,
            )
            for summary in summaries
        )
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Payroll run for %s rolled back: %s", period, e)
            raise PersistenceError(
                f"Failed to run payroll for {period}", [entry.as_failure(str(e))]
            ) from e

        logger.info(
            "Payroll run %s stored %d snapshots for %s", result.run_id, result.count, period
        )
        return AuditedResult(value=result, entries=[entry])

    async def list_cycles(
        self, period: PayPeriod, employee_id: int | None = None
    ) -> list[PayrollCycle]:
        """All snapshots for a period in insertion order."""
        query = select(PayrollCycle).where(
            PayrollCycle.period_month == period.month,
            PayrollCycle.period_year == period.year,
        )
        if employee_id is not None:
            query = query.where(PayrollCycle.employee_id == employee_id)
        result = await self.session.execute(query.order_by(PayrollCycle.id))
        return list(result.scalars().all())

    async def latest_cycles(self, period: PayPeriod) -> list[PayrollCycle]:
        """Most recent snapshot per employee for a period."""
        latest = (
            select(func.max(PayrollCycle.id).label("latest_id"))
            .where(
                PayrollCycle.period_month == period.month,
                PayrollCycle.period_year == period.year,
            )
            .group_by(PayrollCycle.employee_id)
            .subquery()
        )
        result = await self.session.execute(
            select(PayrollCycle)
            .join(latest, PayrollCycle.id == latest.c.latest_id)
            .order_by(PayrollCycle.employee_id)
        )
        return list(result.scalars().all())
