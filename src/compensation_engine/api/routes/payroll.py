"""Payroll aggregation, run and payslip endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from compensation_engine.api.dependencies import (
    CurrentActor,
    DbSession,
    Dispatcher,
    commit_audited,
)
from compensation_engine.api.schemas import (
    EarningsListResponse,
    EarningsRow,
    EmployeeSummaryResponse,
    ErrorResponse,
    PayrollCycleListResponse,
    PayrollCycleResponse,
    PayrollRunRequest,
    PayrollRunResponse,
    PayslipItemResponse,
    PayslipResponse,
    SummaryListResponse,
)
from compensation_engine.calculators.aggregation import AggregationEngine
from compensation_engine.calculators.filters import EmployeeFilter
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.services.payroll_cycle_service import PayrollCycleService
from compensation_engine.services.payslip_service import PayslipService

router = APIRouter(prefix="/payroll", tags=["payroll"])


def _filter(
    search: str | None,
    department_id: int | None,
    grade_id: int | None,
) -> EmployeeFilter:
    return EmployeeFilter(search=search or None, department_id=department_id, grade_id=grade_id)


# ============================================================================
# Aggregation
# ============================================================================


@router.get(
    "/earnings",
    response_model=EarningsListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def earnings(
    db: DbSession,
    month: Annotated[int | None, Query()] = None,
    year: Annotated[int | None, Query()] = None,
    search: str | None = None,
    department_id: int | None = None,
    grade_id: int | None = None,
) -> EarningsListResponse:
    """Per-employee earnings (no deductions) for a month, or all time without one."""
    period = PayPeriod.of(month, year) if month is not None or year is not None else None
    summaries = await AggregationEngine(db).summarize(
        period, _filter(search, department_id, grade_id)
    )
    items = [
        EarningsRow(
            employee_id=s.employee_id,
            name=s.full_name,
            department=s.department or "",
            basic_salary=s.basic,
            allowances=s.allowances,
            overtime=s.overtime,
            bonus=s.bonus,
            gross=s.gross,
        )
        for s in summaries
    ]
    return EarningsListResponse(items=items, total=len(items))


@router.get(
    "/summary",
    response_model=SummaryListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def summary(
    db: DbSession,
    month: Annotated[int | None, Query()] = None,
    year: Annotated[int | None, Query()] = None,
    search: str | None = None,
    department_id: int | None = None,
    grade_id: int | None = None,
) -> SummaryListResponse:
    """Per-employee gross, deductions and net for a month."""
    period = PayPeriod.of(month, year)
    summaries = await AggregationEngine(db).summarize(
        period, _filter(search, department_id, grade_id)
    )
    return SummaryListResponse(
        items=[EmployeeSummaryResponse(**s.to_dict()) for s in summaries],
        total=len(summaries),
        month=period.month,
        year=period.year,
    )


# ============================================================================
# Payroll runs
# ============================================================================


@router.post(
    "/run",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def run_payroll(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: PayrollRunRequest,
) -> PayrollRunResponse:
    """Snapshot every active employee's summary for a month."""
    period = PayPeriod.of(payload.month, payload.year)
    outcome = await PayrollCycleService(db).run_for_period(actor, period)
    result = await commit_audited(db, dispatcher, outcome)
    return PayrollRunResponse(
        run_id=result.run_id,
        month=period.month,
        year=period.year,
        count=result.count,
        generated_at=result.generated_at,
        message=f"Payroll generated for {result.count} employees ({period})",
    )


@router.get(
    "/cycles",
    response_model=PayrollCycleListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def list_cycles(
    db: DbSession,
    month: Annotated[int | None, Query()] = None,
    year: Annotated[int | None, Query()] = None,
    employee_id: int | None = None,
    latest: bool = False,
) -> PayrollCycleListResponse:
    """Stored snapshots for a month; latest=true keeps the newest per employee."""
    period = PayPeriod.of(month, year)
    service = PayrollCycleService(db)
    if latest:
        cycles = await service.latest_cycles(period)
        if employee_id is not None:
            cycles = [c for c in cycles if c.employee_id == employee_id]
    else:
        cycles = await service.list_cycles(period, employee_id)
    return PayrollCycleListResponse(
        items=[PayrollCycleResponse.model_validate(c) for c in cycles],
        total=len(cycles),
    )


# ============================================================================
# Payslips
# ============================================================================


@router.get(
    "/payslip",
    response_model=PayslipResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def payslip(
    db: DbSession,
    employee_id: Annotated[int, Query()],
    month: Annotated[int | None, Query()] = None,
    year: Annotated[int | None, Query()] = None,
) -> PayslipResponse:
    """Payslip data for one employee and month."""
    period = PayPeriod.of(month, year)
    slip = await PayslipService(db).build(employee_id, period)
    return PayslipResponse(
        employee_id=slip.employee_id,
        name=slip.full_name,
        email=slip.email,
        department=slip.department,
        month=period.month,
        year=period.year,
        summary=EmployeeSummaryResponse(**slip.summary.to_dict()),
        items=[PayslipItemResponse.model_validate(item) for item in slip.items],
    )
