"""Basic salary, allowance, bonus and deduction endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from compensation_engine.api.dependencies import (
    CurrentActor,
    DbSession,
    Dispatcher,
    commit_audited,
)
from compensation_engine.api.schemas import (
    AllowanceCreate,
    AllowanceResponse,
    BasicSalaryRequest,
    BasicSalaryResponse,
    BonusCreate,
    BonusResponse,
    DeductionCreate,
    DeductionResponse,
    DeductionStatusUpdate,
    ErrorResponse,
)
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.services.compensation_service import CompensationService

router = APIRouter(prefix="/salary", tags=["salary"])


# ============================================================================
# Basic salary
# ============================================================================


@router.get(
    "/basic",
    response_model=BasicSalaryResponse,
)
async def get_basic_salary(
    db: DbSession,
    employee_id: Annotated[int, Query()],
) -> BasicSalaryResponse:
    """Current basic salary (0.00 when none has been set)."""
    amount = await CompensationService(db).get_basic_salary(employee_id)
    return BasicSalaryResponse(employee_id=employee_id, basic_salary=amount)


@router.post(
    "/basic",
    response_model=BasicSalaryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def set_basic_salary(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: BasicSalaryRequest,
) -> BasicSalaryResponse:
    """Record a new basic salary; earlier values are kept as history."""
    outcome = await CompensationService(db).set_basic_salary(
        actor, payload.employee_id, payload.basic_salary
    )
    row = await commit_audited(db, dispatcher, outcome)
    return BasicSalaryResponse(employee_id=row.employee_id, basic_salary=row.basic_salary)


# ============================================================================
# Allowances
# ============================================================================


@router.post(
    "/allowances",
    response_model=AllowanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def add_allowance(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: AllowanceCreate,
) -> AllowanceResponse:
    """Add an allowance for an employee."""
    outcome = await CompensationService(db).add_allowance(
        actor,
        payload.employee_id,
        description=payload.description,
        amount=payload.amount,
        category=payload.category,
        taxable=payload.taxable,
        frequency=payload.frequency,
        effective_from=payload.effective_from,
        effective_to=payload.effective_to,
        status=payload.status,
    )
    row = await commit_audited(db, dispatcher, outcome)
    return AllowanceResponse.model_validate(row)


@router.get("/allowances", response_model=list[AllowanceResponse])
async def list_allowances(
    db: DbSession,
    employee_id: int | None = None,
) -> list[AllowanceResponse]:
    """List allowances, newest first."""
    rows = await CompensationService(db).list_allowances(employee_id)
    return [
        AllowanceResponse.model_validate(row).model_copy(update={"employee_name": name})
        for row, name in rows
    ]


# ============================================================================
# Bonuses
# ============================================================================


@router.post(
    "/bonuses",
    response_model=BonusResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def add_bonus(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: BonusCreate,
) -> BonusResponse:
    """Add a one-off bonus."""
    outcome = await CompensationService(db).add_bonus(
        actor,
        payload.employee_id,
        amount=payload.amount,
        effective_date=payload.effective_date,
        reason=payload.reason,
    )
    row = await commit_audited(db, dispatcher, outcome)
    return BonusResponse.model_validate(row)


@router.get("/bonuses", response_model=list[BonusResponse])
async def list_bonuses(
    db: DbSession,
    employee_id: int | None = None,
) -> list[BonusResponse]:
    """List bonuses, most recent effective date first."""
    rows = await CompensationService(db).list_bonuses(employee_id)
    return [
        BonusResponse.model_validate(row).model_copy(update={"employee_name": name})
        for row, name in rows
    ]


# ============================================================================
# Deductions
# ============================================================================


@router.post(
    "/deductions",
    response_model=DeductionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_deduction(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: DeductionCreate,
) -> DeductionResponse:
    """Create a Fixed or Percent deduction."""
    outcome = await CompensationService(db).create_deduction(
        actor,
        payload.employee_id,
        name=payload.name,
        type=payload.type,
        basis=payload.basis,
        effective_date=payload.effective_date,
        percent=payload.percent,
        amount=payload.amount,
        status=payload.status,
    )
    row = await commit_audited(db, dispatcher, outcome)
    return DeductionResponse.model_validate(row)


@router.get(
    "/deductions",
    response_model=list[DeductionResponse],
    responses={400: {"model": ErrorResponse}},
)
async def list_deductions(
    db: DbSession,
    month: int | None = None,
    year: int | None = None,
) -> list[DeductionResponse]:
    """List deductions, optionally only those effective in one month."""
    period = PayPeriod.of(month, year) if month is not None or year is not None else None
    rows = await CompensationService(db).list_deductions(period)
    return [
        DeductionResponse.model_validate(row).model_copy(update={"employee_name": name})
        for row, name in rows
    ]


@router.patch(
    "/deductions/{deduction_id}/status",
    response_model=DeductionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def set_deduction_status(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    deduction_id: Annotated[int, Path()],
    payload: DeductionStatusUpdate,
) -> DeductionResponse:
    """Activate or stop a deduction."""
    outcome = await CompensationService(db).set_deduction_status(
        actor, deduction_id, payload.status
    )
    row = await commit_audited(db, dispatcher, outcome)
    return DeductionResponse.model_validate(row)
