"""Overtime rule and adjustment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from compensation_engine.api.dependencies import (
    CurrentActor,
    DbSession,
    Dispatcher,
    commit_audited,
)
from compensation_engine.api.schemas import (
    ErrorResponse,
    OvertimeAdjustmentCreate,
    OvertimeAdjustmentResponse,
    OvertimeRuleResponse,
    OvertimeRuleUpsert,
)
from compensation_engine.calculators.overtime_rules import OvertimeRuleResolver
from compensation_engine.services.compensation_service import CompensationService

router = APIRouter(prefix="/overtime", tags=["overtime"])


# ============================================================================
# Rules
# ============================================================================


@router.get("/rules", response_model=list[OvertimeRuleResponse])
async def list_rules(db: DbSession) -> list[OvertimeRuleResponse]:
    """List every grade's overtime rule."""
    rules = await OvertimeRuleResolver(db).list_rules()
    return [
        OvertimeRuleResponse.model_validate(rule).model_copy(update={"grade_name": name})
        for rule, name in rules
    ]


@router.get(
    "/rules/{grade_id}",
    response_model=OvertimeRuleResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_rule(
    db: DbSession,
    grade_id: Annotated[int, Path()],
) -> OvertimeRuleResponse:
    """Get the overtime rule for a grade."""
    rule = await OvertimeRuleResolver(db).get_rule(grade_id)
    return OvertimeRuleResponse.model_validate(rule)


@router.put(
    "/rules/{grade_id}",
    response_model=OvertimeRuleResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def upsert_rule(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    grade_id: Annotated[int, Path()],
    payload: OvertimeRuleUpsert,
) -> OvertimeRuleResponse:
    """Create or replace the overtime rule for a grade."""
    outcome = await OvertimeRuleResolver(db).upsert_rule(
        grade_id, payload.rate, payload.max_hours, actor
    )
    rule = await commit_audited(db, dispatcher, outcome)
    return OvertimeRuleResponse.model_validate(rule)


# ============================================================================
# Adjustments
# ============================================================================


@router.post(
    "/adjustments",
    response_model=OvertimeAdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_adjustment(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: OvertimeAdjustmentCreate,
) -> OvertimeAdjustmentResponse:
    """Record overtime hours at the grade's current rate."""
    outcome = await CompensationService(db).create_overtime_adjustment(
        actor,
        payload.employee_id,
        hours=payload.hours,
        reason=payload.reason,
        grade_id=payload.grade_id,
        rate=payload.rate,
    )
    row = await commit_audited(db, dispatcher, outcome)
    return OvertimeAdjustmentResponse.model_validate(row)


@router.get("/adjustments", response_model=list[OvertimeAdjustmentResponse])
async def list_adjustments(
    db: DbSession,
    employee_id: int | None = None,
) -> list[OvertimeAdjustmentResponse]:
    """List overtime adjustments, newest first."""
    rows = await CompensationService(db).list_overtime(employee_id)
    return [
        OvertimeAdjustmentResponse.model_validate(row).model_copy(
            update={"employee_name": name}
        )
        for row, name in rows
    ]
