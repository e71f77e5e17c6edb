"""Batch compensation endpoints."""

from fastapi import APIRouter, status

from compensation_engine.api.dependencies import (
    CurrentActor,
    DbSession,
    Dispatcher,
    commit_audited,
)
from compensation_engine.api.schemas import (
    BatchApplyResponse,
    BatchLineResponse,
    BatchPreviewResponse,
    CompensationBatchRequest,
    ErrorResponse,
    ReimbursementResponse,
)
from compensation_engine.calculators.filters import EmployeeFilter
from compensation_engine.calculators.period import PayPeriod
from compensation_engine.services.batch_applier import BatchRequest, CompensationBatchApplier

router = APIRouter(prefix="/compensation", tags=["compensation"])


def _to_request(payload: CompensationBatchRequest) -> BatchRequest:
    employee_filter = None
    if payload.filter is not None:
        employee_filter = EmployeeFilter(
            search=payload.filter.search or None,
            department_id=payload.filter.department_id,
            grade_id=payload.filter.grade_id,
        )
    return BatchRequest.build(
        compensation_type=payload.type,
        mode=payload.mode,
        period=payload.period_month,
        amount=payload.amount,
        percent=payload.percent,
        employee_ids=payload.employee_ids,
        employee_filter=employee_filter,
        note=payload.note,
        category=payload.category,
    )


@router.post(
    "/preview",
    response_model=BatchPreviewResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def preview(
    db: DbSession,
    payload: CompensationBatchRequest,
) -> BatchPreviewResponse:
    """Compute per-employee amounts without writing anything."""
    request = _to_request(payload)
    result = await CompensationBatchApplier(db).preview(request)
    return BatchPreviewResponse(
        type=result.compensation_type.value,
        mode=result.mode.value,
        period_month=str(result.period),
        count=result.applied_count,
        total=result.total,
        lines=[BatchLineResponse.model_validate(line) for line in result.lines],
    )


@router.post(
    "/apply",
    response_model=BatchApplyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def apply(
    db: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    payload: CompensationBatchRequest,
) -> BatchApplyResponse:
    """Write one record per employee; all or nothing."""
    request = _to_request(payload)
    outcome = await CompensationBatchApplier(db).apply(actor, request)
    result = await commit_audited(db, dispatcher, outcome)
    return BatchApplyResponse(
        applied_count=result.applied_count,
        total=result.total,
        lines=[BatchLineResponse.model_validate(line) for line in result.lines],
    )


@router.get(
    "/reimbursements",
    response_model=list[ReimbursementResponse],
    responses={400: {"model": ErrorResponse}},
)
async def list_reimbursements(
    db: DbSession,
    employee_id: int | None = None,
    month: int | None = None,
    year: int | None = None,
) -> list[ReimbursementResponse]:
    """List reimbursements, optionally for one month."""
    period = PayPeriod.of(month, year) if month is not None or year is not None else None
    rows = await CompensationBatchApplier(db).list_reimbursements(employee_id, period)
    return [ReimbursementResponse.model_validate(row) for row in rows]
