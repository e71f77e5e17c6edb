"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error body returned by the exception handlers."""

    detail: str
    code: str


# ============================================================================
# Basic salary
# ============================================================================


class BasicSalaryRequest(BaseModel):
    """Schema for setting an employee's basic salary."""

    employee_id: int
    basic_salary: Decimal | None = None


class BasicSalaryResponse(BaseModel):
    """Current basic salary for an employee."""

    employee_id: int
    basic_salary: Decimal


# ============================================================================
# Allowances
# ============================================================================


class AllowanceCreate(BaseModel):
    """Schema for adding an allowance."""

    employee_id: int
    description: str
    amount: Decimal | None = None
    category: str | None = None
    taxable: bool = False
    frequency: str = "Monthly"
    effective_from: date | None = None
    effective_to: date | None = None
    status: str = "Active"


class AllowanceResponse(BaseModel):
    """Schema for allowance response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    name: str
    category: str | None = None
    amount: Decimal
    taxable: bool
    frequency: str
    effective_from: date | None = None
    effective_to: date | None = None
    status: str
    created_at: datetime | None = None
    employee_name: str | None = None


# ============================================================================
# Bonuses
# ============================================================================


class BonusCreate(BaseModel):
    """Schema for adding a bonus."""

    employee_id: int
    amount: Decimal | None = None
    reason: str | None = None
    effective_date: date | None = None


class BonusResponse(BaseModel):
    """Schema for bonus response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    amount: Decimal
    reason: str | None = None
    bonus_type: str
    effective_date: date
    created_by: str | None = None
    employee_name: str | None = None


# ============================================================================
# Deductions
# ============================================================================


class DeductionCreate(BaseModel):
    """Schema for creating a deduction."""

    employee_id: int
    name: str
    type: str
    basis: str
    percent: Decimal | None = None
    amount: Decimal | None = None
    effective_date: date | None = None
    status: str = "Active"


class DeductionStatusUpdate(BaseModel):
    """Schema for activating or stopping a deduction."""

    status: str


class DeductionResponse(BaseModel):
    """Schema for deduction response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    name: str
    type: str
    basis: str
    percent: Decimal | None = None
    amount: Decimal | None = None
    status: str
    effective_date: date
    employee_name: str | None = None


# ============================================================================
# Overtime
# ============================================================================


class OvertimeRuleUpsert(BaseModel):
    """Schema for setting a grade's overtime rule."""

    rate: Decimal | None = None
    max_hours: Decimal | None = None


class OvertimeRuleResponse(BaseModel):
    """Schema for overtime rule response."""

    model_config = ConfigDict(from_attributes=True)

    grade_id: int
    rate: Decimal
    max_hours: Decimal
    grade_name: str | None = None


class OvertimeAdjustmentCreate(BaseModel):
    """Schema for recording overtime hours.

    Supplying rate bypasses the grade rule and its hour cap.
    """

    employee_id: int
    hours: Decimal | None = None
    reason: str | None = None
    grade_id: int | None = None
    rate: Decimal | None = None


class OvertimeAdjustmentResponse(BaseModel):
    """Schema for overtime adjustment response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    grade_id: int | None = None
    hours: Decimal
    rate: Decimal
    amount: Decimal
    reason: str | None = None
    created_at: datetime | None = None
    employee_name: str | None = None


# ============================================================================
# Payroll summaries, runs and payslips
# ============================================================================


class EarningsRow(BaseModel):
    """Earnings grid row (no deductions)."""

    employee_id: int
    name: str | None = None
    department: str = ""
    basic_salary: Decimal
    allowances: Decimal
    overtime: Decimal
    bonus: Decimal
    gross: Decimal


class EarningsListResponse(BaseModel):
    items: list[EarningsRow]
    total: int


class EmployeeSummaryResponse(BaseModel):
    """Per-employee period summary."""

    employee_id: int
    name: str | None = None
    department: str = ""
    basic: Decimal
    allowances: Decimal
    overtime: Decimal
    bonus: Decimal
    gross: Decimal
    total_deductions: Decimal
    net: Decimal


class SummaryListResponse(BaseModel):
    items: list[EmployeeSummaryResponse]
    total: int
    month: int
    year: int


class PayrollRunRequest(BaseModel):
    """Schema for running payroll for a month."""

    month: int | None = None
    year: int | None = None


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    run_id: str
    month: int
    year: int
    count: int
    generated_at: datetime
    message: str


class PayrollCycleResponse(BaseModel):
    """Schema for a stored payroll snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    run_id: str
    employee_id: int
    period_month: int
    period_year: int
    gross_earnings: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    generated_at: datetime


class PayrollCycleListResponse(BaseModel):
    items: list[PayrollCycleResponse]
    total: int


class PayslipItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    label: str
    amount: Decimal
    record_id: int


class PayslipResponse(BaseModel):
    """Payslip data for rendering."""

    employee_id: int
    name: str
    email: str | None = None
    department: str | None = None
    month: int
    year: int
    summary: EmployeeSummaryResponse
    items: list[PayslipItemResponse]


# ============================================================================
# Batch compensation
# ============================================================================


class CohortFilter(BaseModel):
    """Filter-derived cohort (active employees only)."""

    search: str | None = None
    department_id: int | None = None
    grade_id: int | None = None


class CompensationBatchRequest(BaseModel):
    """Schema for previewing or applying a batch compensation action."""

    type: str
    mode: str = "fixed"
    amount: Decimal | None = None
    percent: Decimal | None = None
    period_month: str = Field(description="Target month as YYYY-MM")
    employee_ids: list[int] | None = None
    filter: CohortFilter | None = None
    note: str | None = None
    category: str | None = None


class BatchLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    full_name: str
    basic: Decimal
    amount: Decimal
    record_id: int | None = None


class BatchPreviewResponse(BaseModel):
    type: str
    mode: str
    period_month: str
    count: int
    total: Decimal
    lines: list[BatchLineResponse]


class BatchApplyResponse(BaseModel):
    applied_count: int
    total: Decimal
    lines: list[BatchLineResponse]


class ReimbursementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    amount: Decimal
    category: str | None = None
    note: str | None = None
    period_month: int
    period_year: int
