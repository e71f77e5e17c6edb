"""Type definitions for the compensation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from compensation_engine.calculators.money import ZERO, round_to_cents

if TYPE_CHECKING:
    from compensation_engine.calculators.period import PayPeriod


class RecordStatus(str, Enum):
    """Status shared by employees, allowances and deductions."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class DeductionBasis(str, Enum):
    """How a deduction amount is derived."""

    FIXED = "Fixed"
    PERCENT = "Percent"


class DeductionType(str, Enum):
    """Deduction categories."""

    TAX = "Tax"
    STATUTORY = "Statutory"
    INSURANCE = "Insurance"
    LOAN = "Loan"
    OTHER = "Other"


class ApplyMode(str, Enum):
    """Batch amount mode."""

    FIXED = "fixed"
    PERCENT = "percent"


class CompensationType(str, Enum):
    """Batch compensation types and the record family each one writes."""

    BONUS = "Bonus"
    ARREARS = "Arrears"
    CORRECTION = "Correction"
    ALLOWANCE = "Allowance"
    REIMBURSEMENT = "Reimbursement"

    @property
    def target_table(self) -> str:
        if self in (CompensationType.BONUS, CompensationType.ARREARS, CompensationType.CORRECTION):
            return "bonuses"
        if self is CompensationType.ALLOWANCE:
            return "allowances"
        return "reimbursements"


@dataclass
class EmployeeSummary:
    """Per-employee aggregation result for one period.

    gross = basic + allowances + overtime + bonus
    net = gross - total_deductions (may be negative)
    """

    employee_id: int
    basic: Decimal = ZERO
    allowances: Decimal = ZERO
    overtime: Decimal = ZERO
    bonus: Decimal = ZERO
    total_deductions: Decimal = ZERO
    full_name: str | None = None
    department: str | None = None

    @property
    def gross(self) -> Decimal:
        return round_to_cents(self.basic + self.allowances + self.overtime + self.bonus)

    @property
    def net(self) -> Decimal:
        return round_to_cents(self.gross - self.total_deductions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "name": self.full_name,
            "department": self.department or "",
            "basic": self.basic,
            "allowances": self.allowances,
            "overtime": self.overtime,
            "bonus": self.bonus,
            "gross": self.gross,
            "total_deductions": self.total_deductions,
            "net": self.net,
        }


@dataclass
class BatchLine:
    """Computed amount for one employee in a batch compensation action."""

    employee_id: int
    full_name: str
    basic: Decimal
    amount: Decimal
    record_id: int | None = None


@dataclass
class BatchResult:
    """Outcome of a batch preview or apply."""

    compensation_type: CompensationType
    mode: ApplyMode
    period: PayPeriod
    lines: list[BatchLine] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return len(self.lines)

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)
