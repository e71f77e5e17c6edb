"""ORM models."""

from compensation_engine.models.base import Base, TimestampMixin
from compensation_engine.models.compensation import (
    Allowance,
    Bonus,
    Deduction,
    OvertimeAdjustment,
    OvertimeRule,
    Reimbursement,
)
from compensation_engine.models.employee import BasicSalary, Department, Employee, Grade
from compensation_engine.models.payroll import AuditLog, PayrollCycle

__all__ = [
    "Allowance",
    "AuditLog",
    "Base",
    "BasicSalary",
    "Bonus",
    "Deduction",
    "Department",
    "Employee",
    "Grade",
    "OvertimeAdjustment",
    "OvertimeRule",
    "PayrollCycle",
    "Reimbursement",
    "TimestampMixin",
]
