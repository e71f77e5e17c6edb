"""Compensation engine services."""

from compensation_engine.services.batch_applier import BatchRequest, CompensationBatchApplier
from compensation_engine.services.compensation_service import CompensationService
from compensation_engine.services.payroll_cycle_service import PayrollCycleService, PayrollRunResult
from compensation_engine.services.payslip_service import Payslip, PayslipService

__all__ = [
    "BatchRequest",
    "CompensationBatchApplier",
    "CompensationService",
    "Payslip",
    "PayslipService",
    "PayrollCycleService",
    "PayrollRunResult",
]
