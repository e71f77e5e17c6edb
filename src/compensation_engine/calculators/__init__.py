"""Compensation calculation engine."""

from compensation_engine.calculators.aggregation import AggregationEngine
from compensation_engine.calculators.filters import EmployeeFilter
from compensation_engine.calculators.overtime_rules import OvertimeRuleResolver, ResolvedRate
from compensation_engine.calculators.period import PayPeriod, PeriodWindow
from compensation_engine.calculators.types import EmployeeSummary

__all__ = [
    "AggregationEngine",
    "EmployeeFilter",
    "EmployeeSummary",
    "OvertimeRuleResolver",
    "PayPeriod",
    "PeriodWindow",
    "ResolvedRate",
]
