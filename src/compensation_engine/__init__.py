"""HR payroll compensation engine."""

__version__ = "0.1.0"
