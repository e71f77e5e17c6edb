"""Error taxonomy for compensation operations."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from compensation_engine.audit import AuditEntry


class CompensationError(Exception):
    """Base class for all engine errors."""

    code = "COMPENSATION_ERROR"


class ValidationError(CompensationError):
    """Raised when required input is missing or malformed."""

    code = "VALIDATION_ERROR"


class NotFoundError(CompensationError):
    """Raised when a referenced row does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, key: Any, message: str | None = None):
        self.entity = entity
        self.key = key
        super().__init__(message or f"{entity} {key} not found")


class RuleNotFoundError(NotFoundError):
    """Raised when a grade has no overtime rule."""

    code = "RULE_NOT_FOUND"

    def __init__(self, grade_id: int):
        self.grade_id = grade_id
        super().__init__(
            "overtime_rule",
            grade_id,
            f"No overtime rule for grade {grade_id}; set a rule first",
        )


class CapExceededError(CompensationError):
    """Raised when overtime hours exceed the grade's monthly cap."""

    code = "CAP_EXCEEDED"

    def __init__(self, grade_id: int, hours: Decimal, max_hours: Decimal):
        self.grade_id = grade_id
        self.hours = hours
        self.max_hours = max_hours
        super().__init__(
            f"Overtime hours {hours} exceed the cap of {max_hours} "
            f"for grade {grade_id}"
        )


class PersistenceError(CompensationError):
    """Raised when a store write fails; the transaction has been rolled back.

    Carries the FAILURE audit entries describing the attempted operation so
    the caller can hand them to the audit dispatcher.
    """

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, audit_entries: list[AuditEntry] | None = None):
        self.audit_entries = list(audit_entries or [])
        super().__init__(message)
