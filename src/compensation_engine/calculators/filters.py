"""Employee cohort filters folded into parameterized selects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, Select, or_

from compensation_engine.models import Employee

LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """Substring pattern with LIKE wildcards in the term matched literally."""
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"


@dataclass(frozen=True)
class EmployeeFilter:
    """Optional predicates narrowing the employee set.

    Values are always bound as statement parameters.
    """

    search: str | None = None
    department_id: int | None = None
    grade_id: int | None = None
    employee_ids: tuple[int, ...] | None = None
    include_inactive: bool = False

    def predicates(self) -> list[ColumnElement[bool]]:
        """Return the predicate list for the non-empty fields."""
        clauses: list[ColumnElement[bool]] = []
        if not self.include_inactive:
            clauses.append(Employee.status == "Active")
        if self.search:
            pattern = like_pattern(self.search.strip())
            clauses.append(
                or_(
                    Employee.full_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Employee.email.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        if self.department_id is not None:
            clauses.append(Employee.department_id == self.department_id)
        if self.grade_id is not None:
            clauses.append(Employee.grade_id == self.grade_id)
        if self.employee_ids is not None:
            clauses.append(Employee.id.in_(self.employee_ids))
        return clauses

    def apply(self, query: Select[Any]) -> Select[Any]:
        """Fold predicates into a select."""
        for clause in self.predicates():
            query = query.where(clause)
        return query

    @classmethod
    def for_ids(cls, employee_ids: list[int], include_inactive: bool = True) -> EmployeeFilter:
        return cls(employee_ids=tuple(employee_ids), include_inactive=include_inactive)
