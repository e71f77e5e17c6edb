"""Employee, grade, department and basic salary models."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compensation_engine.models.base import Base, TimestampMixin


class Department(Base):
    """Organisational department."""

    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)


class Grade(Base):
    """Ordinal pay grade; owns at most one overtime rule."""

    __tablename__ = "grades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    grade_id: Mapped[int | None] = mapped_column(
        ForeignKey("grades.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="Active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('Active', 'Inactive')",
            name="employee_status_check",
        ),
    )

    # Relationships
    department: Mapped[Department | None] = relationship()
    grade: Mapped[Grade | None] = relationship()

    @property
    def is_active(self) -> bool:
        return self.status == "Active"


class BasicSalary(Base, TimestampMixin):
    """Append-only basic salary history.

    Each set inserts a new row; the current value is the row with the
    highest id for the employee.
    """

    __tablename__ = "salaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("basic_salary >= 0", name="salary_non_negative"),
    )
