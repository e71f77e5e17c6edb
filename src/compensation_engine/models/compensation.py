"""Compensation record families: allowances, overtime, bonuses, deductions."""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from compensation_engine.models.base import Base, TimestampMixin


# ===== Allowances =====


class Allowance(Base, TimestampMixin):
    """Fixed-amount allowance active over an interval.

    Either bound of [effective_from, effective_to] may be open.
    """

    __tablename__ = "allowances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    frequency: Mapped[str] = mapped_column(String, nullable=False, default="Monthly")
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="Active")

    __table_args__ = (
        CheckConstraint("status IN ('Active', 'Inactive')", name="allowance_status_check"),
        CheckConstraint(
            "effective_to IS NULL OR effective_from IS NULL OR effective_to >= effective_from",
            name="allowance_dates_check",
        ),
    )

    def overlaps(self, first_day: date, last_day: date) -> bool:
        """Check if the active interval overlaps [first_day, last_day]."""
        if self.effective_from is not None and self.effective_from > last_day:
            return False
        if self.effective_to is not None and self.effective_to < first_day:
            return False
        return True


# ===== Overtime =====


class OvertimeRule(Base):
    """Overtime rate and monthly hour cap for a grade (one per grade)."""

    __tablename__ = "overtime_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    grade_id: Mapped[int] = mapped_column(
        ForeignKey("grades.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("rate >= 0", name="overtime_rule_rate_check"),
        CheckConstraint("max_hours >= 0", name="overtime_rule_max_hours_check"),
    )


class OvertimeAdjustment(Base, TimestampMixin):
    """Overtime hours with the rate captured at creation time.

    created_at is the period marker.
    """

    __tablename__ = "overtime_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grade_id: Mapped[int | None] = mapped_column(
        ForeignKey("grades.id", ondelete="SET NULL"),
        nullable=True,
    )
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("hours > 0", name="overtime_hours_positive"),
    )

    @property
    def amount(self) -> Decimal:
        return (self.hours * self.rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ===== Bonuses & Reimbursements =====


class Bonus(Base, TimestampMixin):
    """Point-in-time bonus; effective_date is the period marker.

    bonus_type distinguishes plain bonuses from arrears and corrections
    applied through the batch path.
    """

    __tablename__ = "bonuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    bonus_type: Mapped[str] = mapped_column(String, nullable=False, default="Bonus")
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "bonus_type IN ('Bonus', 'Arrears', 'Correction')",
            name="bonus_type_check",
        ),
    )


class Reimbursement(Base, TimestampMixin):
    """Reimbursement tagged directly with its (month, year)."""

    __tablename__ = "reimbursements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("period_month BETWEEN 1 AND 12", name="reimbursement_month_check"),
    )


# ===== Deductions =====


class Deduction(Base, TimestampMixin):
    """Fixed or percent-of-basic deduction.

    Applies from effective_date onward while Active. Percent deductions are
    priced against the employee's current basic salary at evaluation time.
    """

    __tablename__ = "deductions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    basis: Mapped[str] = mapped_column(String, nullable=False)
    percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="Active")
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("basis IN ('Fixed', 'Percent')", name="deduction_basis_check"),
        CheckConstraint("status IN ('Active', 'Inactive')", name="deduction_status_check"),
    )
