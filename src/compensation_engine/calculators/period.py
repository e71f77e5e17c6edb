"""Period window resolution for (month, year) payroll periods."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from compensation_engine.exceptions import ValidationError

_PERIOD_PATTERN = re.compile(r"^\s*(\d{4})-(\d{1,2})\s*$")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class PeriodWindow:
    """Inclusive calendar-day window [first_day, last_day]."""

    first_day: date
    last_day: date

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def overlaps(self, start: date | None, end: date | None) -> bool:
        """Interval overlap with open (None) bounds treated as unbounded."""
        return (start is None or start <= self.last_day) and (
            end is None or end >= self.first_day
        )

    @property
    def start_datetime(self) -> datetime:
        """Midnight UTC at the start of first_day."""
        return datetime.combine(self.first_day, time.min, tzinfo=timezone.utc)

    @property
    def end_datetime_exclusive(self) -> datetime:
        """Midnight UTC after last_day; timestamps in the window are strictly less."""
        return datetime.combine(self.last_day + timedelta(days=1), time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PayPeriod:
    """A payroll month.

    Built from plain (year, month) integers so month-end is computed on
    calendar dates, never through timestamps.
    """

    month: int
    year: int

    def __post_init__(self) -> None:
        if not _is_int(self.month) or not 1 <= self.month <= 12:
            raise ValidationError(f"month must be between 1 and 12, got {self.month!r}")
        if not _is_int(self.year) or self.year < 1900:
            raise ValidationError(f"year must be 1900 or later, got {self.year!r}")

    @classmethod
    def of(cls, month: Any, year: Any) -> PayPeriod:
        """Build a period from loosely typed input (query strings, JSON)."""
        if month is None or year is None:
            raise ValidationError("month and year are required")
        try:
            return cls(month=int(month), year=int(year))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid period {month!r}/{year!r}")

    @classmethod
    def parse(cls, value: str) -> PayPeriod:
        """Parse a 'YYYY-MM' period string."""
        match = _PERIOD_PATTERN.match(value or "")
        if match is None:
            raise ValidationError(f"Invalid period {value!r}; expected YYYY-MM")
        return cls(month=int(match.group(2)), year=int(match.group(1)))

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def window(self) -> PeriodWindow:
        """Resolve the inclusive day window covering the whole month."""
        return PeriodWindow(first_day=self.first_day, last_day=self.last_day)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
