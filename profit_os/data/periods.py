"""
Reporting period handling and date coercion.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterator, List, Optional, Tuple

import pandas as pd


def to_date(value: Any) -> Optional[date]:
    """
    Coerce a stored date value to a ``date``.

    Accepts ``date``, ``datetime``, ``pd.Timestamp`` and ISO strings.
    Missing or unparseable values return None.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, float) and pd.isna(value):
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


@dataclass(frozen=True)
class ReportingPeriod:
    """Closed date interval [start, end], normally one calendar month."""
    start: date
    end: date

    @classmethod
    def for_month(cls, month: str) -> "ReportingPeriod":
        """Build the calendar month for a 'YYYY-MM' key."""
        first = pd.Timestamp(datetime.strptime(month.strip(), "%Y-%m"))
        last = first + pd.offsets.MonthEnd(0)
        return cls(first.date(), last.date())

    @classmethod
    def containing(cls, day: date) -> "ReportingPeriod":
        return cls.for_month(day.strftime("%Y-%m"))

    @property
    def is_empty(self) -> bool:
        return self.end < self.start

    @property
    def month_key(self) -> str:
        return self.start.strftime("%Y-%m")

    @property
    def label(self) -> str:
        if self.start.day == 1 and self.end == (pd.Timestamp(self.start) + pd.offsets.MonthEnd(0)).date():
            return self.start.strftime("%B %Y")
        return f"{self.start.isoformat()} to {self.end.isoformat()}"

    @property
    def day_count(self) -> int:
        if self.is_empty:
            return 0
        return (self.end - self.start).days + 1

    def overlaps(self, start: Any, end: Any = None) -> bool:
        """True if [start, end] intersects the period. A missing end is open-ended."""
        if self.is_empty:
            return False
        start_day = to_date(start)
        end_day = to_date(end)
        if start_day is None and end_day is None:
            return False
        if start_day is not None and start_day > self.end:
            return False
        if end_day is not None and end_day < self.start:
            return False
        return True

    def clip(self, start: Any, end: Any = None) -> Tuple[date, date]:
        """Intersect [start, end] with the period; the result may be empty."""
        start_day = to_date(start) or self.start
        end_day = to_date(end) or self.end
        return max(start_day, self.start), min(end_day, self.end)

    def days(self) -> Iterator[date]:
        return iter_days(self.start, self.end)

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def iter_days(start: date, end: date) -> Iterator[date]:
    """Each calendar day in [start, end]; nothing when end < start."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def recent_month_options(count: int = 12, reference_date: Optional[date] = None) -> List[Tuple[str, str]]:
    """
    (value, label) pairs for the last ``count`` months, newest first.
    """
    if reference_date is None:
        reference_date = date.today()
    first = pd.Timestamp(reference_date).to_period("M")
    options = []
    for offset in range(count):
        month = first - offset
        options.append((month.strftime("%Y-%m"), month.strftime("%B %Y")))
    return options
