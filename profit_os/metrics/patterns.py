"""
Recurring shift pattern resolution.

Turns recurring patterns and explicit schedules into share units (days or
hours) per staff member per client for a reporting period.

Weekday indices follow the source system: 0 = Sunday ... 6 = Saturday.
"""
from __future__ import annotations

import json
import logging
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

import numpy as np
import pandas as pd

from profit_os.config import config
from profit_os.data.periods import ReportingPeriod, iter_days, to_date


logger = logging.getLogger("profit-os.patterns")

SHARE_MODES = ("days", "hours")
RECURRENCE_INTERVALS = ("daily", "weekly", "biweekly", "monthly")

_INTERVAL_ALIASES = {
    "bi-weekly": "biweekly",
    "fortnightly": "biweekly",
    "every_other_week": "biweekly",
}

SHARE_COLUMNS = ["staff_id", "client_name", "share_units"]


# =============================================================================
# FIELD PARSING
# =============================================================================

def _field(record: Mapping, key: str) -> Any:
    """Read a field from a dict or Series; missing and NaN become None."""
    value = record.get(key) if hasattr(record, "get") else None
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, np.ndarray)):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def parse_days_of_week(value: Any) -> Set[int]:
    """
    Parse a weekday set from a list, JSON string or Postgres array literal.
    Out-of-range entries are dropped.
    """
    if value is None:
        return set()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return set()
        if text.startswith("{") and text.endswith("}"):
            text = "[" + text[1:-1] + "]"
        try:
            items = json.loads(text)
        except ValueError:
            items = [part for part in text.strip("[]").split(",") if part.strip()]
        if not isinstance(items, list):
            items = [items]
    elif isinstance(value, (list, tuple, set, np.ndarray, pd.Series)):
        items = list(value)
    else:
        items = [value]

    days = set()
    for item in items:
        try:
            day = int(float(item))
        except (TypeError, ValueError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return days


def normalise_interval(value: Any) -> str:
    """Canonical recurrence tag. Unknown tags are treated as weekly."""
    if value is None:
        return "weekly"
    tag = str(value).strip().lower()
    tag = _INTERVAL_ALIASES.get(tag, tag)
    if tag not in RECURRENCE_INTERVALS:
        logger.debug("Unknown recurrence interval %r treated as weekly", value)
        return "weekly"
    return tag


def _parse_time(value: Any) -> Optional[time]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M:%S", "%H:%M", "%H:%M:%S.%f"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def shift_hours(start_time: Any, end_time: Any) -> float:
    """
    Shift duration in hours on a single calendar day.
    Missing, unparseable or non-positive durations are 0.
    """
    start = _parse_time(start_time)
    end = _parse_time(end_time)
    if start is None or end is None:
        return 0.0
    seconds = (
        (end.hour * 3600 + end.minute * 60 + end.second)
        - (start.hour * 3600 + start.minute * 60 + start.second)
    )
    return max(seconds, 0) / 3600.0


def sunday_weekday(day: date) -> int:
    """Weekday index with Sunday = 0."""
    return (day.weekday() + 1) % 7


# =============================================================================
# SINGLE PATTERN
# =============================================================================

def _recurs_on(day: date, pattern_start: date, weekdays: Set[int], interval: str) -> bool:
    if interval == "daily":
        return True
    if sunday_weekday(day) not in weekdays:
        return False
    if interval == "biweekly":
        return ((day - pattern_start).days // 7) % 2 == 0
    if interval == "monthly":
        return day.day == pattern_start.day
    return True


def contributing_dates(pattern: Mapping,
                       period: ReportingPeriod,
                       exception_dates: Optional[Iterable[Any]] = None) -> List[date]:
    """
    Calendar days within the period on which the pattern produces a shift.
    """
    pattern_start = to_date(_field(pattern, "start_date"))
    if pattern_start is None or period.is_empty:
        return []

    pattern_end = to_date(_field(pattern, "end_date"))
    if pattern_end is not None and pattern_end < pattern_start:
        return []

    window_start, window_end = period.clip(pattern_start, pattern_end)
    if window_end < window_start:
        return []

    interval = normalise_interval(_field(pattern, "recurrence_interval"))
    weekdays = parse_days_of_week(_field(pattern, "days_of_week"))
    if not weekdays and interval != "daily":
        return []

    skipped = {to_date(d) for d in (exception_dates or [])}

    return [
        day for day in iter_days(window_start, window_end)
        if day not in skipped and _recurs_on(day, pattern_start, weekdays, interval)
    ]


def resolve_contribution(pattern: Mapping,
                         period: ReportingPeriod,
                         mode: str = "days",
                         exception_dates: Optional[Iterable[Any]] = None) -> float:
    """
    Share units a pattern contributes to the period.

    days  -> number of contributing days
    hours -> contributing days x shift duration
    """
    if mode not in SHARE_MODES:
        raise ValueError(f"Unknown share mode: {mode}")

    per_day = 1.0
    if mode == "hours":
        per_day = shift_hours(_field(pattern, "start_time"), _field(pattern, "end_time"))
        if per_day <= 0:
            return 0.0

    return len(contributing_dates(pattern, period, exception_dates)) * per_day


# =============================================================================
# SHARE TABLES
# =============================================================================

def _empty_shares() -> pd.DataFrame:
    return pd.DataFrame(columns=SHARE_COLUMNS).astype({"share_units": float})


def _sum_shares(df: pd.DataFrame) -> pd.DataFrame:
    if df is None or len(df) == 0:
        return _empty_shares()
    df = df.copy()
    df["staff_id"] = df["staff_id"].astype(str)
    df["client_name"] = df["client_name"].astype(str).str.strip()
    df["share_units"] = pd.to_numeric(df["share_units"], errors="coerce").fillna(0.0)
    result = (
        df.groupby(["staff_id", "client_name"], sort=False, as_index=False)["share_units"]
        .sum()
    )
    return result[result["share_units"] > 0].reset_index(drop=True)


def build_exception_map(exceptions: Optional[pd.DataFrame]) -> Dict[str, Set[date]]:
    """pattern_id -> set of skipped dates."""
    if exceptions is None or len(exceptions) == 0:
        return {}
    if "pattern_id" not in exceptions.columns or "exception_date" not in exceptions.columns:
        return {}

    exception_map: Dict[str, Set[date]] = {}
    for pattern_id, exception_date in zip(exceptions["pattern_id"], exceptions["exception_date"]):
        day = to_date(exception_date)
        if day is None or pd.isna(pattern_id):
            continue
        exception_map.setdefault(str(pattern_id), set()).add(day)
    return exception_map


def pattern_shares(patterns: Optional[pd.DataFrame],
                   period: ReportingPeriod,
                   mode: str = "days",
                   exceptions: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    Sum pattern contributions per (staff_id, client_name).
    """
    if mode not in SHARE_MODES:
        raise ValueError(f"Unknown share mode: {mode}")
    if patterns is None or len(patterns) == 0:
        return _empty_shares()

    exception_map = build_exception_map(exceptions)
    rows = []
    for _, pattern in patterns.iterrows():
        staff_id = _field(pattern, "staff_id")
        client_name = _field(pattern, "client_name")
        if staff_id is None or client_name is None:
            continue
        pattern_id = _field(pattern, "pattern_id")
        skipped = exception_map.get(str(pattern_id)) if pattern_id is not None else None
        units = resolve_contribution(pattern, period, mode, skipped)
        if units > 0:
            rows.append({"staff_id": staff_id, "client_name": client_name, "share_units": units})

    logger.debug("Resolved %d of %d patterns for %s", len(rows), len(patterns), period.month_key)
    return _sum_shares(pd.DataFrame(rows, columns=SHARE_COLUMNS))


def _local_timestamp(value: Any, timezone: str) -> pd.Timestamp:
    """Wall-clock time in ``timezone``; naive values are taken as already local."""
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_convert(timezone).tz_localize(None)
    return ts


def schedule_frame(schedules: Optional[pd.DataFrame],
                   period: ReportingPeriod,
                   timezone: Optional[str] = None) -> pd.DataFrame:
    """
    Explicit schedules starting inside the period, with parsed times and
    a non-negative ``hours`` column.

    Offset-bearing timestamps are converted to ``timezone`` (default
    ``config.schedule_timezone``) before the period filter and day bucketing.
    """
    timezone = timezone or config.schedule_timezone
    columns = ["staff_id", "client_name", "start", "end", "hours", "shift_date"]
    if schedules is None or len(schedules) == 0 or period.is_empty:
        return pd.DataFrame(columns=columns)

    df = schedules.copy()
    df["start"] = pd.to_datetime(df["start_datetime"].map(lambda v: _local_timestamp(v, timezone)))
    df["end"] = pd.to_datetime(df["end_datetime"].map(lambda v: _local_timestamp(v, timezone)))
    df = df[df["start"].notna() & df["end"].notna()]
    df = df[df["staff_id"].notna() & df["client_name"].notna()]

    period_start = pd.Timestamp(period.start)
    period_end = pd.Timestamp(period.end) + pd.Timedelta(days=1)
    df = df[(df["start"] >= period_start) & (df["start"] < period_end)].copy()

    df["hours"] = ((df["end"] - df["start"]).dt.total_seconds() / 3600.0).clip(lower=0)
    df = df[df["hours"] > 0].copy()
    df["shift_date"] = df["start"].dt.date
    return df


def schedule_shares(schedules: Optional[pd.DataFrame],
                    period: ReportingPeriod,
                    mode: str = "days") -> pd.DataFrame:
    """
    Explicit schedule share units per (staff_id, client_name).

    hours -> summed durations
    days  -> distinct shift dates
    """
    if mode not in SHARE_MODES:
        raise ValueError(f"Unknown share mode: {mode}")

    df = schedule_frame(schedules, period)
    if len(df) == 0:
        return _empty_shares()

    df["staff_id"] = df["staff_id"].astype(str)
    df["client_name"] = df["client_name"].astype(str).str.strip()
    if mode == "hours":
        grouped = df.groupby(["staff_id", "client_name"], sort=False, as_index=False)["hours"].sum()
        grouped = grouped.rename(columns={"hours": "share_units"})
    else:
        grouped = df.groupby(["staff_id", "client_name"], sort=False, as_index=False)["shift_date"].nunique()
        grouped = grouped.rename(columns={"shift_date": "share_units"})
    return _sum_shares(grouped)


def combine_shares(*frames: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Sum several share tables into one per (staff_id, client_name)."""
    usable = [f[SHARE_COLUMNS] for f in frames if f is not None and len(f) > 0]
    if not usable:
        return _empty_shares()
    return _sum_shares(pd.concat(usable, ignore_index=True))
