"""
Staff cost aggregation for a reporting period.

Base cost comes from the first matching source (pay records, then the HR
profile salary, unless the policy says otherwise). Recurring bonuses and
overtime are always added on top. All amounts are in the reporting currency.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from profit_os.config import PAY_FREQUENCY_MONTHLY_FACTOR
from profit_os.data.periods import ReportingPeriod
from profit_os.metrics.currency import to_base, to_base_series
from profit_os.metrics.patterns import resolve_contribution, schedule_frame


logger = logging.getLogger("profit-os.staff-cost")

COST_SOURCES = ("pay_records_then_profile", "profile_only", "schedule_hours_only")

COST_COLUMNS = [
    "staff_id",
    "base_cost",
    "bonus_cost",
    "overtime_cost",
    "total_cost",
    "cost_source",
    "has_cost_data",
]


def _has_rows(df: Optional[pd.DataFrame]) -> bool:
    return df is not None and len(df) > 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan


def _currency_col(df: pd.DataFrame, col: str = "currency") -> Optional[pd.Series]:
    return df[col] if col in df.columns else None


def _date_mask(series: pd.Series, period: ReportingPeriod) -> pd.Series:
    dates = pd.to_datetime(series, errors="coerce")
    return (dates >= pd.Timestamp(period.start)) & (dates <= pd.Timestamp(period.end))


def _sum_by_staff(df: pd.DataFrame, value_col: str) -> pd.Series:
    if len(df) == 0:
        return pd.Series(dtype=float)
    return df.groupby(df["staff_id"].astype(str), sort=False)[value_col].sum()


def _empty_costs() -> pd.DataFrame:
    return pd.DataFrame(columns=COST_COLUMNS)


# =============================================================================
# SOURCE FILTERS
# =============================================================================

def monthly_base_salary(base_salary: Any, pay_frequency: Any = "monthly") -> float:
    """
    Normalise a profile salary to a monthly figure.
    Annual / 12, weekly x 4.33, bi-weekly x 2.17; monthly and unknown unchanged.
    """
    value = _to_float(base_salary)
    if pd.isna(value):
        return 0.0
    frequency = "monthly" if pay_frequency is None or pd.isna(pay_frequency) else str(pay_frequency)
    factor = PAY_FREQUENCY_MONTHLY_FACTOR.get(frequency.strip().lower(), 1.0)
    return float(value) * factor


def pay_records_in_period(pay_records: Optional[pd.DataFrame],
                          period: ReportingPeriod) -> pd.DataFrame:
    """
    Pay records dated inside the period, or whose explicit pay-period
    window intersects it.
    """
    if not _has_rows(pay_records) or period.is_empty:
        return pd.DataFrame(columns=list(pay_records.columns) if pay_records is not None else [])

    mask = _date_mask(pay_records["pay_date"], period)
    if "pay_period_start" in pay_records.columns:
        window_start = pd.to_datetime(pay_records["pay_period_start"], errors="coerce")
        if "pay_period_end" in pay_records.columns:
            window_end = pd.to_datetime(pay_records["pay_period_end"], errors="coerce").fillna(window_start)
        else:
            window_end = window_start
        in_window = (
            window_start.notna()
            & (window_start <= pd.Timestamp(period.end))
            & (window_end >= pd.Timestamp(period.start))
        )
        mask = mask | in_window

    return pay_records[mask & pay_records["staff_id"].notna()].copy()


def signed_pay_amounts(records: pd.DataFrame, rates: Mapping[str, float],
                       reporting_currency: Optional[str] = None) -> pd.Series:
    """Pay amounts in the reporting currency; deductions are negative."""
    converted = to_base_series(records["amount"], _currency_col(records), rates, reporting_currency)
    is_deduction = records["record_type"].astype(str).str.strip().str.lower().eq("deduction")
    return converted.where(~is_deduction, -converted)


def bonuses_in_period(bonuses: Optional[pd.DataFrame], period: ReportingPeriod) -> pd.DataFrame:
    """Recurring bonuses whose [start, end or open] interval overlaps the period."""
    if not _has_rows(bonuses) or period.is_empty:
        return pd.DataFrame(columns=list(bonuses.columns) if bonuses is not None else [])

    starts = pd.to_datetime(bonuses["start_date"], errors="coerce")
    if "end_date" in bonuses.columns:
        ends = pd.to_datetime(bonuses["end_date"], errors="coerce")
    else:
        ends = pd.Series(pd.NaT, index=bonuses.index)
    mask = (
        starts.notna()
        & (starts <= pd.Timestamp(period.end))
        & (ends.isna() | (ends >= pd.Timestamp(period.start)))
    )
    return bonuses[mask & bonuses["staff_id"].notna()].copy()


def overtime_in_period(overtime: Optional[pd.DataFrame], period: ReportingPeriod) -> pd.DataFrame:
    """Overtime records dated inside the period."""
    if not _has_rows(overtime) or period.is_empty:
        return pd.DataFrame(columns=list(overtime.columns) if overtime is not None else [])
    mask = _date_mask(overtime["overtime_date"], period)
    return overtime[mask & overtime["staff_id"].notna()].copy()


def overtime_amounts(records: pd.DataFrame, rates: Mapping[str, float],
                     reporting_currency: Optional[str] = None) -> pd.Series:
    """hours x hourly_rate in the reporting currency; records without a rate are 0."""
    hours = pd.to_numeric(records["hours"], errors="coerce").fillna(0.0)
    if "hourly_rate" in records.columns:
        rate = pd.to_numeric(records["hourly_rate"], errors="coerce").fillna(0.0)
    else:
        rate = pd.Series(0.0, index=records.index)
    return to_base_series(hours * rate, _currency_col(records), rates, reporting_currency)


def profile_base_costs(staff_profiles: Optional[pd.DataFrame],
                       rates: Mapping[str, float],
                       reporting_currency: Optional[str] = None) -> pd.Series:
    """Monthly base salary per staff_id in the reporting currency."""
    if not _has_rows(staff_profiles):
        return pd.Series(dtype=float)

    profiles = staff_profiles[staff_profiles["staff_id"].notna()].copy()
    profiles["staff_id"] = profiles["staff_id"].astype(str)
    profiles = profiles.drop_duplicates("staff_id", keep="first")
    salary = pd.to_numeric(profiles["base_salary"], errors="coerce")
    profiles = profiles[salary.notna() & (salary != 0)]
    if len(profiles) == 0:
        return pd.Series(dtype=float)

    frequency = profiles["pay_frequency"] if "pay_frequency" in profiles.columns else pd.Series("monthly", index=profiles.index)
    monthly = pd.Series(
        [monthly_base_salary(s, f) for s, f in zip(profiles["base_salary"], frequency)],
        index=profiles.index,
    )
    converted = to_base_series(monthly, _currency_col(profiles, "base_currency"), rates, reporting_currency)
    return pd.Series(converted.values, index=profiles["staff_id"].values)


def rostered_costs(period: ReportingPeriod,
                   rates: Mapping[str, float],
                   schedules: Optional[pd.DataFrame] = None,
                   patterns: Optional[pd.DataFrame] = None,
                   exception_map: Optional[Mapping[str, Iterable]] = None,
                   reporting_currency: Optional[str] = None) -> pd.Series:
    """
    Scheduled hours x hourly rate per staff_id, from explicit schedules and
    recurring patterns that carry a rate.
    """
    parts = []

    shifts = schedule_frame(schedules, period)
    if len(shifts) > 0 and "hourly_rate" in shifts.columns:
        rate = pd.to_numeric(shifts["hourly_rate"], errors="coerce")
        shifts = shifts[rate.notna()].copy()
        shifts["amount"] = to_base_series(
            shifts["hours"] * pd.to_numeric(shifts["hourly_rate"], errors="coerce"),
            _currency_col(shifts),
            rates,
            reporting_currency,
        )
        parts.append(shifts[["staff_id", "amount"]])

    if _has_rows(patterns) and "hourly_rate" in patterns.columns:
        rows = []
        for _, pattern in patterns.iterrows():
            rate = _to_float(pattern.get("hourly_rate"))
            if pd.isna(rate) or pd.isna(pattern.get("staff_id")):
                continue
            skipped = None
            if exception_map and "pattern_id" in pattern.index and not pd.isna(pattern["pattern_id"]):
                skipped = exception_map.get(str(pattern["pattern_id"]))
            hours = resolve_contribution(pattern, period, "hours", skipped)
            if hours > 0:
                rows.append({
                    "staff_id": pattern["staff_id"],
                    "amount": to_base(hours * rate, pattern.get("currency"), rates, reporting_currency),
                })
        if rows:
            parts.append(pd.DataFrame(rows))

    if not parts:
        return pd.Series(dtype=float)
    return _sum_by_staff(pd.concat(parts, ignore_index=True), "amount")


# =============================================================================
# AGGREGATION
# =============================================================================

def compute_staff_costs(period: ReportingPeriod,
                        rates: Mapping[str, float],
                        pay_records: Optional[pd.DataFrame] = None,
                        bonuses: Optional[pd.DataFrame] = None,
                        overtime: Optional[pd.DataFrame] = None,
                        staff_profiles: Optional[pd.DataFrame] = None,
                        cost_source: str = "pay_records_then_profile",
                        schedules: Optional[pd.DataFrame] = None,
                        patterns: Optional[pd.DataFrame] = None,
                        exception_map: Optional[Mapping[str, Iterable]] = None,
                        staff_ids: Optional[Iterable[Any]] = None,
                        reporting_currency: Optional[str] = None) -> pd.DataFrame:
    """
    Total cost per staff member for the period.

    Returns DataFrame with:
    - base_cost: pay records, profile salary or rostered cost
    - bonus_cost: recurring bonuses overlapping the period
    - overtime_cost: overtime dated in the period
    - total_cost: base + bonus + overtime
    - cost_source: pay_records | profile | rostered | none
    - has_cost_data: False when no source contributed anything
    """
    if cost_source not in COST_SOURCES:
        raise ValueError(f"Unknown cost source: {cost_source}")

    pay = pay_records_in_period(pay_records, period)
    pay_by_staff = pd.Series(dtype=float)
    if len(pay) > 0:
        pay["amount_base"] = signed_pay_amounts(pay, rates, reporting_currency)
        pay_by_staff = _sum_by_staff(pay, "amount_base")

    bonus = bonuses_in_period(bonuses, period)
    bonus_by_staff = pd.Series(dtype=float)
    if len(bonus) > 0:
        bonus["amount_base"] = to_base_series(
            bonus["amount"], _currency_col(bonus), rates, reporting_currency
        )
        bonus_by_staff = _sum_by_staff(bonus, "amount_base")

    ot = overtime_in_period(overtime, period)
    overtime_by_staff = pd.Series(dtype=float)
    if len(ot) > 0:
        ot["amount_base"] = overtime_amounts(ot, rates, reporting_currency)
        overtime_by_staff = _sum_by_staff(ot, "amount_base")

    profile_by_staff = pd.Series(dtype=float)
    rostered_by_staff = pd.Series(dtype=float)
    if cost_source == "schedule_hours_only":
        rostered_by_staff = rostered_costs(
            period, rates, schedules, patterns, exception_map, reporting_currency
        )
    else:
        profile_by_staff = profile_base_costs(staff_profiles, rates, reporting_currency)

    if staff_ids is None:
        universe = []
        for series in (pay_by_staff, profile_by_staff, rostered_by_staff, bonus_by_staff, overtime_by_staff):
            universe.extend(series.index.tolist())
    else:
        universe = [str(s) for s in staff_ids]
    universe = list(dict.fromkeys(str(s) for s in universe))

    if not universe:
        return _empty_costs()

    rows = []
    for staff_id in universe:
        if cost_source == "schedule_hours_only":
            if staff_id in rostered_by_staff.index:
                base_cost, source = float(rostered_by_staff[staff_id]), "rostered"
            else:
                base_cost, source = 0.0, "none"
        elif cost_source == "pay_records_then_profile" and staff_id in pay_by_staff.index:
            base_cost, source = float(pay_by_staff[staff_id]), "pay_records"
        elif staff_id in profile_by_staff.index:
            base_cost, source = float(profile_by_staff[staff_id]), "profile"
        else:
            base_cost, source = 0.0, "none"

        bonus_cost = float(bonus_by_staff.get(staff_id, 0.0))
        overtime_cost = float(overtime_by_staff.get(staff_id, 0.0))
        rows.append({
            "staff_id": staff_id,
            "base_cost": base_cost,
            "bonus_cost": bonus_cost,
            "overtime_cost": overtime_cost,
            "total_cost": base_cost + bonus_cost + overtime_cost,
            "cost_source": source,
            "has_cost_data": (
                source != "none"
                or staff_id in bonus_by_staff.index
                or staff_id in overtime_by_staff.index
            ),
        })

    result = pd.DataFrame(rows, columns=COST_COLUMNS)
    logger.debug(
        "Staff costs for %s: %d staff, sources=%s",
        period.month_key,
        len(result),
        result["cost_source"].value_counts().to_dict(),
        extra={"period": period.month_key, "cost_source": cost_source, "staff_count": len(result)},
    )
    return result


def _only_staff(df: Optional[pd.DataFrame], staff_id: Any) -> Optional[pd.DataFrame]:
    if not _has_rows(df) or "staff_id" not in df.columns:
        return None
    return df[df["staff_id"].astype(str) == str(staff_id)]


def staff_cost_breakdown(staff_id: Any,
                         period: ReportingPeriod,
                         pay_records: Optional[pd.DataFrame],
                         bonuses: Optional[pd.DataFrame],
                         overtime: Optional[pd.DataFrame],
                         staff_profile: Optional[Mapping],
                         rates: Mapping[str, float],
                         cost_source: str = "pay_records_then_profile",
                         schedules: Optional[pd.DataFrame] = None,
                         patterns: Optional[pd.DataFrame] = None,
                         reporting_currency: Optional[str] = None) -> dict:
    """Cost components for a single staff member."""
    profiles = None
    if staff_profile is not None:
        profiles = pd.DataFrame([dict(staff_profile)])
        profiles["staff_id"] = str(staff_id)

    costs = compute_staff_costs(
        period,
        rates,
        pay_records=_only_staff(pay_records, staff_id),
        bonuses=_only_staff(bonuses, staff_id),
        overtime=_only_staff(overtime, staff_id),
        staff_profiles=profiles,
        cost_source=cost_source,
        schedules=_only_staff(schedules, staff_id),
        patterns=_only_staff(patterns, staff_id),
        staff_ids=[staff_id],
        reporting_currency=reporting_currency,
    )
    return costs.iloc[0].to_dict()


def total_cost(staff_id: Any,
               period: ReportingPeriod,
               pay_records: Optional[pd.DataFrame],
               bonuses: Optional[pd.DataFrame],
               overtime: Optional[pd.DataFrame],
               staff_profile: Optional[Mapping],
               rates: Mapping[str, float],
               cost_source: str = "pay_records_then_profile",
               schedules: Optional[pd.DataFrame] = None,
               patterns: Optional[pd.DataFrame] = None,
               reporting_currency: Optional[str] = None) -> float:
    """
    Total normalised cost for one staff member. 0 when there is no data.
    """
    breakdown = staff_cost_breakdown(
        staff_id, period, pay_records, bonuses, overtime, staff_profile, rates,
        cost_source=cost_source, schedules=schedules, patterns=patterns,
        reporting_currency=reporting_currency,
    )
    return float(breakdown["total_cost"])
