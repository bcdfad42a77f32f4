"""
Client profitability allocation engine.

Pure function of its inputs: shares -> staff costs -> allocation -> report.
Nothing here performs I/O; rates and record tables are passed in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Dict, List, Mapping, Optional

import pandas as pd

from profit_os.config import AppConfig, config
from profit_os.data.periods import ReportingPeriod
from profit_os.metrics.allocation import allocate_costs
from profit_os.metrics.currency import ensure_identity, unknown_currencies
from profit_os.metrics.patterns import (
    SHARE_MODES,
    build_exception_map,
    combine_shares,
    pattern_shares,
    schedule_shares,
)
from profit_os.metrics.profitability import (
    REVENUE_MODES,
    AllocationReport,
    ReportWarning,
    build_report,
)
from profit_os.metrics.staff_cost import (
    COST_COLUMNS,
    COST_SOURCES,
    compute_staff_costs,
)


logger = logging.getLogger("profit-os.engine")


@dataclass(frozen=True)
class AllocationPolicy:
    """
    Switches that reproduce each historical variant of the calculation.

    cost_source:  pay_records_then_profile | profile_only | schedule_hours_only
    revenue_mode: net_of_vat | gross_mrr
    share_mode:   days | hours
    """
    cost_source: str = "pay_records_then_profile"
    revenue_mode: str = "net_of_vat"
    share_mode: str = "days"
    include_schedules: bool = True

    def __post_init__(self):
        if self.cost_source not in COST_SOURCES:
            raise ValueError(f"Unknown cost source: {self.cost_source}")
        if self.revenue_mode not in REVENUE_MODES:
            raise ValueError(f"Unknown revenue mode: {self.revenue_mode}")
        if self.share_mode not in SHARE_MODES:
            raise ValueError(f"Unknown share mode: {self.share_mode}")

    @classmethod
    def from_config(cls, app_config: Optional[AppConfig] = None) -> "AllocationPolicy":
        app_config = app_config or config
        return cls(
            cost_source=app_config.cost_source,
            revenue_mode=app_config.revenue_mode,
            share_mode=app_config.share_mode,
        )


@dataclass
class EngineInputs:
    """Record tables consumed by the engine; every table is optional."""
    clients: pd.DataFrame = field(default_factory=pd.DataFrame)
    patterns: pd.DataFrame = field(default_factory=pd.DataFrame)
    pattern_exceptions: pd.DataFrame = field(default_factory=pd.DataFrame)
    schedules: pd.DataFrame = field(default_factory=pd.DataFrame)
    pay_records: pd.DataFrame = field(default_factory=pd.DataFrame)
    recurring_bonuses: pd.DataFrame = field(default_factory=pd.DataFrame)
    overtime: pd.DataFrame = field(default_factory=pd.DataFrame)
    staff_profiles: pd.DataFrame = field(default_factory=pd.DataFrame)

    @classmethod
    def from_tables(cls, tables: Mapping[str, Optional[pd.DataFrame]]) -> "EngineInputs":
        kwargs = {}
        for f in fields(cls):
            df = tables.get(f.name)
            kwargs[f.name] = df if df is not None else pd.DataFrame()
        return cls(**kwargs)


def staff_display_names(staff_profiles: Optional[pd.DataFrame]) -> Dict[str, str]:
    """staff_id -> display name, falling back to the email prefix."""
    if staff_profiles is None or len(staff_profiles) == 0 or "staff_id" not in staff_profiles.columns:
        return {}

    names = {}
    for _, row in staff_profiles.iterrows():
        if pd.isna(row["staff_id"]):
            continue
        name = row.get("display_name")
        if name is None or pd.isna(name) or not str(name).strip():
            email = row.get("email")
            name = str(email).split("@")[0] if email is not None and not pd.isna(email) else None
        if name:
            names.setdefault(str(row["staff_id"]), str(name).strip())
    return names


def compute_shares(inputs: EngineInputs,
                   period: ReportingPeriod,
                   policy: AllocationPolicy) -> pd.DataFrame:
    """Share units per (staff_id, client_name) from patterns and schedules."""
    from_patterns = pattern_shares(
        inputs.patterns, period, policy.share_mode, inputs.pattern_exceptions
    )
    from_schedules = None
    if policy.include_schedules:
        from_schedules = schedule_shares(inputs.schedules, period, policy.share_mode)
    return combine_shares(from_patterns, from_schedules)


def _currency_values(inputs: EngineInputs) -> pd.Series:
    parts = []
    for df, col in [
        (inputs.pay_records, "currency"),
        (inputs.recurring_bonuses, "currency"),
        (inputs.overtime, "currency"),
        (inputs.staff_profiles, "base_currency"),
        (inputs.patterns, "currency"),
        (inputs.schedules, "currency"),
    ]:
        if df is not None and col in df.columns:
            parts.append(df[col].dropna())
    if not parts:
        return pd.Series(dtype=object)
    return pd.concat(parts, ignore_index=True)


def compute_client_profitability(inputs: EngineInputs,
                                 period: ReportingPeriod,
                                 rates: Mapping[str, float],
                                 policy: Optional[AllocationPolicy] = None,
                                 rates_stale: bool = False,
                                 reporting_currency: Optional[str] = None) -> AllocationReport:
    """
    Build the client profitability report for a period.

    Missing data never raises: it degrades to zero cost / zero share and is
    surfaced through ``report.flags`` and ``report.warnings``.
    """
    policy = policy or AllocationPolicy.from_config()
    rates = ensure_identity(rates, reporting_currency)
    names = staff_display_names(inputs.staff_profiles)
    warnings: List[ReportWarning] = []

    shares = compute_shares(inputs, period, policy)

    costs = compute_staff_costs(
        period,
        rates,
        pay_records=inputs.pay_records,
        bonuses=inputs.recurring_bonuses,
        overtime=inputs.overtime,
        staff_profiles=inputs.staff_profiles,
        cost_source=policy.cost_source,
        schedules=inputs.schedules,
        patterns=inputs.patterns,
        exception_map=build_exception_map(inputs.pattern_exceptions),
        reporting_currency=reporting_currency,
    )

    # Staff with shifts but no cost rows still appear, at zero cost
    missing = [s for s in shares["staff_id"].unique() if s not in set(costs["staff_id"])]
    if missing:
        zero_rows = pd.DataFrame([{
            "staff_id": staff_id,
            "base_cost": 0.0,
            "bonus_cost": 0.0,
            "overtime_cost": 0.0,
            "total_cost": 0.0,
            "cost_source": "none",
            "has_cost_data": False,
        } for staff_id in missing], columns=COST_COLUMNS)
        costs = pd.concat([costs, zero_rows], ignore_index=True) if len(costs) else zero_rows

    allocations, unallocated = allocate_costs(shares, costs)

    scheduled_staff = set(shares["staff_id"])
    for _, row in costs.iterrows():
        label = names.get(row["staff_id"], row["staff_id"])
        if not row["has_cost_data"] and row["staff_id"] in scheduled_staff:
            warnings.append(ReportWarning(
                type="no_pay_data",
                subject=label,
                message=f"No pay data for {label} in {period.label}; their cost is counted as 0.",
            ))
    for _, row in unallocated.iterrows():
        label = names.get(row["staff_id"], row["staff_id"])
        warnings.append(ReportWarning(
            type="unallocated_cost",
            subject=label,
            message=(
                f"{label} has {row['total_cost']:,.2f} of cost in {period.label} "
                "but no scheduled shifts, so it is not allocated to any client."
            ),
        ))

    for code in unknown_currencies(_currency_values(inputs), rates, reporting_currency):
        warnings.append(ReportWarning(
            type="unknown_currency",
            subject=code,
            message=f"No exchange rate for {code}; amounts were used unconverted.",
        ))

    flags = {
        "no_recurring_patterns": len(shares) == 0,
        "no_pay_data": not costs["has_cost_data"].astype(bool).any(),
        "rates_stale": bool(rates_stale),
    }
    if rates_stale:
        warnings.append(ReportWarning(
            type="rates_stale",
            subject="exchange_rates",
            message="Using fallback exchange rates; converted amounts may be stale.",
        ))

    logger.info(
        "Built client profitability for %s: %d share rows, %d staff costed, %d unallocated",
        period.month_key,
        len(shares),
        len(costs),
        len(unallocated),
        extra={"period": period.month_key, "cost_source": policy.cost_source, "share_mode": policy.share_mode},
    )

    return build_report(
        inputs.clients,
        allocations,
        period,
        revenue_mode=policy.revenue_mode,
        staff_names=names,
        unallocated=unallocated,
        staff_costs=costs,
        flags=flags,
        warnings=warnings,
    )
