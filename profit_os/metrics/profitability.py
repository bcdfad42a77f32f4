"""
Client profitability metrics pack.

Single source of truth for: client revenue, allocated cost, profit, margin%
and the period-wide totals of the allocation report.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from profit_os.config import MRR_TAX_DIVISOR
from profit_os.data.periods import ReportingPeriod


REVENUE_MODES = ("net_of_vat", "gross_mrr")

CLIENT_COLUMNS = [
    "client_id",
    "client_name",
    "revenue",
    "total_allocated_cost",
    "total_share_units",
    "profit",
    "margin",
    "assigned_staff_count",
]

BREAKDOWN_COLUMNS = ["client_name", "staff_id", "staff_name", "share_units", "allocated_cost"]

DEFAULT_FLAGS = {
    "no_recurring_patterns": False,
    "no_pay_data": False,
    "rates_stale": False,
}


@dataclass
class ReportWarning:
    """Advisory surfaced alongside the report."""
    type: str
    subject: str
    message: str


@dataclass
class AllocationReport:
    """Per-client profitability for one reporting period."""
    period: ReportingPeriod
    clients: pd.DataFrame
    staff_breakdown: pd.DataFrame
    totals: Dict[str, float]
    flags: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_FLAGS))
    warnings: List[ReportWarning] = field(default_factory=list)
    staff_costs: pd.DataFrame = field(default_factory=pd.DataFrame)
    unallocated: pd.DataFrame = field(default_factory=pd.DataFrame)
    revenue_mode: str = "net_of_vat"

    @property
    def has_advisories(self) -> bool:
        return any(self.flags.values()) or bool(self.warnings)

    def client_row(self, client_name: str) -> Optional[pd.Series]:
        match = self.clients[self.clients["client_name"] == client_name]
        if len(match) == 0:
            return None
        return match.iloc[0]

    def breakdown_for(self, client_name: str) -> pd.DataFrame:
        return self.staff_breakdown[self.staff_breakdown["client_name"] == client_name]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable report: floats, ISO dates, nested staff breakdowns."""
        clients = []
        for _, row in self.clients.iterrows():
            breakdown = self.breakdown_for(row["client_name"])
            clients.append({
                "client_id": _jsonable(row["client_id"]),
                "client_name": str(row["client_name"]),
                "revenue": float(row["revenue"]),
                "total_allocated_cost": float(row["total_allocated_cost"]),
                "total_share_units": float(row["total_share_units"]),
                "profit": float(row["profit"]),
                "margin": float(row["margin"]),
                "assigned_staff_count": int(row["assigned_staff_count"]),
                "staff_breakdown": [
                    {
                        "staff_id": str(b["staff_id"]),
                        "staff_name": str(b["staff_name"]),
                        "share_units": float(b["share_units"]),
                        "allocated_cost": float(b["allocated_cost"]),
                    }
                    for _, b in breakdown.iterrows()
                ],
            })

        return {
            "period": self.period.to_dict(),
            "revenue_mode": self.revenue_mode,
            "clients": clients,
            "totals": {key: _jsonable(value) for key, value in self.totals.items()},
            "flags": {key: bool(value) for key, value in self.flags.items()},
            "warnings": [asdict(w) for w in self.warnings],
            "staff_costs": _records(self.staff_costs),
            "unallocated": _records(self.unallocated),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating, float)):
        return float(value)
    if isinstance(value, (np.bool_, bool)):
        return bool(value)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, (int, str)):
        return value
    return str(value)


def _records(df: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    if df is None or len(df) == 0:
        return []
    return [
        {key: _jsonable(value) for key, value in row.items()}
        for row in df.to_dict(orient="records")
    ]


# =============================================================================
# CORE METRICS
# =============================================================================

def net_revenue(mrr: Any, revenue_mode: str = "net_of_vat") -> float:
    """
    Monthly revenue for a client.

    net_of_vat -> MRR / 1.2 (MRR is stored VAT-inclusive)
    gross_mrr  -> MRR unchanged
    """
    if revenue_mode not in REVENUE_MODES:
        raise ValueError(f"Unknown revenue mode: {revenue_mode}")
    try:
        value = float(mrr)
    except (TypeError, ValueError):
        return 0.0
    if np.isnan(value):
        return 0.0
    if revenue_mode == "net_of_vat":
        return value / MRR_TAX_DIVISOR
    return value


def margin_pct(profit: float, revenue: float) -> float:
    """profit / revenue * 100, or 0 when there is no revenue."""
    if revenue is None or pd.isna(revenue) or revenue <= 0:
        return 0.0
    return float(profit) / float(revenue) * 100


def active_clients(clients: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Active clients in input order. No status column means all are active."""
    if clients is None or len(clients) == 0:
        return pd.DataFrame(columns=["client_id", "name", "mrr"])
    active = clients[clients["name"].notna()].copy()
    if "status" in active.columns:
        active = active[active["status"].astype(str).str.strip().str.lower().eq("active")]
    return active


# =============================================================================
# REPORT
# =============================================================================

def build_report(clients: Optional[pd.DataFrame],
                 allocations: Optional[pd.DataFrame],
                 period: ReportingPeriod,
                 revenue_mode: str = "net_of_vat",
                 staff_names: Optional[Mapping[str, str]] = None,
                 unallocated: Optional[pd.DataFrame] = None,
                 staff_costs: Optional[pd.DataFrame] = None,
                 flags: Optional[Mapping[str, bool]] = None,
                 warnings: Optional[List[ReportWarning]] = None) -> AllocationReport:
    """
    Join allocated cost with client revenue.

    Returns an AllocationReport whose ``clients`` frame has:
    - revenue: net_revenue(mrr)
    - total_allocated_cost: Σ allocated_cost for the client
    - total_share_units: Σ share units for the client
    - profit: revenue - cost
    - margin: profit / revenue * 100 (0 when revenue is 0)
    sorted by profit descending, ties in client input order.
    """
    if revenue_mode not in REVENUE_MODES:
        raise ValueError(f"Unknown revenue mode: {revenue_mode}")

    staff_names = dict(staff_names or {})
    warnings = list(warnings or [])
    if allocations is None or len(allocations) == 0:
        allocations = pd.DataFrame(columns=["staff_id", "client_name", "share_units", "allocated_cost"])

    active = active_clients(clients)
    report_df = pd.DataFrame({
        "client_id": active["client_id"].values if "client_id" in active.columns else active["name"].values,
        "client_name": active["name"].astype(str).str.strip().values,
        "mrr": active["mrr"].values,
    })
    report_df["revenue"] = [net_revenue(m, revenue_mode) for m in report_df["mrr"]]

    by_client = allocations.groupby("client_name", sort=False)
    report_df["total_allocated_cost"] = (
        report_df["client_name"].map(by_client["allocated_cost"].sum()).fillna(0.0).astype(float)
    )
    report_df["total_share_units"] = (
        report_df["client_name"].map(by_client["share_units"].sum()).fillna(0.0).astype(float)
    )
    report_df["assigned_staff_count"] = (
        report_df["client_name"].map(by_client["staff_id"].nunique()).fillna(0).astype(int)
    )

    report_df["profit"] = report_df["revenue"] - report_df["total_allocated_cost"]
    report_df["margin"] = [
        margin_pct(p, r) for p, r in zip(report_df["profit"], report_df["revenue"])
    ]

    # Stable sort keeps client input order for equal profit
    report_df = report_df.sort_values("profit", ascending=False, kind="mergesort").reset_index(drop=True)
    report_df = report_df[CLIENT_COLUMNS]

    known = set(report_df["client_name"])
    matched = allocations[allocations["client_name"].isin(known)].copy()
    unmatched = allocations[~allocations["client_name"].isin(known)]
    for client_name, group in unmatched.groupby("client_name", sort=False):
        warnings.append(ReportWarning(
            type="unmatched_client",
            subject=str(client_name),
            message=(
                f"{group['allocated_cost'].sum():,.2f} of staff cost is allocated to "
                f"'{client_name}', which is not an active client."
            ),
        ))

    if len(matched) > 0:
        order = {name: i for i, name in enumerate(report_df["client_name"])}
        matched["_client_order"] = matched["client_name"].map(order)
        matched["staff_name"] = [
            staff_names.get(str(s)) or str(s) for s in matched["staff_id"]
        ]
        matched = matched.sort_values(
            ["_client_order", "allocated_cost"], ascending=[True, False], kind="mergesort"
        )
        breakdown = matched[BREAKDOWN_COLUMNS].reset_index(drop=True)
    else:
        breakdown = pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    unallocated = unallocated if unallocated is not None else pd.DataFrame(columns=["staff_id", "total_cost", "reason"])
    total_revenue = float(report_df["revenue"].sum())
    total_cost = float(report_df["total_allocated_cost"].sum())
    total_profit = total_revenue - total_cost
    totals = {
        "revenue": total_revenue,
        "total_cost": total_cost,
        "profit": total_profit,
        "margin": margin_pct(total_profit, total_revenue),
        "total_share_units": float(report_df["total_share_units"].sum()),
        "unallocated_cost": float(pd.to_numeric(unallocated["total_cost"], errors="coerce").sum()) if len(unallocated) else 0.0,
        "unmatched_cost": float(unmatched["allocated_cost"].sum()) if len(unmatched) else 0.0,
        "client_count": int(len(report_df)),
        "staff_count": int(breakdown["staff_id"].nunique()) if len(breakdown) else 0,
    }

    report_flags = dict(DEFAULT_FLAGS)
    report_flags.update(flags or {})

    return AllocationReport(
        period=period,
        clients=report_df,
        staff_breakdown=breakdown,
        totals=totals,
        flags=report_flags,
        warnings=warnings,
        staff_costs=staff_costs if staff_costs is not None else pd.DataFrame(),
        unallocated=unallocated,
        revenue_mode=revenue_mode,
    )
