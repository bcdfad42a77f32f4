"""
Reusable UI components and blocks.
"""
import streamlit as st
import pandas as pd
from typing import Optional, Dict, Any

from profit_os.metrics.profitability import AllocationReport
from profit_os.ui.formatting import fmt_count, fmt_currency, fmt_percent, format_report_df


def kpi_strip(metrics: Dict[str, Any],
              format_map: Optional[Dict[str, str]] = None):
    """
    Render horizontal strip of KPI cards.

    Args:
        metrics: Dict of {label: value}
        format_map: Dict of {label: format_type} where format_type is
                    'currency', 'percent', 'count'
    """
    if format_map is None:
        format_map = {}

    cols = st.columns(len(metrics))

    formatters = {
        "currency": fmt_currency,
        "percent": fmt_percent,
        "count": fmt_count,
    }

    for i, (label, value) in enumerate(metrics.items()):
        with cols[i]:
            formatter = formatters.get(format_map.get(label, "currency"), str)
            st.metric(label=label, value=formatter(value))


def render_summary_cards(report: AllocationReport):
    """Period totals as KPI cards."""
    totals = report.totals
    kpi_strip(
        {
            "Revenue": totals.get("revenue"),
            "Allocated cost": totals.get("total_cost"),
            "Profit": totals.get("profit"),
            "Margin": totals.get("margin"),
            "Clients": totals.get("client_count"),
        },
        format_map={"Margin": "percent", "Clients": "count"},
    )

    unallocated = totals.get("unallocated_cost", 0.0)
    unmatched = totals.get("unmatched_cost", 0.0)
    if unallocated or unmatched:
        st.caption(
            f"Not in allocated cost: {fmt_currency(unallocated)} unallocated staff cost, "
            f"{fmt_currency(unmatched)} on unknown clients."
        )


FLAG_MESSAGES = {
    "no_recurring_patterns": "No recurring patterns or schedules found for this period. No cost could be allocated.",
    "no_pay_data": "No cost data (pay records, profiles, rostered rates, bonuses or overtime) for this period. Allocated cost is 0.",
    "rates_stale": "Live exchange rates were unavailable. Fallback rates were used.",
}


def render_advisories(report: AllocationReport, max_warnings: int = 20):
    """Render flags as banners and warnings in an expander."""
    if not report.has_advisories:
        return

    for flag, raised in report.flags.items():
        if raised:
            st.warning(FLAG_MESSAGES.get(flag, flag.replace("_", " ").capitalize()))

    if not report.warnings:
        return

    with st.expander(f"Data warnings ({len(report.warnings)})"):
        for warning in report.warnings[:max_warnings]:
            st.markdown(f"- **{warning.type.replace('_', ' ')}**: {warning.message}")
        if len(report.warnings) > max_warnings:
            st.caption(f"{len(report.warnings) - max_warnings} more not shown.")


def render_client_table(report: AllocationReport):
    """Per-client profitability table, most profitable first."""
    if len(report.clients) == 0:
        empty_state("No active clients for this period.")
        return

    display = report.clients.drop(columns=["client_id"]).rename(columns={
        "client_name": "Client",
    })
    st.dataframe(format_report_df(display), use_container_width=True, hide_index=True)


def render_staff_breakdown(report: AllocationReport, client_name: str):
    """Staff allocated to one client with their share and cost."""
    breakdown = report.breakdown_for(client_name)
    if len(breakdown) == 0:
        st.caption("No staff allocated to this client in the period.")
        return

    display = breakdown[["staff_name", "share_units", "allocated_cost"]].rename(columns={
        "staff_name": "Staff",
    })
    st.dataframe(format_report_df(display), use_container_width=True, hide_index=True)


def empty_state(message: str, icon: str = "📭"):
    """
    Render empty state.
    """
    col1, col2, col3 = st.columns([1, 2, 1])

    with col2:
        st.markdown(f"### {icon}")
        st.markdown(f"**{message}**")


def download_button(data: bytes,
                    filename: str,
                    label: str = "Download CSV",
                    mime: str = "text/csv",
                    key: str = "download"):
    """
    Render download button for exported bytes.
    """
    st.download_button(
        label=label,
        data=data,
        file_name=filename,
        mime=mime,
        key=key
    )


def section_header(title: str, description: Optional[str] = None):
    """Render section header with optional description."""
    st.subheader(title)
    if description:
        st.caption(description)


def policy_caption(report: AllocationReport, share_mode: str, cost_source: str) -> str:
    """One-line description of how the report was computed."""
    revenue = "MRR net of 20% VAT" if report.revenue_mode == "net_of_vat" else "gross MRR"
    return (
        f"{report.period.label}: revenue is {revenue}; cost is shared by scheduled "
        f"{share_mode}; cost source is {cost_source.replace('_', ' ')}."
    )


def staff_costs_frame(report: AllocationReport) -> pd.DataFrame:
    """Staff cost rows with display names for the audit expander."""
    if len(report.staff_costs) == 0:
        return pd.DataFrame()
    names = dict(zip(report.staff_breakdown["staff_id"], report.staff_breakdown["staff_name"]))
    df = report.staff_costs.copy()
    df.insert(1, "staff_name", df["staff_id"].map(names).fillna(df["staff_id"]))
    return df
