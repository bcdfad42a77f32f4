"""
Client Profitability Dashboard
"""
from __future__ import annotations

import streamlit as st
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from profit_os.config import config
from profit_os.data.loader import load_rates_cached, load_tables_cached
from profit_os.data.periods import ReportingPeriod, recent_month_options
from profit_os.exports import export_report_csv, export_report_excel, export_report_json
from profit_os.metrics.client_profitability import (
    AllocationPolicy,
    EngineInputs,
    compute_client_profitability,
)
from profit_os.metrics.patterns import SHARE_MODES
from profit_os.metrics.profitability import REVENUE_MODES
from profit_os.metrics.staff_cost import COST_SOURCES
from profit_os.ui import charts as charts
from profit_os.ui.components import (
    download_button,
    empty_state,
    policy_caption,
    render_advisories,
    render_client_table,
    render_staff_breakdown,
    render_summary_cards,
    section_header,
    staff_costs_frame,
)
from profit_os.ui.formatting import fmt_currency, fmt_percent


st.set_page_config(page_title="Client Profitability", page_icon="💰", layout="wide")


def _index(options, value) -> int:
    return list(options).index(value) if value in options else 0


def _sidebar():
    st.sidebar.header("Period")
    months = recent_month_options(12)
    month = st.sidebar.selectbox(
        "Month",
        options=[value for value, _ in months],
        format_func=dict(months).get,
    )

    st.sidebar.header("Method")
    cost_source = st.sidebar.selectbox(
        "Cost source", COST_SOURCES, index=_index(COST_SOURCES, config.cost_source),
        format_func=lambda v: v.replace("_", " "),
    )
    revenue_mode = st.sidebar.selectbox(
        "Revenue", REVENUE_MODES, index=_index(REVENUE_MODES, config.revenue_mode),
        format_func=lambda v: "MRR net of VAT" if v == "net_of_vat" else "Gross MRR",
    )
    share_mode = st.sidebar.radio(
        "Share cost by", SHARE_MODES, index=_index(SHARE_MODES, config.share_mode), horizontal=True,
    )
    include_schedules = st.sidebar.checkbox("Include one-off schedules", value=True)
    offline = st.sidebar.checkbox("Use fallback exchange rates", value=False)

    policy = AllocationPolicy(
        cost_source=cost_source,
        revenue_mode=revenue_mode,
        share_mode=share_mode,
        include_schedules=include_schedules,
    )
    return ReportingPeriod.for_month(month), policy, offline


def main():
    st.title("Client Profitability")
    st.caption("Monthly revenue per client against staff cost allocated by scheduled shifts.")

    period, policy, offline = _sidebar()

    with st.spinner("Loading data..."):
        tables = load_tables_cached()
        rate_table = load_rates_cached(offline)

    report = compute_client_profitability(
        EngineInputs.from_tables(tables),
        period,
        rate_table.rates,
        policy=policy,
        rates_stale=rate_table.is_fallback,
    )

    st.caption(policy_caption(report, policy.share_mode, policy.cost_source))

    render_summary_cards(report)
    render_advisories(report)

    if len(report.clients) == 0:
        empty_state("No active clients found. Check the clients table.")
        return

    st.markdown("---")
    section_header("Clients", "Sorted by profit, highest first.")
    render_client_table(report)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(charts.client_profit_bar(report.clients), use_container_width=True)
    with col2:
        st.plotly_chart(charts.revenue_cost_bar(report.clients), use_container_width=True)

    st.markdown("---")
    section_header("Client drill-down", "Staff allocated to the selected client.")
    client_name = st.selectbox("Client", report.clients["client_name"].tolist())
    row = report.client_row(client_name)
    if row is not None:
        m1, m2, m3 = st.columns(3)
        m1.metric("Revenue", fmt_currency(row["revenue"]))
        m2.metric("Allocated cost", fmt_currency(row["total_allocated_cost"]))
        m3.metric("Margin", fmt_percent(row["margin"]))

    d1, d2 = st.columns([3, 2])
    with d1:
        render_staff_breakdown(report, client_name)
    with d2:
        breakdown = report.breakdown_for(client_name)
        if len(breakdown) > 0:
            st.plotly_chart(charts.staff_share_pie(breakdown), use_container_width=True)

    with st.expander("Staff costs"):
        st.dataframe(staff_costs_frame(report), use_container_width=True, hide_index=True)

    st.markdown("---")
    e1, e2, e3 = st.columns(3)
    with e1:
        data, filename = export_report_csv(report)
        download_button(data, filename, label="Download CSV", key="dl_csv")
    with e2:
        data, filename = export_report_json(report)
        download_button(data, filename, label="Download JSON", mime="application/json", key="dl_json")
    with e3:
        data, filename = export_report_excel(report)
        download_button(
            data, filename, label="Download Excel",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", key="dl_xlsx",
        )


if __name__ == "__main__":
    main()
