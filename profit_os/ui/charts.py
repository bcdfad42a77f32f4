"""
Standard chart wrappers using Plotly.
"""
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd


# =============================================================================
# CHART THEME
# =============================================================================

CHART_COLORS = {
    "primary": "#1f77b4",
    "secondary": "#ff7f0e",
    "success": "#28a745",
    "warning": "#ffc107",
    "danger": "#dc3545",
    "neutral": "#6c757d",
}

CHART_TEMPLATE = "plotly_white"

DEFAULT_LAYOUT = {
    "template": CHART_TEMPLATE,
    "font": {"family": "Arial, sans-serif", "size": 12},
    "margin": {"l": 50, "r": 30, "t": 40, "b": 50},
    "hoverlabel": {"bgcolor": "white"},
}


def apply_layout(fig: go.Figure, **kwargs) -> go.Figure:
    """Apply standard layout to figure."""
    layout = {**DEFAULT_LAYOUT, **kwargs}
    fig.update_layout(**layout)
    return fig


# =============================================================================
# CLIENT PROFITABILITY CHARTS
# =============================================================================

def client_profit_bar(clients: pd.DataFrame, title: str = "Profit by client") -> go.Figure:
    """
    Horizontal bar of profit per client, red for loss-making clients.
    """
    df = clients[["client_name", "profit", "margin"]].copy()
    df["status"] = df["profit"].apply(lambda p: "Loss" if p < 0 else "Profit")

    fig = px.bar(
        df,
        x="profit",
        y="client_name",
        orientation="h",
        color="status",
        color_discrete_map={"Profit": CHART_COLORS["success"], "Loss": CHART_COLORS["danger"]},
        hover_data={"margin": ":.1f", "status": False},
        title=title,
    )
    # Highest profit at the top
    fig.update_layout(yaxis={"categoryorder": "total ascending"}, showlegend=False)
    fig.update_xaxes(title="Profit (£)")
    fig.update_yaxes(title="")

    return apply_layout(fig, height=max(300, 28 * len(df) + 100))


def revenue_cost_bar(clients: pd.DataFrame, title: str = "Revenue vs allocated cost") -> go.Figure:
    """
    Grouped bar of revenue against allocated cost per client.
    """
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Revenue",
        x=clients["client_name"],
        y=clients["revenue"],
        marker_color=CHART_COLORS["primary"],
    ))
    fig.add_trace(go.Bar(
        name="Allocated cost",
        x=clients["client_name"],
        y=clients["total_allocated_cost"],
        marker_color=CHART_COLORS["secondary"],
    ))
    fig.update_layout(barmode="group", title=title)

    return apply_layout(fig)


def staff_share_pie(breakdown: pd.DataFrame, title: str = "") -> go.Figure:
    """
    Allocated cost split by staff member for a single client.
    """
    fig = px.pie(
        breakdown,
        names="staff_name",
        values="allocated_cost",
        title=title,
        hole=0.4,
    )
    fig.update_traces(textinfo="percent+label")

    return apply_layout(fig, height=320, showlegend=False)
