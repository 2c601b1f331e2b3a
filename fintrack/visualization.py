"""Plotly figures for the dashboard and reports views.

Each function accepts one of the objects produced by
:mod:`fintrack.aggregation` and returns a
``plotly.graph_objects.Figure`` that Streamlit can render via
``st.plotly_chart``.  Empty inputs produce an empty figure titled
"No data to display" rather than raising.
"""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .aggregation import BudgetView
from .dates import WEEKDAY_NAMES


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_category_donut_chart(breakdown: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Donut chart of each category's share of total spending.

    Parameters
    ----------
    breakdown : pandas.DataFrame
        Output of :func:`fintrack.aggregation.category_breakdown`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Donut chart of categories vs totals.
    """
    if breakdown.empty or float(breakdown['Total'].sum()) <= 0:
        return _empty_figure()
    fig = px.pie(breakdown, names="Category", values="Total", hole=0.55)
    fig.update_traces(textinfo="percent+label")
    fig.update_layout(title=title or "Spending by category", showlegend=False)
    return fig


def create_category_bar_chart(breakdown: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Horizontal bars of category totals, largest first."""
    if breakdown.empty:
        return _empty_figure()
    fig = px.bar(
        breakdown,
        x="Total",
        y="Category",
        orientation="h",
        hover_data={"Count": True, "Average": ":.2f"},
    )
    fig.update_layout(
        title=title or "Top categories",
        xaxis_title="Total spent",
        yaxis_title="Category",
        yaxis={"categoryorder": "total ascending"},
    )
    return fig


def create_weekday_chart(weekday_totals: pd.Series, title: str | None = None) -> go.Figure:
    """Bar chart of spending per weekday, Monday through Sunday."""
    if weekday_totals.empty:
        return _empty_figure()
    ordered = weekday_totals.reindex(WEEKDAY_NAMES, fill_value=0.0)
    df = pd.DataFrame({"Weekday": ordered.index, "Value": ordered.values})
    fig = px.bar(df, x="Weekday", y="Value")
    fig.update_layout(
        title=title or "Spending by day of week",
        xaxis_title="Day",
        yaxis_title="Total spent",
    )
    return fig


def create_budget_gauge(view: BudgetView, title: str | None = None) -> go.Figure:
    """Gauge of spending against the monthly budget, capped at 100%."""
    bar_color = "#d62728" if view.is_over_budget else "#2ca02c"
    fig = go.Figure(
        go.Indicator(
            mode="gauge+number",
            value=view.progress,
            number={"suffix": "%", "valueformat": ".0f"},
            gauge={
                "axis": {"range": [0, 100]},
                "bar": {"color": bar_color},
            },
        )
    )
    fig.update_layout(title=title or "Budget used")
    return fig
