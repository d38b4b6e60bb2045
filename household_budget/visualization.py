"""Plotly visualisation helpers for the budget page.

Each function accepts the objects returned by :mod:`aggregation`
(a :class:`~household_budget.aggregation.BudgetSummary` or the
DataFrames built from it) and returns a
``plotly.graph_objects.Figure`` that Streamlit renders via
``st.plotly_chart``.
"""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

INCOME_COLOR = "#2e7d32"
EXPENSE_COLOR = "#c62828"


def _empty_figure(title: str) -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_income_expense_chart(monthly: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Grouped bars of income and expense per month.

    Parameters
    ----------
    monthly : pandas.DataFrame
        Output of :func:`aggregation.summary_frame`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Grouped bar chart.
    """
    if monthly.empty or not (monthly["Income"].any() or monthly["Expense"].any()):
        return _empty_figure("No entries to display")
    long_df = monthly.melt(
        id_vars="Month", value_vars=["Income", "Expense"], var_name="Type", value_name="Amount"
    )
    fig = px.bar(
        long_df,
        x="Month",
        y="Amount",
        color="Type",
        barmode="group",
        color_discrete_map={"Income": INCOME_COLOR, "Expense": EXPENSE_COLOR},
    )
    fig.update_layout(
        title=title or "Income and expenses per month",
        xaxis_title="Month",
        yaxis_title="Amount",
    )
    return fig


def create_running_balance_chart(monthly: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Line of the running balance with markers coloured by sign."""
    if monthly.empty:
        return _empty_figure("No data to display")
    balance = monthly["Balance"].to_numpy(dtype=float)
    colors = np.where(balance >= 0, INCOME_COLOR, EXPENSE_COLOR)
    fig = go.Figure(
        go.Scatter(
            x=monthly["Month"],
            y=balance,
            mode="lines+markers",
            marker={"color": colors, "size": 9},
            line={"color": "#546e7a"},
            name="Balance",
        )
    )
    fig.add_hline(y=0, line_dash="dot", line_color="#9e9e9e")
    fig.update_layout(
        title=title or "Running balance",
        xaxis_title="Month",
        yaxis_title="Balance",
    )
    return fig


def create_category_totals_chart(totals: Dict[object, float], title: str | None = None) -> go.Figure:
    """Horizontal bars of signed category totals, largest magnitude first."""
    if not totals:
        return _empty_figure("No categories to display")
    df = pd.DataFrame(
        [(str(name), value) for name, value in totals.items()], columns=["Category", "Total"]
    )
    df = df.reindex(df["Total"].abs().sort_values().index)
    df["Color"] = np.where(df["Total"] >= 0, INCOME_COLOR, EXPENSE_COLOR)
    fig = go.Figure(
        go.Bar(x=df["Total"], y=df["Category"], orientation="h", marker_color=df["Color"])
    )
    fig.update_layout(
        title=title or "Totals by category",
        xaxis_title="Amount",
        yaxis_title="Category",
    )
    return fig
