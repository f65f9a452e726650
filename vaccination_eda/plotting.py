import logging
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go

from .config import CATEGORY_COLORS, TOTAL_LABEL

logger = logging.getLogger(__name__)


# ============================================================
# Configuration / constants
# ============================================================

HOVER_TEMPLATE_COUNT = (
    "%{customdata[0]}: %{customdata[1]}<br>"
    "Bucket: %{x}<br>"
    "Vaccinations: %{y:,}<extra></extra>"
)

HOVER_TEMPLATE_PERCENT = (
    "%{customdata[0]}: %{customdata[1]}<br>"
    "Bucket: %{x}<br>"
    "Share of column total: %{y:.1f}%<extra></extra>"
)

BASE_LAYOUT = dict(
    width=1000,
    margin=dict(t=100, l=50, r=80, b=40),
    plot_bgcolor="#f5f7fb",
    legend=dict(
        orientation="h",
        x=0.5,
        y=1.02,
        xanchor="center",
        yanchor="bottom",
        bordercolor="#c7c7c7",
        borderwidth=2,
        bgcolor="#f9f9f9",
        font=dict(size=12),
    ),
)


# ============================================================
# Helper functions
# ============================================================


def _build_palette(colors: dict[str, str] | None) -> dict[str, str]:
    """
    Merge user-supplied colors with defaults (user overrides default).
    """
    return {**CATEGORY_COLORS, **(colors or {})}


def _resolve_color(category: object, palette: dict[str, str]) -> str | None:
    """
    Get color for a category label; unknown labels fall back to plotly's cycle.
    """
    return palette.get(str(category))


# ============================================================
# Charts
# ============================================================


def create_count_plot(
    summary: pd.DataFrame,
    category: str,
    demographic: str,
    *,
    value_col: str = "count",
    category_label: str | None = None,
    colors: dict[str, str] | None = None,
) -> go.Figure:
    """
    Grouped bar chart of one time-unit grouping of the stacked summary.

    Parameters
    ----------
    summary : pd.DataFrame
        Output of ``aggregate.stack_summary`` with columns 'category',
        'bucket', demographic, 'count' and 'percent'.
    category : str
        Time-unit grouping to draw ("year", "quarter" or "weekday").
    demographic : str
        Demographic column used for the bar colors.
    value_col : {"count", "percent"}, default "count"
        Value on the Y-axis.
    category_label : str | None, default None
        Human-readable name of the grouping (for titles and axes).
    colors : dict[str, str] | None, default None
        Optional mapping of demographic label -> hex color.

    Returns
    -------
    go.Figure
        One bar trace per demographic value; the Total row is left out.
    """
    label = category_label or category.title()
    df = summary[
        (summary["category"] == category) & (summary["bucket"] != TOTAL_LABEL)
    ].dropna(subset=[value_col])
    if df.empty:
        return go.Figure()

    palette = _build_palette(colors)
    is_percent = value_col == "percent"
    hover_template = HOVER_TEMPLATE_PERCENT if is_percent else HOVER_TEMPLATE_COUNT

    fig = go.Figure()
    for value, sub in df.groupby(demographic, sort=False, observed=True):
        fig.add_trace(
            go.Bar(
                x=sub["bucket"].astype(str),
                y=sub[value_col],
                name=str(value),
                marker_color=_resolve_color(value, palette),
                hovertemplate=hover_template,
                customdata=list(
                    zip([demographic.title()] * len(sub), [str(value)] * len(sub))
                ),
            )
        )

    fig.update_xaxes(title_text=label, type="category")
    fig.update_yaxes(
        title_text="Share of column total (%)" if is_percent else "Vaccinations",
        tickformat=".1f" if is_percent else ",",
        rangemode="tozero",
    )
    fig.update_layout(
        barmode="group",
        height=600,
        title=f"<b>Vaccinations by {label} and {demographic.title()}</b>",
        **BASE_LAYOUT,
    )
    fig.update_layout(legend_title_text=demographic.title())
    return fig


def create_timeseries_plot(monthly: pd.DataFrame) -> go.Figure:
    """Line chart of vaccinations per month (``aggregate.monthly_counts``)."""
    if monthly.empty:
        return go.Figure()
    fig = go.Figure(
        go.Scatter(
            x=monthly["month"],
            y=monthly["count"],
            mode="lines+markers",
            line=dict(width=3, color="#1f77b4"),
            marker=dict(size=7, color="#1f77b4"),
            name="Vaccinations",
            hovertemplate="Month: %{x|%b %Y}<br>Vaccinations: %{y:,}<extra></extra>",
        )
    )
    fig.update_xaxes(title_text="Month", showgrid=True)
    fig.update_yaxes(title_text="Vaccinations", tickformat=",", rangemode="tozero")
    fig.update_layout(height=500, title="<b>Vaccinations per Month</b>", **BASE_LAYOUT)
    return fig


def create_heatmap(table: pd.DataFrame) -> go.Figure:
    """Heatmap of a weekday x month count table (``aggregate.heatmap_counts``)."""
    fig = go.Figure(
        go.Heatmap(
            z=table.to_numpy(),
            x=[str(c) for c in table.columns],
            y=[str(i) for i in table.index],
            colorscale="Blues",
            hovertemplate="%{y}, %{x}<br>Vaccinations: %{z:,}<extra></extra>",
        )
    )
    fig.update_yaxes(autorange="reversed")
    fig.update_layout(height=500, title="<b>Vaccinations by Weekday and Month</b>", **BASE_LAYOUT)
    return fig


def create_age_histogram(
    df: pd.DataFrame,
    demographic: str = "gender",
    *,
    colors: dict[str, str] | None = None,
) -> go.Figure:
    """Overlaid histograms of patient age, one per demographic value."""
    data = df.dropna(subset=["age", demographic])
    if data.empty:
        return go.Figure()
    palette = _build_palette(colors)
    fig = go.Figure()
    for value, sub in data.groupby(demographic, sort=False, observed=True):
        fig.add_trace(
            go.Histogram(
                x=sub["age"].astype(int),
                name=str(value),
                marker_color=_resolve_color(value, palette),
                opacity=0.7,
                xbins=dict(size=5),
            )
        )
    fig.update_xaxes(title_text="Age (years)")
    fig.update_yaxes(title_text="Vaccinations", tickformat=",")
    fig.update_layout(
        barmode="overlay",
        height=500,
        title=f"<b>Age at Analysis Date by {demographic.title()}</b>",
        **BASE_LAYOUT,
    )
    return fig


def create_summary_table(summary: pd.DataFrame, category: str) -> go.Figure:
    """Formatted table of one grouping of the stacked summary."""
    df = summary[summary["category"] == category].drop(columns=["category"])
    fig = go.Figure(
        go.Table(
            header=dict(
                values=[f"<b>{col.title()}</b>" for col in df.columns],
                fill_color="#c7d3e8",
                align="left",
            ),
            cells=dict(
                values=[df[col].astype(str) for col in df.columns],
                fill_color="#f5f7fb",
                align="left",
            ),
        )
    )
    fig.update_layout(width=800, margin=dict(t=20, l=20, r=20, b=20))
    return fig


def save_figures(figures: dict[str, go.Figure], out_dir: Path) -> list[Path]:
    """Write each figure as a standalone HTML file named after its key."""
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for name, fig in figures.items():
        path = out_dir / f"{name}.html"
        fig.write_html(path, include_plotlyjs="cdn")
        paths.append(path)
        logger.info("Wrote chart %s", path)
    return paths
