"""Cross-tabulations of vaccination counts by time unit and demographic group.

Each time unit (service year, quarter, weekday) is tabulated on its own:
a wide count table with a synthetic ``Total`` row, and a percentage
table where every cell is a share of its column's total.  The groupings
are never mixed; :func:`stack_summary` only concatenates them for
reporting, tagging each row with its ``category``.

Percentages are rounded with :meth:`pandas.DataFrame.round`, which
rounds half to even (``12.25 -> 12.2``, ``87.75 -> 87.8``).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import (
    MONTH_ORDER,
    PATIENT_ID_COL,
    PERCENT_DECIMALS,
    TIME_UNITS,
    TOTAL_LABEL,
    WEEKDAY_ORDER,
)

logger = logging.getLogger(__name__)

ROW_ORDERS: Dict[str, List[str]] = {
    "vacc_weekday": WEEKDAY_ORDER,
    "vacc_month_name": MONTH_ORDER,
}


def _with_total(body: pd.DataFrame, total: pd.Series) -> pd.DataFrame:
    table = pd.concat([body, total.to_frame(TOTAL_LABEL).T])
    table.index.name = body.index.name
    table.columns.name = body.columns.name
    return table


def _column_order(values: pd.Series) -> List:
    if isinstance(values.dtype, pd.CategoricalDtype):
        return list(values.cat.categories)
    return sorted(values.dropna().unique())


def crosstab_counts(
    df: pd.DataFrame,
    time_col: str,
    demo_col: str,
    *,
    row_order: Optional[Sequence] = None,
) -> pd.DataFrame:
    """Count rows by ``time_col`` (rows) and ``demo_col`` (columns).

    Parameters
    ----------
    df : pd.DataFrame
        Derived vaccination table.
    time_col : str
        Time-unit column, e.g. ``vacc_year`` or ``vacc_weekday``.
    demo_col : str
        Demographic column, e.g. ``gender``.
    row_order : Sequence, optional
        Explicit order of the time-unit values; values absent from the
        data are left out.  Defaults to :data:`ROW_ORDERS` for weekday
        and month names, sorted order otherwise.

    Returns
    -------
    pd.DataFrame
        Counts with one row per observed time-unit value plus a final
        ``Total`` row holding the column sums.  Rows with a missing
        time unit or demographic value are not counted.
    """
    data = df.dropna(subset=[time_col, demo_col])
    columns = _column_order(data[demo_col])
    if data.empty:
        body = pd.DataFrame(index=pd.Index([], name=time_col), columns=pd.Index([], name=demo_col))
        return _with_total(body.astype("int64"), pd.Series(dtype="int64"))

    body = pd.crosstab(data[time_col].astype(object), data[demo_col].astype(object))
    body = body.reindex(columns=[c for c in columns if c in body.columns])

    order = row_order if row_order is not None else ROW_ORDERS.get(time_col)
    if order is not None:
        body = body.reindex(index=[v for v in order if v in body.index])
    else:
        body = body.sort_index()

    body.index.name = time_col
    body.columns.name = demo_col
    return _with_total(body, body.sum())


def column_percentages(
    counts: pd.DataFrame, decimals: int = PERCENT_DECIMALS
) -> pd.DataFrame:
    """Express each count as a percentage of its column total.

    The denominator is the sum of the non-total rows.  The ``Total`` row
    is kept for display and reads 100.0 for every non-empty column.
    """
    body = counts.drop(index=TOTAL_LABEL, errors="ignore")
    totals = body.sum().replace(0, np.nan)
    pct = body.mul(100).div(totals)
    total_row = (totals / totals * 100).astype(float)
    return _with_total(pct.astype(float), total_row).round(decimals)


def summary_tables(
    df: pd.DataFrame,
    demo_col: str,
    time_units: Dict[str, str] = TIME_UNITS,
) -> Dict[str, Dict[str, pd.DataFrame]]:
    """Build count and percentage tables for each time unit separately.

    Returns
    -------
    Dict[str, Dict[str, pd.DataFrame]]
        ``tables[unit]["counts"]`` and ``tables[unit]["percent"]`` for
        each unit in ``time_units`` (``year``, ``quarter``, ``weekday``).
    """
    tables: Dict[str, Dict[str, pd.DataFrame]] = {}
    for unit, time_col in time_units.items():
        counts = crosstab_counts(df, time_col, demo_col)
        tables[unit] = {"counts": counts, "percent": column_percentages(counts)}
        logger.debug("Tabulated %s by %s: %d bucket(s)", unit, demo_col, len(counts) - 1)
    return tables


def stack_summary(
    tables: Dict[str, Dict[str, pd.DataFrame]], demo_col: str
) -> pd.DataFrame:
    """Long table ``category, bucket, <demo_col>, count, percent`` for reporting."""
    frames: list[pd.DataFrame] = []
    for unit, pair in tables.items():
        counts = pair["counts"].rename_axis(index="bucket", columns=None).reset_index()
        percent = pair["percent"].rename_axis(index="bucket", columns=None).reset_index()
        long = counts.melt(id_vars="bucket", var_name=demo_col, value_name="count").merge(
            percent.melt(id_vars="bucket", var_name=demo_col, value_name="percent"),
            on=["bucket", demo_col],
            how="left",
        )
        long.insert(0, "category", unit)
        frames.append(long)
    if not frames:
        return pd.DataFrame(columns=["category", "bucket", demo_col, "count", "percent"])
    return pd.concat(frames, ignore_index=True)


def demographic_counts(
    df: pd.DataFrame,
    column: str,
    *,
    id_col: str = PATIENT_ID_COL,
    decimals: int = PERCENT_DECIMALS,
) -> pd.DataFrame:
    """Number and share of distinct patients per demographic value."""
    patients = df.dropna(subset=[id_col]).drop_duplicates(subset=[id_col])
    counts = patients[column].value_counts(sort=False, dropna=False)
    if not isinstance(patients[column].dtype, pd.CategoricalDtype):
        counts = counts.sort_index()
    total = counts.sum()
    out = counts.rename("count").to_frame()
    out["percent"] = (out["count"] * 100 / total).round(decimals) if total else np.nan
    out.index.name = column
    return out.reset_index()


def monthly_counts(df: pd.DataFrame, date_col: str = "vacc_date") -> pd.DataFrame:
    """Vaccinations per calendar month, for the time-series chart."""
    months = df[date_col].dropna().dt.to_period("M").value_counts().sort_index()
    return pd.DataFrame(
        {"month": months.index.to_timestamp(), "count": months.to_numpy()}
    )


def heatmap_counts(
    df: pd.DataFrame,
    row_col: str = "vacc_weekday",
    col_col: str = "vacc_month_name",
) -> pd.DataFrame:
    """Weekday by month counts with every cell present (zeros included)."""
    data = df.dropna(subset=[row_col, col_col])
    table = pd.crosstab(data[row_col], data[col_col])
    return table.reindex(
        index=ROW_ORDERS.get(row_col, sorted(table.index)),
        columns=ROW_ORDERS.get(col_col, sorted(table.columns)),
        fill_value=0,
    )
