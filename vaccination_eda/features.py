"""Derive age, interval and calendar features from the parsed dates.

All features are computed column-wise from ``birth_date``, ``vacc_date``
and an explicit ``now``.  Integer features use the nullable ``Int64``
dtype so a missing date propagates ``<NA>`` instead of raising.

The interval formulas divide a day count by fixed lengths (7, 30.44 and
365.25 days) rather than counting calendar weeks, months or years.  Age
in particular can be one year off near a birthday; this matches the
published tables and is kept as is.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict

import numpy as np
import pandas as pd

from .config import (
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    DAYS_PER_YEAR,
    FISCAL_YEAR_START_MONTH,
    REFERENCE_DATE,
    SEASON_BY_MONTH,
    WEEKEND_DAYS,
)

logger = logging.getLogger(__name__)

FEATURE_COLUMNS = [
    "age",
    "days_to_vax",
    "weeks_to_vax",
    "months_to_vax",
    "years_to_vax",
    "vacc_day",
    "vacc_month",
    "vacc_month_name",
    "vacc_year",
    "vacc_service_year",
    "vacc_weekday",
    "vacc_weekday_num",
    "vacc_week",
    "vacc_quarter",
    "vacc_fy",
    "vacc_season",
    "is_weekend",
    "days_since_ref",
]


def _floor_div(days: pd.Series, divisor: float) -> pd.Series:
    return np.floor(days / divisor).astype("Int64")


def weekday_index(dates: pd.Series) -> pd.Series:
    """Weekday number with 1 = Sunday through 7 = Saturday."""
    return ((dates.dt.dayofweek + 1) % 7 + 1).astype("Int64")


def fiscal_year(year: pd.Series, month: pd.Series) -> pd.Series:
    """Fiscal year starting in June: earlier months roll back one year."""
    return year - (month < FISCAL_YEAR_START_MONTH).astype("Int64")


def season(month: pd.Series) -> pd.Series:
    return month.map(SEASON_BY_MONTH)


def derive_features(
    df: pd.DataFrame,
    *,
    now: date | pd.Timestamp,
    reference_date: date | pd.Timestamp = REFERENCE_DATE,
    birth_col: str = "birth_date",
    event_col: str = "vacc_date",
) -> pd.DataFrame:
    """Return a copy of ``df`` with the derived feature columns added.

    Parameters
    ----------
    df : pd.DataFrame
        Table holding parsed ``birth_col`` and ``event_col`` date columns.
    now : date or pd.Timestamp
        Point in time ages are measured at.  Passed in explicitly so the
        output is reproducible.
    reference_date : date or pd.Timestamp, optional
        Anchor for ``days_since_ref``; defaults to 2020-01-01.
    birth_col, event_col : str, optional
        Names of the parsed birth and event date columns.

    Returns
    -------
    pd.DataFrame
        The input columns plus :data:`FEATURE_COLUMNS`.
    """
    out = df.copy()
    now_ts = pd.Timestamp(now).normalize()
    birth = out[birth_col]
    event = out[event_col]

    age_days = (now_ts - birth).dt.days
    out["age"] = _floor_div(age_days, DAYS_PER_YEAR)

    days = (event - birth).dt.days
    out["days_to_vax"] = days.astype("Int64")
    out["weeks_to_vax"] = days / DAYS_PER_WEEK
    out["months_to_vax"] = days / DAYS_PER_MONTH
    out["years_to_vax"] = _floor_div(days, DAYS_PER_YEAR)

    month = event.dt.month.astype("Int64")
    year = event.dt.year.astype("Int64")
    out["vacc_day"] = event.dt.day.astype("Int64")
    out["vacc_month"] = month
    out["vacc_month_name"] = event.dt.month_name()
    out["vacc_year"] = year
    out["vacc_service_year"] = year
    out["vacc_weekday"] = event.dt.day_name()
    out["vacc_weekday_num"] = weekday_index(event)
    out["vacc_week"] = event.dt.isocalendar().week.astype("Int64")
    out["vacc_quarter"] = event.dt.quarter.astype("Int64")
    out["vacc_fy"] = fiscal_year(year, month)
    out["vacc_season"] = season(month)

    weekday_num = out["vacc_weekday_num"]
    out["is_weekend"] = (
        weekday_num.isin(WEEKEND_DAYS).astype("boolean").mask(weekday_num.isna())
    )
    out["days_since_ref"] = (event - pd.Timestamp(reference_date)).dt.days.astype("Int64")

    logger.debug("Derived %d feature columns for %d rows", len(FEATURE_COLUMNS), len(out))
    return out


def derive_record(
    birth_date: date | pd.Timestamp | None,
    event_date: date | pd.Timestamp | None,
    now: date | pd.Timestamp,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Feature set for a single ``(birth_date, event_date, now)`` triple."""
    frame = pd.DataFrame(
        {
            "birth_date": pd.to_datetime(pd.Series([birth_date])),
            "vacc_date": pd.to_datetime(pd.Series([event_date])),
        }
    )
    row = derive_features(frame, now=now, **kwargs).iloc[0]
    return {col: row[col] for col in FEATURE_COLUMNS}
