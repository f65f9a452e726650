"""Strict date parsing for the raw string columns.

Two encodings occur in the inputs: plain calendar dates (``YYYY-MM-DD``)
and UTC timestamps (``YYYY-MM-DDTHH:MM:SSZ``).  Each column is parsed
with its declared format only.  A value that does not match raises
:class:`~vaccination_eda.errors.DateParseError`; a missing value stays
missing and is counted.

Parsed values are ``datetime64`` at midnight, so subtracting two of
them yields whole days.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Tuple

import pandas as pd

from .config import DATE_COLUMNS, FORMAT_PATTERNS, REQUIRED_DATES
from .errors import DataQualityError, DateParseError

logger = logging.getLogger(__name__)

MAX_EXAMPLES = 5


def parse_dates(series: pd.Series, fmt: str, *, column: str | None = None) -> pd.Series:
    """Parse a string Series with a declared format and drop the time of day.

    Parameters
    ----------
    series : pd.Series
        Raw strings; ``NaN``/``None`` and blank strings count as missing.
    fmt : str
        ``strftime``-style format every non-missing value must match.  Known
        formats are also checked against the full-width pattern in
        ``FORMAT_PATTERNS``, so ``"2022-3-5"`` fails ``"%Y-%m-%d"``.
    column : str, optional
        Name used in error messages; defaults to ``series.name``.

    Returns
    -------
    pd.Series
        ``datetime64`` values at midnight, ``NaT`` where the input was
        missing.

    Raises
    ------
    DateParseError
        If any non-missing value does not match ``fmt``.
    """
    text = series.astype("string").str.strip()
    text = text.replace("", pd.NA)
    parsed = pd.to_datetime(text, format=fmt, errors="coerce")

    failed = parsed.isna()
    pattern = FORMAT_PATTERNS.get(fmt)
    if pattern is not None:
        failed |= ~text.str.fullmatch(pattern).fillna(False).astype(bool)
    failed &= text.notna()
    if failed.any():
        raise DateParseError(
            column or str(series.name),
            fmt,
            int(failed.sum()),
            text[failed].head(MAX_EXAMPLES).tolist(),
        )
    return parsed.dt.normalize()


def null_counts(df: pd.DataFrame, columns: Iterable[str]) -> Dict[str, int]:
    """Count missing values per column (absent columns are skipped)."""
    return {col: int(df[col].isna().sum()) for col in columns if col in df.columns}


def normalize_dates(
    df: pd.DataFrame,
    columns: Mapping[str, Tuple[str, str]] = DATE_COLUMNS,
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """Parse every configured raw date column into its derived column.

    Parameters
    ----------
    df : pd.DataFrame
        Joined table with raw string date columns.
    columns : Mapping[str, Tuple[str, str]]
        ``raw column -> (parsed column, format)``.  Raw columns absent
        from ``df`` are skipped.

    Returns
    -------
    Tuple[pd.DataFrame, Dict[str, int]]
        A new DataFrame with the parsed columns added, and the null count
        of each parsed column after conversion.  No rows are dropped.
    """
    out = df.copy()
    parsed_cols = []
    for raw_col, (parsed_col, fmt) in columns.items():
        if raw_col not in out.columns:
            logger.debug("Date column %r not present; skipping", raw_col)
            continue
        out[parsed_col] = parse_dates(out[raw_col], fmt, column=raw_col)
        parsed_cols.append(parsed_col)

    counts = null_counts(out, parsed_cols)
    for col, n_null in counts.items():
        logger.info("Null count after conversion: %s=%d", col, n_null)
    return out, counts


def check_required_dates(
    counts: Mapping[str, int],
    *,
    required: Iterable[str] = REQUIRED_DATES,
    strict: bool = False,
) -> Dict[str, int]:
    """Surface missing required dates.

    Returns the offending ``column -> null count`` entries.  They are
    logged as a warning, or raised as :class:`DataQualityError` when
    ``strict`` is set.
    """
    offending = {col: counts[col] for col in required if counts.get(col, 0) > 0}
    if offending:
        message = f"Required date columns have missing values: {offending}"
        if strict:
            raise DataQualityError(message)
        logger.warning(message)
    return offending
