"""Core pipeline logic: join immunization events onto patients and derive features.

This module orchestrates the loading, cleaning and enrichment of two
datasets:

* The patient table, one row per person with birth date, death date
  and demographic categories.
* The immunization table, one row per vaccination event with the
  patient identifier and a UTC timestamp.

Each stage is a function that takes a DataFrame and returns a new one;
:func:`run_pipeline` composes them and returns a payload of the derived
table, the filtered views, the summary tables and a data-quality
report.
"""

from __future__ import annotations

from .aggregate import demographic_counts, stack_summary, summary_tables
from .categories import (
    GENDER_CODES,
    RACE_CODES,
    Gender,
    Race,
    category_labels,
    map_categories,
)
from .config import (
    DUPLICATE_POLICY,
    FOCUS_YEAR,
    GENDER_COL,
    PATIENT_FK_COL,
    PATIENT_ID_COL,
    RACE_COL,
    SERVICE_YEAR_RANGE,
    DuplicatePolicy,
)
from .dates import check_required_dates, normalize_dates
from .errors import DuplicateIdentifierError
from .features import derive_features
from .loader import default_sources, load_immunizations, load_patients

from datetime import date
from pathlib import Path
from typing import Dict, Optional

import logging
import pandas as pd

# Module‑level logger
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patient cleaning
# ---------------------------------------------------------------------------


def flag_duplicate_ids(
    patients: pd.DataFrame, *, id_col: str = PATIENT_ID_COL
) -> pd.DataFrame:
    """Add ``id_ordinal``: 1 for the first row of each identifier, 2 for the next..."""
    out = patients.copy()
    out["id_ordinal"] = out.groupby(id_col, dropna=False).cumcount() + 1
    return out


def deduplicate_patients(
    patients: pd.DataFrame,
    *,
    id_col: str = PATIENT_ID_COL,
    policy: DuplicatePolicy = DUPLICATE_POLICY,
) -> tuple[pd.DataFrame, int]:
    """Keep one row per patient identifier.

    Parameters
    ----------
    patients : pd.DataFrame
        Patient table with an identifier column.
    id_col : str, optional
        Identifier column name.
    policy : {"warn", "raise"}
        ``"warn"`` logs the duplicates and keeps the first row per
        identifier; ``"raise"`` raises :class:`DuplicateIdentifierError`.

    Returns
    -------
    tuple[pd.DataFrame, int]
        The de-duplicated table (with ``id_ordinal``) and the number of
        dropped duplicate rows.
    """
    missing_ids = patients[id_col].isna()
    if missing_ids.any():
        logger.warning("Dropping %d patient row(s) without an identifier", int(missing_ids.sum()))
    flagged = flag_duplicate_ids(patients.loc[~missing_ids], id_col=id_col)
    duplicates = flagged["id_ordinal"] > 1
    n_dup = int(duplicates.sum())
    if n_dup:
        repeated = sorted(flagged.loc[duplicates, id_col].unique())
        if policy == "raise":
            raise DuplicateIdentifierError(
                f"{n_dup} duplicate patient row(s) for identifiers {repeated[:5]}"
            )
        logger.warning(
            "%d duplicate patient row(s) for %d identifier(s); keeping the first",
            n_dup,
            len(repeated),
        )
    return flagged.loc[~duplicates].copy(), n_dup


def normalize_categories(patients: pd.DataFrame) -> pd.DataFrame:
    """Map raw gender and race codes onto their enumerations."""
    out = patients.copy()
    out[GENDER_COL] = map_categories(out[GENDER_COL], GENDER_CODES, Gender)
    out[RACE_COL] = map_categories(out[RACE_COL], RACE_CODES, Race)
    return out


def fill_unmatched_categories(joined: pd.DataFrame) -> pd.DataFrame:
    """Mark gender and race as ``Unknown`` on events without a patient.

    The left join leaves these fields null for unmatched events, and the
    cross-tabulations would otherwise drop those rows from every total.
    """
    out = joined.copy()
    for col, enum_cls in ((GENDER_COL, Gender), (RACE_COL, Race)):
        dtype = pd.CategoricalDtype(category_labels(enum_cls))
        out[col] = out[col].astype(dtype).fillna(enum_cls.UNKNOWN.value)
    return out


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------


def join_vaccinations(
    patients: pd.DataFrame,
    vaccinations: pd.DataFrame,
    *,
    id_col: str = PATIENT_ID_COL,
    fk_col: str = PATIENT_FK_COL,
) -> tuple[pd.DataFrame, int]:
    """Attach patient fields to every vaccination event.

    Every vaccination row is kept.  Events whose ``fk_col`` matches no
    patient carry null patient fields; their count is logged and
    returned.  ``patients`` must already be unique on ``id_col``.

    Returns
    -------
    tuple[pd.DataFrame, int]
        One row per vaccination event, and the number of unmatched events.
    """
    merged = vaccinations.merge(
        patients,
        left_on=fk_col,
        right_on=id_col,
        how="left",
        validate="many_to_one",
        indicator=True,
    )
    unmatched = merged["_merge"] == "left_only"
    n_unmatched = int(unmatched.sum())
    if n_unmatched:
        logger.warning(
            "%d vaccination row(s) reference no known patient; patient fields left null",
            n_unmatched,
        )

    n_unvaccinated = int((~patients[id_col].isin(vaccinations[fk_col])).sum())
    if n_unvaccinated:
        logger.info("%d patient(s) have no vaccination records", n_unvaccinated)

    return merged.drop(columns=["_merge"]), n_unmatched


# ---------------------------------------------------------------------------
# Range filters
# ---------------------------------------------------------------------------


def filter_years(
    df: pd.DataFrame,
    year_min: Optional[int],
    year_max: Optional[int],
    *,
    year_col: str = "vacc_service_year",
) -> pd.DataFrame:
    """Return a DataFrame filtered to the inclusive year range.

    Parameters
    ----------
    df : pd.DataFrame
        Input data containing a column with year values.
    year_min : Optional[int]
        Lower bound (inclusive); ``None`` leaves the lower bound open.
    year_max : Optional[int]
        Upper bound (inclusive); ``None`` leaves the upper bound open.
    year_col : str
        Name of the column in ``df`` holding year values.

    Returns
    -------
    pd.DataFrame
        A new DataFrame containing only rows where ``year_col`` lies
        between ``year_min`` and ``year_max``.  Missing year values are
        excluded.
    """
    if year_min is None and year_max is None:
        return df.copy()
    mask = pd.Series(True, index=df.index, dtype="boolean")
    if year_min is not None:
        mask &= df[year_col] >= year_min
    if year_max is not None:
        mask &= df[year_col] <= year_max
    mask = mask.fillna(False).astype(bool)
    return df.loc[mask].copy()


def filter_dates(
    df: pd.DataFrame,
    start: Optional[date | pd.Timestamp],
    end: Optional[date | pd.Timestamp],
    *,
    date_col: str = "vacc_date",
) -> pd.DataFrame:
    """Same as :func:`filter_years`, on a parsed date column."""
    if start is None and end is None:
        return df.copy()
    mask = df[date_col].notna()
    if start is not None:
        mask &= df[date_col] >= pd.Timestamp(start)
    if end is not None:
        mask &= df[date_col] <= pd.Timestamp(end)
    return df.loc[mask].copy()


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def build_features(
    patients: pd.DataFrame,
    vaccinations: pd.DataFrame,
    *,
    now: date | pd.Timestamp,
    duplicate_policy: DuplicatePolicy = DUPLICATE_POLICY,
    strict: bool = False,
) -> tuple[pd.DataFrame, Dict[str, int]]:
    """Clean, join, parse and enrich the two raw tables.

    Returns the derived table and a data-quality report of counts.
    """
    patients, n_dup = deduplicate_patients(patients, policy=duplicate_policy)
    patients = normalize_categories(patients)
    joined, n_unmatched = join_vaccinations(patients, vaccinations)
    joined = fill_unmatched_categories(joined)
    dated, nulls = normalize_dates(joined)
    check_required_dates(nulls, strict=strict)
    features = derive_features(dated, now=now)

    quality: Dict[str, int] = {
        "patients": len(patients),
        "vaccinations": len(vaccinations),
        "duplicate_patient_rows": n_dup,
        "unmatched_vaccinations": n_unmatched,
        **{f"null_{col}": n for col, n in nulls.items()},
    }
    return features, quality


def run_pipeline(
    *,
    patients_source: str | Path | None = None,
    immunizations_source: str | Path | None = None,
    now: date | pd.Timestamp | None = None,
    year_min: Optional[int] = SERVICE_YEAR_RANGE[0],
    year_max: Optional[int] = SERVICE_YEAR_RANGE[1],
    focus_year: Optional[int] = FOCUS_YEAR,
    demographic: str = GENDER_COL,
    duplicate_policy: DuplicatePolicy = DUPLICATE_POLICY,
    strict: bool = False,
) -> Dict[str, object]:
    """Run the full pipeline and return the derived tables.

    Parameters
    ----------
    patients_source, immunizations_source : str or Path, optional
        Input files.  Default to the files in the resolved data directory.
    now : date, optional
        Reference point for ages.  Defaults to today's date, read once
        here and passed down explicitly.
    year_min, year_max : Optional[int], optional
        Inclusive service-year window; defaults to 2015–2024.
    focus_year : Optional[int], optional
        Single calendar year kept in the ``"focus"`` view.
    demographic : str, optional
        Demographic column used for the cross-tabulations.
    duplicate_policy : {"warn", "raise"}
        What to do with repeated patient identifiers.
    strict : bool, optional
        Raise instead of warn when required dates are missing.

    Returns
    -------
    Dict[str, object]
        ``features`` (all rows), ``service`` (service-year window),
        ``focus`` (focus year), ``tables`` and ``summary`` (wide and
        stacked cross-tabs of the service window), ``focus_tables`` and
        ``focus_summary`` (the same for the focus year), ``demographics``
        (counts per gender and race), ``quality`` (counts) and the
        parameters used.
    """
    default_patients, default_immunizations = default_sources()
    now = pd.Timestamp(now if now is not None else date.today()).normalize()

    # 1. Load raw inputs
    patients = load_patients(patients_source or default_patients)
    vaccinations = load_immunizations(immunizations_source or default_immunizations)

    # 2. Join, parse and derive
    features, quality = build_features(
        patients,
        vaccinations,
        now=now,
        duplicate_policy=duplicate_policy,
        strict=strict,
    )

    # 3. Range filters
    service = filter_years(features, year_min, year_max, year_col="vacc_service_year")
    focus = filter_years(features, focus_year, focus_year, year_col="vacc_year")
    quality["rows_in_service_window"] = len(service)
    quality["rows_in_focus_year"] = len(focus)
    if service.empty:
        logger.warning("No rows remain in service years %s–%s", year_min, year_max)

    # 4. Aggregate
    tables = summary_tables(service, demographic)
    focus_tables = summary_tables(focus, demographic)
    demographics = {
        col: demographic_counts(features, col) for col in (GENDER_COL, RACE_COL)
    }

    logger.info(
        "Pipeline complete: %d rows, %d in service window, %d in %s",
        len(features),
        len(service),
        len(focus),
        focus_year,
    )
    return {
        "features": features,
        "service": service,
        "focus": focus,
        "tables": tables,
        "summary": stack_summary(tables, demographic),
        "focus_tables": focus_tables,
        "focus_summary": stack_summary(focus_tables, demographic),
        "demographics": demographics,
        "quality": quality,
        "now": now,
        "year_min": year_min,
        "year_max": year_max,
        "focus_year": focus_year,
        "demographic": demographic,
    }
