"""Data manager for loading and caching pipeline results.

This module wraps :func:`pipeline.run_pipeline` for the dashboard and
persists the derived feature table and the stacked summary to disk.
The cache files carry a version tag and the analysis date, because ages
depend on the date the pipeline ran with.
"""

import logging
import os
import tempfile
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from . import pipeline
from .features import FEATURE_COLUMNS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache setup
# ---------------------------------------------------------------------------
# Bump whenever the pipeline output changes shape or meaning.
CACHE_VERSION: str = "v1"

PARSED_DATE_COLUMNS = ["birth_date", "death_date", "vacc_date"]
FLOAT_FEATURES = {"weeks_to_vax", "months_to_vax"}
TEXT_FEATURES = {"vacc_month_name", "vacc_weekday", "vacc_season", "is_weekend"}


def _resolve_cache_dir() -> Path:
    """Select a writable directory for caching.

    The lookup order is:

    1. The ``DATA_CACHE_DIR`` environment variable, if set.
    2. A ``data/cache`` folder at the repository root.
    3. A temporary directory in ``/tmp``.

    Each candidate is tested for writability with a sentinel file; the
    first that works is returned.
    """
    candidates: list[Path] = []
    env = os.getenv("DATA_CACHE_DIR")
    if env:
        candidates.append(Path(env).expanduser().resolve())

    candidates.append(Path(__file__).resolve().parent.parent / "data" / "cache")
    candidates.append(Path(tempfile.gettempdir()) / "vaccination_eda_cache")

    for path in candidates:
        try:
            path.mkdir(parents=True, exist_ok=True)
            test_file = path / ".write_test"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink()
            return path
        except OSError:
            logger.debug("Cache directory %s is not writable", path)
            continue

    fallback = Path(tempfile.gettempdir()) / "vaccination_eda_cache"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def cache_paths(now: pd.Timestamp, cache_dir: Optional[Path] = None) -> Dict[str, Path]:
    """Versioned cache file per payload table, e.g. ``vaccination_features_v1_20250101.csv``."""
    base = cache_dir or _resolve_cache_dir()
    stamp = now.strftime("%Y%m%d")
    return {
        "features": base / f"vaccination_features_{CACHE_VERSION}_{stamp}.csv",
        "summary": base / f"vaccination_summary_{CACHE_VERSION}_{stamp}.csv",
    }


def _atomic_to_csv(df: pd.DataFrame, path: Path) -> None:
    """Write a DataFrame to CSV atomically.

    The CSV is first written to a temporary file in the same directory
    and then renamed to the final location.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.replace(path)


def _read_features(path: Path) -> pd.DataFrame:
    """Read a cached feature table back with its dates and integer columns."""
    df = pd.read_csv(path, low_memory=False)
    for col in PARSED_DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], format="%Y-%m-%d", errors="raise")
    for col in FEATURE_COLUMNS:
        if col in df.columns and col not in FLOAT_FEATURES | TEXT_FEATURES:
            df[col] = df[col].astype("Int64")
    if "is_weekend" in df.columns:
        df["is_weekend"] = df["is_weekend"].astype("boolean")
    return df


@lru_cache(maxsize=4)
def _compute_pipeline_payload(now: pd.Timestamp) -> Dict[str, object]:
    """Runs the pipeline calculation once per analysis date."""
    return pipeline.run_pipeline(now=now)


def load_payload(
    force_recompute: bool = False,
    now: Optional[date] = None,
    cache_dir: Optional[Path] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Load data from disk cache if available, otherwise compute and save.

    Parameters
    ----------
    force_recompute : bool, optional
        If ``True``, recompute the pipeline even if cache files exist.
    now : date, optional
        Analysis date; defaults to today.
    cache_dir : Path, optional
        Cache location; defaults to the resolved cache directory.

    Returns
    -------
    Dict[str, pd.DataFrame]
        A dictionary with keys ``"features"`` and ``"summary"``.
    """
    now_ts = pd.Timestamp(now if now is not None else date.today()).normalize()
    paths = cache_paths(now_ts, cache_dir)

    if not force_recompute and all(p.exists() for p in paths.values()):
        logger.info("Loading pipeline output from cache directory %s", paths["features"].parent)
        try:
            return {
                "features": _read_features(paths["features"]),
                "summary": pd.read_csv(paths["summary"]),
            }
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            logger.warning(
                "Error reading cache files %s: %s; falling back to recompute",
                [p.name for p in paths.values()],
                exc,
            )

    if force_recompute:
        _compute_pipeline_payload.cache_clear()

    logger.info("Computing pipeline data for analysis date %s", now_ts.date())
    payload = _compute_pipeline_payload(now_ts)
    result = {"features": payload["features"], "summary": payload["summary"]}

    try:
        for key, path in paths.items():
            _atomic_to_csv(result[key], path)
        logger.info("Cache updated: %s", ", ".join(p.name for p in paths.values()))
    except OSError as exc:
        logger.warning("Could not write cache files: %s", exc)

    return result
