"""Load the patient and immunization CSV files.

Column names are lowercased on load so the rest of the pipeline can
address them without caring about the casing of the export.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

from .config import (
    DEFAULT_SEP,
    IMMUNIZATION_REQUIRED,
    IMMUNIZATIONS_FILE,
    PATIENT_REQUIRED,
    PATIENTS_FILE,
)

logger = logging.getLogger(__name__)


def ensure_columns(df: pd.DataFrame, required: List[str]) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


def resolve_data_dir() -> Path:
    """Return the directory holding the input CSVs.

    ``VACCINATION_DATA_DIR`` wins when set; otherwise the ``data`` folder
    at the repository root is used.
    """
    env = os.getenv("VACCINATION_DATA_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return Path(__file__).resolve().parent.parent / "data"


def default_sources(data_dir: Optional[Path] = None) -> Tuple[Path, Path]:
    """Paths of the patients and immunizations files inside ``data_dir``."""
    base = data_dir or resolve_data_dir()
    return base / PATIENTS_FILE, base / IMMUNIZATIONS_FILE


def read_table(source: str | Path, sep: str = DEFAULT_SEP) -> pd.DataFrame:
    """Read a delimited file with every column as text and lowercase headers.

    Parameters
    ----------
    source : str or Path
        Path or URL of the delimited file.
    sep : str, optional
        Column delimiter; defaults to ``","``.

    Returns
    -------
    pd.DataFrame
        Raw table with lowercase, stripped column names.
    """
    if isinstance(source, Path) and not source.exists():
        raise FileNotFoundError(f"Input file not found at {source}")
    df = pd.read_csv(source, sep=sep, dtype=str, keep_default_na=True)
    df.columns = [str(col).strip().lower() for col in df.columns]
    logger.info("Loaded %d rows x %d columns from %s", len(df), df.shape[1], source)
    return df


def load_patients(source: str | Path, sep: str = DEFAULT_SEP) -> pd.DataFrame:
    df = read_table(source, sep=sep)
    ensure_columns(df, PATIENT_REQUIRED)
    return df


def load_immunizations(source: str | Path, sep: str = DEFAULT_SEP) -> pd.DataFrame:
    df = read_table(source, sep=sep)
    ensure_columns(df, IMMUNIZATION_REQUIRED)
    return df
