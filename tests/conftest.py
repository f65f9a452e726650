"""
Shared fixtures for the vaccination EDA tests
"""

from datetime import date

import pandas as pd
import pytest

NOW = date(2025, 1, 1)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def raw_patients():
    """Patient rows as the loader returns them: lowercase headers, text values."""
    return pd.DataFrame(
        {
            "id": ["P1", "P2", "P3", "P4"],
            "birthdate": ["2000-01-15", "1980-06-30", "1955-11-02", "2010-02-28"],
            "deathdate": [None, None, "2023-05-01", None],
            "gender": ["F", "M", "M", "F"],
            "race": ["white", "black", "asian", "white"],
        }
    )


@pytest.fixture
def raw_immunizations():
    return pd.DataFrame(
        {
            "date": [
                "2022-03-10T08:00:00Z",
                "2022-07-02T10:30:00Z",
                "2016-11-20T09:00:00Z",
                "2026-01-05T12:00:00Z",
                "2021-12-25T15:45:00Z",
                "2022-01-01T00:00:00Z",
            ],
            "patient": ["P1", "P2", "P3", "P4", "P9", "P1"],
            "code": ["140", "208", "140", "62", "140", "208"],
        }
    )


@pytest.fixture
def data_dir(tmp_path, raw_patients, raw_immunizations):
    """Directory holding patients.csv and immunizations.csv with mixed-case headers."""
    patients = raw_patients.rename(columns={"id": "Id", "birthdate": "BIRTHDATE", "gender": "GENDER"})
    immunizations = raw_immunizations.rename(columns={"date": "DATE", "patient": "PATIENT"})
    patients.to_csv(tmp_path / "patients.csv", index=False)
    immunizations.to_csv(tmp_path / "immunizations.csv", index=False)
    return tmp_path
