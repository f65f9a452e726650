"""
Configuration constants for the vaccination EDA pipeline.
"""

from datetime import date
from typing import Dict, FrozenSet, List, Literal, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
PATIENTS_FILE: str = "patients.csv"
IMMUNIZATIONS_FILE: str = "immunizations.csv"

DEFAULT_SEP: str = ","

# Column names after lowercasing on load
PATIENT_ID_COL: str = "id"
PATIENT_FK_COL: str = "patient"
BIRTHDATE_COL: str = "birthdate"
DEATHDATE_COL: str = "deathdate"
EVENT_DATE_COL: str = "date"
GENDER_COL: str = "gender"
RACE_COL: str = "race"

PATIENT_REQUIRED: List[str] = [PATIENT_ID_COL, BIRTHDATE_COL, GENDER_COL, RACE_COL]
IMMUNIZATION_REQUIRED: List[str] = [PATIENT_FK_COL, EVENT_DATE_COL]

# ======================================================
#  DATE HANDLING
# ======================================================
DATE_FORMAT: str = "%Y-%m-%d"
TIMESTAMP_FORMAT: str = "%Y-%m-%dT%H:%M:%SZ"

# strptime accepts single-digit fields; every value must also match in full
FORMAT_PATTERNS: Dict[str, str] = {
    DATE_FORMAT: r"\d{4}-\d{2}-\d{2}",
    TIMESTAMP_FORMAT: r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z",
}

# raw column -> (parsed column, declared format)
DATE_COLUMNS: Dict[str, Tuple[str, str]] = {
    BIRTHDATE_COL: ("birth_date", DATE_FORMAT),
    DEATHDATE_COL: ("death_date", DATE_FORMAT),
    EVENT_DATE_COL: ("vacc_date", TIMESTAMP_FORMAT),
}
REQUIRED_DATES: List[str] = ["birth_date", "vacc_date"]

REFERENCE_DATE: date = date(2020, 1, 1)
FISCAL_YEAR_START_MONTH: int = 6
DAYS_PER_YEAR: float = 365.25
DAYS_PER_MONTH: float = 30.44
DAYS_PER_WEEK: int = 7

# Weekday index runs 1 = Sunday ... 7 = Saturday
WEEKEND_DAYS: FrozenSet[int] = frozenset({1, 7})

WEEKDAY_ORDER: List[str] = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]
MONTH_ORDER: List[str] = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

# Canonical Northern-hemisphere mapping. Only this table assigns seasons.
SEASON_BY_MONTH: Dict[int, str] = {
    12: "Winter",
    1: "Winter",
    2: "Winter",
    3: "Spring",
    4: "Spring",
    5: "Spring",
    6: "Summer",
    7: "Summer",
    8: "Summer",
    9: "Autumn",
    10: "Autumn",
    11: "Autumn",
}
SEASON_ORDER: List[str] = ["Winter", "Spring", "Summer", "Autumn"]

# ======================================================
#  FILTERS / AGGREGATION
# ======================================================
FOCUS_YEAR: int = 2022
SERVICE_YEAR_RANGE: Tuple[int, int] = (2015, 2024)

DuplicatePolicy = Literal["warn", "raise"]
DUPLICATE_POLICY: DuplicatePolicy = "warn"

TOTAL_LABEL: str = "Total"
PERCENT_DECIMALS: int = 1

# time unit -> derived column used for the cross-tab rows
TIME_UNITS: Dict[str, str] = {
    "year": "vacc_year",
    "quarter": "vacc_quarter",
    "weekday": "vacc_weekday",
}

# ======================================================
#  UI DEFAULTS
# ======================================================
TIME_UNIT_OPTIONS: List[Tuple[str, str]] = [
    ("Service year", "year"),
    ("Quarter", "quarter"),
    ("Day of week", "weekday"),
]
DEMOGRAPHIC_OPTIONS: List[Tuple[str, str]] = [
    ("Gender", "gender"),
    ("Race", "race"),
]

DEFAULT_TIME_UNIT: str = "year"
DEFAULT_DEMOGRAPHIC: str = "gender"

GLOBAL_YEAR_MIN: int = SERVICE_YEAR_RANGE[0]
GLOBAL_YEAR_MAX: int = SERVICE_YEAR_RANGE[1]
DEFAULT_YEAR_RANGE: Tuple[int, int] = (GLOBAL_YEAR_MIN, GLOBAL_YEAR_MAX)

CATEGORY_COLORS: Dict[str, str] = {
    "Female": "#d62728",
    "Male": "#1f77b4",
    "Other": "#9467bd",
    "Unknown": "#7f7f7f",
}
