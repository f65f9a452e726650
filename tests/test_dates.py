"""
Tests for strict date parsing and null accounting
"""

import pandas as pd
import pytest

from vaccination_eda.config import DATE_FORMAT, TIMESTAMP_FORMAT
from vaccination_eda.dates import (
    check_required_dates,
    normalize_dates,
    null_counts,
    parse_dates,
)
from vaccination_eda.errors import DataQualityError, DateParseError


class TestParseDates:
    @pytest.mark.parametrize(
        "value",
        ["2000-01-15", "2020-02-29", "1999-12-31", "2024-01-01", "1900-03-01"],
    )
    def test_plain_dates_round_trip(self, value):
        parsed = parse_dates(pd.Series([value]), DATE_FORMAT)
        assert parsed.dt.strftime("%Y-%m-%d").tolist() == [value]

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2022-03-10T08:00:00Z", "2022-03-10"),
            ("2022-03-10T23:59:59Z", "2022-03-10"),
            ("2021-12-31T00:00:00Z", "2021-12-31"),
        ],
    )
    def test_timestamps_keep_date_portion(self, value, expected):
        parsed = parse_dates(pd.Series([value]), TIMESTAMP_FORMAT)
        assert parsed.iloc[0] == pd.Timestamp(expected)
        assert parsed.dt.hour.iloc[0] == 0
        assert parsed.dt.minute.iloc[0] == 0

    def test_difference_is_whole_days(self):
        births = parse_dates(pd.Series(["2000-01-15"]), DATE_FORMAT)
        events = parse_dates(pd.Series(["2022-03-10T08:00:00Z"]), TIMESTAMP_FORMAT)
        assert (events - births).dt.days.iloc[0] == 8090

    def test_mismatch_raises(self):
        series = pd.Series(["2022-03-10", "10/03/2022", "2022-13-01", "2022-3-5"], name="birthdate")
        with pytest.raises(DateParseError) as excinfo:
            parse_dates(series, DATE_FORMAT)
        assert excinfo.value.failures == 3
        assert excinfo.value.column == "birthdate"
        assert "10/03/2022" in excinfo.value.examples
        assert "2022-3-5" in excinfo.value.examples

    @pytest.mark.parametrize(
        "value, fmt",
        [
            ("2022-3-5", DATE_FORMAT),
            ("2022-03-5", DATE_FORMAT),
            ("22-03-05", DATE_FORMAT),
            ("2022-03-10T8:00:00Z", TIMESTAMP_FORMAT),
            ("2022-3-10T08:00:00Z", TIMESTAMP_FORMAT),
        ],
    )
    def test_short_fields_rejected(self, value, fmt):
        with pytest.raises(DateParseError) as excinfo:
            parse_dates(pd.Series([value]), fmt, column="date")
        assert excinfo.value.examples == [value]

    def test_plain_date_in_timestamp_column_raises(self):
        with pytest.raises(DateParseError):
            parse_dates(pd.Series(["2022-03-10"]), TIMESTAMP_FORMAT, column="date")

    def test_missing_values_stay_missing(self):
        parsed = parse_dates(pd.Series(["2022-03-10", None, "", "  "]), DATE_FORMAT)
        assert len(parsed) == 4
        assert parsed.isna().tolist() == [False, True, True, True]


class TestNormalizeDates:
    def test_adds_parsed_columns_without_dropping_rows(self):
        df = pd.DataFrame(
            {
                "birthdate": ["2000-01-15", None],
                "deathdate": [None, None],
                "date": ["2022-03-10T08:00:00Z", "2021-01-01T10:00:00Z"],
            }
        )
        out, counts = normalize_dates(df)
        assert len(out) == 2
        assert counts == {"birth_date": 1, "death_date": 2, "vacc_date": 0}
        assert "birth_date" not in df.columns

    def test_absent_optional_column_is_skipped(self):
        df = pd.DataFrame({"birthdate": ["2000-01-15"], "date": ["2022-03-10T08:00:00Z"]})
        out, counts = normalize_dates(df)
        assert "death_date" not in out.columns
        assert set(counts) == {"birth_date", "vacc_date"}

    def test_null_counts_skips_unknown_columns(self):
        df = pd.DataFrame({"a": [1, None]})
        assert null_counts(df, ["a", "b"]) == {"a": 1}


class TestCheckRequiredDates:
    def test_warns_on_missing_required_dates(self, caplog):
        with caplog.at_level("WARNING"):
            offending = check_required_dates({"birth_date": 3, "vacc_date": 0, "death_date": 9})
        assert offending == {"birth_date": 3}
        assert "birth_date" in caplog.text

    def test_strict_raises(self):
        with pytest.raises(DataQualityError):
            check_required_dates({"birth_date": 0, "vacc_date": 1}, strict=True)

    def test_clean_counts_pass(self):
        assert check_required_dates({"birth_date": 0, "vacc_date": 0}, strict=True) == {}
