"""
Tests for age, interval and calendar feature derivation
"""

import math
from datetime import date

import pandas as pd
import pytest

from vaccination_eda.config import SEASON_BY_MONTH, TIMESTAMP_FORMAT
from vaccination_eda.dates import parse_dates
from vaccination_eda.features import FEATURE_COLUMNS, derive_features, derive_record


def _events(values):
    return pd.DataFrame(
        {
            "birth_date": pd.to_datetime(["2000-01-15"] * len(values)),
            "vacc_date": pd.to_datetime(values),
        }
    )


class TestScenario:
    def test_reference_patient(self, now):
        event = parse_dates(pd.Series(["2022-03-10T08:00:00Z"]), TIMESTAMP_FORMAT).iloc[0]
        rec = derive_record(date(2000, 1, 15), event, now)

        assert event == pd.Timestamp("2022-03-10")
        assert rec["vacc_year"] == 2022
        assert rec["vacc_service_year"] == 2022
        assert rec["vacc_quarter"] == 1
        assert rec["vacc_fy"] == 2021
        assert rec["vacc_season"] == "Spring"
        assert not rec["is_weekend"]
        assert rec["days_to_vax"] == 8090
        assert rec["years_to_vax"] == 22
        assert rec["vacc_day"] == 10
        assert rec["vacc_month"] == 3
        assert rec["vacc_month_name"] == "March"
        assert rec["vacc_weekday"] == "Thursday"
        assert rec["vacc_weekday_num"] == 5
        assert rec["vacc_week"] == 10
        assert rec["days_since_ref"] == 799

    def test_returns_every_feature(self, now):
        rec = derive_record(date(2000, 1, 15), date(2022, 3, 10), now)
        assert list(rec) == FEATURE_COLUMNS


class TestIntervals:
    def test_age_uses_day_count_over_365_25(self):
        # 7670 days / 365.25 = 20.999..., one short of the calendar age
        rec = derive_record(date(2001, 3, 1), date(2022, 3, 1), now=date(2022, 3, 1))
        assert rec["age"] == 20

    def test_age_turns_over_after_day_count_threshold(self):
        before = derive_record(date(2000, 1, 15), date(2022, 1, 1), now=date(2022, 1, 14))
        after = derive_record(date(2000, 1, 15), date(2022, 1, 1), now=date(2022, 1, 15))
        assert before["age"] == 21
        assert after["age"] == 22

    def test_age_is_monotonic_in_now(self):
        nows = pd.date_range("2019-01-01", "2026-12-31", freq="17D")
        ages = [
            derive_record(date(2000, 1, 15), date(2022, 3, 10), now=n)["age"] for n in nows
        ]
        assert all(a <= b for a, b in zip(ages, ages[1:]))

    def test_unit_granularities_are_consistent(self, now):
        rec = derive_record(date(2000, 1, 15), date(2022, 3, 10), now)
        assert math.floor(rec["weeks_to_vax"] * 7 + 1e-9) == rec["days_to_vax"]
        assert rec["weeks_to_vax"] == pytest.approx(8090 / 7)
        assert rec["months_to_vax"] == pytest.approx(8090 / 30.44)
        assert rec["years_to_vax"] <= rec["months_to_vax"] / 12

    def test_event_before_birth_gives_negative_interval(self, now):
        rec = derive_record(date(2000, 1, 15), date(2000, 1, 1), now)
        assert rec["days_to_vax"] == -14
        assert rec["years_to_vax"] == -1


class TestCalendarParts:
    def test_quarter_and_fiscal_year_for_every_month(self, now):
        values = [f"2022-{m:02d}-15" for m in range(1, 13)]
        out = derive_features(_events(values), now=now)
        for month, quarter, fy in zip(out["vacc_month"], out["vacc_quarter"], out["vacc_fy"]):
            assert quarter == math.ceil(month / 3)
            assert fy == (2021 if month < 6 else 2022)

    def test_season_table(self):
        assert SEASON_BY_MONTH == {
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
            12: "Winter",
        }

    def test_season_column_follows_table(self, now):
        values = [f"2021-{m:02d}-01" for m in range(1, 13)]
        out = derive_features(_events(values), now=now)
        assert out["vacc_season"].tolist() == [SEASON_BY_MONTH[m] for m in range(1, 13)]

    @pytest.mark.parametrize(
        "value, weekday_num, weekend",
        [
            ("2022-03-12", 7, True),  # Saturday
            ("2022-03-13", 1, True),  # Sunday
            ("2022-03-14", 2, False),  # Monday
            ("2022-03-18", 6, False),  # Friday
        ],
    )
    def test_weekend_flag(self, now, value, weekday_num, weekend):
        out = derive_features(_events([value]), now=now)
        assert out["vacc_weekday_num"].iloc[0] == weekday_num
        assert bool(out["is_weekend"].iloc[0]) is weekend

    def test_days_since_reference_is_signed(self, now):
        out = derive_features(_events(["2019-12-31", "2020-01-01", "2020-02-01"]), now=now)
        assert out["days_since_ref"].tolist() == [-1, 0, 31]


class TestMissingDates:
    def test_missing_birth_date_propagates(self, now):
        rec = derive_record(None, date(2022, 3, 10), now)
        assert rec["age"] is pd.NA
        assert rec["days_to_vax"] is pd.NA
        assert rec["years_to_vax"] is pd.NA
        assert rec["vacc_year"] == 2022

    def test_missing_event_date_propagates(self, now):
        rec = derive_record(date(2000, 1, 15), None, now)
        assert rec["age"] == 24
        for col in ("vacc_year", "vacc_quarter", "vacc_fy", "vacc_weekday_num", "days_since_ref"):
            assert rec[col] is pd.NA
        assert pd.isna(rec["vacc_season"])
        assert pd.isna(rec["vacc_month_name"])
        assert rec["is_weekend"] is pd.NA

    def test_input_frame_is_not_mutated(self, now):
        df = _events(["2022-03-10"])
        derive_features(df, now=now)
        assert list(df.columns) == ["birth_date", "vacc_date"]
