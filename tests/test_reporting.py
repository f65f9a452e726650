"""
Tests for chart construction, the CLI and the pipeline cache
"""

import pandas as pd
import plotly.graph_objects as go
import pytest

from vaccination_eda import data_manager
from vaccination_eda.aggregate import heatmap_counts, monthly_counts, stack_summary, summary_tables
from vaccination_eda.main import build_figures, main
from vaccination_eda.pipeline import build_features, run_pipeline
from vaccination_eda.plotting import (
    create_age_histogram,
    create_count_plot,
    create_heatmap,
    create_timeseries_plot,
    save_figures,
)


@pytest.fixture
def features(raw_patients, raw_immunizations, now):
    df, _ = build_features(raw_patients, raw_immunizations, now=now)
    return df


class TestPlotting:
    def test_count_plot_has_one_trace_per_group(self, features):
        summary = stack_summary(summary_tables(features, "gender"), "gender")
        fig = create_count_plot(summary, "year", "gender")
        assert isinstance(fig, go.Figure)
        assert sorted(trace.name for trace in fig.data) == ["Female", "Male", "Unknown"]
        for trace in fig.data:
            assert "Total" not in list(trace.x)

    def test_percent_plot_axis(self, features):
        summary = stack_summary(summary_tables(features, "gender"), "gender")
        fig = create_count_plot(summary, "weekday", "gender", value_col="percent")
        assert fig.layout.yaxis.title.text.startswith("Share")

    def test_empty_summary_gives_blank_figure(self):
        empty = pd.DataFrame(columns=["category", "bucket", "gender", "count", "percent"])
        assert len(create_count_plot(empty, "year", "gender").data) == 0

    def test_other_charts(self, features):
        assert len(create_timeseries_plot(monthly_counts(features)).data) == 1
        assert len(create_heatmap(heatmap_counts(features)).data) == 1
        assert len(create_age_histogram(features).data) == 2

    def test_save_figures(self, features, tmp_path):
        paths = save_figures({"monthly": create_timeseries_plot(monthly_counts(features))}, tmp_path)
        assert paths == [tmp_path / "monthly.html"]
        assert "<html" in paths[0].read_text(encoding="utf-8")

    def test_build_figures(self, data_dir, now):
        payload = run_pipeline(
            patients_source=data_dir / "patients.csv",
            immunizations_source=data_dir / "immunizations.csv",
            now=now,
        )
        figures = build_figures(payload)
        assert {"vaccinations_per_month", "weekday_month_heatmap", "year_by_gender", "weekday_table"} <= set(figures)


class TestCli:
    def test_writes_outputs(self, data_dir, tmp_path):
        out_dir = tmp_path / "out"
        code = main(
            [
                "--patients", str(data_dir / "patients.csv"),
                "--immunizations", str(data_dir / "immunizations.csv"),
                "--now", "2025-01-01",
                "--output-dir", str(out_dir),
            ]
        )
        assert code == 0
        features = pd.read_csv(out_dir / "vaccination_features.csv")
        assert len(features) == 6
        quality = pd.read_csv(out_dir / "vaccination_quality.csv")
        assert dict(zip(quality["check"], quality["count"]))["unmatched_vaccinations"] == 1

        demographics = pd.read_csv(out_dir / "vaccination_demographics.csv")
        assert list(demographics.columns) == ["dimension", "category", "count", "percent"]
        assert set(demographics["dimension"]) == {"gender", "race"}
        for _, group in demographics.groupby("dimension"):
            assert group["count"].sum() == 4

        focus = pd.read_csv(out_dir / "vaccination_focus_summary.csv")
        year_total = focus[(focus["category"] == "year") & (focus["bucket"] == "Total")]
        assert year_total["count"].sum() == 3

    def test_strict_mode_fails_on_missing_birth_dates(self, data_dir, tmp_path):
        code = main(
            [
                "--patients", str(data_dir / "patients.csv"),
                "--immunizations", str(data_dir / "immunizations.csv"),
                "--now", "2025-01-01",
                "--output-dir", str(tmp_path / "out"),
                "--strict",
            ]
        )
        assert code == 1


class TestCache:
    def test_round_trip(self, data_dir, tmp_path, monkeypatch, now):
        monkeypatch.setenv("VACCINATION_DATA_DIR", str(data_dir))
        cache_dir = tmp_path / "cache"

        computed = data_manager.load_payload(force_recompute=True, now=now, cache_dir=cache_dir)
        paths = data_manager.cache_paths(pd.Timestamp(now), cache_dir)
        assert all(path.exists() for path in paths.values())
        assert paths["features"].name == "vaccination_features_v1_20250101.csv"

        cached = data_manager.load_payload(now=now, cache_dir=cache_dir)
        features = cached["features"]
        assert len(features) == len(computed["features"])
        assert pd.api.types.is_datetime64_any_dtype(features["vacc_date"])
        assert str(features["days_to_vax"].dtype) == "Int64"
        assert features["days_to_vax"].isna().sum() == 1
        assert set(cached["summary"]["category"]) == {"year", "quarter", "weekday"}

        def year_counts(summary):
            rows = summary[summary["category"] == "year"]
            return dict(zip(zip(rows["bucket"].astype(str), rows["gender"]), rows["count"]))

        assert year_counts(cached["summary"]) == year_counts(computed["summary"])
