"""
Vaccination EDA: join immunization events onto patients, derive age and
calendar features, tabulate counts by demographic group and render the
descriptive charts.

Outputs the derived feature table, the stacked summary tables for the
service window and the focus year, patient counts per demographic group
and a data-quality report as CSV, plus HTML charts on request.
"""

from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import plotly.graph_objects as go

from .aggregate import heatmap_counts, monthly_counts
from .config import FOCUS_YEAR, SERVICE_YEAR_RANGE, TIME_UNITS
from .errors import DataQualityError, DateParseError, DuplicateIdentifierError
from .pipeline import run_pipeline
from .plotting import (
    create_age_histogram,
    create_count_plot,
    create_heatmap,
    create_summary_table,
    create_timeseries_plot,
    save_figures,
)

logger = logging.getLogger(__name__)


def build_figures(payload: Dict[str, object]) -> Dict[str, go.Figure]:
    """All report charts for a pipeline payload, keyed by output name."""
    service: pd.DataFrame = payload["service"]  # type: ignore[assignment]
    summary: pd.DataFrame = payload["summary"]  # type: ignore[assignment]
    demographic: str = payload["demographic"]  # type: ignore[assignment]

    figures: Dict[str, go.Figure] = {
        "vaccinations_per_month": create_timeseries_plot(monthly_counts(service)),
        "weekday_month_heatmap": create_heatmap(heatmap_counts(service)),
        "age_distribution": create_age_histogram(service, demographic),
    }
    for unit in TIME_UNITS:
        figures[f"{unit}_by_{demographic}"] = create_count_plot(summary, unit, demographic)
        figures[f"{unit}_by_{demographic}_percent"] = create_count_plot(
            summary, unit, demographic, value_col="percent"
        )
        figures[f"{unit}_table"] = create_summary_table(summary, unit)
    return figures


def write_outputs(payload: Dict[str, object], out_dir: Path) -> List[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    features_path = out_dir / "vaccination_features.csv"
    summary_path = out_dir / "vaccination_summary.csv"
    focus_path = out_dir / "vaccination_focus_summary.csv"
    demographics_path = out_dir / "vaccination_demographics.csv"
    quality_path = out_dir / "vaccination_quality.csv"

    payload["features"].to_csv(features_path, index=False)  # type: ignore[union-attr]
    payload["summary"].to_csv(summary_path, index=False)  # type: ignore[union-attr]
    payload["focus_summary"].to_csv(focus_path, index=False)  # type: ignore[union-attr]

    # one long table: dimension, category, count, percent
    demographics = pd.concat(
        [
            table.rename(columns={dimension: "category"}).assign(dimension=dimension)
            for dimension, table in payload["demographics"].items()  # type: ignore[union-attr]
        ],
        ignore_index=True,
    )
    demographics = demographics[["dimension", "category", "count", "percent"]]
    demographics.to_csv(demographics_path, index=False)

    quality = pd.DataFrame(
        sorted(payload["quality"].items()),  # type: ignore[union-attr]
        columns=["check", "count"],
    )
    quality.to_csv(quality_path, index=False)
    return [features_path, summary_path, focus_path, demographics_path, quality_path]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Derive age, interval and calendar features for vaccination events "
            "and tabulate them by demographic group."
        )
    )
    parser.add_argument(
        "--patients",
        type=Path,
        default=None,
        help="Patients CSV (default: patients.csv in the data directory).",
    )
    parser.add_argument(
        "--immunizations",
        type=Path,
        default=None,
        help="Immunizations CSV (default: immunizations.csv in the data directory).",
    )
    parser.add_argument(
        "--now",
        type=date.fromisoformat,
        default=None,
        help="Analysis date used for ages, YYYY-MM-DD (default: today).",
    )
    parser.add_argument(
        "--year-min",
        type=int,
        default=SERVICE_YEAR_RANGE[0],
        help=f"First service year to keep (default: {SERVICE_YEAR_RANGE[0]}).",
    )
    parser.add_argument(
        "--year-max",
        type=int,
        default=SERVICE_YEAR_RANGE[1],
        help=f"Last service year to keep (default: {SERVICE_YEAR_RANGE[1]}).",
    )
    parser.add_argument(
        "--focus-year",
        type=int,
        default=FOCUS_YEAR,
        help=f"Single calendar year for the focus view (default: {FOCUS_YEAR}).",
    )
    parser.add_argument(
        "--demographic",
        choices=["gender", "race"],
        default="gender",
        help="Demographic dimension of the cross-tabulations.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory for CSV and chart outputs (default: ./output).",
    )
    parser.add_argument("--charts", action="store_true", help="Also write HTML charts.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on duplicate patient ids and missing required dates.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        payload = run_pipeline(
            patients_source=args.patients,
            immunizations_source=args.immunizations,
            now=args.now,
            year_min=args.year_min,
            year_max=args.year_max,
            focus_year=args.focus_year,
            demographic=args.demographic,
            duplicate_policy="raise" if args.strict else "warn",
            strict=args.strict,
        )
    except (DateParseError, DuplicateIdentifierError, DataQualityError) as exc:
        logger.error("Pipeline failed: %s", exc)
        return 1

    written = write_outputs(payload, args.output_dir)
    if args.charts:
        written += save_figures(build_figures(payload), args.output_dir / "charts")

    features = payload["features"]
    print("\n--- VACCINATION EDA COMPLETE ---")
    print(
        f"Analysis date: {payload['now']:%Y-%m-%d} | Rows: {len(features)} | "
        f"Service years: {args.year_min}–{args.year_max} | Focus year: {args.focus_year}"
    )
    print(f"\nSaved outputs to {args.output_dir}/:")
    for path in written:
        print(f"  - {path.relative_to(args.output_dir)}")
    print("\nQuality report:")
    for check, count in sorted(payload["quality"].items()):
        print(f"  {check}: {count}")
    print("\nService-year counts:")
    print(payload["tables"]["year"]["counts"])
    print(f"\nFocus-year {args.focus_year} counts by quarter:")
    print(payload["focus_tables"]["quarter"]["counts"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
