import pandas as pd
from shiny import reactive, render
from shiny.express import input, ui
from shinywidgets import render_plotly

from vaccination_eda.aggregate import stack_summary, summary_tables
from vaccination_eda.config import (
    DEFAULT_DEMOGRAPHIC,
    DEFAULT_TIME_UNIT,
    DEFAULT_YEAR_RANGE,
    DEMOGRAPHIC_OPTIONS,
    GLOBAL_YEAR_MAX,
    GLOBAL_YEAR_MIN,
    TIME_UNIT_OPTIONS,
)
from vaccination_eda.data_manager import load_payload
from vaccination_eda.pipeline import filter_years
from vaccination_eda.plotting import create_count_plot

# Helpers for UI mapping
TIME_UNIT_MAPPING = {value: label for label, value in TIME_UNIT_OPTIONS}
DEMOGRAPHIC_MAPPING = {value: label for label, value in DEMOGRAPHIC_OPTIONS}
DEFAULT_VALUE_MODE = "count"

# ======================================================
#  REACTIVE STATE
# ======================================================
# Load once on startup; values stay in-memory until app restart.
payload_store = reactive.Value(load_payload())


@reactive.calc
def filtered_data():
    payload = payload_store.get()
    if payload is None:
        return pd.DataFrame()
    year_min, year_max = input.year_range()
    return filter_years(
        payload["features"], year_min, year_max, year_col="vacc_service_year"
    )


@reactive.calc
def summary():
    demographic = input.demographic()
    # The cached summary covers the default window for the default group
    if tuple(input.year_range()) == DEFAULT_YEAR_RANGE and demographic == DEFAULT_DEMOGRAPHIC:
        payload = payload_store.get()
        if payload is not None:
            return payload["summary"]
    df = filtered_data()
    if df.empty:
        return pd.DataFrame(columns=["category", "bucket", demographic, "count", "percent"])
    return stack_summary(summary_tables(df, demographic), demographic)


# ======================================================
#  UI LAYOUT
# ======================================================
ui.page_opts(
    title="Vaccination records: exploratory analysis",
    fillable=False,
    fillable_mobile=True,
    full_width=True,
    id="page",
    lang="en",
)

with ui.sidebar(open="always", position="right"):
    ui.input_select(
        "time_unit", "Time unit", TIME_UNIT_MAPPING, selected=DEFAULT_TIME_UNIT
    )
    ui.input_select(
        "demographic",
        "Demographic group",
        DEMOGRAPHIC_MAPPING,
        selected=DEFAULT_DEMOGRAPHIC,
    )
    ui.input_radio_buttons(
        "value_mode",
        "Values",
        {"count": "Counts", "percent": "Share of column total"},
        selected=DEFAULT_VALUE_MODE,
    )
    ui.input_slider(
        "year_range",
        "Service years",
        min=GLOBAL_YEAR_MIN,
        max=GLOBAL_YEAR_MAX,
        value=DEFAULT_YEAR_RANGE,
        step=1,
        sep="",
    )
    ui.input_action_button("reset_filters", "Reset filters", class_="btn-primary mt-3")


@reactive.effect
@reactive.event(input.reset_filters)
def _reset_filters():
    ui.update_select("time_unit", selected=DEFAULT_TIME_UNIT)
    ui.update_select("demographic", selected=DEFAULT_DEMOGRAPHIC)
    ui.update_radio_buttons("value_mode", selected=DEFAULT_VALUE_MODE)
    ui.update_slider("year_range", value=DEFAULT_YEAR_RANGE)


with ui.navset_tab(id="main_tabs"):
    with ui.nav_panel("Visuals"):

        @render_plotly
        def count_plot():
            table = summary()
            if table.empty:
                return None
            return create_count_plot(
                table,
                input.time_unit(),
                input.demographic(),
                value_col=input.value_mode(),
                category_label=TIME_UNIT_MAPPING[input.time_unit()],
            )

    with ui.nav_panel("Data"):

        @render.data_frame
        def summary_grid():
            table = summary()
            table = table[table["category"] == input.time_unit()].astype({"bucket": str})
            return render.DataGrid(table, height=600, filters=True)

        @render.download(filename=lambda: f"vaccination_summary_{input.time_unit()}.csv")
        def download_data():
            table = summary()
            yield table[table["category"] == input.time_unit()].to_csv(index=False)
