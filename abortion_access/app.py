"""
Abortion Access Analysis dashboard
- Single CSV source: data/simulated_df.csv (see config.DATA_CSV)
- Pick a state, origin county and year; "Calculate Route" asks OSRM for the
  drive to the nearest provider and draws it on the map
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import dash
import dash_bootstrap_components as dbc
import pandas as pd
from dash import dcc, html, Input, Output, State

from . import config
from .dataset import load_dataset
from .map_sync import make_map_figure
from .metrics import render_metrics_table, route_details
from .orchestrator import (
    AppState,
    CountyChanged,
    Orchestrator,
    RouteResponseReceived,
    RouteTriggered,
    StateChanged,
    YearChanged,
    app_state_from_dict,
)
from .routing import fetch_route, route_result_from_dict
from .selection import Catalog, build_catalog

logger = logging.getLogger(__name__)


# ======================
# Layout
# ======================

def build_layout(catalog: Catalog, initial: AppState) -> html.Div:
    """Construct the static Dash layout."""
    sidebar = html.Div([
        html.Label("Select State:", style={"fontWeight": 600, "fontSize": "15px"}),
        dcc.Dropdown(
            id="state-dd",
            options=[{"label": s, "value": s} for s in catalog.states],
            value=None,
            clearable=False,
            placeholder="Select a state…",
        ),
        html.Label("Origin County:", style={"fontWeight": 600, "fontSize": "15px", "marginTop": "12px"}),
        dcc.Dropdown(id="county-dd", options=[], value=None, clearable=True, placeholder="Select a county…"),
        html.Label("Year:", style={"fontWeight": 600, "fontSize": "15px", "marginTop": "12px"}),
        dcc.Dropdown(id="year-dd", options=[], value=None, clearable=True, placeholder="Select a year…"),
        html.Button(
            "Calculate Route", id="go", n_clicks=0, className="btn btn-primary",
            style={"marginTop": "16px", "width": "100%"},
        ),
        html.Hr(),
        html.H4("Abortion Access Metrics:", style={"fontSize": "17px", "fontWeight": 600}),
        html.Div(id="metrics-table"),
    ], style={"flex": "0 0 320px", "background": "#fff", "borderRadius": "10px",
              "boxShadow": "0 2px 12px #0001", "padding": "14px 12px"})

    main = html.Div([
        dcc.Loading(
            id="map-loading",
            type="dot",
            children=dcc.Graph(
                id="route-map",
                figure=make_map_figure(initial.overlay),
                style={"height": "600px", "background": "#fff", "borderRadius": "12px",
                       "boxShadow": "0 2px 12px #0001"},
            ),
        ),
        html.H4("Route Details:", style={"fontSize": "17px", "fontWeight": 600, "marginTop": "16px"}),
        html.Pre(id="route-details", style={"background": "#f3f4f6", "padding": "10px",
                                            "borderRadius": "8px", "minHeight": "70px"}),
        html.Div(id="route-status", style={"color": "#6b7280", "fontSize": "13px"}),
    ], style={"flex": "1", "minWidth": "400px"})

    return html.Div([
        html.H2("Abortion Access Analysis", className="page-title", style={"marginBottom": "12px"}),
        html.Div([sidebar, main], style={"display": "flex", "gap": "18px", "alignItems": "flex-start"}),
        dbc.Toast(
            id="route-toast",
            header="Route",
            icon="danger",
            is_open=False,
            dismissable=True,
            duration=config.NOTIFICATION_DURATION_MS,
            style={"position": "fixed", "top": 16, "right": 16, "width": 360, "zIndex": 1000},
        ),
        dcc.Store(id="app-state", data=initial.to_dict()),
        dcc.Store(id="route-response"),
        dcc.Store(id="toast-serial"),
    ], style={"background": "#f9fafb", "padding": "24px 18px"})


STATUS_TEXT = {
    "idle": "Choose a state, county and year.",
    "ready": "Ready. Press “Calculate Route”.",
    "fetching": "Calculating route…",
    "route_ready": "",
    "route_failed": "Route could not be calculated.",
}


def _dropdown_options(values) -> List[dict]:
    return [{"label": str(v), "value": v} for v in values]


# ======================
# Callbacks
# ======================

def register_callbacks(app: dash.Dash, df: pd.DataFrame, catalog: Catalog):
    """Wire all Dash callbacks."""

    @app.callback(
        Output("app-state", "data"),
        Output("county-dd", "options"),
        Output("county-dd", "value"),
        Output("year-dd", "options"),
        Output("year-dd", "value"),
        Input("state-dd", "value"),
        Input("county-dd", "value"),
        Input("year-dd", "value"),
        Input("go", "n_clicks"),
        Input("route-response", "data"),
        State("app-state", "data"),
        prevent_initial_call=True,
    )
    def dispatch(state_value, county_value, year_value, _go_clicks, response_data, state_data):
        """Only writer of app-state: every user event and route response lands here."""
        ctx = dash.callback_context
        if not ctx.triggered:
            raise dash.exceptions.PreventUpdate

        trigger = ctx.triggered[0]["prop_id"].split(".")[0]
        events = {
            "state-dd": lambda: StateChanged(state_value),
            "county-dd": lambda: CountyChanged(county_value),
            "year-dd": lambda: YearChanged(year_value),
            "go": RouteTriggered,
            "route-response": lambda: RouteResponseReceived(
                generation=int(response_data["generation"]),
                result=route_result_from_dict(response_data["result"]),
            ),
        }
        if trigger not in events or (trigger == "route-response" and not response_data):
            raise dash.exceptions.PreventUpdate

        before = app_state_from_dict(state_data)
        orch = Orchestrator(df, catalog, before)
        after = orch.dispatch(events[trigger]())
        if after is before:
            raise dash.exceptions.PreventUpdate

        opts = orch.options()
        return (
            after.to_dict(),
            _dropdown_options(opts.counties),
            after.context.county,
            _dropdown_options(opts.years),
            after.context.year,
        )

    @app.callback(
        Output("route-response", "data"),
        Input("go", "n_clicks"),
        State("app-state", "data"),
        prevent_initial_call=True,
    )
    def request_route(_go_clicks, state_data):
        """
        The slow call. Fed by the same click and snapshot as ``dispatch`` so
        it derives the same generation; its answer goes back through
        ``dispatch`` and is dropped there unless that generation is current.
        """
        before = app_state_from_dict(state_data)
        after = Orchestrator(df, catalog, before).dispatch(RouteTriggered())
        if after.pending is None or after.generation == before.generation:
            raise dash.exceptions.PreventUpdate
        request = after.pending
        result = fetch_route(request, server=config.OSRM_SERVER, timeout=config.ROUTE_TIMEOUT_S)
        return {"generation": request.generation, "result": result.to_dict()}

    # ---- read-only renderers ----

    @app.callback(
        Output("route-map", "figure"),
        Input("app-state", "data"),
    )
    def render_map(state_data):
        return make_map_figure(app_state_from_dict(state_data).overlay)

    @app.callback(
        Output("metrics-table", "children"),
        Input("app-state", "data"),
    )
    def render_metrics(state_data):
        orch = Orchestrator(df, catalog, app_state_from_dict(state_data))
        return render_metrics_table(orch.metrics())

    @app.callback(
        Output("route-details", "children"),
        Output("route-status", "children"),
        Input("app-state", "data"),
    )
    def render_route_details(state_data):
        s = app_state_from_dict(state_data)
        return route_details(s.route), STATUS_TEXT.get(s.status.value, "")

    @app.callback(
        Output("route-toast", "children"),
        Output("route-toast", "is_open"),
        Output("toast-serial", "data"),
        Input("app-state", "data"),
        State("toast-serial", "data"),
    )
    def render_toast(state_data, shown_serial):
        note = app_state_from_dict(state_data).notification
        if note is None or note.serial == shown_serial:
            raise dash.exceptions.PreventUpdate
        return note.text, True, note.serial


def create_app(csv_path: Path = config.DATA_CSV) -> dash.Dash:
    """
    App factory. Loads data, builds layout, and registers callbacks.
    Returns a ready-to-run Dash app.
    """
    df = load_dataset(Path(csv_path))
    catalog = build_catalog(df)
    logger.info("Loaded %d records (%d counties, years %s)",
                len(df), len(catalog.counties), list(catalog.years))

    app = dash.Dash(__name__, external_stylesheets=[dbc.themes.BOOTSTRAP])
    app.title = "Abortion Access Analysis"
    app.layout = build_layout(catalog, AppState())
    register_callbacks(app, df, catalog)
    return app


# ======================
# Main
# ======================

def main():
    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    app.run(debug=config.DEBUG, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
