"""Metrics presenter: per-record figures and route details for display."""

from __future__ import annotations

from typing import List, Optional, Tuple

import pandas as pd
from dash import html

from .dataset import DatasetRecord
from .routing import RouteResult, RouteSuccess


METRIC_FIELDS = (
    ("Pregnancies", "births_total"),
    ("Clinical Abortions", "abortions_total"),
    ("Self-Managed Abortions", "self_managed_abortions"),
    ("Fetal Deaths", "fetal_deaths"),
)


def metrics_table(record: Optional[DatasetRecord]) -> List[Tuple[str, float]]:
    """Ordered (label, value) rows; empty when there is no record."""
    if record is None:
        return []
    return [(label, getattr(record, field)) for label, field in METRIC_FIELDS]


def format_count(v) -> str:
    if v is None or pd.isna(v):
        return "N/A"
    if float(v).is_integer():
        return f"{int(v):,}"
    return f"{v:,.2f}"


def route_details(route: Optional[RouteResult]) -> str:
    """Text block shown under the map for a successful route."""
    if not isinstance(route, RouteSuccess):
        return ""
    return (
        f"Origin: {route.origin_label}\n"
        f"Destination: {route.destination_label}\n"
        f"Driving Distance to Nearest Abortion Provider: {route.total_distance} miles"
    )


def render_metrics_table(rows: List[Tuple[str, float]]):
    """Striped two-column table, or nothing when there are no rows."""
    if not rows:
        return None
    body = [
        html.Tr([html.Td(label), html.Td(format_count(value), className="metric-count")],
                className="striped" if i % 2 else None)
        for i, (label, value) in enumerate(rows)
    ]
    return html.Table(
        [html.Thead(html.Tr([html.Th("Metric"), html.Th("Count")])), html.Tbody(body)],
        className="metrics-table",
        style={"width": "100%", "fontSize": "14px"},
    )
