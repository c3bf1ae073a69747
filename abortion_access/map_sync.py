"""
Map synchronization: overlay snapshots and the Plotly figure built from them.

An overlay is computed in full from a successful route and handed to the
renderer as one immutable value. Marker positions come from the route
geometry's endpoints (the points OSRM snapped to), never from the record's
stored coordinates.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import plotly.graph_objects as go

from . import config
from .routing import Coord, RouteSuccess


class MapStatus(str, enum.Enum):
    IDLE = "idle"
    READY = "ready"
    FETCHING = "fetching"
    ROUTE_READY = "route_ready"
    ROUTE_FAILED = "route_failed"


@dataclass(frozen=True)
class Viewport:
    center: Coord
    zoom: float


@dataclass(frozen=True)
class Marker:
    position: Coord
    color: str
    size: int
    label: str = ""


@dataclass(frozen=True)
class MapOverlayState:
    viewport: Viewport
    polyline: Tuple[Coord, ...] = ()
    polyline_label: str = ""
    origin_marker: Optional[Marker] = None
    destination_marker: Optional[Marker] = None
    diagnostic_markers: Tuple[Marker, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.polyline

    def to_dict(self) -> dict:
        def marker(m):
            if m is None:
                return None
            return {"position": list(m.position), "color": m.color, "size": m.size, "label": m.label}

        return {
            "viewport": {"center": list(self.viewport.center), "zoom": self.viewport.zoom},
            "polyline": [list(c) for c in self.polyline],
            "polyline_label": self.polyline_label,
            "origin_marker": marker(self.origin_marker),
            "destination_marker": marker(self.destination_marker),
            "diagnostic_markers": [marker(m) for m in self.diagnostic_markers],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MapOverlayState":
        def coord(c):
            return (float(c[0]), float(c[1]))

        def marker(m):
            if m is None:
                return None
            return Marker(position=coord(m["position"]), color=m["color"], size=int(m["size"]), label=m.get("label", ""))

        vp = data["viewport"]
        return cls(
            viewport=Viewport(center=coord(vp["center"]), zoom=float(vp["zoom"])),
            polyline=tuple(coord(c) for c in data.get("polyline", [])),
            polyline_label=data.get("polyline_label", ""),
            origin_marker=marker(data.get("origin_marker")),
            destination_marker=marker(data.get("destination_marker")),
            diagnostic_markers=tuple(marker(m) for m in data.get("diagnostic_markers", [])),
        )


def viewport_for_state(state: Optional[str]) -> Viewport:
    """Fixed per-state view; continental US when no state is chosen."""
    center, zoom = config.STATE_VIEWPORTS.get(state, config.DEFAULT_VIEWPORT)
    return Viewport(center=center, zoom=zoom)


def empty_overlay(viewport: Viewport) -> MapOverlayState:
    return MapOverlayState(viewport=viewport)


def build_overlay(route: RouteSuccess, viewport: Viewport) -> MapOverlayState:
    """Compute the complete overlay for a successful route."""
    coords = np.asarray(route.geometry, dtype=float)
    if coords.ndim != 2 or coords.shape[0] < 2 or not np.isfinite(coords).all():
        raise ValueError("route geometry needs at least two finite points")

    start = (float(coords[0, 0]), float(coords[0, 1]))
    end = (float(coords[-1, 0]), float(coords[-1, 1]))

    return MapOverlayState(
        viewport=viewport,
        polyline=tuple((float(lon), float(lat)) for lon, lat in coords),
        polyline_label=f"Driving distance: {route.total_distance} miles",
        origin_marker=Marker(start, config.ORIGIN_COLOR, 16, f"Origin: {route.origin_label}"),
        destination_marker=Marker(end, config.DESTINATION_COLOR, 16, f"Destination: {route.destination_label}"),
        diagnostic_markers=(
            Marker(start, config.DIAGNOSTIC_COLOR, 8),
            Marker(end, config.DIAGNOSTIC_COLOR, 8),
        ),
    )


def _marker_trace(markers, name: str) -> go.Scattermap:
    trace = go.Scattermap(
        lon=[m.position[0] for m in markers],
        lat=[m.position[1] for m in markers],
        mode="markers",
        marker=dict(size=[m.size for m in markers], color=[m.color for m in markers], opacity=1),
        text=[m.label for m in markers],
        name=name,
        showlegend=False,
    )
    if any(m.label for m in markers):
        trace.hovertemplate = "%{text}<extra></extra>"
    else:
        trace.hoverinfo = "skip"
    return trace


def make_map_figure(overlay: MapOverlayState) -> go.Figure:
    """Render an overlay snapshot. Equal overlays give equal figures."""
    fig = go.Figure()

    if not overlay.is_empty:
        lon = [c[0] for c in overlay.polyline]
        lat = [c[1] for c in overlay.polyline]
        fig.add_trace(go.Scattermap(
            lon=lon,
            lat=lat,
            mode="lines",
            line=dict(color=config.ROUTE_COLOR, width=config.ROUTE_WIDTH),
            name="Route",
            text=[overlay.polyline_label] * len(lon),
            hovertemplate="%{text}<extra></extra>",
            showlegend=False,
        ))
        endpoints = [m for m in (overlay.origin_marker, overlay.destination_marker) if m is not None]
        fig.add_trace(_marker_trace(endpoints, "Endpoints"))
        if overlay.diagnostic_markers:
            fig.add_trace(_marker_trace(overlay.diagnostic_markers, "Snapped points"))
    else:
        # keep an empty trace so the basemap still renders
        fig.add_trace(go.Scattermap(lon=[], lat=[], mode="markers", showlegend=False))

    fig.update_layout(
        margin={"r": 0, "t": 0, "l": 0, "b": 0},
        hoverlabel=dict(
            bgcolor="rgba(255, 255, 255, 0.95)",
            bordercolor="#e5e7eb",
            font_size=13,
            font_family="Inter"
        ),
        map={
            "style": config.MAP_STYLE,
            "center": {"lon": overlay.viewport.center[0], "lat": overlay.viewport.center[1]},
            "zoom": overlay.viewport.zoom,
        },
    )
    return fig
