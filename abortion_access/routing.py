"""
Route resolution client for the public OSRM server.

Every failure mode (network, timeout, HTTP status, bad JSON, no route,
unusable geometry) comes back as a RouteFailure value; nothing raises past
``fetch_route``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import requests

from . import config

logger = logging.getLogger(__name__)

Coord = Tuple[float, float]


@dataclass(frozen=True)
class RouteRequest:
    generation: int
    origin: Coord
    destination: Coord
    origin_label: str
    destination_label: str

    def to_dict(self) -> dict:
        return {
            "generation": self.generation,
            "origin": list(self.origin),
            "destination": list(self.destination),
            "origin_label": self.origin_label,
            "destination_label": self.destination_label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RouteRequest":
        return cls(
            generation=int(data["generation"]),
            origin=(float(data["origin"][0]), float(data["origin"][1])),
            destination=(float(data["destination"][0]), float(data["destination"][1])),
            origin_label=str(data["origin_label"]),
            destination_label=str(data["destination_label"]),
        )


@dataclass(frozen=True)
class RouteSuccess:
    geometry: Tuple[Coord, ...]
    total_distance: float
    origin_label: str
    destination_label: str

    @property
    def snapped_origin(self) -> Coord:
        return self.geometry[0]

    @property
    def snapped_destination(self) -> Coord:
        return self.geometry[-1]

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "geometry": [list(c) for c in self.geometry],
            "total_distance": self.total_distance,
            "origin_label": self.origin_label,
            "destination_label": self.destination_label,
        }


@dataclass(frozen=True)
class RouteFailure:
    reason: str

    def to_dict(self) -> dict:
        return {"ok": False, "reason": self.reason}


RouteResult = Union[RouteSuccess, RouteFailure]


def route_result_from_dict(data: Optional[dict]) -> Optional[RouteResult]:
    if not data:
        return None
    if data.get("ok"):
        return RouteSuccess(
            geometry=tuple((float(lon), float(lat)) for lon, lat in data["geometry"]),
            total_distance=float(data["total_distance"]),
            origin_label=str(data["origin_label"]),
            destination_label=str(data["destination_label"]),
        )
    return RouteFailure(reason=str(data.get("reason", "Unknown routing error")))


def route_url(server: str, origin: Coord, destination: Coord) -> str:
    return (
        f"{server.rstrip('/')}/route/v1/{config.OSRM_PROFILE}/"
        f"{origin[0]},{origin[1]};{destination[0]},{destination[1]}"
    )


def parse_route_response(payload, origin_label: str, destination_label: str) -> RouteResult:
    """Turn an OSRM /route JSON body into a route result."""
    if not isinstance(payload, dict):
        return RouteFailure("Malformed response from routing service")

    code = payload.get("code")
    if code != "Ok":
        msg = payload.get("message") or code or "no route found"
        return RouteFailure(f"No route found: {msg}")

    routes = payload.get("routes") or []
    if not isinstance(routes, list):
        return RouteFailure("Malformed response from routing service")
    if not routes:
        return RouteFailure("No route found")
    route = routes[0]

    # geometries=geojson is requested; an encoded polyline string is unusable here
    if not isinstance(route, dict) or not isinstance(route.get("geometry"), dict):
        return RouteFailure("Malformed geometry in routing response")
    coords = route["geometry"].get("coordinates") or []
    try:
        geometry = tuple((float(c[0]), float(c[1])) for c in coords)
        distance_m = float(route["distance"])
    except (KeyError, TypeError, ValueError, IndexError):
        return RouteFailure("Malformed geometry in routing response")
    if len(geometry) < 2:
        return RouteFailure("Routing response has no usable geometry")

    return RouteSuccess(
        geometry=geometry,
        total_distance=round(distance_m * config.METERS_TO_MILES, 1),
        origin_label=origin_label,
        destination_label=destination_label,
    )


def fetch_route(
    request: RouteRequest,
    server: str = config.OSRM_SERVER,
    timeout: float = config.ROUTE_TIMEOUT_S,
    session: Optional[requests.Session] = None,
) -> RouteResult:
    """Issue a single full-geometry driving route request."""
    if not all(math.isfinite(v) for v in request.origin + request.destination):
        return RouteFailure("Record has no usable origin/destination coordinates")
    url = route_url(server, request.origin, request.destination)
    getter = session.get if session is not None else requests.get
    logger.info("Route request #%d: %s -> %s", request.generation,
                request.origin_label, request.destination_label)
    try:
        r = getter(url, params={"overview": "full", "geometries": "geojson"}, timeout=timeout)
        r.raise_for_status()
        payload = r.json()
    except requests.Timeout:
        logger.warning("Route request #%d timed out after %ss", request.generation, timeout)
        return RouteFailure("Routing service timed out")
    except ValueError:
        # requests' JSONDecodeError is also a RequestException
        logger.warning("Route request #%d returned invalid JSON", request.generation)
        return RouteFailure("Malformed response from routing service")
    except requests.RequestException as e:
        logger.warning("Route request #%d failed: %s", request.generation, e)
        return RouteFailure(f"Routing service error: {e}")

    result = parse_route_response(payload, request.origin_label, request.destination_label)
    if isinstance(result, RouteFailure):
        logger.warning("Route request #%d: %s", request.generation, result.reason)
    return result
