"""
Orchestrator: folds user events and route responses into immutable
application snapshots.

Derived values (option lists, the resolved record, the metrics rows) live in
a small dependency graph. Changing an input marks every node downstream of
it dirty; a dirty node is recomputed only when it is next read.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Set, Tuple, Union

import pandas as pd

from .dataset import DatasetRecord
from .map_sync import (
    MapOverlayState,
    MapStatus,
    build_overlay,
    empty_overlay,
    viewport_for_state,
)
from .metrics import metrics_table
from .resolver import resolve_record
from .routing import (
    RouteFailure,
    RouteRequest,
    RouteResult,
    RouteSuccess,
    route_result_from_dict,
)
from .selection import (
    Catalog,
    SelectionContext,
    is_ready,
    options_for,
    set_county,
    set_state,
    set_year,
)

logger = logging.getLogger(__name__)


# ======================
# Dependency graph
# ======================

class DerivedGraph:
    """Lazily recomputed values with push invalidation."""

    def __init__(self):
        self._inputs: Dict[str, Any] = {}
        self._nodes: Dict[str, Tuple[Tuple[str, ...], Callable]] = {}
        self._dependents: Dict[str, Set[str]] = {}
        self._values: Dict[str, Any] = {}
        self._dirty: Set[str] = set()
        self.recomputed: Dict[str, int] = {}

    def add_input(self, name: str, value: Any) -> None:
        self._inputs[name] = value
        self._dependents.setdefault(name, set())

    def add_node(self, name: str, deps: Tuple[str, ...], fn: Callable) -> None:
        for d in deps:
            if d not in self._inputs and d not in self._nodes:
                raise KeyError(f"unknown dependency {d!r} for node {name!r}")
            self._dependents.setdefault(d, set()).add(name)
        self._nodes[name] = (deps, fn)
        self._dependents.setdefault(name, set())
        self._dirty.add(name)

    def set_input(self, name: str, value: Any) -> None:
        if self._inputs[name] == value:
            return
        self._inputs[name] = value
        self._invalidate(name)

    def _invalidate(self, name: str) -> None:
        stack = list(self._dependents[name])
        while stack:
            node = stack.pop()
            if node in self._dirty:
                continue
            self._dirty.add(node)
            stack.extend(self._dependents[node])

    def get(self, name: str) -> Any:
        if name in self._inputs:
            return self._inputs[name]
        if name in self._dirty:
            deps, fn = self._nodes[name]
            self._values[name] = fn(*(self.get(d) for d in deps))
            self._dirty.discard(name)
            self.recomputed[name] = self.recomputed.get(name, 0) + 1
        return self._values[name]


# ======================
# Events
# ======================

@dataclass(frozen=True)
class StateChanged:
    value: Optional[str]


@dataclass(frozen=True)
class CountyChanged:
    value: Optional[str]


@dataclass(frozen=True)
class YearChanged:
    value: Optional[int]


@dataclass(frozen=True)
class RouteTriggered:
    pass


@dataclass(frozen=True)
class RouteResponseReceived:
    generation: int
    result: RouteResult


Event = Union[StateChanged, CountyChanged, YearChanged, RouteTriggered, RouteResponseReceived]


# ======================
# Snapshot
# ======================

@dataclass(frozen=True)
class Notification:
    text: str
    serial: int


def _initial_overlay() -> MapOverlayState:
    return empty_overlay(viewport_for_state(None))


@dataclass(frozen=True)
class AppState:
    context: SelectionContext = SelectionContext()
    generation: int = 0
    status: MapStatus = MapStatus.IDLE
    route: Optional[RouteResult] = None
    overlay: MapOverlayState = field(default_factory=_initial_overlay)
    notification: Optional[Notification] = None
    pending: Optional[RouteRequest] = None

    def to_dict(self) -> dict:
        return {
            "context": {"state": self.context.state, "county": self.context.county, "year": self.context.year},
            "generation": self.generation,
            "status": self.status.value,
            "route": self.route.to_dict() if self.route is not None else None,
            "overlay": self.overlay.to_dict(),
            "notification": (
                {"text": self.notification.text, "serial": self.notification.serial}
                if self.notification is not None else None
            ),
            "pending": self.pending.to_dict() if self.pending is not None else None,
        }


def app_state_from_dict(data: Optional[dict]) -> AppState:
    if not data:
        return AppState()
    ctx = data.get("context") or {}
    note = data.get("notification")
    return AppState(
        context=SelectionContext(state=ctx.get("state"), county=ctx.get("county"), year=ctx.get("year")),
        generation=int(data.get("generation", 0)),
        status=MapStatus(data.get("status", MapStatus.IDLE.value)),
        route=route_result_from_dict(data.get("route")),
        overlay=MapOverlayState.from_dict(data["overlay"]) if data.get("overlay") else _initial_overlay(),
        notification=Notification(note["text"], int(note["serial"])) if note else None,
        pending=RouteRequest.from_dict(data["pending"]) if data.get("pending") else None,
    )


# ======================
# Orchestrator
# ======================

class Orchestrator:
    """The one writer of AppState. ``dispatch`` returns the new snapshot."""

    def __init__(self, df: pd.DataFrame, catalog: Catalog, state: Optional[AppState] = None):
        self.df = df
        self.catalog = catalog
        self._state = state if state is not None else AppState()

        g = DerivedGraph()
        g.add_input("context", self._state.context)
        g.add_node("options", ("context",), lambda ctx: options_for(ctx, catalog))
        g.add_node("ready", ("context",), is_ready)
        g.add_node("record", ("context", "ready"),
                   lambda ctx, ready: resolve_record(df, ctx) if ready else None)
        g.add_node("metrics", ("record",), metrics_table)
        self.graph = g

    @property
    def state(self) -> AppState:
        return self._state

    def options(self):
        return self.graph.get("options")

    def record(self) -> Optional[DatasetRecord]:
        return self.graph.get("record")

    def metrics(self):
        return self.graph.get("metrics")

    def dispatch(self, event: Event) -> AppState:
        if isinstance(event, StateChanged):
            new = self._on_context(set_state(self._state.context, event.value, self.catalog), recenter=True)
        elif isinstance(event, CountyChanged):
            new = self._on_context(set_county(self._state.context, event.value, self.catalog))
        elif isinstance(event, YearChanged):
            new = self._on_context(set_year(self._state.context, event.value, self.catalog))
        elif isinstance(event, RouteTriggered):
            new = self._on_trigger()
        elif isinstance(event, RouteResponseReceived):
            new = self._on_response(event)
        else:
            raise TypeError(f"unknown event {event!r}")
        self._state = new
        self.graph.set_input("context", new.context)
        return new

    def _on_context(self, context: SelectionContext, recenter: bool = False) -> AppState:
        s = self._state
        if context == s.context:
            return s
        self.graph.set_input("context", context)
        viewport = viewport_for_state(context.state) if recenter else s.overlay.viewport
        status = MapStatus.READY if self.record() is not None else MapStatus.IDLE
        # any in-flight request now belongs to an old context and will be dropped
        return replace(
            s,
            context=context,
            status=status,
            route=None,
            overlay=empty_overlay(viewport),
            pending=None,
        )

    def _notify(self, text: str) -> Notification:
        serial = self._state.notification.serial + 1 if self._state.notification else 1
        return Notification(text, serial)

    def _on_trigger(self) -> AppState:
        s = self._state
        if not is_ready(s.context):
            return s
        record = self.record()
        if record is None:
            logger.info("No record for %s / %s; route not requested", s.context.county, s.context.year)
            return replace(s, notification=self._notify(
                f"No data for {s.context.county} in {s.context.year}."))

        if not all(math.isfinite(v) for v in record.origin + record.destination):
            logger.warning("Record for %s / %s has no usable coordinates", s.context.county, s.context.year)
            return replace(s, status=MapStatus.ROUTE_FAILED, route=RouteFailure(
                "Record has no usable origin/destination coordinates"),
                notification=self._notify("Routing failed: record has no usable coordinates."))

        generation = s.generation + 1
        request = RouteRequest(
            generation=generation,
            origin=record.origin,
            destination=record.destination,
            origin_label=s.context.county,
            destination_label=record.dest_county_name,
        )
        return replace(s, generation=generation, status=MapStatus.FETCHING, pending=request)

    def _on_response(self, event: RouteResponseReceived) -> AppState:
        s = self._state
        if event.generation != s.generation or s.status is not MapStatus.FETCHING:
            logger.debug("Discarding stale route response #%d (current #%d, %s)",
                         event.generation, s.generation, s.status.value)
            return s

        result = event.result
        if isinstance(result, RouteSuccess):
            try:
                overlay = build_overlay(result, s.overlay.viewport)
            except ValueError as e:
                result = RouteFailure(f"Malformed geometry: {e}")
            else:
                return replace(s, status=MapStatus.ROUTE_READY, route=result, overlay=overlay, pending=None)

        return replace(
            s,
            status=MapStatus.ROUTE_FAILED,
            route=result,
            notification=self._notify(f"Routing failed: {result.reason}"),
            pending=None,
        )
