"""Tests for the orchestrator event fold and derived-value graph."""

import pytest

from abortion_access.dataset import prepare_dataset
from abortion_access.map_sync import MapStatus, build_overlay, viewport_for_state
from abortion_access.orchestrator import (
    AppState,
    CountyChanged,
    DerivedGraph,
    Orchestrator,
    RouteResponseReceived,
    RouteTriggered,
    StateChanged,
    YearChanged,
    app_state_from_dict,
)
from abortion_access.routing import RouteFailure, RouteSuccess
from abortion_access.selection import SelectionContext


def _success(label="Montgomery", end=(-86.3004, 32.3998), distance=52.3):
    return RouteSuccess(
        geometry=((-86.8991, 32.3012), (-86.6, 32.35), end),
        total_distance=distance,
        origin_label="Jefferson",
        destination_label=label,
    )


@pytest.fixture
def orch(records_df, catalog):
    return Orchestrator(records_df, catalog)


@pytest.fixture
def ready(orch):
    orch.dispatch(StateChanged("AL"))
    orch.dispatch(CountyChanged("Jefferson"))
    orch.dispatch(YearChanged(2021))
    return orch


class TestDerivedGraph:
    def test_lazy_recompute_after_invalidation(self):
        g = DerivedGraph()
        g.add_input("x", 1)
        g.add_node("double", ("x",), lambda x: x * 2)
        g.add_node("plus_one", ("double",), lambda d: d + 1)
        assert g.get("plus_one") == 3
        assert g.get("plus_one") == 3
        assert g.recomputed == {"double": 1, "plus_one": 1}

        g.set_input("x", 5)
        assert g.recomputed == {"double": 1, "plus_one": 1}
        assert g.get("plus_one") == 11
        assert g.recomputed == {"double": 2, "plus_one": 2}

    def test_equal_input_does_not_invalidate(self):
        g = DerivedGraph()
        g.add_input("x", 1)
        g.add_node("double", ("x",), lambda x: x * 2)
        g.get("double")
        g.set_input("x", 1)
        g.get("double")
        assert g.recomputed["double"] == 1

    def test_unknown_dependency(self):
        g = DerivedGraph()
        with pytest.raises(KeyError):
            g.add_node("y", ("missing",), lambda m: m)


class TestSelectionEvents:
    def test_initial_state_is_idle(self, orch):
        assert orch.state.status is MapStatus.IDLE
        assert orch.options().counties == ()

    def test_state_recenters_without_record(self, orch):
        s = orch.dispatch(StateChanged("NV"))
        assert s.status is MapStatus.IDLE
        assert s.overlay.viewport == viewport_for_state("NV")
        assert s.context == SelectionContext(state="NV")

    def test_ready_context_resolves_and_shows_metrics(self, ready):
        assert ready.state.status is MapStatus.READY
        assert ready.record().dest_county_name == "Montgomery"
        assert ready.metrics()[0] == ("Pregnancies", 8120)

    def test_state_change_resets_selection(self, ready):
        s = ready.dispatch(StateChanged("MI"))
        assert s.context == SelectionContext(state="MI")
        assert s.overlay.viewport == viewport_for_state("MI")
        assert ready.record() is None
        assert ready.metrics() == []

    def test_record_only_recomputed_when_context_changes(self, ready):
        ready.record()
        ready.record()
        count = ready.graph.recomputed["record"]
        ready.dispatch(CountyChanged("Atlantis"))  # not offered, no-op
        ready.record()
        assert ready.graph.recomputed["record"] == count

    def test_unmatched_context_is_idle(self, ready):
        s = ready.dispatch(CountyChanged("Madison"))
        s = ready.dispatch(YearChanged(2022))
        assert s.status is MapStatus.IDLE
        assert ready.record() is None


class TestRouteTrigger:
    def test_trigger_without_ready_context_does_nothing(self, orch):
        orch.dispatch(StateChanged("AL"))
        before = orch.state
        after = orch.dispatch(RouteTriggered())
        assert after is before
        assert after.pending is None

    def test_trigger_without_record_never_requests(self, orch):
        orch.dispatch(StateChanged("AL"))
        orch.dispatch(CountyChanged("Madison"))
        s = orch.dispatch(YearChanged(2022))
        after = orch.dispatch(RouteTriggered())
        assert after.pending is None
        assert after.generation == s.generation
        assert "No data" in after.notification.text

    def test_trigger_builds_request_from_record(self, ready):
        s = ready.dispatch(RouteTriggered())
        assert s.status is MapStatus.FETCHING
        assert s.generation == 1
        assert s.pending.origin == (-86.9, 32.3)
        assert s.pending.destination == (-86.3, 32.4)
        assert s.pending.origin_label == "Jefferson"
        assert s.pending.destination_label == "Montgomery"

    def test_nearest_record_without_coordinates_fails_without_request(self, raw_df, catalog):
        raw_df.loc[1, "origin_lon"] = float("nan")
        orch = Orchestrator(prepare_dataset(raw_df), catalog)
        orch.dispatch(StateChanged("AL"))
        orch.dispatch(CountyChanged("Jefferson"))
        orch.dispatch(YearChanged(2021))
        assert orch.record().dest_county_name == "Montgomery"
        s = orch.dispatch(RouteTriggered())
        assert s.status is MapStatus.ROUTE_FAILED
        assert s.pending is None
        assert s.generation == 0
        assert "no usable coordinates" in s.notification.text

    def test_success_draws_at_snapped_points(self, ready):
        ready.dispatch(RouteTriggered())
        s = ready.dispatch(RouteResponseReceived(1, _success()))
        assert s.status is MapStatus.ROUTE_READY
        assert s.route.total_distance == 52.3
        assert s.overlay.origin_marker.position == (-86.8991, 32.3012)
        assert s.overlay.destination_marker.position == (-86.3004, 32.3998)
        assert s.overlay.origin_marker.position != ready.record().origin
        assert s.pending is None

    def test_failure_keeps_overlay(self, ready):
        ready.dispatch(RouteTriggered())
        drawn = ready.dispatch(RouteResponseReceived(1, _success())).overlay
        ready.dispatch(RouteTriggered())
        s = ready.dispatch(RouteResponseReceived(2, RouteFailure("Routing service timed out")))
        assert s.status is MapStatus.ROUTE_FAILED
        assert s.overlay == drawn
        assert s.overlay.to_dict() == drawn.to_dict()
        assert s.notification.text == "Routing failed: Routing service timed out"

    def test_malformed_success_treated_as_failure(self, ready):
        ready.dispatch(RouteTriggered())
        before = ready.state.overlay
        bad = RouteSuccess(((1.0, 2.0),), 1.0, "Jefferson", "Montgomery")
        s = ready.dispatch(RouteResponseReceived(1, bad))
        assert s.status is MapStatus.ROUTE_FAILED
        assert s.overlay == before


class TestStaleResponses:
    def test_older_response_after_newer_trigger_is_dropped(self, ready):
        ready.dispatch(RouteTriggered())
        ready.dispatch(RouteTriggered())
        before = ready.state
        s = ready.dispatch(RouteResponseReceived(1, _success(label="Stale")))
        assert s is before
        assert s.status is MapStatus.FETCHING

        s = ready.dispatch(RouteResponseReceived(2, _success()))
        assert s.status is MapStatus.ROUTE_READY
        assert s.overlay.destination_marker.label == "Destination: Montgomery"

    def test_older_failure_cannot_clobber_newer_success(self, ready):
        ready.dispatch(RouteTriggered())
        ready.dispatch(RouteTriggered())
        drawn = ready.dispatch(RouteResponseReceived(2, _success())).overlay
        s = ready.dispatch(RouteResponseReceived(1, RouteFailure("late")))
        assert s.status is MapStatus.ROUTE_READY
        assert s.overlay == drawn
        assert s.notification is None

    def test_response_after_context_change_is_dropped(self, ready):
        ready.dispatch(RouteTriggered())
        ready.dispatch(YearChanged(2022))
        s = ready.dispatch(RouteResponseReceived(1, _success()))
        assert s.status is MapStatus.READY
        assert s.overlay.is_empty
        assert s.route is None


class TestSnapshotTransport:
    def test_round_trip(self, ready):
        ready.dispatch(RouteTriggered())
        ready.dispatch(RouteResponseReceived(1, _success()))
        ready.dispatch(RouteTriggered())
        ready.dispatch(RouteResponseReceived(2, RouteFailure("down")))
        assert app_state_from_dict(ready.state.to_dict()) == ready.state

    def test_empty_store_gives_initial_state(self):
        assert app_state_from_dict(None) == AppState()

    def test_resume_from_snapshot(self, records_df, catalog, ready):
        ready.dispatch(RouteTriggered())
        resumed = Orchestrator(records_df, catalog, app_state_from_dict(ready.state.to_dict()))
        s = resumed.dispatch(RouteResponseReceived(1, _success()))
        assert s.status is MapStatus.ROUTE_READY
        assert s.overlay == build_overlay(_success(), viewport_for_state("AL"))
