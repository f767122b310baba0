# tests/app/test_reroute.py
import dataclasses

import pytest

from nav_engine.app.events import (
    DeviationDetected,
    HeadingUpdated,
    PositionFix,
    RerouteCompleted,
    RerouteFailed,
    RerouteStarted,
    StepAdvanced,
)
from nav_engine.domain.errors import TransientBackendError
from nav_engine.domain.state import NavState


def fix(t, p):
    return PositionFix(t=t, lat=p.lat, lon=p.lon)


def only(events, *types):
    return [e for e in events if isinstance(e, types)]


@pytest.fixture
def driving(harness, make_route):
    """Navigating a 1 km northbound route (steps end at 0, 500 and 1000 m)."""

    def make(**nav):
        h = harness(nav)
        h.navigate(make_route())
        return h

    return make


def test_deviation_reroutes_exactly_once_per_cooldown(driving, origin, north, east):
    h = driving()
    off = east(north(origin, 200), 51)  # threshold (50 m) + 1

    out = h.send(fix(10.0, off))
    assert [type(e) for e in only(out, DeviationDetected, RerouteStarted)] == [
        DeviationDetected,
        RerouteStarted,
    ]
    assert only(out, RerouteStarted)[0].token == h.state.active_trip.token
    assert h.state.state is NavState.REROUTING
    assert len(h.requests.of("reroute")) == 1

    # still off-route while the fetch is out: heading only, no second reroute
    for t in (11.0, 12.0, 13.0):
        out = h.send(fix(t, east(north(origin, 210), 60)))
        assert only(out, DeviationDetected, RerouteStarted) == []
        assert len(only(out, HeadingUpdated)) == 1

    # the fetch fails: back on the old route, cooldown still running
    out = h.complete(h.requests.last("reroute"), t=13.5, error=TransientBackendError())
    assert [type(e) for e in out] == [RerouteFailed]
    assert out[0].reason == "server_busy"
    assert h.state.state is NavState.NAVIGATING

    for t in (14.0, 15.0, 15.9):
        assert only(h.send(fix(t, off)), RerouteStarted) == []
    assert len(h.requests.of("reroute")) == 1

    # 6 s after the first reroute a new one is allowed
    out = h.send(fix(16.5, off))
    assert len(only(out, RerouteStarted)) == 1
    assert len(h.requests.of("reroute")) == 2


def test_just_inside_threshold_is_not_a_deviation(driving, origin, north, east):
    h = driving()
    out = h.send(fix(10.0, east(north(origin, 200), 49)))
    assert only(out, DeviationDetected) == []
    assert h.state.active_trip.deviation_m == pytest.approx(49.0, abs=0.1)
    assert not h.state.active_trip.off_route


def test_threshold_depends_on_the_route_class(harness, make_route, origin, north, east):
    h = harness()
    h.navigate(make_route(profile="walking"))
    out = h.send(fix(10.0, east(north(origin, 200), 30)))  # walking threshold is 25 m
    assert len(only(out, DeviationDetected)) == 1


def test_stale_reroute_result_is_dropped(driving, make_route, origin, north, east):
    h = driving(reroute_cooldown_ms=1000)
    off = east(north(origin, 300), 80)
    h.send(fix(10.0, off))
    current = h.requests.last("reroute")
    older = dataclasses.replace(current, token=current.token - 1)
    detour = make_route(origin=off, marks=(0.0, 400.0, 800.0))

    # an answer carrying an older token changes nothing
    assert h.complete(older, t=10.2, result=detour) == []
    assert h.state.state is NavState.REROUTING

    out = h.complete(current, t=10.5, result=detour)
    assert [type(e) for e in out] == [RerouteCompleted]
    assert h.state.state is NavState.NAVIGATING
    trip = h.state.active_trip
    assert trip.route.origin == off
    assert trip.progress.step_index == 0
    assert not any(s.completed for s in trip.route.steps)

    # replaying the same completion again is also stale (state is no longer REROUTING)
    assert h.complete(current, t=10.6, result=detour) == []


def test_new_route_restarts_step_progress(driving, make_route, origin, north, east):
    h = driving()
    h.send(fix(1.0, north(origin, 1)))  # completes step 0
    assert h.state.active_trip.progress.step_index == 1

    off = east(north(origin, 250), 70)
    h.send(fix(10.0, off))
    h.complete(h.requests.last("reroute"), t=10.5, result=make_route(origin=off))
    assert h.state.active_trip.progress.step_index == 0

    (adv,) = only(h.send(fix(11.0, off)), StepAdvanced)
    assert adv.step_index == 0


def test_reroute_requests_start_from_the_current_position(driving, origin, north, east):
    h = driving()
    off = east(north(origin, 200), 90)
    h.send(fix(10.0, off))
    route = h.requests.last("reroute").call()  # StraightLineRouting
    assert route.origin == off
    assert route.destination == h.state.active_trip.destination
