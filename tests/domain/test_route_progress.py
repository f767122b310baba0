import pytest

from nav_engine.domain.entities.route import Route, RouteProgress, Step
from nav_engine.domain.errors import StepOrderError


def test_route_validates_its_shape(make_route, origin, north):
    r = make_route()
    with pytest.raises(ValueError):
        Route((origin,), r.steps, 0.0, 0.0)
    with pytest.raises(ValueError):
        Route(r.geometry, (), 0.0, 0.0)
    with pytest.raises(ValueError):
        Route(r.geometry, (Step(1, north(origin, 10), "x", 10.0, 1.0),), 10.0, 1.0)
    assert r.origin == origin
    assert r.destination == r.geometry[-1]


def test_steps_complete_in_order_only(make_route):
    p = RouteProgress(make_route())
    assert p.current_step().index == 0
    assert p.mark_step_completed(0)
    with pytest.raises(StepOrderError):
        p.mark_step_completed(2)  # skipping step 1
    assert p.mark_step_completed(1)
    assert [s.index for s in p.completed_steps()] == [0, 1]
    assert [s.index for s in p.pending_steps()] == [2]


def test_mark_step_completed_is_idempotent(make_route):
    p = RouteProgress(make_route())
    assert p.mark_step_completed(0) is True
    assert p.mark_step_completed(0) is False
    assert p.step_index == 1
    assert len(p.completed_steps()) == 1


def test_advance_to_step_completes_everything_before(make_route):
    p = RouteProgress(make_route())
    assert p.advance_to_step(2) == [0, 1]
    assert p.advance_to_step(2) == []
    with pytest.raises(StepOrderError):
        p.advance_to_step(1)
    assert p.advance_to_step(3) == [2]
    assert p.finished
    assert p.current_step() is None
    with pytest.raises(StepOrderError):
        p.mark_step_completed(7)


def test_step_index_is_monotonic_and_a_new_route_restarts_at_zero(make_route, origin, north):
    p = RouteProgress(make_route())
    seen = [p.step_index]
    for i in range(2):
        p.mark_step_completed(i)
        seen.append(p.step_index)
    assert seen == sorted(seen)

    p.segment_hint = 17
    p.set_route(make_route(origin=north(origin, 40), marks=(0.0, 300.0)))
    assert p.step_index == 0
    assert p.segment_hint == 0
    assert not any(s.completed for s in p.route.steps)


def test_set_route_does_not_share_step_state(make_route):
    route = make_route()
    a, b = RouteProgress(route), RouteProgress(route)
    a.mark_step_completed(0)
    assert not b.route.steps[0].completed
    assert not route.steps[0].completed
