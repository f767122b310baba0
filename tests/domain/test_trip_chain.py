import pytest

from nav_engine.domain.entities.trip import AdvisoryGate, AdvisoryKind, TripChain

COOLDOWNS = {
    AdvisoryKind.ECO: 20.0,
    AdvisoryKind.STEP_REMINDER: 20.0,
    AdvisoryKind.SPEED_WARNING: 10.0,
}


def test_chain_from_stops_links_legs(origin, north):
    a, b, c = north(origin, 1000), north(origin, 2000), north(origin, 3000)
    chain = TripChain.from_stops(origin, [a, b, c], COOLDOWNS, journey_id=4, profile="cycling")
    assert [(t.origin, t.destination) for t in chain.trips] == [(origin, a), (a, b), (b, c)]
    assert [t.index for t in chain.trips] == [0, 1, 2]
    assert all(t.profile == "cycling" for t in chain.trips)
    assert chain.journey_id == 4
    assert chain.active is None
    # each leg owns its own gate
    assert chain.trips[0].advisories is not chain.trips[1].advisories

    with pytest.raises(ValueError):
        TripChain.from_stops(origin, [], COOLDOWNS)


def test_chain_advances_then_exhausts(origin, north):
    chain = TripChain.from_stops(origin, [north(origin, 100), north(origin, 200)], COOLDOWNS)
    first = chain.activate_first()
    assert chain.active is first and chain.has_next()
    second = chain.advance()
    assert second.index == 1 and first.completed
    assert chain.advance() is None
    assert second.completed
    assert chain.active is None


def test_trip_tokens_are_monotonic(origin, north, make_route):
    trip = TripChain.from_stops(origin, [north(origin, 1000)], COOLDOWNS).trips[0]
    tokens = [trip.next_token() for _ in range(3)]
    assert tokens == [1, 2, 3]
    assert not trip.routed
    trip.deviation_m, trip.off_route = 80.0, True
    trip.replace_route(make_route())
    assert trip.routed and not trip.off_route and trip.deviation_m == 0.0


def test_gate_cooldown_and_dedup():
    gate = AdvisoryGate(dict(COOLDOWNS))
    kind = AdvisoryKind.ECO
    assert gate.allows(kind, "uphill", 0.0)
    gate.record(kind, "uphill", 0.0)

    assert not gate.allows(kind, "uphill", 100.0)  # same payload: deduplicated
    assert not gate.allows(kind, "cruise", 19.9)  # cooldown still running
    assert gate.allows(kind, "cruise", 20.0)

    gate.clear(kind)  # condition went away
    assert gate.allows(kind, "uphill", 25.0)
    # kinds are independent
    assert gate.allows(AdvisoryKind.SPEED_WARNING, 50, 1.0)

    gate.reset()
    assert gate.last_fired_t[kind] is None


def test_gate_requires_every_kind():
    with pytest.raises(ValueError):
        AdvisoryGate({AdvisoryKind.ECO: 20.0})
