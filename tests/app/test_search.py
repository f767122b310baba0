from nav_engine.app.events import SearchFailed, SearchRequested, SearchResults
from nav_engine.domain.errors import TransientBackendError
from nav_engine.services.static_backends import StaticGeocoder

PLACES = {"Central Station": (52.525, 13.369), "Station Square": (52.51, 13.39)}


def test_search_results(harness):
    h = harness(geocoder=StaticGeocoder(PLACES))
    assert h.send(SearchRequested(t=0.0, text="station")) == []
    req = h.requests.last("geocode")
    (res,) = h.complete(req, t=0.2, result=req.call())
    assert isinstance(res, SearchResults)
    assert res.text == "station"
    assert sorted(c.label for c in res.candidates) == ["Central Station", "Station Square"]


def test_only_the_newest_search_is_answered(harness):
    h = harness(geocoder=StaticGeocoder(PLACES))
    h.send(SearchRequested(t=0.0, text="cent"))
    first = h.requests.last("geocode")
    h.send(SearchRequested(t=0.1, text="square"))
    second = h.requests.last("geocode")
    assert second.token > first.token
    assert second.token == h.search.token

    assert h.complete(first, t=0.2, result=first.call()) == []
    (res,) = h.complete(second, t=0.3, result=second.call())
    assert [c.label for c in res.candidates] == ["Station Square"]


def test_search_failure(harness):
    h = harness()
    h.send(SearchRequested(t=0.0, text="anything"))
    out = h.complete(h.requests.last("geocode"), t=0.1, error=TransientBackendError())
    assert out == [SearchFailed(t=0.1, text="anything", reason="server_busy")]


def test_searching_leaves_navigation_state_alone(harness):
    h = harness(geocoder=StaticGeocoder(PLACES))
    before = repr(h.state)
    h.send(SearchRequested(t=0.0, text="station"))
    req = h.requests.last("geocode")
    h.complete(req, t=0.2, result=req.call())
    assert repr(h.state) == before
