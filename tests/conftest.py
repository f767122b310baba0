# tests/conftest.py
import math
from dataclasses import dataclass, field

import pytest

from nav_engine.app.controllers.advisory import AdvisoryHandler, cooldowns_from
from nav_engine.app.controllers.navigation import NavigationHandler
from nav_engine.app.controllers.search import SearchHandler
from nav_engine.app.events import OUTPUT_EVENTS, ApproveRoute, FetchCompleted, SelectDestination
from nav_engine.app.wiring import wire
from nav_engine.config.models import AdvisoryModel, NavigationModel
from nav_engine.domain.entities.geography import LatLon
from nav_engine.domain.entities.route import Route, Step
from nav_engine.domain.geometry import EARTH_RADIUS_M
from nav_engine.domain.state import NavigationState
from nav_engine.io.recorder import MemorySink
from nav_engine.services.static_backends import (
    FixedSpeedLimit,
    FlatElevation,
    StaticGeocoder,
    StraightLineRouting,
)
from nav_engine.sim.hooks import EventTap
from nav_engine.sim.kernel import Kernel

M_PER_DEG = EARTH_RADIUS_M * math.pi / 180.0
ORIGIN = LatLon(52.52, 13.405)


def north_of(p: LatLon, m: float) -> LatLon:
    return LatLon(p.lat + m / M_PER_DEG, p.lon)


def east_of(p: LatLon, m: float) -> LatLon:
    return LatLon(p.lat, p.lon + m / (M_PER_DEG * math.cos(math.radians(p.lat))))


def line_route(
    origin: LatLon = ORIGIN, marks=(0.0, 500.0, 1000.0), spacing=25.0, profile="driving"
):
    """Straight route due north; one step ending at each mark (meters from origin)."""
    total = marks[-1]
    n = max(1, int(total // spacing))
    geometry = tuple(north_of(origin, total * k / n) for k in range(n + 1))
    steps, prev = [], 0.0
    for i, m in enumerate(marks):
        steps.append(Step(i, north_of(origin, m), f"step {i}", m - prev, (m - prev) / 10.0))
        prev = m
    return Route(geometry, tuple(steps), total, total / 10.0, profile)


@dataclass
class Submitted:
    call: object
    purpose: str
    key: tuple
    token: int


@dataclass
class FakeRequests:
    """RequestSink that just remembers what was asked for."""

    submitted: list[Submitted] = field(default_factory=list)
    released: list[tuple] = field(default_factory=list)

    def submit(self, call, *, purpose, key=(), token=0):
        self.submitted.append(Submitted(call, purpose, tuple(key), token))

    def release(self, key):
        self.released.append(tuple(key))

    def of(self, purpose: str) -> list[Submitted]:
        return [s for s in self.submitted if s.purpose == purpose]

    def last(self, purpose: str) -> Submitted:
        return self.of(purpose)[-1]


@pytest.fixture
def requests_sink():
    return FakeRequests()


@pytest.fixture
def origin():
    return ORIGIN


@pytest.fixture
def north():
    return north_of


@pytest.fixture
def east():
    return east_of


@pytest.fixture
def make_route():
    return line_route


# ---------------- controller harness ----------------


@dataclass
class Harness:
    """Real kernel + wiring; fetches are captured instead of executed."""

    kernel: Kernel
    state: NavigationState
    navigation: NavigationHandler
    advisory: AdvisoryHandler
    search: SearchHandler
    requests: FakeRequests
    sink: MemorySink

    def send(self, ev) -> list:
        seen = len(self.sink.events)
        self.kernel.schedule(ev)
        self.kernel.run()
        return self.sink.events[seen:]

    def complete(self, sub: Submitted, *, t: float, result=None, error=None) -> list:
        return self.send(
            FetchCompleted(
                t=t, purpose=sub.purpose, key=sub.key, token=sub.token, result=result, error=error
            )
        )

    def navigate(self, route: Route, *, t: float = 0.0, stops=None) -> list:
        """Select → route delivered → approve; leaves the harness NAVIGATING."""
        out = self.send(
            SelectDestination(t=t, stops=stops or [route.destination], origin=route.origin)
        )
        out += self.complete(self.requests.last("route"), t=t, result=route)
        out += self.send(ApproveRoute(t=t))
        return out


@pytest.fixture
def harness(requests_sink):
    def make(navigation=None, advisory=None, *, elevation=None, speed_limits=None, geocoder=None):
        nav_cfg = NavigationModel.model_validate(navigation or {})
        adv_cfg = AdvisoryModel.model_validate(advisory or {})
        state = NavigationState()
        sink = MemorySink()
        kernel = Kernel(hooks=EventTap(OUTPUT_EVENTS, sink.write))
        nav = NavigationHandler(
            state, nav_cfg, requests_sink, StraightLineRouting(), cooldowns_from(adv_cfg)
        )
        adv = AdvisoryHandler(
            state,
            adv_cfg,
            requests_sink,
            elevation or FlatElevation(),
            speed_limits or FixedSpeedLimit(50.0),
            window_segments=nav_cfg.sliding_window_segments,
            sanity_bound_m=nav_cfg.geometry_sanity_bound_m,
        )
        search = SearchHandler(requests_sink, geocoder or StaticGeocoder())
        wire(kernel, navigation=nav, advisory=adv, search=search)
        return Harness(kernel, state, nav, adv, search, requests_sink, sink)

    return make
