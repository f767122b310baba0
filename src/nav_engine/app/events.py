# app/events.py
from dataclasses import dataclass, field
from typing import Any, Literal

from nav_engine.domain.entities.geography import Candidate, LatLon
from nav_engine.domain.entities.route import Route
from nav_engine.sim.event import BaseEvent

FetchPurpose = Literal["route", "reroute", "elevation", "speed_limit", "geocode"]


# ---------------- inbound: location source ----------------


@dataclass(order=True)
class PositionFix(BaseEvent):
    lat: float
    lon: float
    speed_mps: float | None = None
    heading_accuracy_deg: float | None = None

    @property
    def point(self) -> LatLon:
        return LatLon(self.lat, self.lon)


# ---------------- inbound: user commands ----------------


@dataclass(order=True)
class SelectDestination(BaseEvent):
    stops: list[LatLon]  # one entry for A→B, more for a multi-stop journey
    origin: LatLon | None = None  # defaults to the last fix
    profile: Literal["driving", "cycling", "walking"] = "driving"


@dataclass(order=True)
class ApproveRoute(BaseEvent):
    pass


@dataclass(order=True)
class CancelNavigation(BaseEvent):
    pass


@dataclass(order=True)
class MapInteraction(BaseEvent):
    """User panned/rotated the map; heading-follow pauses for a while."""


@dataclass(order=True)
class SearchRequested(BaseEvent):
    text: str


# ---------------- inbound: async completions ----------------


@dataclass(order=True)
class FetchCompleted(BaseEvent):
    purpose: FetchPurpose
    key: tuple = ()
    token: int = 0
    result: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------- outbound: consumed by rendering/speech ----------------


@dataclass(order=True)
class PreviewReady(BaseEvent):
    routes: list[Route] = field(default_factory=list)
    distance_m: float = 0.0
    duration_s: float = 0.0


@dataclass(order=True)
class PreviewFailed(BaseEvent):
    reason: str


@dataclass(order=True)
class NavigationStarted(BaseEvent):
    trip_index: int
    instruction: str


@dataclass(order=True)
class HeadingUpdated(BaseEvent):
    bearing: float


@dataclass(order=True)
class StepAdvanced(BaseEvent):
    step_index: int  # the step just completed
    next_step_index: int | None
    instruction: str | None = None  # next instruction, None after the last step
    remaining_m: float | None = None


@dataclass(order=True)
class DeviationDetected(BaseEvent):
    distance: float


@dataclass(order=True)
class RerouteStarted(BaseEvent):
    trip_index: int
    token: int


@dataclass(order=True)
class RerouteCompleted(BaseEvent):
    new_route: Route


@dataclass(order=True)
class RerouteFailed(BaseEvent):
    reason: str  # navigation continues on the previous route


@dataclass(order=True)
class AdvisoryFired(BaseEvent):
    kind: str
    payload: dict = field(default_factory=dict)


@dataclass(order=True)
class SpeedLimitUpdated(BaseEvent):
    limit_kmh: float | None
    stale: bool = False


@dataclass(order=True)
class TripCompleted(BaseEvent):
    trip_index: int


@dataclass(order=True)
class ChainAdvanced(BaseEvent):
    next_trip_index: int


@dataclass(order=True)
class JourneyCompleted(BaseEvent):
    trips: int


@dataclass(order=True)
class SearchResults(BaseEvent):
    text: str
    candidates: list[Candidate] = field(default_factory=list)


@dataclass(order=True)
class SearchFailed(BaseEvent):
    text: str
    reason: str


OUTPUT_EVENTS: tuple[type[BaseEvent], ...] = (
    PreviewReady,
    PreviewFailed,
    NavigationStarted,
    HeadingUpdated,
    StepAdvanced,
    DeviationDetected,
    RerouteStarted,
    RerouteCompleted,
    RerouteFailed,
    AdvisoryFired,
    SpeedLimitUpdated,
    TripCompleted,
    ChainAdvanced,
    JourneyCompleted,
    SearchResults,
    SearchFailed,
)
