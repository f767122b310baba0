# domain/entities/trip.py
from dataclasses import dataclass, field
from enum import Enum

from nav_engine.domain.entities.geography import LatLon
from nav_engine.domain.entities.route import Route, RouteClass, RouteProgress
from nav_engine.sim.clock import elapsed


class AdvisoryKind(Enum):
    ECO = "eco"
    STEP_REMINDER = "step_reminder"
    SPEED_WARNING = "speed_warning"


@dataclass
class AdvisoryGate:
    """
    Per-kind cooldown + de-duplication. An advisory passes when its cooldown has
    elapsed and its payload differs from the last one fired for the same kind.
    """

    cooldown_s: dict[AdvisoryKind, float]
    last_fired_t: dict[AdvisoryKind, float | None] = field(default_factory=dict)
    last_key: dict[AdvisoryKind, object] = field(default_factory=dict)

    def __post_init__(self):
        missing = set(AdvisoryKind) - set(self.cooldown_s)
        if missing:
            raise ValueError(f"no cooldown for {sorted(k.value for k in missing)}")
        for kind in AdvisoryKind:
            self.last_fired_t.setdefault(kind, None)
            self.last_key.setdefault(kind, None)

    def allows(self, kind: AdvisoryKind, key: object, now: float) -> bool:
        if key == self.last_key[kind]:
            return False
        return elapsed(self.last_fired_t[kind], now, self.cooldown_s[kind])

    def record(self, kind: AdvisoryKind, key: object, now: float) -> None:
        self.last_fired_t[kind] = now
        self.last_key[kind] = key

    def clear(self, kind: AdvisoryKind) -> None:
        """Forget the last payload so the same condition may fire again later."""
        self.last_key[kind] = None

    def reset(self) -> None:
        for kind in AdvisoryKind:
            self.last_fired_t[kind] = None
            self.last_key[kind] = None


@dataclass
class Trip:
    index: int  # position in the chain
    origin: LatLon
    destination: LatLon
    advisories: AdvisoryGate
    profile: RouteClass = "driving"
    progress: RouteProgress = field(default_factory=RouteProgress)
    token: int = 0  # bumped whenever older async results must stop counting
    last_reroute_t: float | None = None
    deviation_m: float = 0.0
    off_route: bool = False
    completed: bool = False

    @property
    def route(self) -> Route | None:
        return self.progress.route

    @property
    def routed(self) -> bool:
        return self.progress.route is not None

    def next_token(self) -> int:
        self.token += 1
        return self.token

    def replace_route(self, route: Route) -> None:
        self.progress.set_route(route)
        self.off_route = False
        self.deviation_m = 0.0

    def reset_cooldowns(self) -> None:
        self.last_reroute_t = None
        self.advisories.reset()


@dataclass
class TripChain:
    """Ordered legs of one journey. At most one leg is active."""

    trips: list[Trip] = field(default_factory=list)
    active_index: int | None = None
    journey_id: int = 0  # distinguishes fetches issued for an earlier journey

    @classmethod
    def from_stops(
        cls,
        origin: LatLon,
        stops: list[LatLon],
        cooldown_s: dict[AdvisoryKind, float],
        *,
        journey_id: int = 0,
        profile: RouteClass = "driving",
    ) -> "TripChain":
        if not stops:
            raise ValueError("a journey needs at least one stop")
        points = [origin, *stops]
        trips = [
            Trip(i, a, b, AdvisoryGate(dict(cooldown_s)), profile)
            for i, (a, b) in enumerate(zip(points, points[1:]))
        ]
        return cls(trips=trips, journey_id=journey_id)

    @property
    def active(self) -> Trip | None:
        if self.active_index is None:
            return None
        return self.trips[self.active_index]

    @property
    def all_routed(self) -> bool:
        return bool(self.trips) and all(t.routed for t in self.trips)

    def activate_first(self) -> Trip:
        self.active_index = 0
        return self.trips[0]

    def has_next(self) -> bool:
        return self.active_index is not None and self.active_index + 1 < len(self.trips)

    def advance(self) -> Trip | None:
        """Close the active leg and activate the next one, or None if exhausted."""
        cur = self.active
        if cur is not None:
            cur.completed = True
        if not self.has_next():
            self.active_index = None
            return None
        self.active_index += 1
        return self.trips[self.active_index]
