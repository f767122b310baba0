# nav_engine/services/static_backends.py
# Deterministic in-memory backends. Used for demos, replays and tests; real
# network adapters implement the same protocols.
import json
import math
from collections.abc import Sequence
from pathlib import Path

from nav_engine.app.protocols import ElevationService, Geocoder, RoutingService, SpeedLimitService
from nav_engine.domain.entities.geography import Candidate, LatLon
from nav_engine.domain.entities.route import Route, RouteClass, Step
from nav_engine.domain.errors import PermanentBackendError
from nav_engine.domain.geometry import EARTH_RADIUS_M, bearing, haversine_distance, interpolate

_CARDINALS = ("north", "northeast", "east", "southeast", "south", "southwest", "west", "northwest")


def cardinal(deg: float) -> str:
    return _CARDINALS[int(((deg % 360) + 22.5) // 45) % 8]


class StraightLineRouting(RoutingService):
    """Great-circle-ish straight route, one step per `step_m` plus an arrival step."""

    def __init__(self, speed_mps: float = 13.9, vertex_spacing_m: float = 50.0, step_m=500.0):
        self.speed_mps = max(0.1, speed_mps)
        self.vertex_spacing_m = max(1.0, vertex_spacing_m)
        self.step_m = step_m

    def fetch_route(self, origin: LatLon, destination: LatLon, profile: RouteClass) -> Route:
        total = haversine_distance(origin, destination)
        if total < 1.0:
            raise PermanentBackendError("origin and destination coincide", reason="malformed")
        n = max(1, math.ceil(total / self.vertex_spacing_m))
        geometry = tuple(interpolate(origin, destination, k / n) for k in range(n + 1))

        heading = cardinal(bearing(origin, destination))
        marks = [min(total, self.step_m * (k + 1)) for k in range(math.ceil(total / self.step_m))]
        steps, prev = [], 0.0
        for i, m in enumerate(marks):
            last = i == len(marks) - 1
            if i == 0:
                text = f"Head {heading} for {round(m - prev)} m"
            elif last:
                text = "Arrive at your destination"
            else:
                text = f"Continue {heading} for {round(m - prev)} m"
            steps.append(
                Step(
                    index=i,
                    end=interpolate(origin, destination, m / total),
                    instruction=text,
                    distance_m=m - prev,
                    duration_s=(m - prev) / self.speed_mps,
                    maneuver="arrive" if last else ("depart" if i == 0 else "continue"),
                )
            )
            prev = m
        return Route(geometry, tuple(steps), total, total / self.speed_mps, profile)


def route_from_dict(data: dict) -> Route:
    steps = tuple(
        Step(
            index=i,
            end=LatLon.of(s["end"]),
            instruction=s.get("instruction", ""),
            distance_m=float(s.get("distance_m", 0.0)),
            duration_s=float(s.get("duration_s", 0.0)),
            maneuver=s.get("maneuver", "continue"),
        )
        for i, s in enumerate(data["steps"])
    )
    geometry = tuple(LatLon.of(p) for p in data["geometry"])
    return Route(
        geometry,
        steps,
        float(data.get("distance_m", sum(s.distance_m for s in steps))),
        float(data.get("duration_s", sum(s.duration_s for s in steps))),
        data.get("profile", "driving"),
    )


class RecordedRouting(RoutingService):
    """Always answers with the same recorded route (JSON file)."""

    def __init__(self, file: str):
        self.file = file
        self._route: Route | None = None

    def fetch_route(self, origin: LatLon, destination: LatLon, profile: RouteClass) -> Route:
        if self._route is None:
            try:
                self._route = route_from_dict(json.loads(Path(self.file).read_text()))
            except (OSError, KeyError, ValueError) as exc:
                raise PermanentBackendError(str(exc), reason="malformed") from exc
        return self._route


class FlatElevation(ElevationService):
    def __init__(self, meters: float = 0.0):
        self.meters = meters

    def fetch_elevation_profile(self, points: Sequence[LatLon]) -> list[float]:
        return [self.meters for _ in points]


class GradeElevation(ElevationService):
    """Terrain rising `grade_pct` toward the north."""

    def __init__(self, base_m: float = 0.0, grade_pct: float = 5.0):
        self.base_m, self.grade = base_m, grade_pct / 100.0

    def fetch_elevation_profile(self, points: Sequence[LatLon]) -> list[float]:
        return [self.base_m + self.grade * math.radians(p.lat) * EARTH_RADIUS_M for p in points]


class FixedSpeedLimit(SpeedLimitService):
    def __init__(self, kmh: float | None = 50.0):
        self.kmh = kmh

    def fetch_speed_limit(self, point: LatLon) -> float | None:
        return self.kmh


class StaticGeocoder(Geocoder):
    def __init__(self, places: dict[str, tuple[float, float]] | None = None):
        self.places = {k: LatLon.of(v) for k, v in (places or {}).items()}

    def geocode(self, text: str) -> list[Candidate]:
        q = text.strip().lower()
        if not q:
            raise PermanentBackendError("empty query", reason="malformed")
        return [Candidate(label, p) for label, p in self.places.items() if q in label.lower()]
