from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from nav_engine.domain.entities.geography import Candidate, LatLon
from nav_engine.domain.entities.route import Route, RouteClass


# ------------- Backends --------------------
# Implementations raise TransientBackendError / PermanentBackendError; anything
# else escaping them is treated as a bug.


@runtime_checkable
class RoutingService(Protocol):
    """
    Responsibilities:
      • Compute a route (geometry + ordered steps) between two points.
    The last step must end at the destination.
    """

    def fetch_route(self, origin: LatLon, destination: LatLon, profile: RouteClass) -> Route: ...


@runtime_checkable
class ElevationService(Protocol):
    def fetch_elevation_profile(self, points: Sequence[LatLon]) -> list[float]: ...


@runtime_checkable
class SpeedLimitService(Protocol):
    def fetch_speed_limit(self, point: LatLon) -> float | None:
        """km/h, or None when the road carries no posted limit."""


@runtime_checkable
class Geocoder(Protocol):
    def geocode(self, text: str) -> list[Candidate]: ...


# ------------- Scheduling --------------------

Fetch = Callable[[], Any] | Callable[[], Awaitable[Any]]


@runtime_checkable
class RequestSink(Protocol):
    """What controllers need from the request scheduler."""

    def submit(self, call: Fetch, *, purpose: str, key: tuple = (), token: int = 0): ...

    def release(self, key: tuple) -> None: ...
