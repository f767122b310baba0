# nav_engine/domain/state.py
from dataclasses import dataclass, field
from enum import Enum, auto

from nav_engine.domain.entities.geography import LatLon
from nav_engine.domain.entities.trip import Trip, TripChain


class NavState(Enum):
    IDLE = auto()
    PREVIEW = auto()
    NAVIGATING = auto()
    REROUTING = auto()
    DESTINATION_REACHED = auto()


@dataclass
class LastFix:
    t: float
    point: LatLon
    speed_mps: float | None = None


@dataclass
class NavigationState:
    """Everything the navigation controller owns. Nothing else writes here."""

    state: NavState = NavState.IDLE
    chain: TripChain = field(default_factory=TripChain)
    last_fix: LastFix | None = None
    manual_override_until: float | None = None
    _journeys: int = 0

    @property
    def active_trip(self) -> Trip | None:
        return self.chain.active

    def new_journey_id(self) -> int:
        self._journeys += 1
        return self._journeys
