# domain/entities/route.py
from dataclasses import dataclass, field
from typing import Literal

import numpy as np

from nav_engine.domain.entities.geography import LatLon
from nav_engine.domain.errors import StepOrderError
from nav_engine.domain.geometry import cumulative_distances

RouteClass = Literal["driving", "cycling", "walking"]


@dataclass
class Step:
    index: int
    end: LatLon
    instruction: str
    distance_m: float
    duration_s: float
    maneuver: str = "continue"
    completed: bool = False  # only the navigation controller flips this


@dataclass(frozen=True)
class Route:
    """One fetched route. Replaced wholesale on reroute, never edited."""

    geometry: tuple[LatLon, ...]
    steps: tuple[Step, ...]
    distance_m: float
    duration_s: float
    profile: RouteClass = "driving"
    cum_m: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(self.geometry) < 2:
            raise ValueError("route geometry needs at least two points")
        if not self.steps:
            raise ValueError("route needs at least one step")
        for i, s in enumerate(self.steps):
            if s.index != i:
                raise ValueError(f"step {s.index} stored at position {i}")
        object.__setattr__(self, "cum_m", cumulative_distances(self.geometry))

    @property
    def origin(self) -> LatLon:
        return self.geometry[0]

    @property
    def destination(self) -> LatLon:
        return self.geometry[-1]

    def fresh(self) -> "Route":
        """Same route with every step reset to pending."""
        steps = tuple(
            Step(s.index, s.end, s.instruction, s.distance_m, s.duration_s, s.maneuver)
            for s in self.steps
        )
        return Route(self.geometry, steps, self.distance_m, self.duration_s, self.profile)


class RouteProgress:
    """
    Cursor over a Route's steps.

    Steps complete strictly in order. Completed steps stay in the route (for
    remaining-distance maths and history) but drop out of pending_steps().
    """

    def __init__(self, route: Route | None = None):
        self.route: Route | None = None
        self.step_index = 0
        self.segment_hint = 0  # centre of the sliding nearest-segment window
        if route is not None:
            self.set_route(route)

    def set_route(self, route: Route) -> None:
        self.route = route.fresh()
        self.step_index = 0
        self.segment_hint = 0

    @property
    def finished(self) -> bool:
        return self.route is not None and self.step_index >= len(self.route.steps)

    def current_step(self) -> Step | None:
        if self.route is None or self.finished:
            return None
        return self.route.steps[self.step_index]

    def pending_steps(self) -> list[Step]:
        if self.route is None:
            return []
        return [s for s in self.route.steps if not s.completed]

    def completed_steps(self) -> list[Step]:
        if self.route is None:
            return []
        return [s for s in self.route.steps if s.completed]

    def mark_step_completed(self, index: int) -> bool:
        """Complete the current step. Returns False if `index` was already done."""
        if self.route is None:
            raise StepOrderError("no route loaded")
        if not 0 <= index < len(self.route.steps):
            raise StepOrderError(f"step {index} out of range")
        step = self.route.steps[index]
        if step.completed:
            return False
        if index != self.step_index:
            raise StepOrderError(f"step {index} completed while step {self.step_index} is current")
        step.completed = True
        self.step_index = index + 1
        return True

    def advance_to_step(self, index: int) -> list[int]:
        """Complete everything before `index`, in order. Returns newly completed indices."""
        if self.route is None:
            raise StepOrderError("no route loaded")
        if index < self.step_index:
            raise StepOrderError(f"cannot move back from step {self.step_index} to {index}")
        if index > len(self.route.steps):
            raise StepOrderError(f"step {index} out of range")
        done = []
        while self.step_index < index:
            i = self.step_index
            if self.mark_step_completed(i):
                done.append(i)
        return done
