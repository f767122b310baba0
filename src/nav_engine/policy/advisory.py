# nav_engine/policy/advisory.py
# Stateless advisory derivations. Cooldowns and de-duplication live in
# AdvisoryGate; these only answer "does the condition hold, and what to say".
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from nav_engine.domain.entities.route import Step

MPS_TO_KMH = 3.6


@dataclass(frozen=True)
class Advice:
    key: object  # what de-duplication compares
    payload: dict = field(default_factory=dict, compare=False)


def road_type(limit_kmh: float | None) -> str:
    if limit_kmh is None:
        return "unknown"
    if limit_kmh <= 30:
        return "residential"
    if limit_kmh <= 60:
        return "urban"
    if limit_kmh <= 90:
        return "rural"
    return "motorway"


def slope_percent(elevations_m: Sequence[float], distances_m: Sequence[float]) -> float:
    """Least-squares grade (%) of an elevation profile sampled at along-route distances."""
    z = np.asarray(elevations_m, dtype=float)
    d = np.asarray(distances_m, dtype=float)
    if len(z) < 2 or len(z) != len(d) or np.ptp(d) <= 0 or not np.all(np.isfinite(z)):
        return 0.0
    rise_per_m = np.polyfit(d, z, 1)[0]
    return float(rise_per_m * 100.0)


def eco_tip(
    speed_kmh: float | None,
    slope_pct: float | None,
    road: str,
    *,
    steep_pct: float = 4.0,
    cruise_kmh: float = 110.0,
) -> Advice | None:
    """slope_pct=None means no elevation data: slope tips are off."""
    if slope_pct is not None:
        if slope_pct >= steep_pct:
            return Advice(
                "uphill", {"tip": "uphill", "text": "Climb ahead, hold a steady throttle"}
            )
        if slope_pct <= -steep_pct:
            return Advice(
                "downhill", {"tip": "downhill", "text": "Descent ahead, lift off and coast"}
            )
    if road == "motorway" and speed_kmh is not None and speed_kmh > cruise_kmh:
        return Advice(
            "cruise", {"tip": "cruise", "text": f"Cruising at {cruise_kmh:.0f} km/h saves fuel"}
        )
    return None


def speed_warning(
    speed_kmh: float | None, limit_kmh: float | None, tolerance_kmh: float = 5.0
) -> Advice | None:
    if speed_kmh is None or limit_kmh is None:
        return None
    if speed_kmh <= limit_kmh + tolerance_kmh:
        return None
    return Advice(
        limit_kmh,
        {
            "limit_kmh": limit_kmh,
            "speed_kmh": round(speed_kmh),
            "text": f"Speed limit {limit_kmh:.0f}",
        },
    )


def step_reminder(
    step: Step, upcoming: Step | None, distance_m: float, reminder_m: float = 200.0
) -> Advice | None:
    """Heads-up before the end of `step`, announcing what follows it."""
    if distance_m > reminder_m:
        return None
    action = upcoming.instruction if upcoming is not None else step.instruction
    rounded = int(max(10, round(distance_m, -1)))
    return Advice(
        step.index,
        {"step_index": step.index, "distance_m": rounded, "text": f"In {rounded} m, {action}"},
    )
