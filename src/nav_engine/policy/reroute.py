# nav_engine/policy/reroute.py
from nav_engine.sim.clock import elapsed


class ReroutePolicy:
    """Off-route threshold per route class plus the reroute cooldown."""

    def __init__(self, thresholds_m: dict[str, float], cooldown_s: float, default_m: float = 50.0):
        self.thresholds_m = dict(thresholds_m)
        self.cooldown_s = cooldown_s
        self.default_m = default_m

    def threshold_for(self, profile: str) -> float:
        return self.thresholds_m.get(profile, self.default_m)

    def is_off_route(self, distance_m: float, profile: str) -> bool:
        return distance_m > self.threshold_for(profile)

    def may_reroute(self, last_t: float | None, now: float) -> bool:
        return elapsed(last_t, now, self.cooldown_s)
