# nav_engine/app/controllers/advisory.py
import logging
from functools import partial

from nav_engine.app.events import AdvisoryFired, FetchCompleted, PositionFix, SpeedLimitUpdated
from nav_engine.app.protocols import ElevationService, RequestSink, SpeedLimitService
from nav_engine.config.models import AdvisoryModel
from nav_engine.domain.entities.trip import AdvisoryKind, Trip
from nav_engine.domain.errors import DegradedData, StaleResult
from nav_engine.domain.geometry import haversine_distance, nearest_route_distance, walk_along
from nav_engine.domain.state import NavigationState, NavState
from nav_engine.policy.advisory import (
    MPS_TO_KMH,
    Advice,
    eco_tip,
    road_type,
    slope_percent,
    speed_warning,
    step_reminder,
)
from nav_engine.sim.clock import elapsed

logger = logging.getLogger(__name__)

ELEVATION_SAMPLES = 4


def cooldowns_from(cfg: AdvisoryModel) -> dict[AdvisoryKind, float]:
    return {
        AdvisoryKind.ECO: cfg.eco_cooldown_s,
        AdvisoryKind.STEP_REMINDER: cfg.step_reminder_cooldown_s,
        AdvisoryKind.SPEED_WARNING: cfg.speed_warning_hold_s,
    }


class AdvisoryHandler:
    """
    Derives eco / speed / step-reminder cues after the navigation controller
    has processed a fix, and keeps the slope and speed-limit inputs fresh.

    Upstream data is position-keyed: route changes never cancel these fetches.
    When it is missing the pipeline keeps going on fallbacks (slope 0 with
    slope tips off, last known speed limit flagged stale).
    """

    def __init__(
        self,
        state: NavigationState,
        cfg: AdvisoryModel,
        requests: RequestSink,
        elevation: ElevationService,
        speed_limits: SpeedLimitService,
        *,
        window_segments: int = 100,
        sanity_bound_m: float = 250.0,
    ):
        self.state = state
        self.cfg = cfg
        self.requests = requests
        self.elevation = elevation
        self.speed_limits = speed_limits
        self.window_segments = window_segments
        self.sanity_bound_m = sanity_bound_m

        self.speed_limit_kmh: float | None = None
        self.speed_limit_stale = False
        self.slope_pct = 0.0
        self.slope_available = False
        self._speed_fetch_t: float | None = None
        self._elevation_fetch_t: float | None = None
        self._tokens = {"speed_limit": 0, "elevation": 0}
        self._sample_offsets: dict[int, list[float]] = {}

    def on_position_fix(self, ev: PositionFix):
        s = self.state
        if s.state not in (NavState.NAVIGATING, NavState.REROUTING):
            return []
        trip = s.active_trip
        self._refresh(ev, trip)

        speed_kmh = ev.speed_mps * MPS_TO_KMH if ev.speed_mps is not None else None
        out: list[object] = []
        self._gate(
            trip,
            AdvisoryKind.SPEED_WARNING,
            speed_warning(speed_kmh, self.speed_limit_kmh, self.cfg.speed_tolerance_kmh),
            ev.t,
            out,
        )
        self._gate(
            trip,
            AdvisoryKind.ECO,
            eco_tip(
                speed_kmh,
                self.slope_pct if self.slope_available else None,
                road_type(self.speed_limit_kmh),
                steep_pct=self.cfg.steep_grade_pct,
            ),
            ev.t,
            out,
        )
        if s.state is NavState.NAVIGATING:
            step = trip.progress.current_step()
            if step is not None:
                steps = trip.route.steps
                upcoming = steps[step.index + 1] if step.index + 1 < len(steps) else None
                self._gate(
                    trip,
                    AdvisoryKind.STEP_REMINDER,
                    step_reminder(
                        step,
                        upcoming,
                        haversine_distance(ev.point, step.end),
                        self.cfg.step_reminder_distance_m,
                    ),
                    ev.t,
                    out,
                )
        return out

    def on_fetch_completed(self, ev: FetchCompleted):
        if ev.purpose == "speed_limit":
            return self._on_speed_limit(ev)
        if ev.purpose == "elevation":
            self._on_elevation(ev)
        return []

    # ---------------------------------------------------------

    def _gate(self, trip: Trip, kind: AdvisoryKind, advice: Advice | None, now: float, out):
        gate = trip.advisories
        if advice is None:
            gate.clear(kind)
            return
        if gate.allows(kind, advice.key, now):
            gate.record(kind, advice.key, now)
            out.append(AdvisoryFired(t=now, kind=kind.value, payload=dict(advice.payload)))

    def _refresh(self, ev: PositionFix, trip: Trip) -> None:
        point = ev.point
        if elapsed(self._speed_fetch_t, ev.t, self.cfg.speed_limit_refresh_s):
            self._speed_fetch_t = ev.t
            self.requests.submit(
                partial(self.speed_limits.fetch_speed_limit, point),
                purpose="speed_limit",
                token=self._next_token("speed_limit"),
            )
        if elapsed(self._elevation_fetch_t, ev.t, self.cfg.elevation_refresh_s):
            self._elevation_fetch_t = ev.t
            offsets = [
                self.cfg.elevation_lookahead_m * k / (ELEVATION_SAMPLES - 1)
                for k in range(ELEVATION_SAMPLES)
            ]
            anchor = nearest_route_distance(
                point,
                trip.route.geometry,
                trip.progress.segment_hint,
                self.window_segments,
                self.sanity_bound_m,
            )
            points = [walk_along(trip.route.geometry, anchor, d) for d in offsets]
            token = self._next_token("elevation")
            self._sample_offsets = {token: offsets}
            self.requests.submit(
                partial(self.elevation.fetch_elevation_profile, points),
                purpose="elevation",
                token=token,
            )

    def _next_token(self, purpose: str) -> int:
        self._tokens[purpose] += 1
        return self._tokens[purpose]

    def _on_speed_limit(self, ev: FetchCompleted):
        before = (self.speed_limit_kmh, self.speed_limit_stale)
        if ev.ok:
            self.speed_limit_kmh = ev.result
            self.speed_limit_stale = False
        else:
            degraded = DegradedData("speed_limit", getattr(ev.error, "reason", "error"))
            logger.warning("degraded_data", extra={"extra": vars(degraded)})
            self.speed_limit_stale = True
        if (self.speed_limit_kmh, self.speed_limit_stale) == before:
            return []
        return [
            SpeedLimitUpdated(t=ev.t, limit_kmh=self.speed_limit_kmh, stale=self.speed_limit_stale)
        ]

    def _on_elevation(self, ev: FetchCompleted) -> None:
        offsets = self._sample_offsets.pop(ev.token, None)
        if offsets is None:
            stale = StaleResult(ev.purpose, ev.token, self._tokens["elevation"])
            logger.debug("stale_result", extra={"extra": vars(stale)})
            return
        if ev.ok and len(ev.result) == len(offsets):
            self.slope_pct = slope_percent(ev.result, offsets)
            self.slope_available = True
            return
        reason = getattr(ev.error, "reason", "malformed") if not ev.ok else "malformed"
        degraded = DegradedData("elevation", reason)
        logger.warning("degraded_data", extra={"extra": vars(degraded)})
        self.slope_pct = 0.0
        self.slope_available = False
