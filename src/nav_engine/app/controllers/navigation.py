# nav_engine/app/controllers/navigation.py
import logging
from functools import partial

from nav_engine.app.events import (
    ApproveRoute,
    CancelNavigation,
    ChainAdvanced,
    DeviationDetected,
    FetchCompleted,
    HeadingUpdated,
    JourneyCompleted,
    MapInteraction,
    NavigationStarted,
    PositionFix,
    PreviewFailed,
    PreviewReady,
    RerouteCompleted,
    RerouteFailed,
    RerouteStarted,
    SelectDestination,
    StepAdvanced,
    TripCompleted,
)
from nav_engine.app.protocols import RequestSink, RoutingService
from nav_engine.config.models import NavigationModel
from nav_engine.domain.entities.geography import LatLon, RouteMatch
from nav_engine.domain.entities.trip import AdvisoryKind, Trip, TripChain
from nav_engine.domain.errors import GeometryAnomaly, InvalidTransition, StaleResult
from nav_engine.domain.geometry import (
    haversine_distance,
    nearest_route_distance,
    path_bearing,
    remaining_distance,
)
from nav_engine.domain.state import LastFix, NavigationState, NavState
from nav_engine.policy.reroute import ReroutePolicy
from nav_engine.sim.clock import ms

logger = logging.getLogger(__name__)


class NavigationHandler:
    """
    Trip lifecycle state machine.

    Sole writer of the trip chain and navigation mode. Async work (route
    fetches) leaves through `requests` and comes back as FetchCompleted, which
    is reconciled against the journey id and the trip's sequence token
    before anything is applied.
    """

    def __init__(
        self,
        state: NavigationState,
        cfg: NavigationModel,
        requests: RequestSink,
        routing: RoutingService,
        cooldown_s: dict[AdvisoryKind, float],
        reroute: ReroutePolicy | None = None,
    ):
        self.state = state
        self.cfg = cfg
        self.requests = requests
        self.routing = routing
        self.cooldown_s = cooldown_s
        self.reroute = reroute or ReroutePolicy(
            cfg.deviation_threshold_m, ms(cfg.reroute_cooldown_ms)
        )

    # ------------ commands --------------

    def on_select_destination(self, ev: SelectDestination):
        s = self.state
        if s.state not in (NavState.IDLE, NavState.PREVIEW):
            raise InvalidTransition(s.state, "select a destination")
        origin = ev.origin or (s.last_fix.point if s.last_fix else None)
        if origin is None:
            return [PreviewFailed(t=ev.t, reason="no_origin")]

        self._abandon_journey()
        s.chain = TripChain.from_stops(
            origin,
            list(ev.stops),
            self.cooldown_s,
            journey_id=s.new_journey_id(),
            profile=ev.profile,
        )
        s.state = NavState.PREVIEW
        for trip in s.chain.trips:
            self._submit_route(trip, "route", trip.origin)
        logger.info(
            "preview_requested",
            extra={"extra": {"journey": s.chain.journey_id, "legs": len(s.chain.trips)}},
        )
        return []

    def on_approve(self, ev: ApproveRoute):
        s = self.state
        if s.state is not NavState.PREVIEW or not s.chain.all_routed:
            raise InvalidTransition(s.state, "approve a route")
        for trip in s.chain.trips:
            trip.reset_cooldowns()
        trip = s.chain.activate_first()
        s.state = NavState.NAVIGATING
        return [
            NavigationStarted(t=ev.t, trip_index=trip.index, instruction=self._instruction(trip))
        ]

    def on_cancel(self, ev: CancelNavigation):
        s = self.state
        if s.state is NavState.IDLE:
            raise InvalidTransition(s.state, "cancel")
        logger.info("navigation_cancelled", extra={"extra": {"from": s.state.name}})
        self._abandon_journey()
        s.state = NavState.IDLE
        return []

    def on_map_interaction(self, ev: MapInteraction):
        self.state.manual_override_until = ev.t + ms(self.cfg.manual_override_timeout_ms)
        return []

    # ------------ position stream --------------

    def on_position_fix(self, ev: PositionFix):
        s = self.state
        point = ev.point
        s.last_fix = LastFix(ev.t, point, ev.speed_mps)
        if s.state not in (NavState.NAVIGATING, NavState.REROUTING):
            return []

        trip = s.active_trip
        match = self._match(trip, point)
        out: list[object] = []

        # 1) heading
        if s.manual_override_until is None or ev.t >= s.manual_override_until:
            b = path_bearing(
                point, trip.route.geometry, self.cfg.lookahead_distance_m, match=match
            )
            if b is not None:
                out.append(HeadingUpdated(t=ev.t, bearing=b))

        if s.state is NavState.REROUTING:
            return out

        # 2) step arrival, possibly several steps on a fast fix, always in order
        progress = trip.progress
        arrived = False
        while (step := progress.current_step()) is not None:
            if haversine_distance(point, step.end) >= self.cfg.step_arrival_threshold_m:
                break
            if not progress.mark_step_completed(step.index):
                break
            arrived = True
            nxt = progress.current_step()
            out.append(
                StepAdvanced(
                    t=ev.t,
                    step_index=step.index,
                    next_step_index=nxt.index if nxt else None,
                    instruction=nxt.instruction if nxt else None,
                    remaining_m=remaining_distance(trip.route.cum_m, match),
                )
            )
        if progress.finished:
            s.state = NavState.DESTINATION_REACHED
            out.append(TripCompleted(t=ev.t, trip_index=trip.index))
            return out
        if arrived:
            # at a step boundary: not simultaneously off-route
            return out

        # 3) deviation
        trip.deviation_m = match.distance
        trip.off_route = self.reroute.is_off_route(match.distance, trip.route.profile)
        if trip.off_route and self.reroute.may_reroute(trip.last_reroute_t, ev.t):
            out.extend(self._start_reroute(trip, point, ev.t, match.distance))
        return out

    # ------------ async completions --------------

    def on_fetch_completed(self, ev: FetchCompleted):
        if ev.purpose == "route":
            return self._on_preview_route(ev)
        if ev.purpose == "reroute":
            return self._on_reroute_result(ev)
        return []

    def on_trip_completed(self, ev: TripCompleted):
        s = self.state
        if s.state is not NavState.DESTINATION_REACHED:
            raise InvalidTransition(s.state, "complete a trip")
        nxt = s.chain.advance()
        if nxt is not None:
            nxt.reset_cooldowns()
            s.state = NavState.NAVIGATING
            return [
                ChainAdvanced(t=ev.t, next_trip_index=nxt.index),
                NavigationStarted(t=ev.t, trip_index=nxt.index, instruction=self._instruction(nxt)),
            ]
        legs = len(s.chain.trips)
        self._release_journey()
        s.state = NavState.IDLE
        return [JourneyCompleted(t=ev.t, trips=legs)]

    # ------------ helpers --------------

    def _submit_route(self, trip: Trip, purpose: str, origin: LatLon) -> int:
        token = trip.next_token()
        self.requests.submit(
            partial(self.routing.fetch_route, origin, trip.destination, trip.profile),
            purpose=purpose,
            key=(self.state.chain.journey_id, trip.index),
            token=token,
        )
        return token

    def _start_reroute(self, trip: Trip, point: LatLon, now: float, distance: float):
        trip.last_reroute_t = now
        token = self._submit_route(trip, "reroute", point)
        self.state.state = NavState.REROUTING
        logger.info(
            "reroute_started",
            extra={"extra": {"trip": trip.index, "token": token, "distance_m": round(distance, 1)}},
        )
        return [
            DeviationDetected(t=now, distance=distance),
            RerouteStarted(t=now, trip_index=trip.index, token=token),
        ]

    def _reconcile(self, ev: FetchCompleted) -> Trip | None:
        """The single point where async results meet trip state."""
        chain = self.state.chain
        journey, index = ev.key if len(ev.key) == 2 else (None, None)
        trip = None
        if journey == chain.journey_id and index < len(chain.trips):
            trip = chain.trips[index]
        if trip is None or ev.token != trip.token:
            stale = StaleResult(ev.purpose, ev.token, trip.token if trip else -1)
            logger.debug("stale_result", extra={"extra": vars(stale)})
            return None
        return trip

    def _on_preview_route(self, ev: FetchCompleted):
        s = self.state
        trip = self._reconcile(ev)
        if trip is None or s.state is not NavState.PREVIEW:
            return []
        if not ev.ok:
            reason = getattr(ev.error, "reason", "error")
            logger.warning("preview_failed", extra={"extra": {"leg": trip.index, "reason": reason}})
            self._abandon_journey()
            s.state = NavState.IDLE
            return [PreviewFailed(t=ev.t, reason=reason)]
        trip.replace_route(ev.result)
        if not s.chain.all_routed:
            return []
        routes = [t.route for t in s.chain.trips]
        return [
            PreviewReady(
                t=ev.t,
                routes=routes,
                distance_m=sum(r.distance_m for r in routes),
                duration_s=sum(r.duration_s for r in routes),
            )
        ]

    def _on_reroute_result(self, ev: FetchCompleted):
        s = self.state
        trip = self._reconcile(ev)
        if trip is None or s.state is not NavState.REROUTING or trip is not s.active_trip:
            return []
        s.state = NavState.NAVIGATING
        if not ev.ok:
            reason = getattr(ev.error, "reason", "error")
            logger.warning(
                "reroute_failed", extra={"extra": {"trip": trip.index, "reason": reason}}
            )
            return [RerouteFailed(t=ev.t, reason=reason)]
        trip.replace_route(ev.result)
        return [RerouteCompleted(t=ev.t, new_route=trip.route)]

    def _match(self, trip: Trip, point: LatLon) -> RouteMatch:
        progress = trip.progress
        hint = progress.segment_hint
        match = nearest_route_distance(
            point,
            trip.route.geometry,
            hint,
            self.cfg.sliding_window_segments,
            self.cfg.geometry_sanity_bound_m,
        )
        if match.full_search:
            anomaly = GeometryAnomaly(match.distance, hint, match.segment_index)
            logger.info("geometry_anomaly", extra={"extra": vars(anomaly)})
        progress.segment_hint = match.segment_index
        return match

    def _abandon_journey(self) -> None:
        # token bump makes every outstanding fetch for these legs stale
        for trip in self.state.chain.trips:
            trip.next_token()
        self._release_journey()
        self.state.manual_override_until = None

    def _release_journey(self) -> None:
        chain = self.state.chain
        for trip in chain.trips:
            self.requests.release((chain.journey_id, trip.index))
        self.state.chain = TripChain()

    @staticmethod
    def _instruction(trip: Trip) -> str:
        step = trip.progress.current_step()
        return step.instruction if step else ""
