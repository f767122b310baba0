# nav_engine/app/build.py
from collections.abc import Mapping
from dataclasses import dataclass

from nav_engine.app.controllers.advisory import AdvisoryHandler, cooldowns_from
from nav_engine.app.controllers.navigation import NavigationHandler
from nav_engine.app.controllers.search import SearchHandler
from nav_engine.app.events import OUTPUT_EVENTS
from nav_engine.app.protocols import ElevationService, Geocoder, RoutingService, SpeedLimitService
from nav_engine.app.runtime import NavigationRuntime
from nav_engine.app.wiring import wire
from nav_engine.config.models import EngineModel
from nav_engine.domain.state import NavigationState
from nav_engine.io.kernel_logging import KernelLogging  # JSON logs
from nav_engine.io.recorder import JsonlSink, Recorder
from nav_engine.policy.reroute import ReroutePolicy
from nav_engine.runtime.registries import (
    make_elevation,
    make_geocoder,
    make_routing,
    make_speed_limit,
)
from nav_engine.services.scheduler import RequestScheduler
from nav_engine.sim.clock import NavClock, ms
from nav_engine.sim.hooks import EventTap
from nav_engine.sim.kernel import Kernel


@dataclass
class App:
    kernel: Kernel
    clock: NavClock
    state: NavigationState
    scheduler: RequestScheduler
    runtime: NavigationRuntime
    navigation: NavigationHandler
    advisory: AdvisoryHandler
    search: SearchHandler
    recorder: Recorder


def build(
    cfg: EngineModel | Mapping,
    *,
    use_logging: bool = True,
    recorder: Recorder | None = None,
    routing: RoutingService | None = None,
    elevation: ElevationService | None = None,
    speed_limit: SpeedLimitService | None = None,
    geocoder: Geocoder | None = None,
) -> App:
    """Backends passed explicitly win over the ones named in the config."""
    # 0) Validate config
    model = cfg if isinstance(cfg, EngineModel) else EngineModel.model_validate(cfg)

    # 1) Clock
    clock = NavClock.utc_epoch(*model.clock.epoch)

    # 2) Kernel (with hooks); the recorder sees every output event
    recorder = recorder or Recorder(JsonlSink())
    hooks = (
        KernelLogging(
            run_id=model.run_id,
            recorder=recorder,
            clock=clock,
            level=model.log.level,
            debug=model.log.debug,
            sample_every=model.log.sample_every,
        )
        if use_logging
        else EventTap(OUTPUT_EVENTS, recorder.emit)
    )
    kernel = Kernel(hooks=hooks)

    # 3) Runtime + request scheduler (completions re-enter through the inbox)
    runtime = NavigationRuntime(kernel)
    scheduler = RequestScheduler(
        runtime.post,
        now=lambda: kernel.now,
        max_requests=model.scheduler.max_requests,
        request_delay_s=ms(model.scheduler.request_delay_ms),
        max_attempts=model.scheduler.max_attempts,
    )
    runtime.scheduler = scheduler

    # 4) Backends
    routing = routing or make_routing(model.routing)
    elevation = elevation or make_elevation(model.elevation)
    speed_limit = speed_limit or make_speed_limit(model.speed_limit)
    geocoder = geocoder or make_geocoder(model.geocoder)

    # 5) Handlers (inject deps explicitly)
    state = NavigationState()
    nav_cfg = model.navigation
    navigation = NavigationHandler(
        state=state,
        cfg=nav_cfg,
        requests=scheduler,
        routing=routing,
        cooldown_s=cooldowns_from(model.advisory),
        reroute=ReroutePolicy(nav_cfg.deviation_threshold_m, ms(nav_cfg.reroute_cooldown_ms)),
    )
    advisory = AdvisoryHandler(
        state=state,
        cfg=model.advisory,
        requests=scheduler,
        elevation=elevation,
        speed_limits=speed_limit,
        window_segments=nav_cfg.sliding_window_segments,
        sanity_bound_m=nav_cfg.geometry_sanity_bound_m,
    )
    search = SearchHandler(requests=scheduler, geocoder=geocoder)

    # 6) Wiring
    wire(kernel, navigation=navigation, advisory=advisory, search=search)

    return App(
        kernel, clock, state, scheduler, runtime, navigation, advisory, search, recorder
    )
