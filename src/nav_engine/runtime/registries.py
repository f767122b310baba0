# runtime/registries.py
from collections.abc import Callable

from nav_engine.app.protocols import ElevationService, Geocoder, RoutingService, SpeedLimitService
from nav_engine.config.models import (
    ElevationFlatModel,
    ElevationGradeModel,
    ElevationUnion,
    GeocoderStaticModel,
    GeocoderUnion,
    RoutingFileModel,
    RoutingStraightLineModel,
    RoutingUnion,
    SpeedLimitFixedModel,
    SpeedLimitUnion,
)
from nav_engine.services.static_backends import (
    FixedSpeedLimit,
    FlatElevation,
    GradeElevation,
    RecordedRouting,
    StaticGeocoder,
    StraightLineRouting,
)

RoutingFactory = Callable[[RoutingUnion], RoutingService]
ElevationFactory = Callable[[ElevationUnion], ElevationService]
SpeedLimitFactory = Callable[[SpeedLimitUnion], SpeedLimitService]
GeocoderFactory = Callable[[GeocoderUnion], Geocoder]

_routing_registry: dict[str, RoutingFactory] = {}
_elevation_registry: dict[str, ElevationFactory] = {}
_speed_limit_registry: dict[str, SpeedLimitFactory] = {}
_geocoder_registry: dict[str, GeocoderFactory] = {}


def _register(registry: dict, kind: str):
    def deco(fn):
        registry[kind] = fn
        return fn

    return deco


def _make(registry: dict, what: str, cfg):
    try:
        factory = registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown {what} kind {cfg.kind!r}") from None
    return factory(cfg)


# ------------------- Routing ---------------------------


def register_routing(kind: str):
    return _register(_routing_registry, kind)


def make_routing(cfg: RoutingUnion) -> RoutingService:
    return _make(_routing_registry, "routing", cfg)


@register_routing("straight_line")
def _make_straight_line(cfg: RoutingStraightLineModel):
    return StraightLineRouting(speed_mps=cfg.speed_mps, vertex_spacing_m=cfg.vertex_spacing_m)


@register_routing("file")
def _make_recorded(cfg: RoutingFileModel):
    return RecordedRouting(cfg.file)


# ------------------- Elevation ---------------------------


def register_elevation(kind: str):
    return _register(_elevation_registry, kind)


def make_elevation(cfg: ElevationUnion) -> ElevationService:
    return _make(_elevation_registry, "elevation", cfg)


@register_elevation("flat")
def _make_flat(cfg: ElevationFlatModel):
    return FlatElevation(cfg.meters)


@register_elevation("grade")
def _make_grade(cfg: ElevationGradeModel):
    return GradeElevation(base_m=cfg.base_m, grade_pct=cfg.grade_pct)


# ------------------- Speed limits ---------------------------


def register_speed_limit(kind: str):
    return _register(_speed_limit_registry, kind)


def make_speed_limit(cfg: SpeedLimitUnion) -> SpeedLimitService:
    return _make(_speed_limit_registry, "speed_limit", cfg)


@register_speed_limit("fixed")
def _make_fixed_limit(cfg: SpeedLimitFixedModel):
    return FixedSpeedLimit(cfg.kmh)


# ------------------- Geocoding ---------------------------


def register_geocoder(kind: str):
    return _register(_geocoder_registry, kind)


def make_geocoder(cfg: GeocoderUnion) -> Geocoder:
    return _make(_geocoder_registry, "geocoder", cfg)


@register_geocoder("static")
def _make_static_geocoder(cfg: GeocoderStaticModel):
    return StaticGeocoder(cfg.places)
