import os
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator


class ClockModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    # wall time of kernel t=0; default is the unix epoch so fixes can carry unix seconds
    epoch: tuple[int, int, int, int, int, int] = (1970, 1, 1, 0, 0, 0)


class LogModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False
    sample_every: int = 1


# ----------------- NAVIGATION ---------------------


class NavigationModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    step_arrival_threshold_m: float = 30.0
    deviation_threshold_m: dict[Literal["driving", "cycling", "walking"], float] = Field(
        default_factory=lambda: {"driving": 50.0, "cycling": 35.0, "walking": 25.0}
    )
    reroute_cooldown_ms: float = 6000.0
    lookahead_distance_m: float = Field(default=25.0, ge=20.0, le=30.0)
    sliding_window_segments: int = Field(default=100, ge=1)
    geometry_sanity_bound_m: float = 250.0
    manual_override_timeout_ms: float = 4000.0

    @field_validator(
        "step_arrival_threshold_m",
        "reroute_cooldown_ms",
        "geometry_sanity_bound_m",
        "manual_override_timeout_ms",
    )
    @classmethod
    def _nonneg(cls, v: float, info: ValidationInfo) -> float:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @model_validator(mode="after")
    def _check_thresholds(self):
        for profile, v in self.deviation_threshold_m.items():
            if v <= self.step_arrival_threshold_m / 2:
                # a vehicle sitting on a step boundary would look off-route
                raise ValueError(
                    f"deviation threshold for {profile} ({v} m) must exceed half the "
                    f"arrival threshold ({self.step_arrival_threshold_m} m)"
                )
        return self


class SchedulerModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    max_requests: int = Field(default=6, ge=1)
    request_delay_ms: float = Field(default=120.0, ge=0.0)
    max_attempts: int = Field(default=3, ge=1)


class AdvisoryModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    eco_cooldown_s: float = 20.0
    step_reminder_cooldown_s: float = 20.0
    speed_warning_hold_s: float = 10.0
    step_reminder_distance_m: float = 200.0
    speed_tolerance_kmh: float = 5.0
    speed_limit_refresh_s: float = 10.0
    elevation_refresh_s: float = 30.0
    elevation_lookahead_m: float = 150.0
    steep_grade_pct: float = 4.0

    @field_validator(
        "eco_cooldown_s",
        "step_reminder_cooldown_s",
        "speed_warning_hold_s",
        "speed_limit_refresh_s",
        "elevation_refresh_s",
    )
    @classmethod
    def _nonneg(cls, v: float, info: ValidationInfo) -> float:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v


# ----------------- BACKENDS ---------------------


class RoutingStraightLineModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["straight_line"] = "straight_line"
    speed_mps: float = 13.9
    vertex_spacing_m: float = 50.0


class RoutingFileModel(BaseModel):
    """Replay a recorded route (JSON) regardless of origin/destination."""

    model_config = ConfigDict(extra="forbid")
    kind: Literal["file"] = "file"
    file: str

    @field_validator("file")
    @classmethod
    def _expand(cls, v: str) -> str:
        return os.path.expandvars(os.path.expanduser(v))


RoutingUnion = Annotated[
    RoutingStraightLineModel | RoutingFileModel, Field(discriminator="kind")
]


class ElevationFlatModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["flat"] = "flat"
    meters: float = 0.0


class ElevationGradeModel(BaseModel):
    """Synthetic terrain: constant grade along latitude (north is uphill)."""

    model_config = ConfigDict(extra="forbid")
    kind: Literal["grade"] = "grade"
    base_m: float = 0.0
    grade_pct: float = 5.0


ElevationUnion = Annotated[ElevationFlatModel | ElevationGradeModel, Field(discriminator="kind")]


class SpeedLimitFixedModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["fixed"] = "fixed"
    kmh: float | None = 50.0


SpeedLimitUnion = Annotated[SpeedLimitFixedModel, Field(discriminator="kind")]


class GeocoderStaticModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["static"] = "static"
    places: dict[str, tuple[float, float]] = Field(default_factory=dict)


GeocoderUnion = Annotated[GeocoderStaticModel, Field(discriminator="kind")]


# ------------------------------------------------------------------


class EngineModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "nav"
    run_id: str = "local"
    clock: ClockModel = ClockModel()
    log: LogModel = LogModel()
    navigation: NavigationModel = NavigationModel()
    scheduler: SchedulerModel = SchedulerModel()
    advisory: AdvisoryModel = AdvisoryModel()
    routing: RoutingUnion = Field(default_factory=RoutingStraightLineModel)
    elevation: ElevationUnion = Field(default_factory=ElevationFlatModel)
    speed_limit: SpeedLimitUnion = Field(default_factory=SpeedLimitFixedModel)
    geocoder: GeocoderUnion = Field(default_factory=GeocoderStaticModel)
