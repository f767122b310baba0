from dataclasses import dataclass


# Core geographic types used by the geometry kernel
@dataclass(frozen=True)
class LatLon:
    lat: float  # decimal degrees, WGS84
    lon: float

    @classmethod
    def of(cls, p: "LatLon | tuple[float, float]") -> "LatLon":
        return p if isinstance(p, LatLon) else cls(float(p[0]), float(p[1]))


@dataclass(frozen=True)
class SegmentProjection:
    distance: float  # meters from the query point to nearest_point
    nearest_point: LatLon
    fraction: float  # 0 at segment start, 1 at segment end


@dataclass(frozen=True)
class RouteMatch:
    distance: float
    segment_index: int
    nearest_point: LatLon
    fraction: float
    full_search: bool = False  # True when the sliding window was abandoned


@dataclass(frozen=True)
class Candidate:
    label: str
    point: LatLon
