# domain/geometry.py
# Pure geographic helpers. No shared state; everything takes and returns values.

import math
from collections.abc import Sequence

import numpy as np

from nav_engine.domain.entities.geography import LatLon, RouteMatch, SegmentProjection

EARTH_RADIUS_M = 6_371_000.0
_DEG = math.pi / 180.0


def haversine_distance(a: LatLon, b: LatLon) -> float:
    """Great-circle distance in meters."""
    d_lat = (b.lat - a.lat) * _DEG
    d_lon = (b.lon - a.lon) * _DEG
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(a.lat * _DEG) * math.cos(b.lat * _DEG) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing(a: LatLon, b: LatLon) -> float:
    """Forward azimuth from a to b in degrees, [0, 360)."""
    lat1, lat2 = a.lat * _DEG, b.lat * _DEG
    d_lon = (b.lon - a.lon) * _DEG
    y = math.sin(d_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def interpolate(a: LatLon, b: LatLon, f: float) -> LatLon:
    if f <= 0.0:
        return a
    if f >= 1.0:
        return b
    return LatLon(a.lat + f * (b.lat - a.lat), a.lon + f * (b.lon - a.lon))


def distance_to_segment(point: LatLon, start: LatLon, end: LatLon) -> SegmentProjection:
    """
    Project `point` onto the segment start→end.

    The projection runs in a local equirectangular frame centred on `start`
    (good to well under a meter for route-sized segments); the returned distance
    is the haversine distance to the clamped nearest point.
    """
    kx = EARTH_RADIUS_M * _DEG * math.cos(start.lat * _DEG)
    ky = EARTH_RADIUS_M * _DEG
    sx, sy = (end.lon - start.lon) * kx, (end.lat - start.lat) * ky
    px, py = (point.lon - start.lon) * kx, (point.lat - start.lat) * ky
    seg2 = sx * sx + sy * sy
    if seg2 == 0.0:
        f = 0.0
    else:
        f = min(1.0, max(0.0, (px * sx + py * sy) / seg2))
    nearest = interpolate(start, end, f)
    return SegmentProjection(
        distance=haversine_distance(point, nearest), nearest_point=nearest, fraction=f
    )


def _best_in(point: LatLon, geometry: Sequence[LatLon], lo: int, hi: int) -> RouteMatch:
    best: RouteMatch | None = None
    for i in range(lo, hi):
        proj = distance_to_segment(point, geometry[i], geometry[i + 1])
        if best is None or proj.distance < best.distance:
            best = RouteMatch(proj.distance, i, proj.nearest_point, proj.fraction)
    return best


def nearest_route_distance(
    point: LatLon,
    geometry: Sequence[LatLon],
    segment_hint: int = 0,
    window: int = 100,
    sanity_bound_m: float = 250.0,
) -> RouteMatch:
    """
    Distance from `point` to the route polyline, searching only the segments
    within ±`window` of `segment_hint`. When the windowed best is farther than
    `sanity_bound_m` (or the hint no longer fits the geometry) the whole route
    is searched instead and the match is flagged with full_search=True.
    """
    if not geometry:
        raise ValueError("empty route geometry")
    if len(geometry) == 1:
        return RouteMatch(haversine_distance(point, geometry[0]), 0, geometry[0], 0.0)

    n_seg = len(geometry) - 1
    if 0 <= segment_hint < n_seg:
        lo = max(0, segment_hint - window)
        hi = min(n_seg, segment_hint + window + 1)
        local = _best_in(point, geometry, lo, hi)
        if local.distance <= sanity_bound_m or (lo == 0 and hi == n_seg):
            return local

    full = _best_in(point, geometry, 0, n_seg)
    return RouteMatch(full.distance, full.segment_index, full.nearest_point, full.fraction, True)


def walk_along(geometry: Sequence[LatLon], match: RouteMatch, distance_m: float) -> LatLon:
    """Point `distance_m` further along the polyline from a match (clamped at the end)."""
    cur = match.nearest_point
    remaining = distance_m
    i = match.segment_index
    while i + 1 < len(geometry):
        nxt = geometry[i + 1]
        d = haversine_distance(cur, nxt)
        if d >= remaining and d > 0.0:
            return interpolate(cur, nxt, remaining / d)
        remaining -= d
        cur = nxt
        i += 1
    return cur


def path_bearing(
    position: LatLon,
    geometry: Sequence[LatLon],
    lookahead_m: float = 25.0,
    *,
    segment_hint: int = 0,
    window: int = 100,
    match: RouteMatch | None = None,
) -> float | None:
    """
    Heading along the route rather than toward the next vertex: snap to the
    polyline, walk `lookahead_m` forward and take the bearing from the snapped
    point to that look-ahead point. None when the route has no extent.
    """
    if len(geometry) < 2:
        return None
    if match is None:
        match = nearest_route_distance(position, geometry, segment_hint, window)
    start = match.nearest_point
    target = walk_along(geometry, match, lookahead_m)

    if haversine_distance(start, target) < 1e-6:
        # sitting on the final vertex: keep the last segment's heading
        return bearing(geometry[-2], geometry[-1])
    return bearing(start, target)


def cumulative_distances(geometry: Sequence[LatLon]) -> np.ndarray:
    """Along-route distance (m) at every vertex; first entry is 0."""
    if not geometry:
        return np.zeros(0)
    lat = np.radians(np.array([p.lat for p in geometry]))
    lon = np.radians(np.array([p.lon for p in geometry]))
    d_lat = np.diff(lat)
    d_lon = np.diff(lon)
    h = np.sin(d_lat / 2) ** 2 + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(d_lon / 2) ** 2
    seg = EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
    return np.concatenate(([0.0], np.cumsum(seg)))


def remaining_distance(cum: np.ndarray, match: RouteMatch) -> float:
    """Distance left along the route from a match to the last vertex."""
    if len(cum) < 2:
        return 0.0
    i = match.segment_index
    along = cum[i] + match.fraction * (cum[i + 1] - cum[i])
    return float(max(0.0, cum[-1] - along))
