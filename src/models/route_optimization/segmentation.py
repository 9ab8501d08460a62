from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from src.utils.geometry import lnglat_distance_m


@dataclass(frozen=True)
class RouteSegment:
    """Polyline sub-path of (lng, lat) points with its Haversine length."""

    coords: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)
    distance: float = 0.0

    @property
    def start(self) -> Tuple[float, float]:
        """First point as (lat, lng)."""
        lng, lat = self.coords[0]
        return lat, lng

    @property
    def end(self) -> Tuple[float, float]:
        """Last point as (lat, lng)."""
        lng, lat = self.coords[-1]
        return lat, lng


def segment_polyline(points: Sequence[Sequence[float]], target_length_m: float = 5000) -> List[RouteSegment]:
    """
    Split a (lng, lat) polyline into consecutive segments of roughly
    ``target_length_m``. A segment closes on the first point where the
    running distance reaches the target; the next one starts from that
    same point. A trailing remainder is kept only if it has more than one point.
    """
    if target_length_m <= 0:
        raise ValueError(f"target_length_m must be positive, got {target_length_m}")
    if len(points) < 2:
        return []

    segments: List[RouteSegment] = []
    current = [tuple(points[0])]
    running = 0.0

    for i in range(1, len(points)):
        point = tuple(points[i])
        running += lnglat_distance_m(points[i - 1], point)
        current.append(point)

        if running >= target_length_m:
            segments.append(RouteSegment(coords=tuple(current), distance=running))
            current = [point]
            running = 0.0

    if len(current) > 1:
        segments.append(RouteSegment(coords=tuple(current), distance=running))

    return segments
