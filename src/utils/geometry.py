"""
Geodesic helpers shared by the planner and the provider clients.

Coordinates passed as ``(lat, lng)`` tuples unless noted otherwise; route
polylines follow the GeoJSON convention of ``(lng, lat)`` pairs.
"""

import math
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from config.physics_constants import PHYSICS_CONSTANTS

EARTH_RADIUS_M = PHYSICS_CONSTANTS['earth_radius_m']

T = TypeVar('T')


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return haversine_m(lat1, lng1, lat2, lng2) / 1000.0


def point_distance_m(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Distance between two (lat, lng) tuples in meters."""
    return haversine_m(a[0], a[1], b[0], b[1])


def lnglat_distance_m(a: Sequence[float], b: Sequence[float]) -> float:
    """Distance between two (lng, lat) polyline points in meters."""
    return haversine_m(a[1], a[0], b[1], b[0])


def polyline_length_m(points: Sequence[Sequence[float]]) -> float:
    total = 0.0
    for i in range(1, len(points)):
        total += lnglat_distance_m(points[i - 1], points[i])
    return total


def sort_by_distance_from(origin: Tuple[float, float], items: Iterable[T],
                          key: Callable[[T], Tuple[float, float]]) -> List[T]:
    """Stable sort of ``items`` by geodesic distance of ``key(item)`` from ``origin``."""
    return sorted(items, key=lambda item: point_distance_m(origin, key(item)))


def route_complexity(points: Sequence[Sequence[float]]) -> float:
    """
    Sinuosity of a (lng, lat) polyline mapped onto [0, 1].

    A straight road scores 0; the score saturates at 1 once the route is
    1.5x the straight-line distance between its ends.
    """
    if len(points) < 2:
        return 0.0
    straight = lnglat_distance_m(points[0], points[-1])
    if straight <= 0:
        return 0.0
    sinuosity = polyline_length_m(points) / straight
    return min(1.0, max(0.0, (sinuosity - 1.0) * 2.0))


def elevation_gain_loss(elevations: Sequence[Optional[float]]) -> Tuple[float, float]:
    """Total climb and total descent (both positive meters); steps touching an unknown sample are skipped."""
    gain = 0.0
    loss = 0.0
    for i in range(1, len(elevations)):
        if elevations[i] is None or elevations[i - 1] is None:
            continue
        delta = elevations[i] - elevations[i - 1]
        if delta > 0:
            gain += delta
        else:
            loss -= delta
    return gain, loss
