"""
Rescue planning for trips that run out of charge.

When the forward pass panics, the rescue planner searches chargers around
the panic point, drops those that duplicate an existing stop or lie beyond
the estimated safe reach, and picks the one that leaves the least distance
to the destination (with a small detour penalty). If nothing is safely
reachable it falls back to the closest charger found.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from config.logging_config import is_detailed_logging_enabled
from src.utils.config_service import PlannerPolicy
from src.utils.geometry import haversine_km, sort_by_distance_from
from src.utils.logger import get_logger, log_detailed

logger = get_logger('rescue_planner')


@dataclass(frozen=True)
class ChargerCandidate:
    """Charger as returned by a lookup provider (read-only)."""

    id: str
    name: str
    latitude: float
    longitude: float
    power_kw: float
    operator: str = "Unknown"
    distance_km: float = 0.0

    @property
    def coords(self) -> Tuple[float, float]:
        return self.latitude, self.longitude

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'power_kw': self.power_kw,
            'operator': self.operator,
            'distance_km': self.distance_km,
        }


@dataclass(frozen=True)
class Waypoint:
    lat: float
    lng: float
    kind: str = "user"                     # "user" or "charger"
    charger: Optional[ChargerCandidate] = field(default=None, compare=False)

    @property
    def coords(self) -> Tuple[float, float]:
        return self.lat, self.lng

    @classmethod
    def from_charger(cls, charger: ChargerCandidate) -> "Waypoint":
        return cls(lat=charger.latitude, lng=charger.longitude, kind="charger", charger=charger)

    def to_dict(self) -> Dict[str, Any]:
        data = {'lat': self.lat, 'lng': self.lng, 'kind': self.kind}
        if self.charger is not None:
            data['charger'] = self.charger.to_dict()
        return data


class ChargerLookup(Protocol):
    def find_chargers_near(self, lat: float, lng: float, radius_km: float,
                           min_power_kw: float, limit: int) -> List[ChargerCandidate]:
        ...


@dataclass
class RescueDecision:
    charger: Optional[ChargerCandidate]
    desperate: bool = False
    candidates_seen: int = 0
    reason: Optional[str] = None


def sort_waypoints(start: Tuple[float, float], waypoints: Sequence[Waypoint]) -> List[Waypoint]:
    """Waypoints ordered by geodesic distance from the trip start."""
    return sort_by_distance_from(start, waypoints, key=lambda wp: wp.coords)


def sort_chargers(start: Tuple[float, float], chargers: Sequence[ChargerCandidate]) -> List[ChargerCandidate]:
    return sort_by_distance_from(start, chargers, key=lambda c: c.coords)


class RescuePlanner:
    def __init__(self, charger_lookup: ChargerLookup, policy: PlannerPolicy):
        self.charger_lookup = charger_lookup
        self.policy = policy
        self.debug_mode = is_detailed_logging_enabled('rescue_planning')

    def _log_detailed(self, message: str):
        if self.debug_mode:
            log_detailed(message, "rescue_planning")

    def can_rescue(self, waypoints: Sequence[Waypoint]) -> bool:
        return len(waypoints) < self.policy.max_waypoints

    def is_duplicate(self, candidate: ChargerCandidate, waypoints: Sequence[Waypoint]) -> bool:
        tol = self.policy.duplicate_tolerance_deg
        return any(
            abs(wp.lat - candidate.latitude) < tol and abs(wp.lng - candidate.longitude) < tol
            for wp in waypoints
        )

    def safe_reach_km(self, battery_kwh: float) -> float:
        return battery_kwh * self.policy.range_estimate_km_per_kwh * self.policy.reach_safety_margin

    def fetch_candidates(self, panic_coords: Tuple[float, float]) -> List[ChargerCandidate]:
        """Charger lookup around the panic point; provider failures count as 'no chargers'."""
        try:
            return list(self.charger_lookup.find_chargers_near(
                panic_coords[0], panic_coords[1],
                self.policy.charger_search_radius_km,
                self.policy.charger_min_power_kw,
                self.policy.charger_search_limit,
            ))
        except Exception as e:
            logger.error(f"Charger lookup failed near {panic_coords}: {e}")
            return []

    def select_charger(self, candidates: Sequence[ChargerCandidate],
                       panic_coords: Tuple[float, float], battery_kwh: float,
                       destination: Tuple[float, float],
                       waypoints: Sequence[Waypoint]) -> RescueDecision:
        """
        Score candidates and pick the rescue stop.

        score = detour_weight * g + h, where g is the distance from the panic
        point and h the remaining distance to the destination. Candidates with
        g beyond the safe reach are skipped; the closest non-duplicate one is
        kept as the desperate fallback.
        """
        if not candidates:
            return RescueDecision(charger=None, reason="No chargers found near the panic point")

        safe_reach = self.safe_reach_km(battery_kwh)
        best: Optional[ChargerCandidate] = None
        best_score = float('inf')
        closest: Optional[ChargerCandidate] = None
        closest_g = float('inf')
        seen = 0

        for candidate in candidates:
            if self.is_duplicate(candidate, waypoints):
                continue
            seen += 1

            g = haversine_km(panic_coords[0], panic_coords[1], candidate.latitude, candidate.longitude)
            if g < closest_g:
                closest_g = g
                closest = candidate

            if g > safe_reach:
                self._log_detailed(f"skip {candidate.id}: g={g:.1f}km > reach={safe_reach:.1f}km")
                continue

            h = haversine_km(candidate.latitude, candidate.longitude, destination[0], destination[1])
            score = self.policy.detour_weight * g + h
            self._log_detailed(f"candidate {candidate.id}: g={g:.1f}km h={h:.1f}km score={score:.2f}")
            if score < best_score:
                best_score = score
                best = candidate

        if best is not None:
            return RescueDecision(charger=best, candidates_seen=seen)

        if closest is not None:
            logger.warning(
                f"Desperate mode: no charger within safe reach {safe_reach:.1f}km, "
                f"falling back to closest '{closest.name}' at {closest_g:.1f}km"
            )
            return RescueDecision(charger=closest, desperate=True, candidates_seen=seen)

        return RescueDecision(charger=None, candidates_seen=seen,
                              reason="Every nearby charger is already a stop on this trip")

    def rescue(self, panic_coords: Tuple[float, float], battery_kwh: float,
               start: Tuple[float, float], destination: Tuple[float, float],
               waypoints: Sequence[Waypoint]) -> Tuple[RescueDecision, List[Waypoint]]:
        """Run one rescue step; returns the decision and the re-sorted waypoint list."""
        candidates = self.fetch_candidates(panic_coords)
        logger.info(f"Rescue at {panic_coords}: {len(candidates)} candidate chargers")

        decision = self.select_charger(candidates, panic_coords, battery_kwh, destination, waypoints)
        if decision.charger is None:
            return decision, list(waypoints)

        updated = sort_waypoints(start, [*waypoints, Waypoint.from_charger(decision.charger)])
        logger.info(f"Injected charger '{decision.charger.name}' ({decision.charger.power_kw:.0f} kW)")
        return decision, updated
