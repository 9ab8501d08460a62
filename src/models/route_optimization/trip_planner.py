"""
Trip planning pipeline.

route -> segments -> elevations/weather -> forward pass -> (panic -> rescue ->
re-plan)* -> confirmation pass. Re-planning is a bounded loop: each rescue
adds one charger stop and the loop stops once the waypoint cap is reached.
"""
from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, confloat, field_validator

from src.models.energy.physics_engine import PhysicsEngine
from src.models.energy.vehicle_profile import VehicleProfile
from src.models.route_optimization.rescue_planner import (
    ChargerCandidate, ChargerLookup, RescuePlanner, Waypoint, sort_chargers, sort_waypoints,
)
from src.models.route_optimization.segmentation import RouteSegment, segment_polyline
from src.models.route_optimization.simulation import FinalSimulator, ForwardResult, ForwardSimulator
from src.utils.config_service import PlannerPolicy, load_planner_policy
from src.utils.exceptions import InvalidTripRequestError, RouteNotFoundError
from src.utils.geometry import elevation_gain_loss, route_complexity
from src.utils.logger import info, warning, log_route_failure

Latitude = confloat(ge=-90, le=90, allow_inf_nan=False)
Longitude = confloat(ge=-180, le=180, allow_inf_nan=False)
Coordinate = Tuple[Latitude, Longitude]


class RouteProvider(Protocol):
    def get_directions(self, coordinates: Sequence[Tuple[float, float]]) -> Dict[str, Any]:
        ...


class ElevationProvider(Protocol):
    def get_elevations(self, locations: Sequence[Tuple[float, float]]) -> List[Optional[float]]:
        ...


class WeatherProvider(Protocol):
    def get_temperature(self, lat: float, lng: float) -> float:
        ...


class TripRequest(BaseModel):
    """Validated planner input; coordinates are (lat, lng)."""

    model_config = ConfigDict(frozen=True)

    start: Coordinate
    end: Coordinate
    waypoints: List[Coordinate] = Field(default_factory=list)
    start_soc: confloat(ge=0, le=100, allow_inf_nan=False) = 100.0

    @field_validator("waypoints", mode="before")
    @classmethod
    def _coerce_waypoints(cls, value):
        if value is None:
            return []
        coerced = []
        for wp in value:
            if isinstance(wp, Waypoint):
                coerced.append(wp.coords)
            elif isinstance(wp, dict):
                coerced.append((wp.get("lat"), wp.get("lng")))
            else:
                coerced.append(wp)
        return coerced


@dataclass
class RouteContext:
    """Everything one pipeline iteration needs for a fixed waypoint list."""

    route: Dict[str, Any]
    segments: List[RouteSegment]
    elevations: List[Optional[float]]
    temperature_c: float


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "Invalid trip request: " + "; ".join(parts)


class TripPlanner:
    def __init__(self, route_provider: RouteProvider, elevation_provider: ElevationProvider,
                 weather_provider: WeatherProvider, charger_lookup: ChargerLookup,
                 policy: Optional[PlannerPolicy] = None):
        self.route_provider = route_provider
        self.elevation_provider = elevation_provider
        self.weather_provider = weather_provider
        self.charger_lookup = charger_lookup
        self.policy = policy or load_planner_policy()

    # ------------------------------------------------------------------
    # Provider access with documented fallbacks
    # ------------------------------------------------------------------

    def _fetch_elevations(self, segments: Sequence[RouteSegment]) -> List[Optional[float]]:
        locations = [segment.start for segment in segments]
        try:
            elevations = list(self.elevation_provider.get_elevations(locations))
        except Exception as e:
            warning(f"Elevation lookup failed, assuming flat terrain: {e}", 'trip_planner')
            return [0.0] * len(segments)
        if len(elevations) != len(segments):
            warning(f"Elevation provider returned {len(elevations)} values for {len(segments)} points, "
                    f"assuming flat terrain", 'trip_planner')
            return [0.0] * len(segments)
        return elevations

    def _fetch_temperature(self, segments: Sequence[RouteSegment]) -> float:
        lat, lng = segments[len(segments) // 2].start
        try:
            temperature = float(self.weather_provider.get_temperature(lat, lng))
        except Exception as e:
            warning(f"Weather lookup failed, using {self.policy.default_temperature_c}°C: {e}", 'trip_planner')
            return self.policy.default_temperature_c
        if math.isnan(temperature):
            warning(f"Weather provider returned NaN, using {self.policy.default_temperature_c}°C", 'trip_planner')
            return self.policy.default_temperature_c
        return temperature

    def build_context(self, start: Tuple[float, float], end: Tuple[float, float],
                      waypoints: Sequence[Waypoint]) -> RouteContext:
        """Route, segments, elevations and temperature for one waypoint list."""
        coordinates = [(start[1], start[0])] + [(wp.lng, wp.lat) for wp in waypoints] + [(end[1], end[0])]
        route = self.route_provider.get_directions(coordinates)

        segments = segment_polyline(route.get('geometry') or [], self.policy.segment_length_m)
        if not segments:
            raise RouteNotFoundError("Route geometry has fewer than two points")

        return RouteContext(
            route=route,
            segments=segments,
            elevations=self._fetch_elevations(segments),
            temperature_c=self._fetch_temperature(segments),
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_trip(self, start, end, waypoints=None,
                  vehicle: Union[VehicleProfile, str, None] = None,
                  start_soc: float = 100.0) -> Dict[str, Any]:
        """
        Plan a trip, inserting charging stops where the battery would run out.

        Args:
            start: (lat, lng) of the departure point
            end: (lat, lng) of the destination
            waypoints: Optional user stops as (lat, lng), dicts or Waypoint objects
            vehicle: VehicleProfile or a VEHICLE_PROFILES key
            start_soc: Starting state of charge in percent

        Returns:
            {"success": True, "data": {...}} or {"success": False, "error": reason}.
            An infeasible plan is still a success with data["feasible"] False.
        """
        try:
            request = TripRequest(start=start, end=end, waypoints=waypoints or [], start_soc=start_soc)
            if vehicle is None:
                raise InvalidTripRequestError("A vehicle profile is required")
            profile = vehicle if isinstance(vehicle, VehicleProfile) else VehicleProfile.from_catalogue(vehicle)
        except ValidationError as e:
            message = _format_validation_error(e)
            warning(message, 'trip_planner')
            return {"success": False, "error": message}
        except InvalidTripRequestError as e:
            warning(str(e), 'trip_planner')
            return {"success": False, "error": str(e)}

        return self._plan(request, profile)

    def _plan(self, request: TripRequest, profile: VehicleProfile) -> Dict[str, Any]:
        engine = PhysicsEngine(profile)
        rescue_planner = RescuePlanner(self.charger_lookup, self.policy)

        start, end = request.start, request.end
        waypoints = sort_waypoints(start, [Waypoint(lat=lat, lng=lng) for lat, lng in request.waypoints])
        injected: List[ChargerCandidate] = []
        infeasible_reason = None
        forward: Optional[ForwardResult] = None
        context: Optional[RouteContext] = None

        info(f"Planning {start} -> {end} with {profile.name} at {request.start_soc:.0f}% SoC", 'trip_planner')

        while True:
            try:
                context = self.build_context(start, end, waypoints)
            except Exception as e:
                # Any provider failure, including transport and payload errors
                log_route_failure(start, end, [wp.coords for wp in waypoints], type(e).__name__, str(e))
                return {"success": False, "error": f"Route lookup failed: {e}"}

            forward = ForwardSimulator(
                engine, self.policy, context.segments, context.elevations, context.temperature_c, end
            ).run(request.start_soc, waypoints)

            if forward.completed:
                break

            if not rescue_planner.can_rescue(waypoints):
                infeasible_reason = (f"Battery runs low near {forward.panic_coords} and the trip "
                                     f"already has {len(waypoints)} stops (limit {self.policy.max_waypoints})")
                warning(infeasible_reason, 'trip_planner')
                break

            decision, updated = rescue_planner.rescue(
                forward.panic_coords, forward.battery_at_panic_kwh, start, end, waypoints
            )
            if decision.charger is None:
                infeasible_reason = f"Battery runs low near {forward.panic_coords}: {decision.reason}"
                warning(infeasible_reason, 'trip_planner')
                break

            waypoints = updated
            injected.append(decision.charger)

        final = FinalSimulator(
            engine, self.policy, context.segments, context.elevations, context.temperature_c, end
        ).run(request.start_soc, waypoints)

        gain, loss = elevation_gain_loss(context.elevations)
        route = context.route
        data = {
            'route': {
                'geometry': route.get('geometry', []),
                'distance': route.get('distance', 0.0),
                'duration': route.get('duration', 0.0),
            },
            'distance_km': route.get('distance', 0.0) / 1000.0,
            'duration_min': route.get('duration', 0.0) / 60.0,
            'energy_consumed_kwh': final.energy_consumed_kwh,
            'final_soc': final.final_soc,
            'segment_data': final.segment_data,
            'charge_events': final.charge_events,
            'environmental_data': {
                'temperature': context.temperature_c,
                'elevation_gain_m': gain,
                'elevation_loss_m': loss,
                'route_complexity': route_complexity(route.get('geometry', [])),
            },
            'injected_stops': [c.to_dict() for c in sort_chargers(start, injected)],
            'legs': route.get('legs', []),
            'waypoints': [wp.to_dict() for wp in waypoints],
            'vehicle': profile.name,
            'start_soc': request.start_soc,
            'rescue_iterations': len(injected),
            'feasible': forward.completed,
            'infeasible_reason': infeasible_reason,
        }

        info(f"Plan ready: {data['distance_km']:.1f} km, {len(injected)} injected stops, "
             f"final SoC {final.final_soc:.1f}%, feasible={forward.completed}", 'trip_planner')
        return {"success": True, "data": data}

    def plan_trips(self, requests: Sequence[Dict[str, Any]], max_workers: Optional[int] = None) -> List[Dict[str, Any]]:
        """Plan independent trips concurrently; results keep the input order."""
        workers = max_workers or self.policy.max_workers
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.plan_trip, **request) for request in requests]
            return [future.result() for future in futures]


def trace_to_dataframe(result: Dict[str, Any]) -> pd.DataFrame:
    """Segment trace of a successful plan as a DataFrame with running totals."""
    trace = pd.DataFrame(result['data']['segment_data'], columns=['distance', 'energy', 'elevation'])
    trace['cumulative_km'] = trace['distance'].cumsum() / 1000.0
    trace['cumulative_energy_kwh'] = trace['energy'].cumsum()
    trace['is_charge_event'] = (trace['distance'] == 0) & (trace['energy'] < 0)
    return trace
