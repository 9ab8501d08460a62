"""
Segment-by-segment battery simulation.

ForwardSimulator is the forward pass: it treats every pending waypoint as a
virtual full charge and stops at the first segment where the vehicle would
be stranded (panic). FinalSimulator re-walks the confirmed plan and records
the real energy trace with the smart-charging policy applied.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from config.logging_config import is_detailed_logging_enabled
from src.models.energy.physics_engine import PhysicsEngine
from src.models.route_optimization.rescue_planner import Waypoint
from src.models.route_optimization.segmentation import RouteSegment
from src.utils.config_service import PlannerPolicy
from src.utils.geometry import point_distance_m
from src.utils.logger import get_logger, log_detailed

logger = get_logger('simulation')


@dataclass
class SimulationState:
    """Mutable state owned by exactly one simulator pass."""

    battery_kwh: float
    distance_m: float = 0.0
    leg_index: int = 0
    panic_index: Optional[int] = None
    closest_waypoint_m: float = float('inf')

    def soc_pct(self, usable_capacity: float) -> float:
        return self.battery_kwh / usable_capacity * 100.0


@dataclass
class ForwardResult:
    completed: bool
    panic_index: Optional[int] = None
    panic_coords: Optional[Tuple[float, float]] = None
    battery_at_panic_kwh: Optional[float] = None
    soc_at_panic: Optional[float] = None
    waypoints_reached: int = 0
    distance_m: float = 0.0


@dataclass
class FinalResult:
    segment_data: List[Dict[str, float]] = field(default_factory=list)
    energy_consumed_kwh: float = 0.0
    final_battery_kwh: float = 0.0
    final_soc: float = 0.0
    charge_events: List[Dict[str, float]] = field(default_factory=list)
    waypoints_reached: int = 0
    distance_m: float = 0.0


class _SegmentWalker:
    """Shared energy walk over a fixed segment list and elevation profile."""

    log_component = None

    def __init__(self, engine: PhysicsEngine, policy: PlannerPolicy,
                 segments: Sequence[RouteSegment], elevations: Sequence[Optional[float]],
                 temperature_c: float, destination: Tuple[float, float]):
        self.engine = engine
        self.policy = policy
        self.segments = list(segments)
        self.elevations = list(elevations)
        self.temperature_c = temperature_c
        self.destination = destination
        self.usable_capacity = engine.vehicle.usable_capacity
        self.debug_mode = bool(self.log_component) and is_detailed_logging_enabled(self.log_component)

    def _log_detailed(self, message: str):
        if self.debug_mode:
            log_detailed(message, self.log_component)

    def new_state(self, start_soc_pct: float) -> SimulationState:
        return SimulationState(battery_kwh=self.usable_capacity * start_soc_pct / 100.0)

    def sample_at(self, i: int) -> Optional[float]:
        if 0 <= i < len(self.elevations):
            return self.elevations[i]
        return None

    def elevation_at(self, i: int) -> float:
        """Elevation sampled at segment i's first point; missing samples read as 0."""
        sample = self.sample_at(i)
        return sample if sample is not None else 0.0

    def grade_at(self, i: int) -> float:
        """Grade of segment i; flat unless both of its end samples are known."""
        el1 = self.sample_at(i)
        el2 = self.sample_at(i + 1) if i + 1 < len(self.segments) else None
        if el1 is None or el2 is None:
            return 0.0
        distance = self.segments[i].distance
        if distance <= 0:
            return 0.0
        return (el2 - el1) / distance

    def drive(self, state: SimulationState, i: int) -> float:
        """Consume segment i; returns its net energy in kWh."""
        segment = self.segments[i]
        energy = self.engine.calculate_segment_energy(
            segment.distance, self.grade_at(i), self.policy.cruise_speed_kmh, self.temperature_c
        )
        state.battery_kwh -= energy
        state.distance_m += segment.distance
        return energy


class ForwardSimulator(_SegmentWalker):
    """Forward pass: virtual charging at waypoints, panic detection."""

    log_component = 'forward_simulation'

    def waypoint_reached(self, state: SimulationState, distance_m: float) -> bool:
        if distance_m < self.policy.waypoint_strict_proximity_m:
            return True
        # Receding after a close approach: the route went past the stop
        return (distance_m > state.closest_waypoint_m
                and state.closest_waypoint_m < self.policy.waypoint_passing_band_m
                and distance_m < self.policy.waypoint_passing_max_m)

    def should_panic(self, state: SimulationState, i: int, waypoints: Sequence[Waypoint]) -> bool:
        soc = state.soc_pct(self.usable_capacity)
        if soc >= self.policy.panic_soc_pct:
            return False

        heading_to_waypoint = state.leg_index < len(waypoints)
        target = waypoints[state.leg_index].coords if heading_to_waypoint else self.destination
        distance_km = point_distance_m(self.segments[i].end, target) / 1000.0

        suppressed = (heading_to_waypoint
                      and distance_km < self.policy.panic_suppression_distance_km
                      and soc > self.policy.panic_floor_soc_pct)
        self._log_detailed(
            f"seg {i}: low SoC {soc:.1f}% target={target} {distance_km:.1f}km suppressed={suppressed}"
        )
        return not suppressed

    def run(self, start_soc_pct: float, waypoints: Sequence[Waypoint]) -> ForwardResult:
        state = self.new_state(start_soc_pct)
        n = len(self.segments)

        for i, segment in enumerate(self.segments):
            self.drive(state, i)

            if state.leg_index < len(waypoints):
                distance_m = point_distance_m(segment.end, waypoints[state.leg_index].coords)
                if self.waypoint_reached(state, distance_m):
                    if state.battery_kwh < self.usable_capacity:
                        state.battery_kwh = self.usable_capacity
                    self._log_detailed(f"seg {i}: reached waypoint {state.leg_index} at {distance_m:.0f}m")
                    state.leg_index += 1
                    state.closest_waypoint_m = float('inf')
                else:
                    state.closest_waypoint_m = min(state.closest_waypoint_m, distance_m)

            if state.panic_index is None and i < n - self.policy.panic_tail_segments:
                if self.should_panic(state, i, waypoints):
                    state.panic_index = i
                    break

        if state.panic_index is not None:
            panic_segment = self.segments[state.panic_index]
            soc = state.soc_pct(self.usable_capacity)
            logger.info(f"Panic at segment {state.panic_index}/{n}: SoC {soc:.1f}%, "
                        f"{state.distance_m / 1000:.1f} km driven")
            return ForwardResult(
                completed=False,
                panic_index=state.panic_index,
                panic_coords=panic_segment.start,
                battery_at_panic_kwh=state.battery_kwh,
                soc_at_panic=soc,
                waypoints_reached=state.leg_index,
                distance_m=state.distance_m,
            )

        return ForwardResult(completed=True, waypoints_reached=state.leg_index, distance_m=state.distance_m)


class FinalSimulator(_SegmentWalker):
    """Confirmation pass over the final waypoint set; never panics."""

    log_component = 'final_simulation'

    def charge_at_waypoint(self, state: SimulationState, elevation: float,
                           trace: List[Dict[str, float]]) -> float:
        """
        Smart charging: top up to usable capacity only below the threshold SoC.
        Returns the kWh added (0.0 when no charge happened).
        """
        soc = state.soc_pct(self.usable_capacity)
        if soc >= self.policy.smart_charge_threshold_pct or state.battery_kwh >= self.usable_capacity:
            return 0.0
        added = self.usable_capacity - state.battery_kwh
        trace.append({'distance': 0.0, 'energy': -added, 'elevation': elevation})
        state.battery_kwh = self.usable_capacity
        return added

    def run(self, start_soc_pct: float, waypoints: Sequence[Waypoint]) -> FinalResult:
        state = self.new_state(start_soc_pct)
        result = FinalResult()

        for i, segment in enumerate(self.segments):
            elevation = self.elevation_at(i)
            energy = self.drive(state, i)
            result.energy_consumed_kwh += energy
            result.segment_data.append({'distance': segment.distance, 'energy': energy, 'elevation': elevation})

            if state.leg_index < len(waypoints):
                waypoint = waypoints[state.leg_index]
                distance_m = point_distance_m(segment.end, waypoint.coords)
                if distance_m < self.policy.final_charge_proximity_m:
                    soc_before = state.soc_pct(self.usable_capacity)
                    added = self.charge_at_waypoint(state, elevation, result.segment_data)
                    if added > 0:
                        result.charge_events.append({
                            'segment_index': i,
                            'waypoint_index': state.leg_index,
                            'lat': waypoint.lat,
                            'lng': waypoint.lng,
                            'kind': waypoint.kind,
                            'soc_before': soc_before,
                            'energy_added_kwh': added,
                        })
                        self._log_detailed(f"seg {i}: charged {added:.2f}kWh at waypoint {state.leg_index}")
                    state.leg_index += 1

        result.final_battery_kwh = state.battery_kwh
        result.final_soc = min(100.0, max(0.0, state.soc_pct(self.usable_capacity)))
        result.waypoints_reached = state.leg_index
        result.distance_m = state.distance_m
        return result
