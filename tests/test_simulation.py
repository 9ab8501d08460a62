import pytest

from src.models.energy.physics_engine import PhysicsEngine
from src.models.route_optimization.rescue_planner import Waypoint
from src.models.route_optimization.segmentation import segment_polyline
from src.models.route_optimization.simulation import (
    FinalSimulator, ForwardSimulator, SimulationState,
)

from conftest import ORIGIN, FakeRouteProvider, north_of


def _segments(km):
    end = north_of(ORIGIN, km)
    route = FakeRouteProvider().get_directions([(ORIGIN[1], ORIGIN[0]), (end[1], end[0])])
    return segment_polyline(route['geometry'], 5000), end


def _forward(vehicle, policy, km, elevations=None, temperature=25.0):
    segments, end = _segments(km)
    if elevations is None:
        elevations = [0.0] * len(segments)
    return ForwardSimulator(PhysicsEngine(vehicle), policy, segments, elevations, temperature, end)


def _final(vehicle, policy, km, elevations=None):
    segments, end = _segments(km)
    if elevations is None:
        elevations = [0.0] * len(segments)
    return FinalSimulator(PhysicsEngine(vehicle), policy, segments, elevations, 25.0, end)


def _wp(km):
    lat, lng = north_of(ORIGIN, km)
    return Waypoint(lat=lat, lng=lng, kind='charger')


# ---------------------------------------------------------------------------
# Shared walk
# ---------------------------------------------------------------------------

def test_grade_from_next_segment_elevation(vehicle, policy):
    sim = _forward(vehicle, policy, 12, elevations=[0.0, 100.0, 50.0])
    assert sim.grade_at(0) == pytest.approx(100.0 / sim.segments[0].distance)
    assert sim.grade_at(1) == pytest.approx(-50.0 / sim.segments[1].distance)
    # Last segment is flat
    assert sim.grade_at(2) == 0.0


def test_missing_elevations_are_flat(vehicle, policy):
    sim = _forward(vehicle, policy, 12, elevations=[None, 30.0])
    assert sim.elevation_at(0) == 0.0
    # Unknown near end: no climb from an assumed sea level
    assert sim.grade_at(0) == 0.0
    # Beyond the provided samples the segment is flat
    assert sim.grade_at(1) == 0.0
    assert sim.grade_at(2) == 0.0


def test_unknown_far_end_is_flat_not_a_drop(vehicle, policy):
    sim = _forward(vehicle, policy, 12, elevations=[800.0, None, None])
    assert sim.grade_at(0) == 0.0
    assert sim.drive(sim.new_state(100.0), 0) > 0


def test_real_sea_level_sample_is_kept(vehicle, policy):
    sim = _forward(vehicle, policy, 12, elevations=[50.0, 0.0, 0.0])
    assert sim.grade_at(0) == pytest.approx(-50.0 / sim.segments[0].distance)


def test_state_soc(vehicle):
    state = SimulationState(battery_kwh=19.5)
    assert state.soc_pct(vehicle.usable_capacity) == pytest.approx(50.0)
    assert state.panic_index is None


# ---------------------------------------------------------------------------
# Forward pass
# ---------------------------------------------------------------------------

def test_full_battery_completes(vehicle, policy):
    result = _forward(vehicle, policy, 100).run(100.0, [])
    assert result.completed
    assert result.panic_index is None
    assert result.distance_m == pytest.approx(100000, rel=1e-6)


def test_low_soc_heading_to_destination_panics(vehicle, policy):
    sim = _forward(vehicle, policy, 100)
    result = sim.run(30.0, [])
    assert not result.completed
    assert result.panic_index == 3
    assert result.panic_coords == sim.segments[3].start
    assert result.soc_at_panic < 25.0
    assert result.battery_at_panic_kwh == pytest.approx(result.soc_at_panic / 100 * vehicle.usable_capacity)


def test_panic_suppressed_when_waypoint_close(vehicle, policy):
    result = _forward(vehicle, policy, 100).run(30.0, [_wp(40)])
    assert result.completed
    assert result.waypoints_reached == 1


def test_panic_not_suppressed_when_waypoint_far(vehicle, policy):
    result = _forward(vehicle, policy, 150).run(30.0, [_wp(140)])
    assert not result.completed
    assert result.panic_index == 3
    assert result.waypoints_reached == 0


def test_panic_not_suppressed_below_floor(vehicle, policy):
    result = _forward(vehicle, policy, 100).run(8.0, [_wp(20)])
    assert not result.completed
    assert result.panic_index == 1
    assert result.soc_at_panic <= 5.0


def test_tail_segments_never_panic(vehicle, policy):
    sim = _forward(vehicle, policy, 12)
    assert len(sim.segments) == 3
    result = sim.run(27.0, [])
    assert result.completed


def test_waypoint_strict_proximity(vehicle, policy):
    sim = _forward(vehicle, policy, 10)
    state = SimulationState(battery_kwh=10.0)
    assert sim.waypoint_reached(state, 2500.0)


@pytest.mark.parametrize("closest, distance, reached", [
    (4000.0, 6000.0, True),      # receding after a close pass
    (6000.0, 7000.0, False),     # never came within the pass band
    (4000.0, 11000.0, False),    # receded beyond the ceiling
    (4000.0, 3500.0, False),     # still approaching
])
def test_waypoint_passing_detector(vehicle, policy, closest, distance, reached):
    sim = _forward(vehicle, policy, 10)
    state = SimulationState(battery_kwh=10.0, closest_waypoint_m=closest)
    assert sim.waypoint_reached(state, distance) is reached


def test_virtual_charge_only_tops_up(vehicle, policy):
    # Reaching a waypoint restores usable capacity; a full battery stays full
    result = _forward(vehicle, policy, 60).run(100.0, [_wp(10), _wp(30)])
    assert result.completed
    assert result.waypoints_reached == 2


# ---------------------------------------------------------------------------
# Confirmation pass
# ---------------------------------------------------------------------------

def test_no_charge_above_threshold(vehicle, policy):
    sim = _final(vehicle, policy, 100)
    result = sim.run(100.0, [_wp(40)])
    assert result.charge_events == []
    assert len(result.segment_data) == len(sim.segments)
    assert result.waypoints_reached == 1


def test_charges_below_threshold(vehicle, policy):
    sim = _final(vehicle, policy, 100)
    result = sim.run(30.0, [_wp(40)])

    assert len(result.charge_events) == 1
    charge_entries = [e for e in result.segment_data if e['distance'] == 0]
    assert len(charge_entries) == 1
    assert charge_entries[0]['energy'] < 0
    assert -charge_entries[0]['energy'] == pytest.approx(result.charge_events[0]['energy_added_kwh'])

    driving = [e['energy'] for e in result.segment_data if e['distance'] > 0]
    assert result.energy_consumed_kwh == pytest.approx(sum(driving))
    assert len(driving) == len(sim.segments)
    assert 0 < result.final_soc <= 100


def test_charge_at_waypoint_is_idempotent(vehicle, policy):
    sim = _final(vehicle, policy, 10)
    state = SimulationState(battery_kwh=vehicle.usable_capacity * 0.3)
    trace = []

    first = sim.charge_at_waypoint(state, 12.0, trace)
    second = sim.charge_at_waypoint(state, 12.0, trace)

    assert first == pytest.approx(vehicle.usable_capacity * 0.7)
    assert second == 0.0
    assert state.battery_kwh == vehicle.usable_capacity
    assert len(trace) == 1
    assert trace[0] == {'distance': 0.0, 'energy': pytest.approx(-first), 'elevation': 12.0}


def test_final_soc_clamped_at_zero(vehicle, policy):
    result = _final(vehicle, policy, 100).run(10.0, [])
    assert result.final_soc == 0.0
    assert result.final_battery_kwh < 0


def test_final_pass_never_panics(vehicle, policy):
    sim = _final(vehicle, policy, 100)
    result = sim.run(5.0, [])
    assert len(result.segment_data) == len(sim.segments)
