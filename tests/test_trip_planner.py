import logging

import pytest
import requests

from src.data_processing.elevation_api import ElevationCache, OpenMeteoElevationClient
from src.models.route_optimization.trip_planner import TripPlanner, TripRequest, trace_to_dataframe
from src.utils.exceptions import ProviderError, RouteNotFoundError
from src.utils.geometry import haversine_km

from conftest import (
    ORIGIN, FakeChargerLookup, FakeElevationProvider, FakeResponse, FakeRouteProvider, FakeSession,
    FakeWeatherProvider,
    east_of, make_charger, north_of,
)


def _planner(policy, chargers=(), route=None, elevation=None, weather=None, lookup=None):
    return TripPlanner(
        route_provider=route or FakeRouteProvider(),
        elevation_provider=elevation or FakeElevationProvider(),
        weather_provider=weather or FakeWeatherProvider(),
        charger_lookup=lookup or FakeChargerLookup(chargers),
        policy=policy,
    )


def _distances_from_start(stops):
    return [haversine_km(ORIGIN[0], ORIGIN[1], s['latitude'], s['longitude']) for s in stops]


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

def test_long_trip_gets_rescue_stops(policy, vehicle, corridor_chargers):
    """500 km at 30% SoC on a 39 kWh car cannot be driven without charging."""
    lookup = FakeChargerLookup(corridor_chargers)
    planner = _planner(policy, lookup=lookup)

    result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 500), vehicle=vehicle, start_soc=30)

    assert result['success']
    data = result['data']
    assert data['feasible']
    assert data['infeasible_reason'] is None
    assert len(data['injected_stops']) >= 1
    assert all(stop['power_kw'] >= 50 for stop in data['injected_stops'])
    assert 0 < data['final_soc'] <= 100
    assert data['distance_km'] == pytest.approx(500, rel=1e-3)
    assert data['rescue_iterations'] == len(data['injected_stops'])
    assert len(lookup.calls) == len(data['injected_stops'])

    distances = _distances_from_start(data['injected_stops'])
    assert distances == sorted(distances)


def test_long_trip_stop_choices(policy, vehicle, corridor_chargers):
    planner = _planner(policy, corridor_chargers)
    data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 500), vehicle=vehicle, start_soc=30)['data']

    assert [stop['id'] for stop in data['injected_stops']] == ['fast_50', 'fast_325']
    assert [wp['kind'] for wp in data['waypoints']] == ['charger', 'charger']
    assert len(data['charge_events']) == 2


def test_short_trip_needs_no_stops(policy, vehicle, corridor_chargers):
    lookup = FakeChargerLookup(corridor_chargers)
    planner = _planner(policy, lookup=lookup)

    result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 80), vehicle=vehicle, start_soc=50)

    assert result['success']
    data = result['data']
    assert data['feasible']
    assert data['injected_stops'] == []
    assert lookup.calls == []
    assert data['final_soc'] == pytest.approx(
        (0.5 * 39.0 - data['energy_consumed_kwh']) / 39.0 * 100, rel=1e-9
    )


def test_rescue_loop_stops_at_waypoint_cap(policy, vehicle):
    """Only unreachable chargers: every pass injects a desperate stop until the cap."""
    chargers = [make_charger(f"east_{k}", east_of((ORIGIN[0] + 0.05 * k, ORIGIN[1]), 100))
                for k in range(10)]
    lookup = FakeChargerLookup(chargers)
    planner = _planner(policy, lookup=lookup)

    result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 200), vehicle=vehicle, start_soc=10)

    assert result['success']
    data = result['data']
    assert not data['feasible']
    assert data['infeasible_reason']
    assert len(data['injected_stops']) <= policy.max_waypoints
    assert len(data['waypoints']) == policy.max_waypoints
    assert len(lookup.calls) == policy.max_waypoints

    distances = _distances_from_start(data['injected_stops'])
    assert distances == sorted(distances)


def test_user_waypoints_count_toward_cap(policy, vehicle):
    waypoints = [north_of(ORIGIN, km) for km in (150, 160, 170, 180, 190)]
    lookup = FakeChargerLookup([make_charger('c', north_of(ORIGIN, 20))])
    planner = _planner(policy, lookup=lookup)

    data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 250), waypoints, vehicle=vehicle, start_soc=20)['data']

    assert not data['feasible']
    assert data['injected_stops'] == []
    assert lookup.calls == []


def test_no_chargers_marks_infeasible(policy, vehicle):
    planner = _planner(policy, chargers=[])
    result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 300), vehicle=vehicle, start_soc=30)

    assert result['success']
    data = result['data']
    assert not data['feasible']
    assert 'No chargers' in data['infeasible_reason']
    assert data['injected_stops'] == []
    assert data['final_soc'] == 0.0


def test_charger_lookup_failure_marks_infeasible(policy, vehicle):
    planner = _planner(policy, lookup=FakeChargerLookup(fail=True))
    data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 300), vehicle=vehicle, start_soc=30)['data']
    assert not data['feasible']


def test_user_waypoints_sorted_and_routed_in_order(policy, vehicle):
    route = FakeRouteProvider()
    planner = _planner(policy, route=route)
    far, near = north_of(ORIGIN, 60), north_of(ORIGIN, 20)

    data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 90), [far, near], vehicle=vehicle)['data']

    assert [(wp['lat'], wp['lng']) for wp in data['waypoints']] == [near, far]
    lats = [lat for _, lat in route.calls[0]]
    assert lats == sorted(lats)
    assert len(data['legs']) == 3


# ---------------------------------------------------------------------------
# Providers and fallbacks
# ---------------------------------------------------------------------------

def test_route_not_found_is_failure(policy, vehicle):
    planner = _planner(policy, route=FakeRouteProvider(fail_with=RouteNotFoundError("no road")))
    result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle=vehicle)
    assert result == {'success': False, 'error': 'Route lookup failed: no road'}


def test_routing_provider_error_is_failure(policy, vehicle):
    planner = _planner(policy, route=FakeRouteProvider(fail_with=ProviderError('mapbox', 'boom', 500)))
    result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle=vehicle)
    assert not result['success']
    assert 'mapbox' in result['error']


def test_weather_failure_uses_default_temperature(policy, vehicle):
    planner = _planner(policy, weather=FakeWeatherProvider(fail=True))
    data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle=vehicle)['data']
    assert data['environmental_data']['temperature'] == 25.0


def test_weather_read_at_route_midpoint(policy, vehicle):
    weather = FakeWeatherProvider(temperature=35.0)
    planner = _planner(policy, weather=weather)
    data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 100), vehicle=vehicle)['data']

    assert data['environmental_data']['temperature'] == 35.0
    lat, _ = weather.calls[0]
    assert lat == pytest.approx(north_of(ORIGIN, 50)[0], abs=0.05)


def test_hot_weather_costs_more(policy, vehicle):
    end = north_of(ORIGIN, 100)
    mild = _planner(policy).plan_trip(ORIGIN, end, vehicle=vehicle)['data']
    hot = _planner(policy, weather=FakeWeatherProvider(35.0)).plan_trip(ORIGIN, end, vehicle=vehicle)['data']
    assert hot['energy_consumed_kwh'] > mild['energy_consumed_kwh']


def test_elevation_failure_means_flat(policy, vehicle):
    flat = _planner(policy).plan_trip(ORIGIN, north_of(ORIGIN, 60), vehicle=vehicle)['data']
    failed = _planner(policy, elevation=FakeElevationProvider(fail=True)).plan_trip(
        ORIGIN, north_of(ORIGIN, 60), vehicle=vehicle)['data']
    assert failed['energy_consumed_kwh'] == pytest.approx(flat['energy_consumed_kwh'])
    assert failed['environmental_data']['elevation_gain_m'] == 0.0


def test_climb_costs_more_than_flat(policy, vehicle):
    climbing = FakeElevationProvider(profile=lambda lat, lng: (lat - ORIGIN[0]) * 2000.0)
    flat = _planner(policy).plan_trip(ORIGIN, north_of(ORIGIN, 60), vehicle=vehicle)['data']
    hilly = _planner(policy, elevation=climbing).plan_trip(ORIGIN, north_of(ORIGIN, 60), vehicle=vehicle)['data']

    assert hilly['energy_consumed_kwh'] > flat['energy_consumed_kwh']
    assert hilly['environmental_data']['elevation_gain_m'] > 0
    assert hilly['environmental_data']['elevation_loss_m'] == 0.0


def test_partial_elevation_outage_is_flat_not_a_cliff(policy, vehicle):
    """First elevation batch answers 800 m, the rest of the route gets a server error."""
    def handler(url, params):
        if len(session.calls) == 1:
            return FakeResponse(200, {'elevation': [800.0] * len(params['latitude'].split(','))})
        return FakeResponse(500, None, 'boom')

    session = FakeSession(handler=handler)
    client = OpenMeteoElevationClient(session=session, cache=ElevationCache(), batch_delay_seconds=0)
    end = north_of(ORIGIN, 300)

    data = _planner(policy, elevation=client).plan_trip(ORIGIN, end, vehicle=vehicle)['data']
    flat = _planner(policy).plan_trip(ORIGIN, end, vehicle=vehicle)['data']

    assert len(session.calls) >= 2
    driving = [entry for entry in data['segment_data'] if entry['distance'] > 0]
    assert len(driving) > 50
    assert all(entry['energy'] > 0 for entry in driving)
    assert data['energy_consumed_kwh'] == pytest.approx(flat['energy_consumed_kwh'])
    assert data['environmental_data']['elevation_gain_m'] == 0.0
    assert data['environmental_data']['elevation_loss_m'] == 0.0


def test_nan_temperature_falls_back_with_warning(policy, vehicle, caplog):
    planner = _planner(policy, weather=FakeWeatherProvider(float('nan')))
    with caplog.at_level(logging.WARNING, logger='ev_trip'):
        data = planner.plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle=vehicle)['data']

    assert data['environmental_data']['temperature'] == 25.0
    assert any('NaN' in record.getMessage() for record in caplog.records)


class _MalformedRouteProvider:
    def get_directions(self, coordinates):
        return None


@pytest.mark.parametrize("route", [
    FakeRouteProvider(fail_with=requests.exceptions.ConnectionError("connection reset")),
    FakeRouteProvider(fail_with=KeyError('routes')),
    _MalformedRouteProvider(),
])
def test_any_routing_crash_is_failure(policy, vehicle, route, caplog):
    planner = _planner(policy, route=route)
    with caplog.at_level(logging.ERROR, logger='ev_trip'):
        result = planner.plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle=vehicle)

    assert result['success'] is False
    assert result['error'].startswith('Route lookup failed')
    assert any('Route failure' in record.getMessage() for record in caplog.records)


def test_connection_error_message_is_reported(policy, vehicle):
    route = FakeRouteProvider(fail_with=requests.exceptions.ConnectionError("connection reset"))
    result = _planner(policy, route=route).plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle=vehicle)
    assert result == {'success': False, 'error': 'Route lookup failed: connection reset'}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("kwargs", [
    {'start': (91.0, 77.0)},
    {'start': (10.0, 181.0)},
    {'end': (-91.0, 0.0)},
    {'start_soc': 120},
    {'start_soc': -1},
    {'start_soc': float('nan')},
    {'waypoints': [(10.5, 200.0)]},
])
def test_invalid_requests_rejected_before_simulation(policy, vehicle, kwargs):
    route = FakeRouteProvider()
    planner = _planner(policy, route=route)
    params = {'start': ORIGIN, 'end': north_of(ORIGIN, 50), 'vehicle': vehicle, 'start_soc': 80}
    params.update(kwargs)

    result = planner.plan_trip(**params)

    assert result['success'] is False
    assert result['error'].startswith('Invalid trip request')
    assert route.calls == []


def test_unknown_vehicle_key_rejected(policy):
    result = _planner(policy).plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle='no_such_car')
    assert result['success'] is False
    assert 'no_such_car' in result['error']


def test_missing_vehicle_rejected(policy):
    result = _planner(policy).plan_trip(ORIGIN, north_of(ORIGIN, 50))
    assert result['success'] is False


def test_vehicle_by_catalogue_key(policy):
    result = _planner(policy).plan_trip(ORIGIN, north_of(ORIGIN, 50), vehicle='tata_tigor_ev', start_soc=90)
    assert result['success']
    assert result['data']['vehicle'] == 'Tata Tigor.ev'


def test_trip_request_defaults():
    request = TripRequest(start=[10.0, 77.0], end=(11.0, 77.0))
    assert request.start_soc == 100.0
    assert request.waypoints == []
    assert request.start == (10.0, 77.0)


def test_trip_request_accepts_waypoint_dicts():
    request = TripRequest(start=(10.0, 77.0), end=(11.0, 77.0), waypoints=[{'lat': 10.5, 'lng': 77.1}])
    assert request.waypoints == [(10.5, 77.1)]


# ---------------------------------------------------------------------------
# Result shape, batching, trace export
# ---------------------------------------------------------------------------

def test_result_shape(policy, vehicle):
    data = _planner(policy).plan_trip(ORIGIN, north_of(ORIGIN, 40), vehicle=vehicle)['data']
    for key in ('route', 'distance_km', 'duration_min', 'energy_consumed_kwh', 'final_soc',
                'segment_data', 'environmental_data', 'injected_stops', 'legs', 'waypoints',
                'rescue_iterations', 'feasible', 'infeasible_reason'):
        assert key in data
    assert data['duration_min'] == pytest.approx(40 / 80 * 60, rel=1e-3)
    assert set(data['segment_data'][0]) == {'distance', 'energy', 'elevation'}
    assert 0.0 <= data['environmental_data']['route_complexity'] < 0.01


def test_plan_trips_keeps_order(policy, vehicle, corridor_chargers):
    planner = _planner(policy, corridor_chargers)
    requests = [
        {'start': ORIGIN, 'end': north_of(ORIGIN, 500), 'vehicle': vehicle, 'start_soc': 30},
        {'start': ORIGIN, 'end': north_of(ORIGIN, 80), 'vehicle': vehicle, 'start_soc': 50},
        {'start': (95.0, 0.0), 'end': ORIGIN, 'vehicle': vehicle},
    ]

    results = planner.plan_trips(requests, max_workers=3)

    assert len(results[0]['data']['injected_stops']) == 2
    assert results[1]['data']['injected_stops'] == []
    assert results[2]['success'] is False


def test_trace_to_dataframe(policy, vehicle, corridor_chargers):
    result = _planner(policy, corridor_chargers).plan_trip(
        ORIGIN, north_of(ORIGIN, 500), vehicle=vehicle, start_soc=30)

    trace = trace_to_dataframe(result)

    assert list(trace.columns[:3]) == ['distance', 'energy', 'elevation']
    assert int(trace['is_charge_event'].sum()) == 2
    assert trace['cumulative_km'].iloc[-1] == pytest.approx(500, rel=1e-3)


class _RouteDownForSomeStarts(FakeRouteProvider):
    def get_directions(self, coordinates):
        if coordinates[0][1] > 15.0:
            raise requests.exceptions.ConnectionError("connection reset")
        return super().get_directions(coordinates)


def test_plan_trips_isolates_a_crashing_request(policy, vehicle):
    planner = _planner(policy, route=_RouteDownForSomeStarts())
    far_north = (20.0, 77.0)
    requests_ = [
        {'start': ORIGIN, 'end': north_of(ORIGIN, 40), 'vehicle': vehicle},
        {'start': far_north, 'end': north_of(far_north, 40), 'vehicle': vehicle},
        {'start': ORIGIN, 'end': north_of(ORIGIN, 60), 'vehicle': vehicle},
    ]

    results = planner.plan_trips(requests_, max_workers=3)

    assert [r['success'] for r in results] == [True, False, True]
    assert 'connection reset' in results[1]['error']
