import math

import pytest

from config.logging_config import get_logging_config
from src.models.energy.vehicle_profile import VehicleProfile
from src.models.route_optimization.rescue_planner import ChargerCandidate
from src.utils.config_service import load_planner_policy
from src.utils.exceptions import ProviderError, RouteNotFoundError
from src.utils.geometry import haversine_km, haversine_m
from src.utils.logger import setup_logger

EARTH_RADIUS_M = 6371000.0
STEP_M = 1100.0
ORIGIN = (10.0, 77.0)


def north_of(origin, km):
    """Point ``km`` due north of ``origin`` (lat, lng)."""
    return origin[0] + math.degrees(km * 1000.0 / EARTH_RADIUS_M), origin[1]


def east_of(origin, km):
    lat = origin[0]
    return lat, origin[1] + math.degrees(km * 1000.0 / (EARTH_RADIUS_M * math.cos(math.radians(lat))))


class FakeRouteProvider:
    """Straight-line routes through every coordinate, one vertex every ~1.1 km."""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.calls = []

    def get_directions(self, coordinates):
        self.calls.append(list(coordinates))
        if self.fail_with is not None:
            raise self.fail_with

        geometry = [tuple(coordinates[0])]
        legs = []
        for (lng1, lat1), (lng2, lat2) in zip(coordinates, coordinates[1:]):
            leg_m = haversine_m(lat1, lng1, lat2, lng2)
            steps = max(1, math.ceil(leg_m / STEP_M))
            for k in range(1, steps + 1):
                f = k / steps
                geometry.append((lng1 + (lng2 - lng1) * f, lat1 + (lat2 - lat1) * f))
            legs.append({'distance': leg_m, 'duration': leg_m / (80 / 3.6), 'summary': ''})

        distance = sum(leg['distance'] for leg in legs)
        return {
            'geometry': geometry,
            'distance': distance,
            'duration': distance / (80 / 3.6),
            'legs': legs,
        }


class FakeElevationProvider:
    def __init__(self, profile=None, fail=False):
        self.profile = profile
        self.fail = fail
        self.calls = 0

    def get_elevations(self, locations):
        self.calls += 1
        if self.fail:
            raise ProviderError('fake', 'elevation down')
        if self.profile is None:
            return [0.0] * len(locations)
        return [self.profile(lat, lng) for lat, lng in locations]


class FakeWeatherProvider:
    def __init__(self, temperature=25.0, fail=False):
        self.temperature = temperature
        self.fail = fail
        self.calls = []

    def get_temperature(self, lat, lng):
        self.calls.append((lat, lng))
        if self.fail:
            raise ProviderError('fake', 'weather down')
        return self.temperature


class FakeChargerLookup:
    """In-memory charger search honouring radius, power and limit."""

    def __init__(self, chargers=(), fail=False):
        self.chargers = list(chargers)
        self.fail = fail
        self.calls = []

    def find_chargers_near(self, lat, lng, radius_km, min_power_kw, limit):
        self.calls.append({'lat': lat, 'lng': lng, 'radius_km': radius_km,
                           'min_power_kw': min_power_kw, 'limit': limit})
        if self.fail:
            raise ProviderError('fake', 'charger lookup down')
        found = []
        for c in self.chargers:
            d = haversine_km(lat, lng, c.latitude, c.longitude)
            if d <= radius_km and c.power_kw >= min_power_kw:
                found.append(ChargerCandidate(c.id, c.name, c.latitude, c.longitude,
                                              c.power_kw, c.operator, d))
        found.sort(key=lambda c: c.distance_km)
        return found[:limit]


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or str(payload)

    def json(self):
        return self._payload


class FakeSession:
    """Stands in for requests.Session: replays queued responses (or a handler) and records calls."""

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []
        self.headers = {}

    def get(self, url, params=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'timeout': timeout})
        if self.handler is not None:
            return self.handler(url, params)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_charger(charger_id, coords, power_kw=60.0):
    return ChargerCandidate(id=charger_id, name=f"Charger {charger_id}",
                            latitude=coords[0], longitude=coords[1], power_kw=power_kw)


@pytest.fixture(autouse=True)
def quiet_logger():
    setup_logger(**get_logging_config('SILENT'))
    yield


@pytest.fixture
def vehicle():
    """Scenario vehicle: ~0.113 kWh/km at 80 km/h and 25 °C, 39 kWh usable."""
    return VehicleProfile(
        name='Test Car',
        battery_capacity=40.5,
        usable_capacity=39.0,
        drag_coefficient=0.33,
        frontal_area=2.3,
        weight=1400,
        rolling_resistance=0.01,
        motor_efficiency=0.90,
        regen_efficiency=0.70,
        thermal_coefficient_heat=0.015,
        thermal_coefficient_cold=0.010,
    )


@pytest.fixture
def policy(tmp_path):
    # Point at an empty location so a developer's local overrides never leak in
    return load_planner_policy(tmp_path / "no_overrides.yaml")


@pytest.fixture
def route_provider():
    return FakeRouteProvider()


@pytest.fixture
def corridor_chargers():
    """60 kW chargers every 25 km north of ORIGIN plus slow ones that must be ignored."""
    fast = [make_charger(f"fast_{km}", north_of(ORIGIN, km)) for km in range(25, 500, 25)]
    slow = [make_charger(f"slow_{km}", east_of(north_of(ORIGIN, km), 1.0), power_kw=22.0)
            for km in range(10, 500, 20)]
    return fast + slow
