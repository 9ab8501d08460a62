from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

# Ensure project root is on sys.path so 'config' and 'src' are importable
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..', '..'))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from config.ev_config import EXAMPLE_TRIP, VEHICLE_PROFILES
from config.logging_config import get_logging_config, LOG_DIR
from src.data_processing.charger_catalogue import ChargerCatalogue
from src.data_processing.elevation_api import OpenMeteoElevationClient
from src.data_processing.mapbox_api import MapboxAPI
from src.data_processing.openchargemap_api import OpenChargeMapAPI
from src.data_processing.weather_api import OpenWeatherAPI
from src.models.route_optimization.trip_planner import TripPlanner, trace_to_dataframe
from src.utils.config_service import load_planner_policy
from src.utils.logger import setup_logger, info, error, print_summary


def parse_location(value: str, geocoder: MapboxAPI) -> Tuple[float, float]:
    """'lat,lng' or a place name resolved through Mapbox geocoding."""
    parts = value.split(',')
    if len(parts) == 2:
        try:
            return float(parts[0]), float(parts[1])
        except ValueError:
            pass
    place = geocoder.forward_geocode(value)
    if place is None:
        raise ValueError(f"Could not resolve location '{value}'")
    info(f"Resolved '{value}' to {place['place_name']} ({place['lat']:.4f}, {place['lng']:.4f})", 'trip_planner')
    return place['lat'], place['lng']


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plan an EV trip with automatic charging stops")
    parser.add_argument('--start', type=str, default=None, help="'lat,lng' or place name")
    parser.add_argument('--end', type=str, default=None, help="'lat,lng' or place name")
    parser.add_argument('--waypoint', action='append', default=[], help='Intermediate stop (repeatable)')
    parser.add_argument('--vehicle', type=str, default=EXAMPLE_TRIP['vehicle'], choices=sorted(VEHICLE_PROFILES))
    parser.add_argument('--soc', type=float, default=EXAMPLE_TRIP['start_soc'], help='Starting SoC in percent')
    parser.add_argument('--chargers-csv', type=str, default=None,
                        help='Use a local charger catalogue instead of OpenChargeMap')
    parser.add_argument('--policy', type=str, default=None, help='YAML file with planner overrides')
    parser.add_argument('--trace-csv', type=str, default=None, help='Write the segment energy trace to CSV')
    parser.add_argument('--log-mode', type=str, default=None,
                        choices=['PRODUCTION', 'DEVELOPMENT', 'DEBUG', 'SILENT', 'TESTING'])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logger(log_dir=LOG_DIR, **get_logging_config(args.log_mode))

    mapbox = MapboxAPI()
    try:
        start = parse_location(args.start, mapbox) if args.start else EXAMPLE_TRIP['start']
        end = parse_location(args.end, mapbox) if args.end else EXAMPLE_TRIP['end']
        waypoints = [parse_location(w, mapbox) for w in args.waypoint]
    except ValueError as e:
        error(str(e), 'trip_planner')
        return 2

    charger_lookup = ChargerCatalogue.from_csv(args.chargers_csv) if args.chargers_csv else OpenChargeMapAPI()

    planner = TripPlanner(
        route_provider=mapbox,
        elevation_provider=OpenMeteoElevationClient(),
        weather_provider=OpenWeatherAPI(),
        charger_lookup=charger_lookup,
        policy=load_planner_policy(args.policy),
    )

    result = planner.plan_trip(start, end, waypoints, vehicle=args.vehicle, start_soc=args.soc)
    if not result['success']:
        error(result['error'], 'trip_planner')
        return 1

    data = result['data']
    print_summary("TRIP PLAN", {
        'vehicle': data['vehicle'],
        'distance_km': data['distance_km'],
        'duration_min': data['duration_min'],
        'energy_consumed_kwh': data['energy_consumed_kwh'],
        'final_soc_pct': data['final_soc'],
        'temperature_c': data['environmental_data']['temperature'],
        'injected_stops': len(data['injected_stops']),
        'feasible': data['feasible'],
    })
    for i, stop in enumerate(data['injected_stops'], 1):
        print(f"  stop {i}: {stop['name']} ({stop['power_kw']:.0f} kW) at {stop['latitude']:.4f}, {stop['longitude']:.4f}")
    if data['infeasible_reason']:
        print(f"  warning: {data['infeasible_reason']}")

    if args.trace_csv:
        trace_path = Path(args.trace_csv)
        trace_path.parent.mkdir(parents=True, exist_ok=True)
        trace_to_dataframe(result).to_csv(trace_path, index=False)
        info(f"Trace written to {trace_path}", 'trip_planner')

    return 0


if __name__ == "__main__":
    sys.exit(main())
