import requests
import time
import json
import logging
import os
from typing import List, Dict, Optional

from dotenv import load_dotenv

from config.api_config import API_CONFIG
from src.models.route_optimization.rescue_planner import ChargerCandidate
from src.utils.geometry import haversine_km

logger = logging.getLogger(__name__)
load_dotenv()


class OpenChargeMapAPI:
    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.config = API_CONFIG['openchargemap']
        self.api_key = api_key or os.getenv(self.config['key_env'])
        self.base_url = self.config['base_url']
        self.timeout = self.config['timeout_seconds']
        self.session = session or requests.Session()

        # Minimum spacing between requests
        self.last_request_time = 0
        self.min_request_interval = self.config['rate_limit_seconds']

        # Set headers
        self.session.headers.update({
            'User-Agent': 'EV-Trip-Planner/1.0',
            'Accept': 'application/json'
        })

    def _rate_limit(self):
        """Implement rate limiting"""
        current_time = time.time()
        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)
        self.last_request_time = time.time()

    def find_nearby_stations(self, latitude: float, longitude: float,
                             distance_km: float = 10, max_results: int = 50,
                             min_power_kw: float = None) -> List[Dict]:
        """
        Raw OpenChargeMap POIs near a location

        Args:
            latitude: Latitude coordinate
            longitude: Longitude coordinate
            distance_km: Search radius in kilometers
            max_results: Maximum number of results
            min_power_kw: Optional server-side power filter

        Returns:
            List of raw station dictionaries ([] on any failure)
        """
        self._rate_limit()

        params = {
            'output': 'json',
            'latitude': latitude,
            'longitude': longitude,
            'distance': distance_km,
            'distanceunit': 'KM',
            'maxresults': max_results,
            'compact': 'false',  # keep OperatorInfo and Level details
            'verbose': 'false',
            'key': self.api_key
        }

        if min_power_kw:
            params['minpowerkw'] = min_power_kw

        try:
            url = f"{self.base_url}/poi/"
            response = self.session.get(url, params=params, timeout=self.timeout)

            if response.status_code == 200:
                stations = response.json()
                logger.info(f"Found {len(stations)} stations near ({latitude:.3f}, {longitude:.3f})")
                return stations
            else:
                logger.error(f"API Error {response.status_code}: {response.text}")
                return []

        except requests.exceptions.RequestException as e:
            logger.error(f"Request failed: {e}")
            return []
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error: {e}")
            return []

    def _max_power_kw(self, connections: List[Dict]) -> float:
        """Highest connector power, inferred from the charging level when PowerKW is missing"""
        power_ratings = []

        for conn in connections or []:
            power_kw = conn.get('PowerKW', 0)
            if power_kw and power_kw > 0:
                power_ratings.append(float(power_kw))
            else:
                # Infer from level
                level_title = (conn.get('Level') or {}).get('Title', '')
                if 'Level 3' in level_title or 'DC' in level_title or 'Fast' in level_title:
                    power_ratings.append(50.0)
                elif 'Level 2' in level_title:
                    power_ratings.append(22.0)
                else:
                    power_ratings.append(7.0)

        return max(power_ratings) if power_ratings else 0.0

    def to_candidate(self, raw_station: Dict, latitude: float, longitude: float) -> Optional[ChargerCandidate]:
        """Convert a raw POI into a ChargerCandidate; None when it has no coordinates"""
        address_info = raw_station.get('AddressInfo') or {}
        operator_info = raw_station.get('OperatorInfo') or {}

        lat = address_info.get('Latitude')
        lng = address_info.get('Longitude')
        if lat is None or lng is None:
            return None

        return ChargerCandidate(
            id=f"ocm_{raw_station.get('ID')}",
            name=address_info.get('Title') or f"OCM {raw_station.get('ID')}",
            latitude=float(lat),
            longitude=float(lng),
            power_kw=self._max_power_kw(raw_station.get('Connections', [])),
            operator=operator_info.get('Title', 'Unknown'),
            distance_km=haversine_km(latitude, longitude, float(lat), float(lng)),
        )

    def find_chargers_near(self, lat: float, lng: float, radius_km: float,
                           min_power_kw: float, limit: int) -> List[ChargerCandidate]:
        """Chargers of at least ``min_power_kw`` within ``radius_km``, nearest first"""
        raw_stations = self.find_nearby_stations(
            lat, lng, distance_km=radius_km, max_results=limit, min_power_kw=min_power_kw
        )

        candidates = []
        seen_ids = set()
        for raw_station in raw_stations:
            # Skip if we've already processed this station
            station_id = raw_station.get('ID')
            if station_id in seen_ids:
                continue
            seen_ids.add(station_id)

            candidate = self.to_candidate(raw_station, lat, lng)
            if candidate is None:
                continue
            if candidate.power_kw < min_power_kw or candidate.distance_km > radius_km:
                continue
            candidates.append(candidate)

        candidates.sort(key=lambda c: c.distance_km)
        return candidates[:limit]
