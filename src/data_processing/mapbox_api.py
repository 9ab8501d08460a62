import requests
import json
import logging
import os
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

from dotenv import load_dotenv

from config.api_config import API_CONFIG
from src.utils.exceptions import ProviderError, RouteNotFoundError

logger = logging.getLogger(__name__)
load_dotenv()


class MapboxAPI:
    """Mapbox Directions (route geometry) and Geocoding client"""

    def __init__(self, access_token: Optional[str] = None, session: Optional[requests.Session] = None):
        self.config = API_CONFIG['mapbox']
        self.access_token = access_token or os.getenv(self.config['token_env'])
        self.directions_url = self.config['directions_url']
        self.geocoding_url = self.config['geocoding_url']
        self.timeout = self.config['timeout_seconds']
        self.session = session or requests.Session()

        self.session.headers.update({
            'User-Agent': 'EV-Trip-Planner/1.0',
            'Accept': 'application/json'
        })

    def get_directions(self, coordinates: Sequence[Tuple[float, float]],
                       profile: Optional[str] = None) -> Dict:
        """
        Fetch the best driving route through the given coordinates

        Args:
            coordinates: Ordered (lng, lat) pairs, start and end included
            profile: Mapbox routing profile (defaults to 'driving')

        Returns:
            {'geometry': [(lng, lat), ...], 'distance': m, 'duration': s,
             'legs': [{'distance', 'duration', 'summary'}, ...]}

        Raises:
            RouteNotFoundError: Mapbox answered but found no route
            ProviderError: Transport or HTTP failure
        """
        if len(coordinates) < 2:
            raise RouteNotFoundError("At least two coordinates are required for a route")

        profile = profile or self.config['profile']
        coordinates_str = ';'.join(f"{lng},{lat}" for lng, lat in coordinates)
        url = f"{self.directions_url}/{profile}/{coordinates_str}"
        params = {
            'geometries': 'geojson',
            'overview': 'full',
            'access_token': self.access_token,
        }

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Directions request failed: {e}")
            raise ProviderError('mapbox', f"request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Directions API Error {response.status_code}: {response.text}")
            if response.status_code == 422:
                # Mapbox reports unroutable coordinates as 422
                raise RouteNotFoundError(f"Mapbox could not route these coordinates: {response.text}")
            raise ProviderError('mapbox', response.text, response.status_code)

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error: {e}")
            raise ProviderError('mapbox', f"invalid JSON: {e}") from e

        routes = data.get('routes') or []
        if not routes:
            raise RouteNotFoundError(data.get('message', 'No route found'))

        route = routes[0]
        geometry = [tuple(point) for point in route.get('geometry', {}).get('coordinates', [])]
        legs = [
            {
                'distance': leg.get('distance', 0.0),
                'duration': leg.get('duration', 0.0),
                'summary': leg.get('summary', ''),
            }
            for leg in route.get('legs', [])
        ]
        logger.info(f"Route: {route.get('distance', 0) / 1000:.1f} km, {len(geometry)} points, {len(legs)} legs")

        return {
            'geometry': geometry,
            'distance': route.get('distance', 0.0),
            'duration': route.get('duration', 0.0),
            'legs': legs,
        }

    def forward_geocode(self, query: str) -> Optional[Dict]:
        """Resolve a place name to {'lat', 'lng', 'place_name'}; None when nothing matches"""
        if not query:
            return None

        url = f"{self.geocoding_url}/{quote(query)}.json"
        params = {'access_token': self.access_token, 'limit': 1}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            if response.status_code != 200:
                logger.error(f"Geocoding API Error {response.status_code}: {response.text}")
                return None
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Geocoding request failed: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error: {e}")
            return None

        features: List[Dict] = data.get('features') or []
        if not features:
            return None

        lng, lat = features[0]['center']
        return {'lat': lat, 'lng': lng, 'place_name': features[0].get('place_name', query)}
