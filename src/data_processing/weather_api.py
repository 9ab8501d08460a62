import requests
import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv

from config.api_config import API_CONFIG
from src.utils.exceptions import ProviderError

logger = logging.getLogger(__name__)
load_dotenv()


class OpenWeatherAPI:
    """Current ambient temperature from OpenWeather (metric units)"""

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.config = API_CONFIG['openweather']
        self.api_key = api_key or os.getenv(self.config['key_env'])
        self.base_url = self.config['base_url']
        self.timeout = self.config['timeout_seconds']
        self.session = session or requests.Session()

    def get_temperature(self, lat: float, lng: float) -> float:
        """Temperature in °C at the given point; raises ProviderError on any failure"""
        params = {
            'lat': lat,
            'lon': lng,
            'units': 'metric',
            'appid': self.api_key,
        }

        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Weather request failed: {e}")
            raise ProviderError('openweather', f"request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Weather API Error {response.status_code}: {response.text}")
            raise ProviderError('openweather', response.text, response.status_code)

        try:
            return float(response.json()['main']['temp'])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected weather payload: {e}")
            raise ProviderError('openweather', f"unexpected payload: {e}") from e
