"""
Elevation lookup backed by the Open-Meteo elevation API, with an in-memory
cache that answers repeat points, snaps to a coarse grid for near misses and
interpolates short gaps between known values before any request is made.
"""
import requests
import json
import logging
import math
import threading
import time
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from config.api_config import API_CONFIG
from src.utils.exceptions import ProviderError

logger = logging.getLogger(__name__)


class ElevationCache:
    """Thread-safe LRU cache of elevations keyed on 4-decimal coordinates"""

    def __init__(self, max_points: int = None, grid_resolution: float = None):
        config = API_CONFIG['open_meteo']
        self.max_points = max_points or config['cache_max_points']
        self.grid_resolution = grid_resolution or config['cache_grid_resolution']
        self._cache = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def _key(lat: float, lng: float) -> str:
        return f"{lat:.4f},{lng:.4f}"

    def _snap(self, value: float) -> float:
        return math.floor(value / self.grid_resolution + 0.5) * self.grid_resolution

    def _get_locked(self, key: str) -> Optional[float]:
        if key in self._cache:
            # Move to end (most recently used)
            self._cache.move_to_end(key)
            return self._cache[key]
        return None

    def get(self, lat: float, lng: float) -> Optional[float]:
        """Exact match first, then the nearest grid point"""
        with self._lock:
            value = self._get_locked(self._key(lat, lng))
            if value is None:
                value = self._get_locked(self._key(self._snap(lat), self._snap(lng)))
            return value

    def get_many(self, locations: Sequence[Tuple[float, float]]) -> Dict[int, float]:
        """Cached elevations by input index; misses are absent"""
        results = {}
        for idx, (lat, lng) in enumerate(locations):
            value = self.get(lat, lng)
            if value is not None:
                results[idx] = value
        return results

    def put(self, lat: float, lng: float, elevation: float) -> None:
        key = self._key(lat, lng)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.max_points:
                # Remove oldest if at capacity
                self._cache.popitem(last=False)
            self._cache[key] = elevation

    def set_many(self, items: Sequence[Tuple[float, float, float]]) -> None:
        for lat, lng, elevation in items:
            self.put(lat, lng, elevation)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, location: Tuple[float, float]) -> bool:
        with self._lock:
            return self._key(*location) in self._cache


def interpolate_gaps(known: Dict[int, float], size: int, window: int) -> Dict[int, float]:
    """
    Linearly fill missing indices bounded by known values on both sides,
    looking ahead at most ``window`` points. Returns only the filled indices.
    """
    filled = {}
    last_idx = -1
    last_val = 0.0

    for i in range(size):
        if i in known:
            last_idx = i
            last_val = known[i]
            continue
        if last_idx == -1:
            continue

        next_idx = -1
        for j in range(i + 1, min(i + window, size)):
            if j in known:
                next_idx = j
                break
        if next_idx == -1:
            continue

        fraction = (i - last_idx) / (next_idx - last_idx)
        filled[i] = last_val + (known[next_idx] - last_val) * fraction

    return filled


# Shared across clients so repeated plans reuse fetched points
_shared_cache = ElevationCache()


def get_shared_cache() -> ElevationCache:
    return _shared_cache


class OpenMeteoElevationClient:
    """Batched Open-Meteo elevation lookups with pacing and fail-fast fallback"""

    def __init__(self, session: Optional[requests.Session] = None,
                 cache: Optional[ElevationCache] = None,
                 batch_delay_seconds: Optional[float] = None):
        self.config = API_CONFIG['open_meteo']
        self.base_url = self.config['elevation_url']
        self.batch_size = self.config['batch_size']
        self.retry_attempts = self.config['retry_attempts']
        self.timeout = self.config['timeout_seconds']
        self.interpolation_window = self.config['interpolation_window']
        self.batch_delay = (self.config['batch_delay_seconds']
                            if batch_delay_seconds is None else batch_delay_seconds)
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else get_shared_cache()

    def _fetch_batch(self, batch: Sequence[Tuple[float, float]]) -> Optional[List[Optional[float]]]:
        """
        One request with backoff on HTTP 429.
        Returns None when every attempt was rate limited.
        """
        params = {
            'latitude': ','.join(f"{lat:.4f}" for lat, _ in batch),
            'longitude': ','.join(f"{lng:.4f}" for _, lng in batch),
        }

        for attempt in range(self.retry_attempts):
            if attempt > 0:
                time.sleep(1.0 * (attempt + 1))

            try:
                response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                if attempt == self.retry_attempts - 1:
                    raise ProviderError('open_meteo', f"request failed: {e}") from e
                continue

            if response.status_code == 429:
                logger.warning(f"Rate limit hit. Retrying in {(attempt + 1) * 2}s...")
                time.sleep(2.0 * (attempt + 1))
                continue
            if response.status_code != 200:
                raise ProviderError('open_meteo', response.text, response.status_code)

            try:
                elevations = response.json().get('elevation')
            except json.JSONDecodeError as e:
                raise ProviderError('open_meteo', f"invalid JSON: {e}") from e
            if not elevations or len(elevations) != len(batch):
                raise ProviderError('open_meteo', "elevation count does not match request")
            return [float(e) if e is not None else None for e in elevations]

        return None

    def get_elevations(self, locations: Sequence[Tuple[float, float]]) -> List[Optional[float]]:
        """
        Elevation in meters for each (lat, lng), same order and length.
        Points the API could not answer come back as None (unknown, not sea level).
        """
        if not locations:
            return []

        results = self.cache.get_many(locations)
        cache_hits = len(results)
        interpolated = interpolate_gaps(results, len(locations), self.interpolation_window)
        results.update(interpolated)

        missing = [i for i in range(len(locations)) if i not in results]
        logger.info(f"Elevation: {cache_hits} cached, {len(interpolated)} interpolated, {len(missing)} to fetch")

        api_failed = False
        fetched = []
        for start in range(0, len(missing), self.batch_size):
            batch_idx = missing[start:start + self.batch_size]
            batch = [locations[i] for i in batch_idx]

            if api_failed:
                continue

            if self.batch_delay > 0:
                time.sleep(self.batch_delay)

            try:
                elevations = self._fetch_batch(batch)
            except ProviderError as e:
                logger.error(f"Elevation API failed, switching to flat fallback: {e}")
                elevations = None

            if elevations is None:
                api_failed = True
                continue

            for i, elevation in zip(batch_idx, elevations):
                if elevation is None:
                    continue
                results[i] = elevation
                fetched.append((locations[i][0], locations[i][1], elevation))

        self.cache.set_many(fetched)
        if api_failed:
            logger.warning(f"Elevation: {len(locations) - len(results)} of {len(locations)} points left unknown")
        return [results.get(i) for i in range(len(locations))]
