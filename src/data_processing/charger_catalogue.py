"""
Local charger catalogue loaded from CSV.

Offline alternative to the OpenChargeMap client with the same
``find_chargers_near`` contract, plus a corridor search along a route.
Expected columns: station_id, name, latitude, longitude, max_power_kw,
operator (name and operator are optional).
"""
import math
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from geopy.distance import geodesic

from config.api_config import DATA_PATHS
from config.physics_constants import PHYSICS_CONSTANTS
from src.models.route_optimization.rescue_planner import ChargerCandidate
from src.utils.logger import get_logger

logger = get_logger('charger_catalogue')

REQUIRED_COLUMNS = ['station_id', 'latitude', 'longitude', 'max_power_kw']


class ChargerCatalogue:
    def __init__(self, stations: pd.DataFrame):
        missing = [c for c in REQUIRED_COLUMNS if c not in stations.columns]
        if missing:
            raise ValueError(f"Charger catalogue is missing columns: {missing}")

        stations = stations.dropna(subset=['latitude', 'longitude']).copy()
        stations['station_id'] = stations['station_id'].astype(str)
        if 'name' not in stations.columns:
            stations['name'] = stations['station_id']
        if 'operator' not in stations.columns:
            stations['operator'] = 'Unknown'
        stations['max_power_kw'] = stations['max_power_kw'].fillna(0.0).astype(float)
        self.stations = stations.reset_index(drop=True)

    @classmethod
    def from_csv(cls, path: Optional[Union[str, Path]] = None) -> "ChargerCatalogue":
        csv_path = Path(path or DATA_PATHS['chargers_csv'])
        stations = pd.read_csv(csv_path)
        logger.info(f"Loaded {len(stations)} chargers from {csv_path}")
        return cls(stations)

    def __len__(self) -> int:
        return len(self.stations)

    def _to_candidates(self, frame: pd.DataFrame) -> List[ChargerCandidate]:
        return [
            ChargerCandidate(
                id=row.station_id,
                name=str(row.name),
                latitude=float(row.latitude),
                longitude=float(row.longitude),
                power_kw=float(row.max_power_kw),
                operator=str(row.operator),
                distance_km=float(row.distance_km),
            )
            for row in frame.itertuples(index=False)
        ]

    def find_chargers_near(self, lat: float, lng: float, radius_km: float,
                           min_power_kw: float, limit: int) -> List[ChargerCandidate]:
        """Chargers of at least ``min_power_kw`` within ``radius_km``, nearest first"""
        stations = self.stations[self.stations['max_power_kw'] >= min_power_kw]
        if stations.empty:
            return []

        search_location = (lat, lng)
        stations = stations.copy()
        stations['distance_km'] = [
            geodesic(search_location, (row.latitude, row.longitude)).kilometers
            for row in stations.itertuples(index=False)
        ]

        # Filter by radius, sort by distance, limit results
        nearby = stations[stations['distance_km'] <= radius_km]
        nearby = nearby.sort_values('distance_km', kind='stable').head(limit)

        logger.debug(f"Found {len(nearby)} chargers within {radius_km}km of ({lat:.4f}, {lng:.4f})")
        return self._to_candidates(nearby)

    def find_chargers_along_route(self, geometry: Sequence[Sequence[float]], corridor_km: float = 5.0,
                                  min_power_kw: float = 0.0) -> List[ChargerCandidate]:
        """
        Chargers within ``corridor_km`` of any vertex of a (lng, lat) route,
        ordered by distance from the route start. ``distance_km`` holds the
        distance to the closest vertex.
        """
        if not geometry:
            return []

        coords = np.asarray(geometry, dtype=float)
        lngs, lats = coords[:, 0], coords[:, 1]

        # Bounding box grown by the corridor
        mid_lat = math.radians(float(lats.mean()))
        lat_buffer = corridor_km / 111.0
        lng_buffer = corridor_km / (111.0 * max(math.cos(mid_lat), 1e-6))

        stations = self.stations[
            (self.stations['max_power_kw'] >= min_power_kw)
            & (self.stations['latitude'].between(lats.min() - lat_buffer, lats.max() + lat_buffer))
            & (self.stations['longitude'].between(lngs.min() - lng_buffer, lngs.max() + lng_buffer))
        ].copy()
        if stations.empty:
            return []

        stations['distance_km'] = [
            float(_haversine_km_vec(row.latitude, row.longitude, lats, lngs).min())
            for row in stations.itertuples(index=False)
        ]
        stations = stations[stations['distance_km'] <= corridor_km].copy()

        start_lat, start_lng = float(lats[0]), float(lngs[0])
        stations['from_start_km'] = _haversine_km_vec(
            start_lat, start_lng, stations['latitude'].to_numpy(), stations['longitude'].to_numpy()
        )
        stations = stations.sort_values('from_start_km', kind='stable')

        logger.info(f"Found {len(stations)} chargers within {corridor_km}km of the route")
        return self._to_candidates(stations)


def _haversine_km_vec(lat: float, lng: float, lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    """Vectorised Haversine from one point to many, in km"""
    lat1, lng1 = np.radians(lat), np.radians(lng)
    lat2, lng2 = np.radians(lats), np.radians(lngs)
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlng / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return PHYSICS_CONSTANTS['earth_radius_m'] * c / 1000.0
