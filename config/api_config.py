"""
External provider configuration
Separate from planner config to focus on I/O settings
"""

API_CONFIG = {
    'mapbox': {
        'directions_url': 'https://api.mapbox.com/directions/v5/mapbox',
        'geocoding_url': 'https://api.mapbox.com/geocoding/v5/mapbox.places',
        'profile': 'driving',
        'timeout_seconds': 20,
        'token_env': 'MAPBOX_ACCESS_TOKEN'
    },
    'open_meteo': {
        'elevation_url': 'https://api.open-meteo.com/v1/elevation',
        'batch_size': 50,                  # points per request
        'batch_delay_seconds': 0.25,       # pacing between batches
        'retry_attempts': 2,
        'timeout_seconds': 15,
        'interpolation_window': 300,       # max gap bridged without the API
        'cache_max_points': 200000,
        'cache_grid_resolution': 0.05      # degrees, fuzzy lookup grid
    },
    'openweather': {
        'base_url': 'https://api.openweathermap.org/data/2.5/weather',
        'timeout_seconds': 10,
        'key_env': 'OPENWEATHER_API_KEY'
    },
    'openchargemap': {
        'base_url': 'https://api.openchargemap.io/v3',
        'rate_limit_seconds': 0.5,
        'timeout_seconds': 15,
        'key_env': 'OPENCHARGEMAP_API_KEY'
    }
}

# File Paths
DATA_PATHS = {
    'chargers_csv': 'data/chargers/charging_stations.csv',
    'planner_overrides': 'config/planner_overrides.yaml',
    'trace_dir': 'data/trip_traces'
}
