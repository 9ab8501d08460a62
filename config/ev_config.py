"""
Main configuration file for the EV trip planner
Combines all configuration parameters and provides easy access
"""

from .ev_models import VEHICLE_PROFILES, DEFAULT_VEHICLE
from .physics_constants import PHYSICS_CONSTANTS, THERMAL_COMFORT_BAND, VEHICLE_DEFAULTS
from .planner_config import PLANNER_CONFIG
from .api_config import API_CONFIG, DATA_PATHS

# Example corridor used by the CLI when no coordinates are given
EXAMPLE_TRIP = {
    'start': (13.0827, 80.2707),        # Chennai
    'end': (10.7905, 78.7047),          # Tiruchirappalli
    'vehicle': DEFAULT_VEHICLE,
    'start_soc': 80.0,
}

# Export all configurations
__all__ = [
    'VEHICLE_PROFILES',
    'DEFAULT_VEHICLE',
    'PHYSICS_CONSTANTS',
    'THERMAL_COMFORT_BAND',
    'VEHICLE_DEFAULTS',
    'PLANNER_CONFIG',
    'API_CONFIG',
    'DATA_PATHS',
    'EXAMPLE_TRIP',
]
