"""
Logging modes for the trip planner.

A mode picks level, outputs and format for the 'ev_trip' logger. The active
mode comes from EV_TRIP_LOG_MODE when set, DEFAULT_LOG_MODE otherwise.
"""
import os

# level, console, file, per-run detail files, format
LOGGING_MODES = {
    'PRODUCTION': {
        'log_level': 'WARNING',
        'enable_console': True,
        'enable_file': False,
        'detailed_logging': False,
        'log_format': 'minimal'
    },
    'DEVELOPMENT': {
        'log_level': 'INFO',
        'enable_console': True,
        'enable_file': True,
        'detailed_logging': False,
        'log_format': 'simple'
    },
    # Per-run detail files for the components switched on below
    'DEBUG': {
        'log_level': 'DEBUG',
        'enable_console': True,
        'enable_file': True,
        'detailed_logging': True,
        'log_format': 'detailed'
    },
    'SILENT': {
        'log_level': 'CRITICAL',
        'enable_console': False,
        'enable_file': False,
        'detailed_logging': False,
        'log_format': 'minimal'
    },
    'TESTING': {
        'log_level': 'DEBUG',
        'enable_console': False,
        'enable_file': True,
        'detailed_logging': True,
        'log_format': 'detailed'
    },
}

DEFAULT_LOG_MODE = 'DEVELOPMENT'
LOG_MODE_ENV = 'EV_TRIP_LOG_MODE'

# Modules that may write to the 'ev_trip' hierarchy
MODULE_LOGGING = {
    'physics_engine': True,
    'simulation': True,
    'rescue_planner': True,
    'trip_planner': True,
    'charger_catalogue': True
}

# Components with their own detail file when detailed_logging is on
DETAILED_LOGGING_COMPONENTS = {
    'energy_calculation': False,  # one line per segment and pass, very large
    'forward_simulation': False,
    'rescue_planning': True,      # candidate scoring
    'final_simulation': False
}

LOG_DIR = "debug_logs"
ROUTE_FAILURE_LOG = "route_failures.log"


def get_logging_config(mode: str = None) -> dict:
    """Settings for ``mode``; unknown modes fall back to DEVELOPMENT"""
    mode = (mode or os.getenv(LOG_MODE_ENV) or DEFAULT_LOG_MODE).upper()
    return dict(LOGGING_MODES.get(mode, LOGGING_MODES[DEFAULT_LOG_MODE]))


def is_module_logging_enabled(module_name: str) -> bool:
    return MODULE_LOGGING.get(module_name, True)


def is_detailed_logging_enabled(component: str) -> bool:
    return DETAILED_LOGGING_COMPONENTS.get(component, False)


def set_module_logging(module_name: str, enabled: bool):
    MODULE_LOGGING[module_name] = enabled


def set_detailed_logging(component: str, enabled: bool):
    DETAILED_LOGGING_COMPONENTS[component] = enabled
