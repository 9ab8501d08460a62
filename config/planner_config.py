"""
Centralized configuration for trip planning policy.

Only planner knobs live here to keep business policy separate from the
vehicle catalogue and the physics constants. Every value can be overridden
at runtime through src/utils/config_service.py.
"""

PLANNER_CONFIG = {
    # Route discretisation
    "segment_length_m": 5000,           # 5 km segments for trip planning
    "cruise_speed_kmh": 80.0,           # fixed simulation speed
    "default_temperature_c": 25.0,      # used when weather is unavailable

    # Panic detection (forward pass)
    "panic_soc_pct": 25.0,              # below this SoC the pass looks for a safe plan
    "panic_floor_soc_pct": 5.0,         # never suppress panic at or below this SoC
    "panic_suppression_distance_km": 75.0,  # pending charger must be closer than this
    "panic_tail_segments": 2,           # last N segments are never checked (arrival is accepted)

    # Waypoint pass-through detection (forward pass)
    "waypoint_strict_proximity_m": 3000.0,
    "waypoint_passing_band_m": 5000.0,  # closest approach must be inside this band
    "waypoint_passing_max_m": 10000.0,  # ...and the receding distance below this

    # Charging policy (final pass)
    "final_charge_proximity_m": 5000.0,
    "smart_charge_threshold_pct": 60.0,  # only charge below this SoC

    # Rescue search
    "max_waypoints": 5,                 # hard cap on stops (recursion depth guard)
    "charger_search_radius_km": 150.0,
    "charger_min_power_kw": 50.0,
    "charger_search_limit": 50,
    "duplicate_tolerance_deg": 0.02,    # ~2 km grid
    "range_estimate_km_per_kwh": 4.0,   # fleet-average, reachability gate only
    "reach_safety_margin": 0.95,
    "detour_weight": 0.1,               # score = detour_weight * g + h

    # Batch planning
    "max_workers": 4,
}

__all__ = ["PLANNER_CONFIG"]
