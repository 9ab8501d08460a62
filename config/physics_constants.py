# Physical constants for segment energy calculation
PHYSICS_CONSTANTS = {
    'air_density': 1.225,               # kg/m³ at sea level
    'gravity': 9.81,                    # m/s²
    'kmh_to_ms': 1 / 3.6,               # km/h -> m/s
    'joules_per_kwh': 3600 * 1000,      # J -> kWh divisor
    'earth_radius_m': 6371e3,           # Haversine earth radius
}

# Ambient band (°C) in which no thermal penalty is applied.
# Above 'hot_above' the vehicle's heat coefficient applies per degree,
# below 'cold_below' the cold coefficient applies per degree.
THERMAL_COMFORT_BAND = {
    'cold_below': 15.0,
    'hot_above': 25.0,
}

# Defaults used when a vehicle record does not carry its own values
VEHICLE_DEFAULTS = {
    'motor_efficiency': 0.90,
    'regen_efficiency': 0.70,
    'thermal_coefficient_heat': 0.015,  # 1.5% per °C above 25°C
    'thermal_coefficient_cold': 0.010,  # 1.0% per °C below 15°C
}
