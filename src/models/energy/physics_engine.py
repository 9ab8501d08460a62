"""
Physics-based segment energy model used by the trip planner.
Converts distance, grade, speed and ambient temperature into net energy
(consumption positive, regeneration negative) for one vehicle.
"""
import math

from config.physics_constants import PHYSICS_CONSTANTS, THERMAL_COMFORT_BAND
from config.logging_config import is_detailed_logging_enabled
from src.models.energy.vehicle_profile import VehicleProfile
from src.utils.logger import get_logger, log_detailed

logger = get_logger('physics_engine')


class PhysicsEngine:
    """
    Segment energy model with three road-load forces:
    - Aerodynamic drag
    - Rolling resistance
    - Grade resistance (sin(atan(grade)), valid at steep grades)
    plus a thermal penalty on consuming segments.
    """

    def __init__(self, vehicle: VehicleProfile):
        self.vehicle = vehicle

        self.AIR_DENSITY = PHYSICS_CONSTANTS['air_density']
        self.GRAVITY = PHYSICS_CONSTANTS['gravity']
        self.KMH_TO_MS = PHYSICS_CONSTANTS['kmh_to_ms']
        self.JOULES_PER_KWH = PHYSICS_CONSTANTS['joules_per_kwh']
        self.HOT_ABOVE = THERMAL_COMFORT_BAND['hot_above']
        self.COLD_BELOW = THERMAL_COMFORT_BAND['cold_below']

        self.debug_mode = is_detailed_logging_enabled('energy_calculation')

    def _log_detailed(self, message: str):
        if self.debug_mode:
            log_detailed(message, "energy_calculation", self.vehicle.name.replace(' ', '_'))

    def calculate_aero_force(self, speed_kmh: float) -> float:
        # F_aero = 0.5 * Cd * A * rho * v²
        speed_ms = speed_kmh * self.KMH_TO_MS
        return 0.5 * self.vehicle.drag_coefficient * self.vehicle.frontal_area * self.AIR_DENSITY * speed_ms ** 2

    def calculate_rolling_resistance(self) -> float:
        # F_roll = Crr * m * g
        return self.vehicle.rolling_resistance * self.vehicle.weight * self.GRAVITY

    def calculate_grade_force(self, grade: float) -> float:
        # F_grade = m * g * sin(theta), theta = atan(rise / run)
        return self.vehicle.weight * self.GRAVITY * math.sin(math.atan(grade))

    def calculate_thermal_penalty(self, temperature_c: float) -> float:
        """Fractional consumption penalty outside the comfort band."""
        if temperature_c > self.HOT_ABOVE:
            return (temperature_c - self.HOT_ABOVE) * self.vehicle.thermal_coefficient_heat
        if temperature_c < self.COLD_BELOW:
            return (self.COLD_BELOW - temperature_c) * self.vehicle.thermal_coefficient_cold
        return 0.0

    def calculate_total_force(self, grade: float, speed_kmh: float) -> float:
        return (self.calculate_aero_force(speed_kmh)
                + self.calculate_rolling_resistance()
                + self.calculate_grade_force(grade))

    def calculate_segment_energy(self, distance_m: float, grade: float,
                                 speed_kmh: float, temperature_c: float) -> float:
        """
        Net energy for one segment in kWh.

        Args:
            distance_m: Segment length in meters
            grade: Rise over run (dimensionless)
            speed_kmh: Constant cruise speed
            temperature_c: Ambient temperature

        Returns:
            Positive kWh when propulsion is needed, zero or negative kWh when
            the segment regenerates. The thermal penalty only scales positive
            energy; regenerating segments are returned unpenalised.
        """
        total_force = self.calculate_total_force(grade, speed_kmh)

        if total_force > 0:
            energy_j = total_force * distance_m / self.vehicle.motor_efficiency
        else:
            energy_j = total_force * distance_m * self.vehicle.regen_efficiency

        energy_kwh = energy_j / self.JOULES_PER_KWH

        if energy_kwh > 0:
            energy_kwh *= 1 + self.calculate_thermal_penalty(temperature_c)

        self._log_detailed(
            f"d={distance_m:.1f}m grade={grade:.4f} v={speed_kmh:.1f}km/h T={temperature_c:.1f}C "
            f"F={total_force:.1f}N E={energy_kwh:.5f}kWh"
        )
        return energy_kwh

    # Alias matching the provider-facing naming
    energy_for_segment = calculate_segment_energy
