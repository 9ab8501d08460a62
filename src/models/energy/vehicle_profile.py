from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, confloat, model_validator

from config.ev_models import VEHICLE_PROFILES
from config.physics_constants import VEHICLE_DEFAULTS
from src.utils.exceptions import InvalidTripRequestError


class VehicleProfile(BaseModel):
    """Physical description of a vehicle, immutable once built."""

    model_config = ConfigDict(frozen=True)

    name: str = "custom"
    battery_capacity: confloat(gt=0) = Field(..., description="Gross pack size (kWh)")
    usable_capacity: confloat(gt=0) = Field(..., description="Drivable energy (kWh)")
    drag_coefficient: confloat(gt=0, le=2.0)
    frontal_area: confloat(gt=0, le=20.0)        # m²
    weight: confloat(gt=0)                       # kg
    rolling_resistance: confloat(ge=0, le=0.1)
    motor_efficiency: confloat(gt=0, le=1.0) = VEHICLE_DEFAULTS['motor_efficiency']
    regen_efficiency: confloat(gt=0, le=1.0) = VEHICLE_DEFAULTS['regen_efficiency']
    thermal_coefficient_heat: confloat(ge=0) = VEHICLE_DEFAULTS['thermal_coefficient_heat']
    thermal_coefficient_cold: confloat(ge=0) = VEHICLE_DEFAULTS['thermal_coefficient_cold']

    @model_validator(mode="after")
    def _usable_within_battery(self) -> "VehicleProfile":
        if self.usable_capacity > self.battery_capacity:
            raise ValueError(
                f"usable_capacity ({self.usable_capacity}) exceeds battery_capacity ({self.battery_capacity})"
            )
        return self

    @classmethod
    def from_catalogue(cls, key: str, overrides: Optional[Dict[str, Any]] = None) -> "VehicleProfile":
        """Build a profile from the VEHICLE_PROFILES catalogue."""
        if key not in VEHICLE_PROFILES:
            raise InvalidTripRequestError(
                f"Unknown vehicle '{key}'. Available: {', '.join(sorted(VEHICLE_PROFILES))}"
            )
        params = {**VEHICLE_PROFILES[key], **(overrides or {})}
        return cls(**params)
