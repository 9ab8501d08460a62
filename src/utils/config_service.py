from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, conint, confloat, model_validator

from config.api_config import DATA_PATHS
from config.planner_config import PLANNER_CONFIG


PLANNER_OVERRIDES_PATH = Path(DATA_PATHS['planner_overrides'])


class PlannerPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Route discretisation
    segment_length_m: confloat(gt=0, le=100000) = Field(PLANNER_CONFIG["segment_length_m"])
    cruise_speed_kmh: confloat(gt=0, le=200) = PLANNER_CONFIG["cruise_speed_kmh"]
    default_temperature_c: confloat(ge=-60, le=60) = PLANNER_CONFIG["default_temperature_c"]

    # Panic detection
    panic_soc_pct: confloat(ge=0, le=100) = PLANNER_CONFIG["panic_soc_pct"]
    panic_floor_soc_pct: confloat(ge=0, le=100) = PLANNER_CONFIG["panic_floor_soc_pct"]
    panic_suppression_distance_km: confloat(ge=0) = PLANNER_CONFIG["panic_suppression_distance_km"]
    panic_tail_segments: conint(ge=0, le=50) = PLANNER_CONFIG["panic_tail_segments"]

    # Waypoint detection
    waypoint_strict_proximity_m: confloat(gt=0) = PLANNER_CONFIG["waypoint_strict_proximity_m"]
    waypoint_passing_band_m: confloat(gt=0) = PLANNER_CONFIG["waypoint_passing_band_m"]
    waypoint_passing_max_m: confloat(gt=0) = PLANNER_CONFIG["waypoint_passing_max_m"]

    # Charging policy
    final_charge_proximity_m: confloat(gt=0) = PLANNER_CONFIG["final_charge_proximity_m"]
    smart_charge_threshold_pct: confloat(ge=0, le=100) = PLANNER_CONFIG["smart_charge_threshold_pct"]

    # Rescue search
    max_waypoints: conint(ge=0, le=20) = PLANNER_CONFIG["max_waypoints"]
    charger_search_radius_km: confloat(gt=0, le=1000) = PLANNER_CONFIG["charger_search_radius_km"]
    charger_min_power_kw: confloat(ge=0, le=1000) = PLANNER_CONFIG["charger_min_power_kw"]
    charger_search_limit: conint(ge=1, le=500) = PLANNER_CONFIG["charger_search_limit"]
    duplicate_tolerance_deg: confloat(ge=0, le=1) = PLANNER_CONFIG["duplicate_tolerance_deg"]
    range_estimate_km_per_kwh: confloat(gt=0, le=20) = PLANNER_CONFIG["range_estimate_km_per_kwh"]
    reach_safety_margin: confloat(gt=0, le=1) = PLANNER_CONFIG["reach_safety_margin"]
    detour_weight: confloat(ge=0, le=10) = PLANNER_CONFIG["detour_weight"]

    # Batch planning
    max_workers: conint(ge=1, le=64) = PLANNER_CONFIG["max_workers"]

    @model_validator(mode="after")
    def _check_bands(self) -> "PlannerPolicy":
        if self.panic_floor_soc_pct > self.panic_soc_pct:
            raise ValueError("panic_floor_soc_pct must not exceed panic_soc_pct")
        if self.waypoint_passing_band_m > self.waypoint_passing_max_m:
            raise ValueError("waypoint_passing_band_m must not exceed waypoint_passing_max_m")
        return self


def _read_yaml(path: Path) -> Dict[str, Any]:
    if path.exists():
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        # Accept either a flat mapping or one nested under 'planner'
        return data.get("planner", data)
    return {}


def load_planner_policy(path: Optional[Union[str, Path]] = None, **overrides: Any) -> PlannerPolicy:
    """Merge PLANNER_CONFIG <- YAML overrides file <- keyword overrides."""
    overrides_path = Path(path) if path is not None else PLANNER_OVERRIDES_PATH
    merged = {**PLANNER_CONFIG, **_read_yaml(overrides_path), **overrides}
    return PlannerPolicy(**merged)


def save_planner_overrides(policy: PlannerPolicy, path: Optional[Union[str, Path]] = None) -> Path:
    """Persist only the values that differ from PLANNER_CONFIG."""
    overrides_path = Path(path) if path is not None else PLANNER_OVERRIDES_PATH
    changed = {k: v for k, v in policy.model_dump().items() if PLANNER_CONFIG.get(k) != v}
    overrides_path.parent.mkdir(parents=True, exist_ok=True)
    overrides_path.write_text(yaml.safe_dump({"planner": changed}, sort_keys=False), encoding="utf-8")
    return overrides_path
