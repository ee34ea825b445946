"""
Configuration

Loads config.yaml, fills in defaults and applies environment overrides.

Environment variables override single keys as SECTION_KEY in upper case,
e.g. BATTERY_SPEC_CAPACITY=10 or PLANNER_HOURS_AHEAD=8. Values are parsed
with YAML so numbers and booleans keep their types.
"""

from __future__ import annotations

import copy
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml

from planner.strategy.strategies import MAX_HORIZON_HOURS

logger = logging.getLogger("solarplant.config")

DEFAULT_CONFIG: Dict[str, Any] = {
    "timezone": "Europe/Stockholm",
    "database": {
        "path": "data/solarplant.db",
        "data_retention_days": 90,
    },
    "energy_price": {
        "tax_including_vat": 0.0,  # energiskatt, SEK/kWh
        "tax_reduction": 0.0,  # skattereduktion, SEK/kWh
        "grid_benefit": 0.0,  # nätnytta, SEK/kWh
        "area": "SE3",
        "currency": "SEK",
        "source": "elprisetjustnu",  # null = prices are imported from CSV
    },
    "weather_forecast": {
        "latitude": None,
        "longitude": None,
    },
    "energy_forecast": {
        "enabled": True,
        "hours_ahead": 24,
        "historical_days": 7,
        "cloud_cover_impact": 0.8,
    },
    "home_assistant": {
        "url": None,
        "token": None,
        "battery_soc_entity_id": None,
        "grid_power_entity_id": None,
        "battery_power_entity_id": None,
        "production_energy_entity_id": None,
        "consumption_energy_entity_id": None,
        "poll_seconds": 10,
    },
    "battery_spec": {
        "capacity": 0.0,
        "min_level": 10.0,
        "max_level": 100.0,
        "max_charge_rate": 0.0,
        "max_discharge_rate": 0.0,
        "degradation_cost": 0.0,
    },
    "planner": {
        "grid_max_power": 16.0,
        "hours_ahead": 8,
        "every_minutes": 60,
        "workers": None,
        "timeout_seconds": 60.0,
    },
    "battery_regulator_strategy": {
        "interval": 10,
        "update_threshold": 0.1,
        "startup_delay": 60,
        "safety_margin_kw": 1.0,
        "telemetry_max_age_seconds": 120,
    },
    "maintenance": {
        "run_at": "02:30",
    },
    "logging": {
        "console_level": "INFO",
        "db_level": "INFO",
        "db_max_entries": 10000,
        "file": "data/solarplant.log",
    },
}


def load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file not found at %s, using defaults", path)
        return {}


def merge_config(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_env_overrides(
    config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Override section keys from SECTION_KEY environment variables."""
    environ = os.environ if environ is None else environ
    for section, values in config.items():
        if not isinstance(values, dict):
            env_key = section.upper()
            if env_key in environ:
                config[section] = yaml.safe_load(environ[env_key])
            continue
        for key in values:
            env_key = f"{section}_{key}".upper()
            if env_key in environ:
                values[key] = yaml.safe_load(environ[env_key])
                logger.debug("Config %s.%s overridden from %s", section, key, env_key)
    return config


def load_config(
    path: str = "config.yaml", environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Load config.yaml merged over defaults, with environment overrides applied."""
    config = merge_config(DEFAULT_CONFIG, load_yaml(path))
    return apply_env_overrides(config, environ)


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_config(config: Mapping[str, Any]) -> List[str]:
    """
    Check the values the planner depends on.

    Returns a list of human readable problems, empty when the config is usable.
    """
    errors: List[str] = []
    battery = config.get("battery_spec", {}) or {}
    planner_cfg = config.get("planner", {}) or {}

    capacity = _as_float(battery.get("capacity"))
    if capacity is None or capacity <= 0:
        errors.append(f"battery_spec.capacity must be > 0 (got {battery.get('capacity')!r})")

    min_level = _as_float(battery.get("min_level"))
    max_level = _as_float(battery.get("max_level"))
    if min_level is None or max_level is None:
        errors.append("battery_spec.min_level and battery_spec.max_level must be numbers")
    elif not 0 <= min_level <= max_level <= 100:
        errors.append(
            "battery_spec levels must satisfy 0 <= min_level <= max_level <= 100 "
            f"(got min_level={min_level}, max_level={max_level})"
        )

    for key in ("max_charge_rate", "max_discharge_rate", "degradation_cost"):
        value = _as_float(battery.get(key))
        if value is None or value < 0:
            errors.append(f"battery_spec.{key} must be >= 0 (got {battery.get(key)!r})")

    hours_ahead = planner_cfg.get("hours_ahead")
    if not isinstance(hours_ahead, int) or isinstance(hours_ahead, bool):
        errors.append(f"planner.hours_ahead must be an integer (got {hours_ahead!r})")
    elif not 1 <= hours_ahead <= MAX_HORIZON_HOURS:
        errors.append(
            f"planner.hours_ahead must be between 1 and {MAX_HORIZON_HOURS} (got {hours_ahead})"
        )

    grid_max_power = _as_float(planner_cfg.get("grid_max_power"))
    if grid_max_power is None or grid_max_power < 0:
        errors.append(
            f"planner.grid_max_power must be >= 0 (got {planner_cfg.get('grid_max_power')!r})"
        )

    workers = planner_cfg.get("workers")
    if workers is not None and (not isinstance(workers, int) or workers < 1):
        errors.append(f"planner.workers must be a positive integer or null (got {workers!r})")

    forecast_cfg = config.get("energy_forecast", {}) or {}
    impact = _as_float(forecast_cfg.get("cloud_cover_impact", 0.8))
    if impact is None or not 0 <= impact <= 1:
        errors.append(
            "energy_forecast.cloud_cover_impact must be between 0 and 1 "
            f"(got {forecast_cfg.get('cloud_cover_impact')!r})"
        )
    historical_days = forecast_cfg.get("historical_days", 7)
    if not isinstance(historical_days, int) or historical_days < 1:
        errors.append(
            f"energy_forecast.historical_days must be a positive integer (got {historical_days!r})"
        )

    return errors
