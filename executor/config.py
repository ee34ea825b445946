"""
Regulator Configuration

Builds the battery regulator configuration from the loaded config dictionary.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from planner.inputs.types import BatterySpec
from planner.solver.adapter import config_to_battery_spec

logger = logging.getLogger("solarplant.executor.config")


@dataclass
class RegulatorConfig:
    """Battery regulator settings (battery_regulator_strategy section)."""

    interval_seconds: float = 10.0  # Time between power updates
    update_threshold_kw: float = 0.1  # Minimum change before a new instruction is sent
    startup_delay_seconds: float = 60.0  # Wait for telemetry to stabilize
    safety_margin_kw: float = 1.0  # Headroom kept below the grid fuse limit
    grid_max_power_kw: float = 16.0
    telemetry_max_age_seconds: float = 120.0


@dataclass
class ExecutorConfig:
    """Main executor configuration."""

    battery: BatterySpec
    regulator: RegulatorConfig
    timezone: str = "Europe/Stockholm"


def load_executor_config(config: Dict[str, Any]) -> ExecutorConfig:
    """
    Build ExecutorConfig from the config dictionary.

    Falls back to defaults for missing regulator keys.
    """
    data = config.get("battery_regulator_strategy", {}) or {}
    if not data:
        logger.info("No battery_regulator_strategy section in config, using defaults")

    planner_cfg = config.get("planner", {}) or {}
    regulator = RegulatorConfig(
        interval_seconds=float(data.get("interval", RegulatorConfig.interval_seconds)),
        update_threshold_kw=float(
            data.get("update_threshold", RegulatorConfig.update_threshold_kw)
        ),
        startup_delay_seconds=float(
            data.get("startup_delay", RegulatorConfig.startup_delay_seconds)
        ),
        safety_margin_kw=float(data.get("safety_margin_kw", RegulatorConfig.safety_margin_kw)),
        grid_max_power_kw=float(
            planner_cfg.get("grid_max_power", RegulatorConfig.grid_max_power_kw)
        ),
        telemetry_max_age_seconds=float(
            data.get("telemetry_max_age_seconds", RegulatorConfig.telemetry_max_age_seconds)
        ),
    )

    return ExecutorConfig(
        battery=config_to_battery_spec(config),
        regulator=regulator,
        timezone=config.get("timezone", "Europe/Stockholm"),
    )
