"""
Planner Adapter Module

Convert between the config dictionary, optimizer types and DataFrames
used for logging and the CLI.
"""

from typing import Any, Dict, Sequence

import pandas as pd

from backend.hours import DateHour
from planner.inputs.data_prep import hour_index
from planner.inputs.types import BatterySpec, ForecastHour, PlanningInput
from planner.solver.battery import Battery
from planner.solver.types import PlanningOutput


def config_to_battery_spec(config: Dict[str, Any]) -> BatterySpec:
    """Build the BatterySpec from the battery_spec config section."""
    spec = config.get("battery_spec", {}) or {}
    return BatterySpec(
        capacity=float(spec.get("capacity", 0.0)),
        min_level=float(spec.get("min_level", 10.0)),
        max_level=float(spec.get("max_level", 100.0)),
        max_charge_rate=float(spec.get("max_charge_rate", 0.0)),
        max_discharge_rate=float(spec.get("max_discharge_rate", 0.0)),
        degradation_cost=float(spec.get("degradation_cost", 0.0)),
    )


def config_to_planning_input(
    config: Dict[str, Any],
    battery_level: float,
    forecast: Sequence[ForecastHour],
) -> PlanningInput:
    """
    Combine config (battery spec, taxes, grid limit) with a live battery
    level and the forecast into optimizer input.
    """
    energy_price = config.get("energy_price", {}) or {}
    planner_cfg = config.get("planner", {}) or {}
    return PlanningInput(
        battery=Battery(spec=config_to_battery_spec(config), current_level=float(battery_level)),
        forecast=tuple(forecast),
        grid_max_power=float(planner_cfg.get("grid_max_power", 0.0)),
        energy_tax=float(energy_price.get("tax_including_vat", 0.0)),
        energy_tax_reduction=float(energy_price.get("tax_reduction", 0.0)),
        grid_benefit=float(energy_price.get("grid_benefit", 0.0)),
    )


def planning_output_to_dataframe(
    output: PlanningOutput,
    start: DateHour,
    forecast: Sequence[ForecastHour],
) -> pd.DataFrame:
    """
    One row per planned hour with the chosen strategy next to its inputs.
    """
    hours = len(output.strategies)
    df = pd.DataFrame(
        {
            "strategy": [s.tag for s in output.strategies],
            "energy_price": [f.energy_price for f in forecast[:hours]],
            "energy_balance": [f.energy_balance for f in forecast[:hours]],
        },
        index=hour_index(start, hours),
    )
    return df
