"""
Planner Package

The planner package chooses one battery strategy per hour for the coming
hours by exhaustive search over all strategy sequences.

Public API:
- best_strategies: Cheapest strategy sequence for a PlanningInput
- evaluate: Cost and final battery level of one sequence
- Strategy / permute: The four hourly strategies and their sequences

The planning task (store → optimizer → store) lives in planner.pipeline.

Sub-packages:
- inputs: Data preparation and input types
- strategy: Strategy enumeration
- solver: Economics, battery model, evaluator and brute-force optimizer
"""

from __future__ import annotations

# Core types
from planner.inputs.types import (
    BatterySpec,
    ForecastHour,
    PlanningInput,
)

from planner.solver.types import (
    PlanningError,
    PlanningOutput,
    SearchTimeoutError,
)

# Strategies
from planner.strategy.strategies import (
    MAX_HORIZON_HOURS,
    Strategy,
    permutation_at,
    permutation_count,
    permute,
)

# Input processing
from planner.inputs.data_prep import (
    build_forecast_dataframe,
    dataframe_to_forecast,
)

# Solver
from planner.solver.battery import Battery
from planner.solver.evaluator import evaluate
from planner.solver.brute_force import best_strategies
from planner.solver.adapter import (
    config_to_battery_spec,
    config_to_planning_input,
    planning_output_to_dataframe,
)


__all__ = [
    # Types
    "BatterySpec",
    "ForecastHour",
    "PlanningInput",
    "PlanningError",
    "PlanningOutput",
    "SearchTimeoutError",
    # Strategy
    "MAX_HORIZON_HOURS",
    "Strategy",
    "permutation_at",
    "permutation_count",
    "permute",
    # Input processing
    "build_forecast_dataframe",
    "dataframe_to_forecast",
    # Solver
    "Battery",
    "evaluate",
    "best_strategies",
    "config_to_battery_spec",
    "config_to_planning_input",
    "planning_output_to_dataframe",
]
