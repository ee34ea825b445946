"""
Planner Pipeline

Main orchestrator for the hourly planning task.
Coordinates Store → Forecast → Optimizer → Store flow.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from backend.config import validate_config
from backend.hours import DateHour
from backend.store import PlanningRow, SolarStore
from executor.telemetry import InMemoryTelemetry
from planner.inputs.data_prep import build_forecast_dataframe, dataframe_to_forecast
from planner.solver.adapter import config_to_planning_input, planning_output_to_dataframe
from planner.solver.brute_force import best_strategies
from planner.solver.types import PlanningOutput, SearchTimeoutError
from planner.strategy.strategies import Strategy

logger = logging.getLogger("solarplant.planner")

STATUS_PLANNED = "planned"
STATUS_TRUNCATED = "truncated"
STATUS_INFEASIBLE = "infeasible"
STATUS_NO_DATA = "no_data"
STATUS_SKIPPED = "skipped"
STATUS_BUSY = "busy"
STATUS_TIMEOUT = "timeout"


@dataclass
class PlanResult:
    """Outcome of one planning run."""

    status: str
    start: Optional[DateHour] = None
    output: Optional[PlanningOutput] = None
    strategies: Tuple[str, ...] = ()
    rows_saved: int = 0
    cost: Optional[float] = None
    schedule: Optional[pd.DataFrame] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.status in (STATUS_PLANNED, STATUS_TRUNCATED, STATUS_INFEASIBLE)


class PlannerPipeline:
    """
    Orchestrator for the planning task.

    Each run plans the hours after the current one: it reads prices and
    energy forecasts from the store, combines them with the live battery
    level, searches for the cheapest strategy per hour and stores the result
    for the regulator.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        store: SolarStore,
        telemetry: Optional[InMemoryTelemetry] = None,
    ):
        """
        Initialize the pipeline with configuration.

        Args:
            config: Configuration dictionary (from config.yaml)
            store: Store with prices and forecasts, receives the planning
            telemetry: Live battery readings

        Raises:
            ValueError: The config has values the planner cannot work with
        """
        self.config = config
        self.store = store
        self.telemetry = telemetry
        self._lock = threading.Lock()
        self._validate_config()

    def _validate_config(self) -> None:
        """Validate critical configuration values."""
        errors = validate_config(self.config)
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

    @property
    def hours_ahead(self) -> int:
        return int(self.config["planner"]["hours_ahead"])

    def _telemetry_max_age(self) -> float:
        regulator = self.config.get("battery_regulator_strategy", {}) or {}
        return float(regulator.get("telemetry_max_age_seconds", 120))

    def run(
        self, now: Optional[datetime] = None, battery_level: Optional[float] = None
    ) -> PlanResult:
        """
        Plan the coming hours and persist one strategy per hour.

        Args:
            now: Override current time (UTC when naive)
            battery_level: Override the live battery level (percent)

        Returns:
            PlanResult describing what happened
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Planning already in progress, skipping run")
            return PlanResult(status=STATUS_BUSY)
        try:
            return self._run(now, battery_level)
        finally:
            self._lock.release()

    def _run(self, now: Optional[datetime], battery_level: Optional[float]) -> PlanResult:
        if battery_level is None:
            if self.telemetry is None or not self.telemetry.healthy(self._telemetry_max_age()):
                logger.warning("Battery telemetry unavailable, skipping planning")
                return PlanResult(status=STATUS_SKIPPED)
            battery_level = self.telemetry.battery_level()

        start = DateHour.from_now(now).add(1)
        hours_ahead = self.hours_ahead

        # 1. Forecast
        df = build_forecast_dataframe(
            self.store.get_energy_prices_from(start),
            self.store.get_energy_forecasts_from(start),
            start,
            hours_ahead,
        )
        if df.empty:
            logger.warning("No price or energy forecast for %s, aborting planning", start)
            return PlanResult(status=STATUS_NO_DATA, start=start)

        status = STATUS_PLANNED
        if len(df) < hours_ahead:
            status = STATUS_TRUNCATED
            logger.info(
                "Forecast incomplete, planning %d of %d hours from %s",
                len(df),
                hours_ahead,
                start,
            )

        forecast = dataframe_to_forecast(df)
        planning_input = config_to_planning_input(self.config, battery_level, forecast)

        # 2. Optimize
        planner_cfg = self.config.get("planner", {}) or {}
        timeout = planner_cfg.get("timeout_seconds")
        try:
            output = best_strategies(
                planning_input,
                workers=planner_cfg.get("workers"),
                timeout=float(timeout) if timeout is not None else None,
            )
        except SearchTimeoutError as e:
            logger.warning("Planning from %s abandoned: %s", start, e)
            return PlanResult(status=STATUS_TIMEOUT, start=start)

        strategies: Tuple[Strategy, ...] = output.strategies
        cost: Optional[float] = output.cost
        if not output.is_feasible:
            logger.warning(
                "No feasible plan for %d hours from %s, using %s",
                len(forecast),
                start,
                Strategy.DEFAULT.tag,
            )
            strategies = tuple(Strategy.DEFAULT for _ in forecast)
            cost = None
            status = STATUS_INFEASIBLE

        # 3. Persist
        rows_saved = 0
        for offset, strategy in enumerate(strategies):
            self.store.save_planning(PlanningRow(when=start.add(offset), strategy=strategy.tag))
            rows_saved += 1

        tags = tuple(s.tag for s in strategies)
        logger.info(
            "Planned %d hours from %s at battery level %.1f%%: %s (cost=%s)",
            rows_saved,
            start,
            battery_level,
            ",".join(tags),
            "n/a" if cost is None else f"{cost:.2f}",
        )

        schedule = planning_output_to_dataframe(output, start, forecast)
        schedule["strategy"] = list(tags)

        return PlanResult(
            status=status,
            start=start,
            output=output,
            strategies=tags,
            rows_saved=rows_saved,
            cost=cost,
            schedule=schedule,
        )
