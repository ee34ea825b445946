"""
Executor Engine

The regulator loop that executes the plan, hour by hour:
1. Reading the planned strategy for the current hour from the store
2. Falling back to the default strategy when no plan exists
3. Reading live telemetry
4. Asking the controller for a battery instruction
5. Passing new instructions to the inverter sink
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from backend.hours import DateHour
from backend.store import SolarStore, StoreError
from planner.strategy.strategies import Strategy

from .config import ExecutorConfig
from .controller import BatteryInstruction, BatteryRegulator
from .telemetry import InMemoryTelemetry

logger = logging.getLogger("solarplant.executor")

InstructionSink = Callable[[BatteryInstruction], None]


@dataclass
class ExecutorStatus:
    """Current status of the regulator."""

    running: bool = False
    last_run_at: Optional[str] = None
    last_run_status: str = "pending"
    last_error: Optional[str] = None
    current_hour: Optional[str] = None
    current_strategy: Optional[str] = None
    using_fallback: bool = False
    last_instruction: Optional[BatteryInstruction] = None


class RegulatorEngine:
    """
    Runs the battery regulator on a fixed interval in a background thread.
    """

    def __init__(
        self,
        config: ExecutorConfig,
        store: SolarStore,
        telemetry: InMemoryTelemetry,
        sink: InstructionSink,
    ):
        self.config = config
        self.store = store
        self.telemetry = telemetry
        self.sink = sink
        self.regulator = BatteryRegulator(config.battery, config.regulator)
        self.status = ExecutorStatus()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _planned_strategy(self, hour: DateHour) -> str:
        """Strategy tag for the hour, falling back to default when there is no plan."""
        error: Optional[Exception] = None
        try:
            row = self.store.get_planning(hour)
        except StoreError as exc:
            row, error = None, exc

        if row is None:
            fallback = Strategy.DEFAULT.tag
            if not self.status.using_fallback:
                self.status.using_fallback = True
                logger.warning(
                    "No planning for hour %s, using fallback strategy %s%s",
                    hour,
                    fallback,
                    f" ({error})" if error else "",
                )
            return fallback

        if self.status.using_fallback:
            self.status.using_fallback = False
            logger.info("Recovered from fallback strategy, hour %s planned as %s", hour, row.strategy)
        return row.strategy

    def run_once(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run a single regulator tick synchronously.

        Returns a dict describing what was decided and whether it was sent.
        """
        hour = DateHour.from_now(now)
        result: Dict[str, Any] = {
            "hour": str(hour),
            "strategy": None,
            "instruction": None,
            "sent": False,
            "error": None,
        }

        with self._lock:
            self.status.last_run_at = (now or datetime.now(timezone.utc)).isoformat()
            self.status.current_hour = str(hour)

            state = self.telemetry.snapshot()
            if state is None or not self.telemetry.healthy(
                self.config.regulator.telemetry_max_age_seconds
            ):
                logger.debug("Telemetry not available, skipping regulation")
                self.status.last_run_status = "skipped"
                return result

            strategy = self._planned_strategy(hour)
            result["strategy"] = strategy
            self.status.current_strategy = strategy

            try:
                instruction = self.regulator.decide(strategy, state)
            except ValueError as exc:
                logger.error("Unknown strategy %r for hour %s", strategy, hour)
                self.status.last_run_status = "error"
                self.status.last_error = str(exc)
                result["error"] = str(exc)
                return result

            result["instruction"] = instruction
            if instruction is None:
                self.status.last_run_status = "unchanged"
                return result

            try:
                self.sink(instruction)
            except Exception as exc:
                logger.exception("Failed to send battery instruction %s", instruction)
                # Forget it so the next tick tries again
                self.regulator.reset()
                self.status.last_run_status = "error"
                self.status.last_error = str(exc)
                result["error"] = str(exc)
                return result

            self.status.last_instruction = instruction
            self.status.last_run_status = "sent"
            self.status.last_error = None
            result["sent"] = True
            return result

    def start(self) -> None:
        """Start the regulator loop in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning("Regulator already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="regulator", daemon=True)
        self._thread.start()
        self.status.running = True
        logger.info(
            "Regulator started (interval: %ss, startup delay: %ss)",
            self.config.regulator.interval_seconds,
            self.config.regulator.startup_delay_seconds,
        )

    def stop(self) -> None:
        """Stop the regulator loop."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            logger.info("Regulator stopped")
        self.status.running = False

    def _run_loop(self) -> None:
        logger.debug("Waiting for system to stabilize")
        if self._stop_event.wait(self.config.regulator.startup_delay_seconds):
            return

        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.exception("Regulator tick failed: %s", e)
                self.status.last_run_status = "error"
                self.status.last_error = str(e)
            self._stop_event.wait(self.config.regulator.interval_seconds)
