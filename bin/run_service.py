"""Run the telemetry poller, task scheduler and battery regulator until interrupted."""

import argparse
import logging
import signal
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.config import load_config
from backend.core.logging import setup_logging
from backend.scheduler import TaskScheduler, build_input_sources
from backend.store import SolarStore
from executor.config import load_executor_config
from executor.controller import BatteryInstruction
from executor.engine import RegulatorEngine
from executor.home_assistant import TelemetryPoller, load_home_assistant_config
from executor.telemetry import InMemoryTelemetry
from planner.pipeline import PlannerPipeline

logger = logging.getLogger("solarplant.service")


def log_sink(instruction: BatteryInstruction) -> None:
    """Instruction sink used until an inverter integration is configured."""
    logger.info("Battery instruction: %s %.2f kW", instruction.action, instruction.power_kw)


@dataclass
class Service:
    telemetry: InMemoryTelemetry
    poller: Optional[TelemetryPoller]
    pipeline: PlannerPipeline
    scheduler: TaskScheduler
    regulator: RegulatorEngine

    def start(self) -> None:
        if self.poller is not None:
            self.poller.start()
        self.scheduler.start()
        self.regulator.start()

    def stop(self) -> None:
        self.regulator.stop()
        self.scheduler.stop()
        if self.poller is not None:
            self.poller.stop()


def build_service(config: Dict[str, Any], store: SolarStore) -> Service:
    telemetry = InMemoryTelemetry()

    ha_config = load_home_assistant_config(config)
    poller = None
    if ha_config.enabled:
        poller = TelemetryPoller(ha_config, telemetry)
    else:
        logger.warning(
            "No telemetry source configured (home_assistant.url and "
            "home_assistant.battery_soc_entity_id), planning and regulation will be skipped"
        )

    price_source, weather_source = build_input_sources(config)
    pipeline = PlannerPipeline(config, store, telemetry)
    scheduler = TaskScheduler(config, pipeline, store, telemetry, price_source, weather_source)
    regulator = RegulatorEngine(load_executor_config(config), store, telemetry, log_sink)
    return Service(telemetry, poller, pipeline, scheduler, regulator)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the solarplant planner and regulator.")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml.")
    return parser


def main(argv=None) -> int:
    args = _build_arg_parser().parse_args(argv)

    config = load_config(args.config)
    store = SolarStore(config["database"]["path"])
    setup_logging(config, store)

    try:
        service = build_service(config, store)
    except ValueError as exc:
        logger.error("Service not started: %s", exc)
        return 2

    stop = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("Received signal %s, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    service.start()
    try:
        stop.wait()
    finally:
        service.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
