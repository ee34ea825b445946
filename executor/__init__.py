"""
Solarplant Executor Package

Executes the hourly battery plan in real time: reads the planned strategy
for the current hour and turns it into charge/discharge instructions for
the inverter every few seconds.

Modules:
    engine: Regulator loop and status
    controller: Strategy to battery instruction decisions
    telemetry: Latest inverter readings
    config: Regulator configuration
"""

from .config import ExecutorConfig, RegulatorConfig, load_executor_config
from .controller import BatteryInstruction, BatteryRegulator
from .engine import RegulatorEngine
from .telemetry import InMemoryTelemetry, TelemetrySnapshot

__all__ = [
    "BatteryInstruction",
    "BatteryRegulator",
    "ExecutorConfig",
    "InMemoryTelemetry",
    "RegulatorConfig",
    "RegulatorEngine",
    "TelemetrySnapshot",
    "load_executor_config",
]
