"""
Controller Logic

Turns the planned strategy for the current hour plus live telemetry into a
battery power instruction for the inverter.

Determines:
- Which battery action to request (auto, charge, discharge)
- How much power to charge/discharge without exceeding the grid fuse limit
- Whether the change is big enough to be worth sending
"""

import logging
from dataclasses import dataclass
from typing import Optional

from planner.inputs.types import BatterySpec
from planner.strategy.strategies import Strategy

from .config import RegulatorConfig
from .telemetry import TelemetrySnapshot

logger = logging.getLogger("solarplant.executor.controller")

ACTION_AUTO = "auto"
ACTION_CHARGE = "charge"
ACTION_DISCHARGE = "discharge"


@dataclass(frozen=True)
class BatteryInstruction:
    """What the inverter should do with the battery."""

    action: str  # auto, charge, discharge
    power_kw: float = 0.0


class BatteryRegulator:
    """
    Decides battery instructions for a planned strategy.

    Keeps the last instruction so unchanged or near-identical instructions
    are not resent on every tick.
    """

    def __init__(self, battery: BatterySpec, config: RegulatorConfig):
        self.battery = battery
        self.config = config
        self.last_instruction: Optional[BatteryInstruction] = None

    def target(self, strategy: Strategy, state: TelemetrySnapshot) -> BatteryInstruction:
        """Instruction for a strategy, ignoring what was sent before."""
        margin = self.config.safety_margin_kw
        grid_max = self.config.grid_max_power_kw

        if strategy == Strategy.DEFAULT:
            return BatteryInstruction(ACTION_AUTO, 0.0)

        if strategy == Strategy.PRESERVE:
            # Charging with 0 kW holds the battery level
            return BatteryInstruction(ACTION_CHARGE, 0.0)

        if strategy == Strategy.CHARGE:
            free_power = grid_max - state.grid_power - margin
            power = max(0.0, min(self.battery.max_charge_rate, free_power))
            if state.battery_level >= self.battery.max_level:
                power = 0.0
            return BatteryInstruction(ACTION_CHARGE, round(power, 2))

        if strategy == Strategy.DISCHARGE:
            free_power = grid_max + state.grid_power - margin
            power = max(0.0, min(self.battery.max_discharge_rate, free_power))
            if state.battery_level <= self.battery.min_level:
                power = 0.0
            return BatteryInstruction(ACTION_DISCHARGE, round(power, 2))

        raise ValueError(f"Unsupported strategy: {strategy!r}")

    def decide(self, strategy_tag: str, state: TelemetrySnapshot) -> Optional[BatteryInstruction]:
        """
        Instruction to send for the planned strategy tag, or None when the
        previous instruction is still good enough.

        Raises:
            ValueError: strategy_tag is not a known strategy
        """
        instruction = self.target(Strategy.from_tag(strategy_tag), state)

        last = self.last_instruction
        if (
            last is not None
            and last.action == instruction.action
            and abs(instruction.power_kw - last.power_kw) < self.config.update_threshold_kw
        ):
            return None

        logger.debug(
            "New battery instruction %s %.2f kW (strategy=%s, grid=%.2f kW, level=%.1f%%)",
            instruction.action,
            instruction.power_kw,
            strategy_tag,
            state.grid_power,
            state.battery_level,
        )
        self.last_instruction = instruction
        return instruction

    def reset(self) -> None:
        self.last_instruction = None
