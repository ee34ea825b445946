"""
Battery Model

Stateful representation of one battery: spec plus current level.
Levels are stored in percent of capacity, energy flows in kWh.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from planner.inputs.types import BatterySpec


@dataclass
class Battery:
    spec: BatterySpec
    current_level: float  # percent of capacity

    @property
    def capacity(self) -> float:
        return self.spec.capacity

    @property
    def min_level(self) -> float:
        return self.spec.min_level

    @property
    def max_level(self) -> float:
        return self.spec.max_level

    @property
    def max_charge_rate(self) -> float:
        return self.spec.max_charge_rate

    @property
    def max_discharge_rate(self) -> float:
        return self.spec.max_discharge_rate

    @property
    def degradation_cost(self) -> float:
        return self.spec.degradation_cost

    def to_kwh(self, percent: float) -> float:
        """Battery level in kWh for a given percentage."""
        return percent / 100.0 * self.spec.capacity

    def to_pct(self, kwh: float) -> float:
        """Battery level in percent for a given kWh."""
        return kwh / self.spec.capacity * 100.0

    @property
    def available_capacity(self) -> float:
        """Room left for charging, in kWh."""
        return self.to_kwh(self.spec.max_level) - self.to_kwh(self.current_level)

    @property
    def remaining_capacity(self) -> float:
        """Energy left for discharging, in kWh."""
        return self.to_kwh(self.current_level) - self.to_kwh(self.spec.min_level)

    def update_level(self, load_kwh: float) -> float:
        """
        Apply a charge (positive) or discharge (negative/zero) load for one hour.

        The new level is clamped to [min_level, max_level]. Returns the energy
        actually moved in kWh, which is smaller in magnitude than load_kwh when
        the battery hit one of its bounds.
        """
        old_kwh = self.to_kwh(self.current_level)
        if load_kwh > 0:
            new_kwh = min(self.to_kwh(self.spec.max_level), old_kwh + load_kwh)
        else:
            new_kwh = max(self.to_kwh(self.spec.min_level), old_kwh + load_kwh)

        self.current_level = self.to_pct(new_kwh)
        return new_kwh - old_kwh

    def copy(self) -> Battery:
        """Independent copy for simulation (the spec itself is immutable)."""
        return replace(self)
