"""
Planner Input Types

Immutable dataclasses for planner input data, ensuring type safety and clear contracts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

from planner.solver.economics import buy_price, sell_price

if TYPE_CHECKING:
    from planner.solver.battery import Battery


@dataclass(frozen=True)
class BatterySpec:
    """
    Battery specification extracted from config.yaml (battery_spec section).

    Attributes:
        capacity: Total rated capacity in kWh
        min_level: Lowest allowed level in percent (0-100)
        max_level: Highest allowed level in percent (0-100)
        max_charge_rate: Maximum charge power in kW (kWh per hour)
        max_discharge_rate: Maximum discharge power in kW (kWh per hour)
        degradation_cost: Wear cost in SEK per kWh moved in or out of the battery
    """

    capacity: float
    min_level: float = 10.0
    max_level: float = 100.0
    max_charge_rate: float = 3.0
    max_discharge_rate: float = 3.0
    degradation_cost: float = 0.1

    @property
    def min_kwh(self) -> float:
        return self.capacity * self.min_level / 100.0

    @property
    def max_kwh(self) -> float:
        return self.capacity * self.max_level / 100.0


@dataclass(frozen=True)
class ForecastHour:
    """
    Exogenous inputs for one planning hour.

    energy_price is SEK/kWh (spot, excluding tax), energy_balance is kWh of
    production minus consumption, not including any battery effect
    (positive = surplus).
    """

    energy_price: float
    energy_balance: float


@dataclass(frozen=True)
class PlanningInput:
    """
    Complete input bundle for one optimizer run.

    Attributes:
        battery: Battery snapshot at the start of hour 0 (never mutated by the optimizer)
        forecast: One ForecastHour per planned hour, in order
        grid_max_power: Maximum power to and from the grid in kW
        energy_tax: Energy tax in SEK/kWh including VAT (energiskatt)
        energy_tax_reduction: Tax reduction in SEK/kWh when exporting (skattereduktion)
        grid_benefit: Grid benefit in SEK/kWh (nätnytta)
    """

    battery: Battery
    forecast: Tuple[ForecastHour, ...]
    grid_max_power: float = 0.0
    energy_tax: float = 0.0
    energy_tax_reduction: float = 0.0
    grid_benefit: float = 0.0

    @property
    def horizon(self) -> int:
        """Number of hours in the planning horizon."""
        return len(self.forecast)

    def buy_price(self, price: float, kwh: float) -> float:
        """Cost of importing kwh at the given spot price, with this input's taxes."""
        return buy_price(kwh, price, self.energy_tax, self.grid_benefit)

    def sell_price(self, price: float, kwh: float) -> float:
        """Revenue for exporting kwh at the given spot price, with tax reduction."""
        return sell_price(kwh, price, self.energy_tax_reduction)
