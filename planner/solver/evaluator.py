"""
Cost Evaluator

Simulates one candidate strategy sequence hour by hour and returns how much
money is spent (positive) or earned (negative) against the grid, including
battery degradation.

A sequence that asks for something the battery cannot do (charge a full
battery, discharge an empty one, or force a charge/discharge that does not
exchange any energy with the grid) is disqualified and gets infinite cost.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

from planner.inputs.types import PlanningInput
from planner.strategy.strategies import Strategy


def evaluate(planning_input: PlanningInput, sequence: Sequence[Strategy]) -> Tuple[float, float]:
    """
    Total cost and final battery level (percent) for one strategy sequence.

    Works on a copy of planning_input.battery. Simulation stops at the first
    disqualified hour; the returned level is the level reached at that point.
    """
    batt = planning_input.battery.copy()
    total_cost = 0.0
    disqualified = False

    for hour, strategy in enumerate(sequence):
        price = planning_input.forecast[hour].energy_price
        balance = planning_input.forecast[hour].energy_balance

        if strategy == Strategy.DEFAULT:
            delta = batt.update_level(balance)
            buy_kwh = max(0.0, delta - balance)
            if buy_kwh > 0:
                total_cost += planning_input.buy_price(price, buy_kwh)
            sell_kwh = max(0.0, balance - delta)
            if sell_kwh > 0:
                total_cost -= planning_input.sell_price(price, sell_kwh)
            total_cost += batt.degradation_cost * abs(delta)

        elif strategy == Strategy.PRESERVE:
            if balance < 0:
                total_cost += planning_input.buy_price(price, -balance)
            if balance > 0:
                total_cost -= planning_input.sell_price(price, balance)

        elif strategy == Strategy.CHARGE:
            if batt.available_capacity <= 0:
                disqualified = True
                break
            delta = batt.update_level(batt.max_charge_rate)
            buy_kwh = max(0.0, delta - balance)
            if buy_kwh <= 0:
                disqualified = True
                break
            total_cost += planning_input.buy_price(price, buy_kwh)
            total_cost += batt.degradation_cost * abs(delta)

        elif strategy == Strategy.DISCHARGE:
            if batt.remaining_capacity <= 0:
                disqualified = True
                break
            delta = batt.update_level(-batt.max_discharge_rate)
            sell_kwh = max(0.0, balance - delta)
            if sell_kwh <= 0:
                disqualified = True
                break
            total_cost -= planning_input.sell_price(price, sell_kwh)
            total_cost += batt.degradation_cost * abs(delta)

        else:
            raise ValueError(f"Unknown strategy at hour {hour}: {strategy!r}")

    if disqualified:
        total_cost = math.inf

    return total_cost, batt.current_level
