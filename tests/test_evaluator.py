"""
Tests for the cost evaluator.

Covers the per-strategy cost rules, the disqualification rules and the
reference three-hour scenario.
"""

import math

import pytest

from planner.inputs.types import BatterySpec, ForecastHour, PlanningInput
from planner.solver.battery import Battery
from planner.solver.evaluator import evaluate
from planner.strategy.strategies import Strategy

C, P, D, N = Strategy.CHARGE, Strategy.PRESERVE, Strategy.DISCHARGE, Strategy.DEFAULT

SPEC = BatterySpec(
    capacity=10.0,
    min_level=10.0,
    max_level=100.0,
    max_charge_rate=3.0,
    max_discharge_rate=3.0,
    degradation_cost=0.1,
)


def make_input(forecast, level=10.0, spec=SPEC, **taxes):
    return PlanningInput(
        battery=Battery(spec=spec, current_level=level),
        forecast=tuple(ForecastHour(price, balance) for price, balance in forecast),
        **taxes,
    )


SCENARIO = [(-2.0, 2.0), (0.0, 2.0), (2.0, -2.0)]


class TestReferenceScenario:
    def test_charge_preserve_preserve(self):
        cost, level = evaluate(make_input(SCENARIO), [C, P, P])
        assert cost == pytest.approx(2.3, abs=1e-9)
        assert level == pytest.approx(40.0, abs=1e-9)

    def test_charge_preserve_discharge(self):
        cost, level = evaluate(make_input(SCENARIO), [C, P, D])
        assert cost == pytest.approx(-3.4, abs=1e-9)
        assert level == pytest.approx(10.0, abs=1e-9)

    def test_input_battery_not_mutated(self):
        planning_input = make_input(SCENARIO)
        evaluate(planning_input, [C, C, C])
        assert planning_input.battery.current_level == pytest.approx(10.0, abs=1e-9)


class TestDefault:
    def test_surplus_charges_battery_then_sells_rest(self):
        # 5 kWh surplus, 4 kWh room: 4 into the battery, 1 sold
        cost, level = evaluate(make_input([(1.0, 5.0)], level=60.0), [N])
        assert level == pytest.approx(100.0, abs=1e-9)
        assert cost == pytest.approx(-1.0 + 0.1 * 4.0, abs=1e-9)

    def test_deficit_uses_battery_then_buys_rest(self):
        # 3 kWh deficit, 1 kWh above min level
        cost, level = evaluate(make_input([(2.0, -3.0)], level=20.0), [N])
        assert level == pytest.approx(10.0, abs=1e-9)
        assert cost == pytest.approx(2.0 * 2.0 + 0.1 * 1.0, abs=1e-9)

    def test_taxes_applied(self):
        cost, _ = evaluate(
            make_input([(1.0, -2.0)], level=10.0, energy_tax=0.5, grid_benefit=0.1), [N]
        )
        assert cost == pytest.approx(2.0 * (1.0 + 0.5 - 0.1), abs=1e-9)


class TestPreserve:
    def test_deficit_bought(self):
        cost, level = evaluate(make_input([(1.5, -2.0)], level=50.0), [P])
        assert cost == pytest.approx(3.0, abs=1e-9)
        assert level == pytest.approx(50.0, abs=1e-9)

    def test_surplus_sold_with_tax_reduction(self):
        cost, _ = evaluate(make_input([(1.0, 2.0)], level=50.0, energy_tax_reduction=0.6), [P])
        assert cost == pytest.approx(-3.2, abs=1e-9)

    def test_zero_balance_costs_nothing(self):
        cost, _ = evaluate(make_input([(1.0, 0.0)], level=50.0), [P])
        assert cost == 0.0


class TestDisqualification:
    def test_charge_full_battery(self):
        cost, level = evaluate(make_input([(1.0, 0.0)], level=100.0), [C])
        assert math.isinf(cost)
        assert level == pytest.approx(100.0, abs=1e-9)

    def test_charge_covered_by_surplus(self):
        """A forced charge that needs nothing from the grid is disqualified."""
        cost, _ = evaluate(make_input([(1.0, 3.0)], level=10.0), [C])
        assert math.isinf(cost)

    def test_charge_partially_covered_by_surplus(self):
        cost, level = evaluate(make_input([(1.0, 2.0)], level=10.0), [C])
        assert cost == pytest.approx(1.0 + 0.3, abs=1e-9)
        assert level == pytest.approx(40.0, abs=1e-9)

    def test_discharge_empty_battery(self):
        cost, _ = evaluate(make_input([(1.0, 0.0)], level=10.0), [D])
        assert math.isinf(cost)

    def test_discharge_absorbed_by_deficit(self):
        """A forced discharge that exports nothing is disqualified."""
        cost, _ = evaluate(make_input([(1.0, -3.0)], level=50.0), [D])
        assert math.isinf(cost)

    def test_simulation_stops_at_disqualification(self):
        cost, level = evaluate(make_input([(1.0, 0.0), (1.0, 0.0)], level=95.0), [C, C])
        assert math.isinf(cost)
        assert level == pytest.approx(100.0, abs=1e-9)

    def test_default_never_disqualified(self):
        cost, _ = evaluate(make_input([(5.0, -10.0)] * 3, level=10.0), [N, N, N])
        assert math.isfinite(cost)


class TestEdgeCases:
    def test_empty_sequence(self):
        cost, level = evaluate(make_input([], level=42.0), [])
        assert cost == 0.0
        assert level == pytest.approx(42.0, abs=1e-9)

    def test_unknown_strategy_raises(self):
        with pytest.raises(ValueError):
            evaluate(make_input([(1.0, 0.0)], level=50.0), [7])
