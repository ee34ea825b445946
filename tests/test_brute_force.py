"""
Tests for the brute-force strategy search.
"""

import logging
import math

import pytest

from planner.inputs.types import BatterySpec, ForecastHour, PlanningInput
from planner.solver import brute_force
from planner.solver.battery import Battery
from planner.solver.brute_force import best_strategies, evaluate_batch, merge, BatchBest
from planner.solver.evaluator import evaluate
from planner.solver.types import PlanningError, SearchTimeoutError
from planner.strategy.strategies import Strategy, permute

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


def exhaustive_best(planning_input):
    best_cost, best_seq = math.inf, None
    for sequence in permute(planning_input.horizon):
        cost, _ = evaluate(planning_input, sequence)
        if best_seq is None or cost < best_cost:
            best_cost, best_seq = cost, sequence
    return best_cost, best_seq


class TestBestStrategies:
    def test_reference_scenario_optimum(self):
        output = best_strategies(make_input([(-2.0, 2.0), (0.0, 2.0), (2.0, -2.0)]), workers=1)
        assert output.strategies == (C, P, D)
        assert output.cost == pytest.approx(-3.4, abs=1e-9)
        assert output.battery_level == pytest.approx(10.0, abs=1e-9)
        assert output.is_feasible
        assert output.tags == ("charge", "preserve", "discharge")
        assert output.evaluated == 64

    @pytest.mark.parametrize(
        "forecast,level",
        [
            ([(1.2, -1.5)], 50.0),
            ([(0.3, 2.5), (2.1, -3.0)], 30.0),
            ([(0.5, -0.5), (-0.2, 4.0), (1.8, -2.2)], 70.0),
            ([(1.0, 0.0), (1.0, 0.0), (3.0, -1.0)], 100.0),
        ],
    )
    def test_matches_exhaustive_search(self, forecast, level):
        planning_input = make_input(forecast, level=level, energy_tax=0.5, energy_tax_reduction=0.6)
        expected_cost, expected_seq = exhaustive_best(planning_input)
        output = best_strategies(planning_input, workers=1, batch_size=7)
        assert output.cost == pytest.approx(expected_cost, abs=1e-9)
        assert output.strategies == expected_seq

    def test_optimum_not_beaten_by_any_candidate(self):
        planning_input = make_input([(0.5, 1.0), (2.0, -2.0), (0.1, 3.0)], level=40.0)
        output = best_strategies(planning_input, workers=1)
        for sequence in permute(3):
            cost, _ = evaluate(planning_input, sequence)
            assert output.cost <= cost + 1e-9

    def test_ties_pick_lowest_index(self):
        """With nothing to gain every feasible candidate costs 0; all-default wins."""
        spec = BatterySpec(capacity=10.0, degradation_cost=0.0)
        planning_input = make_input([(0.0, 0.0)] * 3, level=50.0, spec=spec)
        output = best_strategies(planning_input, workers=1, batch_size=5)
        assert output.cost == pytest.approx(0.0, abs=1e-9)
        assert output.strategies == (N, N, N)

    def test_empty_horizon(self):
        output = best_strategies(make_input([], level=35.0), workers=1)
        assert output.cost == 0.0
        assert output.strategies == ()
        assert output.battery_level == pytest.approx(35.0, abs=1e-9)

    def test_input_battery_not_mutated(self):
        planning_input = make_input([(-2.0, 2.0), (0.0, 2.0), (2.0, -2.0)])
        best_strategies(planning_input, workers=1)
        assert planning_input.battery.current_level == pytest.approx(10.0, abs=1e-9)

    def test_all_disqualified_returns_first_candidate(self, monkeypatch):
        monkeypatch.setattr(brute_force, "evaluate", lambda _input, _seq: (math.inf, 12.5))
        output = best_strategies(make_input([(1.0, 0.0), (1.0, 0.0)]), workers=1)
        assert math.isinf(output.cost)
        assert not output.is_feasible
        assert output.strategies == (N, N)
        assert output.battery_level == 12.5


class TestParallelSearch:
    def test_parallel_matches_serial(self):
        planning_input = make_input(
            [(0.4, 1.0), (1.9, -2.5), (-0.3, 3.0), (2.2, -1.0)],
            level=45.0,
            energy_tax=0.5,
            energy_tax_reduction=0.6,
            grid_benefit=0.05,
        )
        serial = best_strategies(planning_input, workers=1)
        parallel = best_strategies(planning_input, workers=2, batch_size=16)
        assert parallel.strategies == serial.strategies
        assert parallel.cost == pytest.approx(serial.cost, abs=1e-9)
        assert parallel.battery_level == pytest.approx(serial.battery_level, abs=1e-9)
        assert parallel.evaluated == 256

    def test_parallel_tie_break(self):
        spec = BatterySpec(capacity=10.0, degradation_cost=0.0)
        planning_input = make_input([(0.0, 0.0)] * 4, level=50.0, spec=spec)
        output = best_strategies(planning_input, workers=2, batch_size=8)
        assert output.strategies == (N, N, N, N)


class TestReduction:
    def test_evaluate_batch_counts_candidates(self):
        planning_input = make_input([(-2.0, 2.0), (0.0, 2.0), (2.0, -2.0)])
        result = evaluate_batch(planning_input, 10, 20)
        assert result.evaluated == 10
        assert 10 <= result.index < 20

    def test_merge_prefers_lower_cost_then_lower_index(self):
        results = [
            BatchBest(1.0, 40, 50.0, 10),
            BatchBest(-1.0, 30, 20.0, 10),
            BatchBest(-1.0, 5, 30.0, 10),
        ]
        best = merge(results)
        assert best.index == 5
        assert best.battery_level == 30.0
        assert best.evaluated == 30


class TestTimeout:
    def test_expired_deadline_raises(self):
        planning_input = make_input([(1.0, 0.0)] * 3, level=50.0)
        with pytest.raises(SearchTimeoutError) as exc_info:
            best_strategies(planning_input, workers=1, batch_size=4, timeout=-1.0)
        assert isinstance(exc_info.value, PlanningError)
        assert exc_info.value.total == 64

    def test_generous_deadline_completes(self):
        planning_input = make_input([(1.0, 0.0)] * 2, level=50.0)
        output = best_strategies(planning_input, workers=1, timeout=60.0)
        assert output.evaluated == 16


class TestLogging:
    def test_summary_logged_under_solarplant(self, caplog):
        planning_input = make_input([(1.0, 0.0)] * 2, level=50.0)
        with caplog.at_level(logging.DEBUG, logger="solarplant"):
            best_strategies(planning_input, workers=1)
        records = [r for r in caplog.records if r.name == "solarplant.planner.solver"]
        assert len(records) == 1
        assert "Evaluated 16 candidates" in records[0].getMessage()
