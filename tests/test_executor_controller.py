"""
Tests for Executor Controller Logic

Tests the regulator decisions that turn a planned strategy and live
telemetry into battery instructions.
"""

import logging

import pytest

from executor.config import RegulatorConfig, load_executor_config
from executor.controller import (
    ACTION_AUTO,
    ACTION_CHARGE,
    ACTION_DISCHARGE,
    BatteryInstruction,
    BatteryRegulator,
)
from executor.telemetry import TelemetrySnapshot
from planner.inputs.types import BatterySpec
from planner.strategy.strategies import Strategy

SPEC = BatterySpec(capacity=10.0, max_charge_rate=5.0, max_discharge_rate=4.0)


def state(level=50.0, grid=0.0):
    return TelemetrySnapshot(battery_level=level, grid_power=grid, battery_power=0.0, updated_at=0.0)


def make_regulator(**overrides):
    config = RegulatorConfig(grid_max_power_kw=16.0, safety_margin_kw=1.0, **overrides)
    return BatteryRegulator(SPEC, config)


class TestTarget:
    def test_default_is_auto(self):
        assert make_regulator().target(Strategy.DEFAULT, state()) == BatteryInstruction(ACTION_AUTO, 0.0)

    def test_preserve_holds_level(self):
        assert make_regulator().target(Strategy.PRESERVE, state()) == BatteryInstruction(
            ACTION_CHARGE, 0.0
        )

    def test_charge_at_max_rate(self):
        instruction = make_regulator().target(Strategy.CHARGE, state(grid=2.0))
        assert instruction == BatteryInstruction(ACTION_CHARGE, 5.0)

    def test_charge_limited_by_grid_fuse(self):
        # 16 kW fuse, 12.5 kW already imported, 1 kW margin
        instruction = make_regulator().target(Strategy.CHARGE, state(grid=12.5))
        assert instruction.power_kw == pytest.approx(2.5, abs=1e-9)

    def test_charge_never_negative(self):
        instruction = make_regulator().target(Strategy.CHARGE, state(grid=20.0))
        assert instruction.power_kw == 0.0

    def test_charge_stops_when_full(self):
        instruction = make_regulator().target(Strategy.CHARGE, state(level=100.0))
        assert instruction == BatteryInstruction(ACTION_CHARGE, 0.0)

    def test_discharge_at_max_rate(self):
        instruction = make_regulator().target(Strategy.DISCHARGE, state(grid=1.0))
        assert instruction == BatteryInstruction(ACTION_DISCHARGE, 4.0)

    def test_discharge_limited_by_export_headroom(self):
        # Exporting 13 kW already: 16 - 13 - 1 = 2 kW left
        instruction = make_regulator().target(Strategy.DISCHARGE, state(grid=-13.0))
        assert instruction.power_kw == pytest.approx(2.0, abs=1e-9)

    def test_discharge_stops_when_empty(self):
        instruction = make_regulator().target(Strategy.DISCHARGE, state(level=10.0))
        assert instruction == BatteryInstruction(ACTION_DISCHARGE, 0.0)


class TestDecide:
    def test_first_decision_is_sent(self):
        regulator = make_regulator()
        assert regulator.decide("charge", state()) == BatteryInstruction(ACTION_CHARGE, 5.0)
        assert regulator.last_instruction == BatteryInstruction(ACTION_CHARGE, 5.0)

    def test_small_change_not_resent(self):
        regulator = make_regulator(update_threshold_kw=0.5)
        regulator.decide("charge", state(grid=12.0))  # 3.0 kW
        assert regulator.decide("charge", state(grid=12.2)) is None  # 2.8 kW
        assert regulator.last_instruction.power_kw == pytest.approx(3.0, abs=1e-9)

    def test_large_change_resent(self):
        regulator = make_regulator(update_threshold_kw=0.5)
        regulator.decide("charge", state(grid=12.0))
        instruction = regulator.decide("charge", state(grid=13.0))
        assert instruction.power_kw == pytest.approx(2.0, abs=1e-9)

    def test_action_change_always_sent(self):
        regulator = make_regulator()
        regulator.decide("preserve", state())
        assert regulator.decide("default", state()) == BatteryInstruction(ACTION_AUTO, 0.0)

    def test_same_instruction_not_resent(self):
        regulator = make_regulator()
        regulator.decide("default", state())
        assert regulator.decide("default", state()) is None

    def test_reset_forces_resend(self):
        regulator = make_regulator()
        regulator.decide("default", state())
        regulator.reset()
        assert regulator.decide("default", state()) is not None

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            make_regulator().decide("turbo", state())


class TestExecutorConfig:
    def test_defaults(self):
        config = RegulatorConfig()
        assert config.interval_seconds == 10.0
        assert config.update_threshold_kw == 0.1
        assert config.startup_delay_seconds == 60.0

    def test_load_from_config_dict(self):
        config = load_executor_config(
            {
                "battery_spec": {"capacity": 12, "max_charge_rate": 6},
                "planner": {"grid_max_power": 20},
                "battery_regulator_strategy": {"interval": 5, "update_threshold": 0.3},
                "timezone": "UTC",
            }
        )
        assert config.battery.capacity == 12.0
        assert config.battery.max_charge_rate == 6.0
        assert config.regulator.interval_seconds == 5.0
        assert config.regulator.update_threshold_kw == 0.3
        assert config.regulator.startup_delay_seconds == 60.0
        assert config.regulator.grid_max_power_kw == 20.0
        assert config.timezone == "UTC"

    def test_missing_section_logged_under_solarplant(self, caplog):
        with caplog.at_level(logging.INFO, logger="solarplant"):
            load_executor_config({"battery_spec": {"capacity": 10}})
        assert [r.name for r in caplog.records] == ["solarplant.executor.config"]
