"""
Tests for the in-memory telemetry holder.
"""

from executor.telemetry import InMemoryTelemetry


class TestInMemoryTelemetry:
    def setup_method(self):
        self.now = 1000.0
        self.telemetry = InMemoryTelemetry(clock=lambda: self.now)

    def test_empty(self):
        assert self.telemetry.snapshot() is None
        assert self.telemetry.battery_level() == 0.0
        assert self.telemetry.grid_power() == 0.0
        assert self.telemetry.battery_power() == 0.0
        assert not self.telemetry.healthy()

    def test_update_rounds_values(self):
        self.telemetry.update(battery_level=55.556, grid_power=-1.234, battery_power=2.0)
        assert self.telemetry.battery_level() == 55.56
        assert self.telemetry.grid_power() == -1.23
        assert self.telemetry.battery_power() == 2.0
        assert self.telemetry.snapshot().updated_at == 1000.0

    def test_healthy_until_stale(self):
        self.telemetry.update(battery_level=50.0)
        self.now += 60.0
        assert self.telemetry.healthy(max_age_seconds=120.0)
        self.now += 61.0
        assert not self.telemetry.healthy(max_age_seconds=120.0)

    def test_energy_counters_optional(self):
        self.telemetry.update(battery_level=50.0)
        assert self.telemetry.snapshot().production_lifetime is None

        self.telemetry.update(battery_level=50.0, production_lifetime=1234.567, consumption_lifetime=99)
        snap = self.telemetry.snapshot()
        assert snap.production_lifetime == 1234.57
        assert snap.consumption_lifetime == 99.0
