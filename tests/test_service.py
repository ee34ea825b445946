"""
Tests for the service wiring: Home Assistant telemetry feeding the
scheduled planning run and the regulator.
"""

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from backend.config import DEFAULT_CONFIG, merge_config
from backend.hours import DateHour
from backend.store import EnergyForecastRow, EnergyPriceRow, SolarStore
from bin.run_service import build_service

NOW = datetime(2024, 6, 1, 21, 15, tzinfo=timezone.utc)
START = DateHour("2024-06-01", 22)


def make_config(tmp_path, **home_assistant):
    return merge_config(
        DEFAULT_CONFIG,
        {
            "database": {"path": str(tmp_path / "solarplant.db")},
            "battery_spec": {
                "capacity": 10,
                "min_level": 10,
                "max_level": 100,
                "max_charge_rate": 3,
                "max_discharge_rate": 3,
                "degradation_cost": 0.1,
            },
            "energy_price": {
                "tax_including_vat": 0.0,
                "tax_reduction": 0.0,
                "grid_benefit": 0.0,
                "source": None,
            },
            "planner": {"hours_ahead": 3, "workers": 1, "timeout_seconds": 30},
            "home_assistant": home_assistant,
        },
    )


def ha_state(value, unit):
    response = MagicMock()
    response.json.return_value = {
        "state": value,
        "attributes": {"unit_of_measurement": unit},
    }
    return response


@pytest.fixture
def store(tmp_path):
    store = SolarStore(str(tmp_path / "solarplant.db"))
    hours = ((-2.0, 2.0, 0.0), (0.0, 2.0, 0.0), (2.0, 0.0, 2.0))
    store.save_energy_prices([EnergyPriceRow(START.add(i), h[0]) for i, h in enumerate(hours)])
    store.save_energy_forecasts(
        [EnergyForecastRow(START.add(i), h[1], h[2]) for i, h in enumerate(hours)]
    )
    return store


class TestBuildService:
    def test_polled_telemetry_lets_scheduled_planning_run(self, tmp_path, store):
        config = make_config(
            tmp_path, url="http://ha:8123", token="abc", battery_soc_entity_id="sensor.soc"
        )
        with patch("executor.home_assistant.requests.Session") as MockSession:
            MockSession.return_value.get.return_value = ha_state("10", "%")
            service = build_service(config, store)
            assert service.poller is not None
            assert service.poller.poll_once() is True

        service.scheduler.tick(NOW)

        assert service.scheduler.status.last_run_status == "success"
        assert store.get_planning(START).strategy == "charge"
        assert store.get_planning(START.add(2)).strategy == "discharge"

        result = service.regulator.run_once(datetime(2024, 6, 1, 22, 10, tzinfo=timezone.utc))
        assert result["strategy"] == "charge"
        assert result["sent"] is True

    def test_without_telemetry_source_planning_is_skipped(self, tmp_path, store, caplog):
        with caplog.at_level(logging.WARNING, logger="solarplant"):
            service = build_service(make_config(tmp_path), store)
        assert service.poller is None
        assert "No telemetry source configured" in caplog.text

        service.scheduler.tick(NOW)
        assert "skipped" in service.scheduler.status.last_error
        assert store.get_planning(START) is None

    def test_unknown_price_source_rejected(self, tmp_path, store):
        config = make_config(tmp_path)
        config["energy_price"]["source"] = "nordpool"
        with pytest.raises(ValueError, match="energy_price.source"):
            build_service(config, store)
