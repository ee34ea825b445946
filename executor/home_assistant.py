"""
Home Assistant Telemetry

Reads battery state of charge, grid and battery power and the lifetime
energy counters from Home Assistant sensors and feeds them into
InMemoryTelemetry on a fixed interval.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .telemetry import InMemoryTelemetry

logger = logging.getLogger("solarplant.executor.home_assistant")

# Unit of measurement -> factor to kW / kWh
UNIT_SCALE = {
    "W": 0.001,
    "kW": 1.0,
    "Wh": 0.001,
    "kWh": 1.0,
    "MWh": 1000.0,
}


def _is_entity_configured(entity: Optional[str]) -> bool:
    if not entity:
        return False
    stripped = entity.strip()
    return stripped != "" and stripped.lower() != "none"


@dataclass
class HomeAssistantConfig:
    """Connection and sensor settings (home_assistant section)."""

    url: Optional[str] = None
    token: Optional[str] = None
    battery_soc_entity_id: Optional[str] = None
    grid_power_entity_id: Optional[str] = None  # positive = import
    battery_power_entity_id: Optional[str] = None  # positive = discharging
    production_energy_entity_id: Optional[str] = None
    consumption_energy_entity_id: Optional[str] = None
    poll_seconds: float = 10.0
    timeout: int = 10

    @property
    def enabled(self) -> bool:
        return bool(self.url) and _is_entity_configured(self.battery_soc_entity_id)


def load_home_assistant_config(config: Dict[str, Any]) -> HomeAssistantConfig:
    data = config.get("home_assistant", {}) or {}
    return HomeAssistantConfig(
        url=data.get("url"),
        token=data.get("token"),
        battery_soc_entity_id=data.get("battery_soc_entity_id"),
        grid_power_entity_id=data.get("grid_power_entity_id"),
        battery_power_entity_id=data.get("battery_power_entity_id"),
        production_energy_entity_id=data.get("production_energy_entity_id"),
        consumption_energy_entity_id=data.get("consumption_energy_entity_id"),
        poll_seconds=float(data.get("poll_seconds", HomeAssistantConfig.poll_seconds)),
        timeout=int(data.get("timeout", HomeAssistantConfig.timeout)),
    )


class HAClient:
    """
    Home Assistant REST API client for reading entity states.
    """

    def __init__(self, base_url: str, token: Optional[str], timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def get_state(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Get the current state of an entity, None when it can't be read."""
        try:
            response = self._session.get(
                f"{self.base_url}/api/states/{entity_id}",
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error("Failed to get state of %s: %s", entity_id, e)
            return None

    def get_float(self, entity_id: str) -> Optional[float]:
        """
        Numeric state of a sensor, converted to kW / kWh from its unit.

        Returns None when the entity is missing, unavailable or not numeric.
        """
        state = self.get_state(entity_id)
        if not state:
            return None
        try:
            value = float(state.get("state"))
        except (TypeError, ValueError):
            logger.warning("Sensor %s has no numeric state: %r", entity_id, state.get("state"))
            return None
        unit = (state.get("attributes") or {}).get("unit_of_measurement")
        return value * UNIT_SCALE.get(unit, 1.0)


class TelemetryPoller:
    """Polls Home Assistant in a background thread and updates the telemetry."""

    def __init__(
        self,
        config: HomeAssistantConfig,
        telemetry: InMemoryTelemetry,
        client: Optional[HAClient] = None,
    ):
        self.config = config
        self.telemetry = telemetry
        self.client = client or HAClient(config.url, config.token, config.timeout)

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _read(self, entity_id: Optional[str]) -> Optional[float]:
        if not _is_entity_configured(entity_id):
            return None
        return self.client.get_float(entity_id)

    def poll_once(self) -> bool:
        """Read all sensors once. Returns False when no state of charge was read."""
        soc = self._read(self.config.battery_soc_entity_id)
        if soc is None:
            logger.warning("No battery state of charge from Home Assistant, telemetry not updated")
            return False

        self.telemetry.update(
            battery_level=soc,
            grid_power=self._read(self.config.grid_power_entity_id) or 0.0,
            battery_power=self._read(self.config.battery_power_entity_id) or 0.0,
            production_lifetime=self._read(self.config.production_energy_entity_id),
            consumption_lifetime=self._read(self.config.consumption_energy_entity_id),
        )
        return True

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            logger.warning("Telemetry poller already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="telemetry", daemon=True)
        self._thread.start()
        logger.info(
            "Polling Home Assistant telemetry every %.0fs from %s",
            self.config.poll_seconds,
            self.client.base_url,
        )

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.exception("Telemetry poll failed: %s", e)
            self._stop_event.wait(self.config.poll_seconds)
