"""
Battery Telemetry

Latest real-time readings from the inverter, shared between the feed that
updates them and the planner/regulator that read them.
"""

import threading
import time
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TelemetrySnapshot:
    battery_level: float  # percent (state of charge)
    grid_power: float  # kW, positive = import from grid
    battery_power: float  # kW, positive = discharging
    updated_at: float  # time.monotonic() of the reading
    production_lifetime: Optional[float] = None  # kWh counter, solar production
    consumption_lifetime: Optional[float] = None  # kWh counter, house consumption


def _rounded(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(float(value), 2)


class InMemoryTelemetry:
    """Thread-safe holder of the most recent telemetry reading."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[TelemetrySnapshot] = None

    def update(
        self,
        battery_level: float,
        grid_power: float = 0.0,
        battery_power: float = 0.0,
        production_lifetime: Optional[float] = None,
        consumption_lifetime: Optional[float] = None,
    ):
        snapshot = TelemetrySnapshot(
            battery_level=round(float(battery_level), 2),
            grid_power=round(float(grid_power), 2),
            battery_power=round(float(battery_power), 2),
            updated_at=self._clock(),
            production_lifetime=_rounded(production_lifetime),
            consumption_lifetime=_rounded(consumption_lifetime),
        )
        with self._lock:
            self._snapshot = snapshot

    def snapshot(self) -> Optional[TelemetrySnapshot]:
        with self._lock:
            return self._snapshot

    def battery_level(self) -> float:
        snap = self.snapshot()
        return snap.battery_level if snap else 0.0

    def grid_power(self) -> float:
        snap = self.snapshot()
        return snap.grid_power if snap else 0.0

    def battery_power(self) -> float:
        snap = self.snapshot()
        return snap.battery_power if snap else 0.0

    def healthy(self, max_age_seconds: float = 120.0) -> bool:
        """True when a reading exists and is not older than max_age_seconds."""
        snap = self.snapshot()
        if snap is None:
            return False
        return self._clock() - snap.updated_at <= max_age_seconds
