"""
Task Scheduler

Runs the periodic background tasks of the service in one thread:
- inputs, every hour on the hour: records the measured history of the hour
  that just ended, refreshes weather forecasts and spot prices and estimates
  the energy forecast for the coming hours
- planning, every planner.every_minutes aligned to interval boundaries
- maintenance, once a day at maintenance.run_at (local time): purges old
  hourly rows and trims the log table
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytz

from backend.hours import DateHour
from backend.store import HOURLY_TABLES, SolarStore, TimeSeriesRow
from executor.telemetry import InMemoryTelemetry
from planner.inputs.energy_forecast import estimate_energy_forecast
from planner.inputs.prices import ElprisetJustNu
from planner.inputs.weather import OpenMeteo
from planner.pipeline import PlannerPipeline

logger = logging.getLogger("solarplant.scheduler")

MIN_EVERY_MINUTES = 5
COUNTER_TOLERANCE = timedelta(minutes=5)


@dataclass
class SchedulerConfig:
    every_minutes: int = 60
    maintenance_time: str = "02:30"
    retention_days: int = 90
    log_max_entries: int = 10000
    timezone: str = "Europe/Stockholm"
    poll_seconds: float = 30.0
    energy_forecast_enabled: bool = True
    forecast_hours_ahead: int = 24
    historical_days: int = 7
    cloud_cover_impact: float = 0.8


@dataclass
class SchedulerStatus:
    running: bool = False
    last_run_at: Optional[str] = None
    next_run_at: Optional[str] = None
    last_run_status: Optional[str] = None
    last_error: Optional[str] = None
    inputs_last_run_at: Optional[str] = None
    inputs_next_run_at: Optional[str] = None
    inputs_last_error: Optional[str] = None
    maintenance_last_run_at: Optional[str] = None
    maintenance_next_run_at: Optional[str] = None
    maintenance_last_error: Optional[str] = None


def load_scheduler_config(config: Dict[str, Any]) -> SchedulerConfig:
    planner_cfg = config.get("planner", {}) or {}
    maintenance = config.get("maintenance", {}) or {}
    database = config.get("database", {}) or {}
    logging_cfg = config.get("logging", {}) or {}
    forecast_cfg = config.get("energy_forecast", {}) or {}

    try:
        every_minutes = int(planner_cfg.get("every_minutes", 60))
    except (TypeError, ValueError):
        every_minutes = 60
    if every_minutes < MIN_EVERY_MINUTES:
        every_minutes = MIN_EVERY_MINUTES

    return SchedulerConfig(
        every_minutes=every_minutes,
        maintenance_time=str(maintenance.get("run_at", "02:30")),
        retention_days=int(database.get("data_retention_days", 90)),
        log_max_entries=int(logging_cfg.get("db_max_entries", 10000)),
        timezone=config.get("timezone", "Europe/Stockholm"),
        poll_seconds=float(maintenance.get("poll_seconds", 30.0)),
        energy_forecast_enabled=bool(forecast_cfg.get("enabled", True)),
        forecast_hours_ahead=int(forecast_cfg.get("hours_ahead", 24)),
        historical_days=int(forecast_cfg.get("historical_days", 7)),
        cloud_cover_impact=float(forecast_cfg.get("cloud_cover_impact", 0.8)),
    )


def build_input_sources(
    config: Dict[str, Any],
) -> Tuple[Optional[ElprisetJustNu], Optional[OpenMeteo]]:
    """Price and weather sources named in config, None for those not configured."""
    price_cfg = config.get("energy_price", {}) or {}
    weather_cfg = config.get("weather_forecast", {}) or {}

    price_source = None
    source = price_cfg.get("source")
    if source == "elprisetjustnu":
        price_source = ElprisetJustNu(
            area=price_cfg.get("area", "SE3"), currency=price_cfg.get("currency", "SEK")
        )
    elif source:
        raise ValueError(f"Unknown energy_price.source {source!r}")

    weather_source = None
    latitude = weather_cfg.get("latitude")
    longitude = weather_cfg.get("longitude")
    if latitude is not None and longitude is not None:
        weather_source = OpenMeteo(latitude, longitude)

    return price_source, weather_source


def _compute_next_run(from_time: datetime, every_minutes: int) -> datetime:
    """Next interval boundary strictly after from_time (boundaries counted from midnight UTC)."""
    from_time = from_time.astimezone(timezone.utc)
    midnight = from_time.replace(hour=0, minute=0, second=0, microsecond=0)
    interval = timedelta(minutes=every_minutes)
    elapsed = from_time - midnight
    return midnight + interval * (elapsed // interval + 1)


def _compute_next_maintenance(from_time: datetime, run_at: str, timezone_str: str) -> datetime:
    """Next occurrence of the local time run_at ("HH:MM") strictly after from_time, in UTC."""
    tz = pytz.timezone(timezone_str)
    local = from_time.astimezone(tz)
    hour, minute = map(int, run_at.split(":"))

    day = local.date()
    while True:
        naive = datetime(day.year, day.month, day.day, hour, minute)
        candidate = tz.localize(naive)
        if candidate > local:
            return candidate.astimezone(timezone.utc)
        day += timedelta(days=1)


class TaskScheduler:
    """
    Background thread running input refresh, planning and maintenance when
    they are due.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        pipeline: PlannerPipeline,
        store: SolarStore,
        telemetry: Optional[InMemoryTelemetry] = None,
        price_source: Optional[ElprisetJustNu] = None,
        weather_source: Optional[OpenMeteo] = None,
    ):
        self.config = load_scheduler_config(config)
        self.pipeline = pipeline
        self.store = store
        self.telemetry = telemetry
        self.price_source = price_source
        self.weather_source = weather_source
        self.status = SchedulerStatus()

        # (hour, production counter, consumption counter) at the start of the hour
        self._counters: Optional[Tuple[DateHour, float, float]] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def record_time_series(self, now: datetime) -> bool:
        """Save the measured production and consumption of the hour that just ended."""
        snap = self.telemetry.snapshot() if self.telemetry else None
        if snap is None or snap.production_lifetime is None or snap.consumption_lifetime is None:
            logger.debug("No energy counters in telemetry, time series not recorded")
            return False

        current = DateHour.from_now(now)
        previous = self._counters
        if now - current.to_datetime() <= COUNTER_TOLERANCE:
            self._counters = (current, snap.production_lifetime, snap.consumption_lifetime)
        else:
            # Counters taken mid-hour would record a partial hour
            self._counters = None

        ended = current.sub(1)
        if previous is None or previous[0] != ended:
            logger.info("No energy counters from the start of %s, time series not saved", ended)
            return False

        production = snap.production_lifetime - previous[1]
        consumption = snap.consumption_lifetime - previous[2]
        if production < 0 or consumption < 0:
            logger.warning(
                "Energy counters went backwards during %s (production %.2f, consumption %.2f)",
                ended,
                production,
                consumption,
            )
            return False

        weather = self.store.get_weather_forecast(ended)
        price = self.store.get_energy_price(ended)
        self.store.save_time_series(
            TimeSeriesRow(
                when=ended,
                production=production,
                consumption=consumption,
                cloud_cover=weather.cloud_cover if weather else 0,
                temperature=weather.temperature if weather else 0.0,
                energy_price=price.price if price else 0.0,
                battery_level=snap.battery_level,
            )
        )
        logger.info(
            "Recorded %s: production %.2f kWh, consumption %.2f kWh",
            ended,
            production,
            consumption,
        )
        return True

    def refresh_weather(self, now: datetime) -> int:
        if self.weather_source is None:
            return 0
        return self.store.save_weather_forecasts(self.weather_source.fetch(now))

    def refresh_prices(self, now: datetime) -> int:
        if self.price_source is None:
            return 0
        return self.store.save_energy_prices(self.price_source.fetch(now))

    def estimate_energy_forecast(self, now: datetime) -> int:
        if not self.config.energy_forecast_enabled:
            return 0
        rows = estimate_energy_forecast(
            self.store,
            DateHour.from_now(now).add(1),
            self.config.forecast_hours_ahead,
            self.config.historical_days,
            self.config.cloud_cover_impact,
        )
        if not rows:
            return 0
        saved = self.store.save_energy_forecasts(rows)
        logger.info("Estimated energy forecast for %d hours from %s", saved, rows[0].when)
        return saved

    def run_inputs_once(self, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        """Run each hourly input step. A failing step does not stop the others."""
        now = now or datetime.now(timezone.utc)
        errors: List[str] = []
        steps = (
            ("time series", self.record_time_series),
            ("weather forecast", self.refresh_weather),
            ("energy price", self.refresh_prices),
            ("energy forecast", self.estimate_energy_forecast),
        )
        for name, step in steps:
            try:
                step(now)
            except Exception as exc:
                logger.exception("Updating %s failed", name)
                errors.append(f"{name}: {exc}")
        if errors:
            return False, "; ".join(errors)
        return True, None

    def run_planning_once(self, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        try:
            result = self.pipeline.run(now)
        except Exception as exc:
            logger.exception("Planning failed")
            return False, str(exc)
        if not result.ok:
            return False, f"Planning finished with status {result.status}"
        return True, None

    def run_maintenance_once(self, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        try:
            for table in HOURLY_TABLES:
                self.store.purge(table, self.config.retention_days, now)
            removed = self.store.purge_log(self.config.log_max_entries)
            if removed:
                logger.info("Trimmed %d log entries", removed)
            return True, None
        except Exception as exc:
            logger.exception("Maintenance failed")
            return False, str(exc)

    def tick(self, now: Optional[datetime] = None) -> None:
        """Run every task that is due at now and schedule its next run."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        if self.status.next_run_at is None:
            # First tick refreshes inputs and plans right away so the regulator
            # has something to follow
            self.status.next_run_at = now.isoformat()
            self.status.inputs_next_run_at = now.isoformat()
        if self.status.maintenance_next_run_at is None:
            self.status.maintenance_next_run_at = _compute_next_maintenance(
                now, self.config.maintenance_time, self.config.timezone
            ).isoformat()

        if now >= datetime.fromisoformat(self.status.inputs_next_run_at):
            ok, error = self.run_inputs_once(now)
            self.status.inputs_last_run_at = now.isoformat()
            self.status.inputs_last_error = error
            self.status.inputs_next_run_at = _compute_next_run(now, 60).isoformat()

        if now >= datetime.fromisoformat(self.status.next_run_at):
            ok, error = self.run_planning_once(now)
            self.status.last_run_at = now.isoformat()
            self.status.last_run_status = "success" if ok else "error"
            self.status.last_error = error
            self.status.next_run_at = _compute_next_run(now, self.config.every_minutes).isoformat()
            logger.info(
                "Planning run at %s -> %s; next at %s",
                now.isoformat(),
                self.status.last_run_status,
                self.status.next_run_at,
            )

        if now >= datetime.fromisoformat(self.status.maintenance_next_run_at):
            ok, error = self.run_maintenance_once(now)
            self.status.maintenance_last_run_at = now.isoformat()
            self.status.maintenance_last_error = error
            self.status.maintenance_next_run_at = _compute_next_maintenance(
                now, self.config.maintenance_time, self.config.timezone
            ).isoformat()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            logger.warning("Scheduler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="scheduler", daemon=True)
        self._thread.start()
        self.status.running = True
        logger.info(
            "Scheduler started (planning every %dm, maintenance at %s)",
            self.config.every_minutes,
            self.config.maintenance_time,
        )

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            logger.info("Scheduler stopped")
        self.status.running = False

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.exception("Scheduler tick failed: %s", e)
            self._stop_event.wait(self.config.poll_seconds)
