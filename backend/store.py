"""
Solarplant Store

SQLite persistence for hourly energy prices, energy and weather forecasts,
measured history, planned strategies and log entries. All hourly tables are
keyed by (date, hour) in UTC and written with upsert semantics.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import pandas as pd
import pytz

from backend.hours import DATE_FORMAT, DateHour
from planner.solver.economics import round_float, two_decimals

logger = logging.getLogger("solarplant.store")

HOURLY_TABLES = ("energy_price", "energy_forecast", "planning", "weather_forecast", "time_series")

MIGRATIONS = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS energy_price (
            date TEXT NOT NULL,
            hour INTEGER NOT NULL,
            price REAL NOT NULL,
            PRIMARY KEY (date, hour)
        );
        CREATE TABLE IF NOT EXISTS energy_forecast (
            date TEXT NOT NULL,
            hour INTEGER NOT NULL,
            production REAL NOT NULL,
            consumption REAL NOT NULL,
            PRIMARY KEY (date, hour)
        );
        CREATE TABLE IF NOT EXISTS planning (
            date TEXT NOT NULL,
            hour INTEGER NOT NULL,
            strategy TEXT NOT NULL,
            PRIMARY KEY (date, hour)
        );
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            level TEXT NOT NULL,
            logger TEXT,
            message TEXT NOT NULL,
            attrs TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_log_timestamp ON log(timestamp);
        """,
    ),
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS weather_forecast (
            date TEXT NOT NULL,
            hour INTEGER NOT NULL,
            cloud_cover INTEGER NOT NULL,
            temperature REAL NOT NULL,
            precipitation REAL NOT NULL,
            PRIMARY KEY (date, hour)
        );
        CREATE TABLE IF NOT EXISTS time_series (
            date TEXT NOT NULL,
            hour INTEGER NOT NULL,
            production REAL NOT NULL,
            consumption REAL NOT NULL,
            cloud_cover INTEGER NOT NULL DEFAULT 0,
            temperature REAL NOT NULL DEFAULT 0,
            energy_price REAL NOT NULL DEFAULT 0,
            battery_level REAL NOT NULL DEFAULT 0,
            PRIMARY KEY (date, hour)
        );
        """,
    ),
]


class StoreError(Exception):
    """A database operation failed."""


@dataclass(frozen=True)
class EnergyPriceRow:
    when: DateHour
    price: float  # SEK/kWh


@dataclass(frozen=True)
class EnergyForecastRow:
    when: DateHour
    production: float  # kWh
    consumption: float  # kWh


@dataclass(frozen=True)
class PlanningRow:
    when: DateHour
    strategy: str


@dataclass(frozen=True)
class WeatherForecastRow:
    when: DateHour
    cloud_cover: int  # octas, 0 (clear) to 8 (overcast)
    temperature: float  # °C
    precipitation: float  # mm/h


@dataclass(frozen=True)
class TimeSeriesRow:
    """Measured values for one past hour."""

    when: DateHour
    production: float  # kWh
    consumption: float  # kWh
    cloud_cover: int = 0
    temperature: float = 0.0
    energy_price: float = 0.0
    battery_level: float = 0.0


class SolarStore:
    """
    Handles all database interactions for prices, forecasts and plans.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._migrate()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(f"Database error on {self.db_path}: {exc}") from exc
        finally:
            conn.close()

    def _migrate(self) -> None:
        """Apply pending schema migrations, tracked with PRAGMA user_version."""
        with self._connect() as conn:
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            for version, ddl in MIGRATIONS:
                if version <= current:
                    continue
                conn.executescript(ddl)
                conn.execute(f"PRAGMA user_version = {version}")
                logger.info("Applied database migration %d", version)

    def schema_version(self) -> int:
        with self._connect() as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    # Energy prices

    def save_energy_prices(self, rows: Iterable[EnergyPriceRow]) -> int:
        saved = 0
        with self._connect() as conn:
            for row in rows:
                logger.debug("Saving energy price %s: %s", row.when, row.price)
                conn.execute(
                    """
                    INSERT INTO energy_price (date, hour, price) VALUES (?, ?, ?)
                    ON CONFLICT(date, hour) DO UPDATE SET price = excluded.price
                    """,
                    (row.when.date, row.when.hour, round_float(row.price, 4)),
                )
                saved += 1
        return saved

    def get_energy_price(self, when: DateHour) -> Optional[EnergyPriceRow]:
        with self._connect() as conn:
            found = conn.execute(
                "SELECT date, hour, price FROM energy_price WHERE date = ? AND hour = ?",
                (when.date, when.hour),
            ).fetchone()
        if found is None:
            return None
        return EnergyPriceRow(when=DateHour(found[0], int(found[1])), price=float(found[2]))

    def get_energy_prices_from(self, when: DateHour) -> List[EnergyPriceRow]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT date, hour, price FROM energy_price
                WHERE (date = ? AND hour >= ?) OR date > ?
                ORDER BY date, hour ASC
                """,
                (when.date, when.hour, when.date),
            ).fetchall()
        return [EnergyPriceRow(when=DateHour(d, int(h)), price=float(p)) for d, h, p in rows]

    # Energy forecasts

    def save_energy_forecasts(self, rows: Iterable[EnergyForecastRow]) -> int:
        saved = 0
        with self._connect() as conn:
            for row in rows:
                logger.debug(
                    "Saving energy forecast %s: production=%s consumption=%s",
                    row.when,
                    row.production,
                    row.consumption,
                )
                conn.execute(
                    """
                    INSERT INTO energy_forecast (date, hour, production, consumption)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(date, hour) DO UPDATE SET
                        production = excluded.production,
                        consumption = excluded.consumption
                    """,
                    (
                        row.when.date,
                        row.when.hour,
                        two_decimals(row.production),
                        two_decimals(row.consumption),
                    ),
                )
                saved += 1
        return saved

    def get_energy_forecast(self, when: DateHour) -> Optional[EnergyForecastRow]:
        with self._connect() as conn:
            found = conn.execute(
                """
                SELECT date, hour, production, consumption FROM energy_forecast
                WHERE date = ? AND hour = ?
                """,
                (when.date, when.hour),
            ).fetchone()
        if found is None:
            return None
        return EnergyForecastRow(
            when=DateHour(found[0], int(found[1])),
            production=float(found[2]),
            consumption=float(found[3]),
        )

    def get_energy_forecasts_from(self, when: DateHour) -> List[EnergyForecastRow]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT date, hour, production, consumption FROM energy_forecast
                WHERE (date = ? AND hour >= ?) OR date > ?
                ORDER BY date, hour ASC
                """,
                (when.date, when.hour, when.date),
            ).fetchall()
        return [
            EnergyForecastRow(when=DateHour(d, int(h)), production=float(p), consumption=float(c))
            for d, h, p, c in rows
        ]

    # Planning

    def save_planning(self, row: PlanningRow) -> None:
        logger.debug("Saving planning %s: %s", row.when, row.strategy)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO planning (date, hour, strategy) VALUES (?, ?, ?)
                ON CONFLICT(date, hour) DO UPDATE SET strategy = excluded.strategy
                """,
                (row.when.date, row.when.hour, row.strategy),
            )

    def get_planning(self, when: DateHour) -> Optional[PlanningRow]:
        with self._connect() as conn:
            found = conn.execute(
                "SELECT date, hour, strategy FROM planning WHERE date = ? AND hour = ?",
                (when.date, when.hour),
            ).fetchone()
        if found is None:
            return None
        return PlanningRow(when=DateHour(found[0], int(found[1])), strategy=found[2])

    def get_planning_from(self, when: DateHour) -> pd.DataFrame:
        """Planned strategies from the given hour onwards, one row per hour."""
        with self._connect() as conn:
            df = pd.read_sql_query(
                """
                SELECT date, hour, strategy FROM planning
                WHERE (date > ?) OR (date = ? AND hour >= ?)
                ORDER BY date, hour ASC
                """,
                conn,
                params=(when.date, when.date, when.hour),
            )
        return df

    # Weather forecasts

    def save_weather_forecasts(self, rows: Iterable[WeatherForecastRow]) -> int:
        saved = 0
        with self._connect() as conn:
            for row in rows:
                conn.execute(
                    """
                    INSERT INTO weather_forecast (date, hour, cloud_cover, temperature, precipitation)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(date, hour) DO UPDATE SET
                        cloud_cover = excluded.cloud_cover,
                        temperature = excluded.temperature,
                        precipitation = excluded.precipitation
                    """,
                    (
                        row.when.date,
                        row.when.hour,
                        int(row.cloud_cover),
                        two_decimals(row.temperature),
                        two_decimals(row.precipitation),
                    ),
                )
                saved += 1
        logger.debug("Saved %d weather forecast rows", saved)
        return saved

    def get_weather_forecast(self, when: DateHour) -> Optional[WeatherForecastRow]:
        with self._connect() as conn:
            found = conn.execute(
                """
                SELECT cloud_cover, temperature, precipitation FROM weather_forecast
                WHERE date = ? AND hour = ?
                """,
                (when.date, when.hour),
            ).fetchone()
        if found is None:
            return None
        return WeatherForecastRow(
            when=when,
            cloud_cover=int(found[0]),
            temperature=float(found[1]),
            precipitation=float(found[2]),
        )

    # Measured history

    def save_time_series(self, row: TimeSeriesRow) -> None:
        logger.debug(
            "Saving time series %s: production=%s consumption=%s",
            row.when,
            row.production,
            row.consumption,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO time_series (
                    date, hour, production, consumption,
                    cloud_cover, temperature, energy_price, battery_level
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(date, hour) DO UPDATE SET
                    production = excluded.production,
                    consumption = excluded.consumption,
                    cloud_cover = excluded.cloud_cover,
                    temperature = excluded.temperature,
                    energy_price = excluded.energy_price,
                    battery_level = excluded.battery_level
                """,
                (
                    row.when.date,
                    row.when.hour,
                    two_decimals(row.production),
                    two_decimals(row.consumption),
                    int(row.cloud_cover),
                    two_decimals(row.temperature),
                    round_float(row.energy_price, 4),
                    two_decimals(row.battery_level),
                ),
            )

    def get_time_series_for_hour(self, since: DateHour) -> List[TimeSeriesRow]:
        """Rows for the same hour of day as since, from since's date onwards."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT date, hour, production, consumption,
                       cloud_cover, temperature, energy_price, battery_level
                FROM time_series
                WHERE date >= ? AND hour = ?
                ORDER BY date ASC
                """,
                (since.date, since.hour),
            ).fetchall()
        return [
            TimeSeriesRow(
                when=DateHour(d, int(h)),
                production=float(p),
                consumption=float(c),
                cloud_cover=int(cc),
                temperature=float(t),
                energy_price=float(ep),
                battery_level=float(bl),
            )
            for d, h, p, c, cc, t, ep, bl in rows
        ]

    # Maintenance

    def purge(self, table: str, retention_days: int, now: Optional[datetime] = None) -> int:
        """Delete hourly rows older than retention_days. Returns rows deleted."""
        if table not in HOURLY_TABLES:
            raise ValueError(f"Unknown hourly table: {table}")
        now = now or datetime.now(pytz.utc)
        cutoff = (now - timedelta(days=retention_days)).strftime(DATE_FORMAT)
        with self._connect() as conn:
            deleted = conn.execute(f"DELETE FROM {table} WHERE date < ?", (cutoff,)).rowcount
        logger.info("Purged %d rows from %s older than %s", deleted, table, cutoff)
        return deleted

    def save_log_entry(
        self,
        timestamp: str,
        level: str,
        logger_name: str,
        message: str,
        attrs: Optional[str] = None,
    ) -> None:
        # No logging in here: this is called from the SQLite log handler.
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO log (timestamp, level, logger, message, attrs) VALUES (?, ?, ?, ?, ?)",
                (timestamp, level, logger_name, message, attrs),
            )

    def get_log_entries(self, limit: int = 100) -> pd.DataFrame:
        with self._connect() as conn:
            return pd.read_sql_query(
                """
                SELECT id, timestamp, level, logger, message, attrs FROM log
                ORDER BY id DESC LIMIT ?
                """,
                conn,
                params=(limit,),
            )

    def purge_log(self, max_entries: int) -> int:
        """Keep only the newest max_entries log rows."""
        with self._connect() as conn:
            deleted = conn.execute(
                """
                DELETE FROM log WHERE id NOT IN (
                    SELECT id FROM log ORDER BY id DESC LIMIT ?
                )
                """,
                (max_entries,),
            ).rowcount
        return deleted
