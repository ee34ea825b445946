"""
Weather Input

Fetches hourly cloud cover, temperature and precipitation forecasts from
Open-Meteo. Cloud cover is stored in octas (0-8).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from backend.hours import DateHour
from backend.store import WeatherForecastRow

logger = logging.getLogger("solarplant.inputs.weather")

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


def percent_to_octas(percent: Optional[float]) -> int:
    if percent is None:
        return 0
    return max(0, min(8, round(float(percent) * 8.0 / 100.0)))


class OpenMeteo:
    """Weather forecast source for one location (WGS84)."""

    def __init__(self, latitude: float, longitude: float, days: int = 2, timeout: int = 10):
        self.latitude = float(latitude)
        self.longitude = float(longitude)
        self.days = days
        self.timeout = timeout

    def fetch(self, now: Optional[datetime] = None) -> List[WeatherForecastRow]:
        """
        Hourly forecast rows from today (UTC) and the following days.

        Raises requests.RequestException on HTTP failures and ValueError when
        the payload can't be read.
        """
        params = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "hourly": "cloud_cover,temperature_2m,precipitation",
            "timezone": "UTC",
            "forecast_days": self.days,
        }
        response = requests.get(FORECAST_URL, params=params, timeout=self.timeout)
        response.raise_for_status()
        rows = parse_forecast(response.json())
        logger.info("Fetched %d hours of weather forecast", len(rows))
        return rows


def parse_forecast(payload: Dict[str, Any]) -> List[WeatherForecastRow]:
    hourly = (payload or {}).get("hourly")
    if not isinstance(hourly, dict) or "time" not in hourly:
        raise ValueError("Weather forecast payload has no hourly data")

    times = hourly["time"]
    cloud = hourly.get("cloud_cover") or [None] * len(times)
    temps = hourly.get("temperature_2m") or [None] * len(times)
    precip = hourly.get("precipitation") or [None] * len(times)

    rows = []
    for stamp, cover, temp, rain in zip(times, cloud, temps, precip):
        rows.append(
            WeatherForecastRow(
                when=DateHour.from_datetime(datetime.fromisoformat(stamp)),
                cloud_cover=percent_to_octas(cover),
                temperature=float(temp or 0.0),
                precipitation=float(rain or 0.0),
            )
        )
    return rows
