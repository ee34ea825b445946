"""
Energy Forecast

Estimates hourly production and consumption from measured history. For each
hour ahead, the same hour of day over the last historical_days is averaged.
The production average is normalized to a clear sky using the cloud cover
seen during those hours. It is then scaled down again by the forecast cloud
cover for the hour being estimated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from backend.hours import DateHour
from backend.store import EnergyForecastRow, SolarStore, TimeSeriesRow
from planner.solver.economics import two_decimals

logger = logging.getLogger("solarplant.inputs.energy_forecast")

MAX_OCTAS = 8.0


@dataclass(frozen=True)
class HistoryAverage:
    production: float
    consumption: float
    cloud_cover: float
    temperature: float


def history_average(rows: Sequence[TimeSeriesRow]) -> Optional[HistoryAverage]:
    if not rows:
        return None
    count = float(len(rows))
    return HistoryAverage(
        production=sum(r.production for r in rows) / count,
        consumption=sum(r.consumption for r in rows) / count,
        cloud_cover=sum(r.cloud_cover for r in rows) / count,
        temperature=sum(r.temperature for r in rows) / count,
    )


def estimate_production(
    average: HistoryAverage, forecast_cloud_cover: float, cloud_cover_impact: float
) -> float:
    clear_sky = average.production * (1 + cloud_cover_impact * average.cloud_cover / MAX_OCTAS)
    return clear_sky * (1 - cloud_cover_impact * forecast_cloud_cover / MAX_OCTAS)


def estimate_energy_forecast(
    store: SolarStore,
    start: DateHour,
    hours_ahead: int,
    historical_days: int = 7,
    cloud_cover_impact: float = 0.8,
) -> List[EnergyForecastRow]:
    """
    Estimate hours_ahead hours from start.

    Hours without any history are left out so that forecasts imported by
    other means are not overwritten.
    """
    rows: List[EnergyForecastRow] = []
    missing = 0
    for offset in range(hours_ahead):
        hour = start.add(offset)

        average = history_average(store.get_time_series_for_hour(hour.sub(24 * historical_days)))
        if average is None:
            logger.debug("No history for %s", hour)
            missing += 1
            continue

        weather = store.get_weather_forecast(hour)
        if weather is None:
            logger.warning("No weather forecast for %s, assuming clear sky", hour)
        cloud_cover = weather.cloud_cover if weather else 0

        rows.append(
            EnergyForecastRow(
                when=hour,
                production=two_decimals(
                    estimate_production(average, cloud_cover, cloud_cover_impact)
                ),
                consumption=two_decimals(average.consumption),
            )
        )

    if missing:
        logger.warning(
            "No history for %d of %d hours from %s, those hours were not estimated",
            missing,
            hours_ahead,
            start,
        )
    return rows
