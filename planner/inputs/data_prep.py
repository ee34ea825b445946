"""
Data Preparation Module

Builds the hourly forecast DataFrame the optimizer runs on from stored
price rows and production/consumption forecast rows.

The planner cannot extrapolate: the horizon ends at the first hour that is
missing either a price or an energy forecast.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

import pandas as pd

from backend.hours import DateHour
from planner.inputs.types import ForecastHour
from planner.solver.economics import two_decimals

FORECAST_COLUMNS = ["energy_price", "production", "consumption", "energy_balance"]


def hour_index(start: DateHour, hours_ahead: int) -> pd.DatetimeIndex:
    """UTC index of the hours start, start+1, ... start+hours_ahead-1."""
    return pd.DatetimeIndex(
        pd.to_datetime([start.add(h).iso_string() for h in range(hours_ahead)], utc=True),
        name="hour",
    )


def _rows_to_frame(rows: Iterable, columns: List[str]) -> pd.DataFrame:
    records = [
        {"hour": row.when.iso_string(), **{col: getattr(row, col) for col in columns}}
        for row in rows
    ]
    if not records:
        return pd.DataFrame(columns=columns, index=pd.DatetimeIndex([], tz="UTC", name="hour"))

    df = pd.DataFrame(records)
    df["hour"] = pd.to_datetime(df["hour"], utc=True)
    df = df.drop_duplicates("hour", keep="last").set_index("hour").sort_index()
    return df.astype(float)


def build_forecast_dataframe(
    prices: Iterable,
    forecasts: Iterable,
    start: DateHour,
    hours_ahead: int,
) -> pd.DataFrame:
    """
    Merge price and energy forecast rows for the planning horizon.

    Args:
        prices: Rows with ``when`` (DateHour) and ``price`` (SEK/kWh)
        forecasts: Rows with ``when``, ``production`` and ``consumption`` (kWh)
        start: First hour of the horizon
        hours_ahead: Requested horizon length

    Returns:
        DataFrame indexed by UTC hour with energy_price, production, consumption
        and energy_balance, truncated before the first incomplete hour.
    """
    index = hour_index(start, hours_ahead)
    price_df = _rows_to_frame(prices, ["price"]).rename(columns={"price": "energy_price"})
    forecast_df = _rows_to_frame(forecasts, ["production", "consumption"])

    df = pd.DataFrame(index=index).join(price_df, how="left").join(forecast_df, how="left")

    missing = df[["energy_price", "production", "consumption"]].isna().any(axis=1)
    if missing.any():
        df = df.iloc[: int(missing.to_numpy().argmax())]

    df["energy_balance"] = (df["production"] - df["consumption"]).map(two_decimals)
    return df[FORECAST_COLUMNS]


def dataframe_to_forecast(df: pd.DataFrame) -> Tuple[ForecastHour, ...]:
    """Convert a forecast DataFrame into optimizer input."""
    return tuple(
        ForecastHour(energy_price=float(row.energy_price), energy_balance=float(row.energy_balance))
        for row in df.itertuples()
    )
