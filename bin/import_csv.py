"""Import hourly prices, energy forecasts or measured history from CSV into the store."""

import argparse

import pandas as pd

from backend.config import load_config
from backend.hours import DateHour
from backend.store import EnergyForecastRow, EnergyPriceRow, SolarStore, TimeSeriesRow

PRICE_COLUMNS = ["time", "price"]
FORECAST_COLUMNS = ["time", "production", "consumption"]
HISTORY_COLUMNS = ["time", "production", "consumption"]


def _read_hourly_csv(path: str, columns) -> pd.DataFrame:
    df = pd.read_csv(path)
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")
    df["time"] = pd.to_datetime(df["time"], utc=True)
    return df.dropna(subset=columns)


def price_rows(df: pd.DataFrame):
    return [
        EnergyPriceRow(when=DateHour.from_datetime(row.time.to_pydatetime()), price=float(row.price))
        for row in df.itertuples()
    ]


def forecast_rows(df: pd.DataFrame):
    return [
        EnergyForecastRow(
            when=DateHour.from_datetime(row.time.to_pydatetime()),
            production=float(row.production),
            consumption=float(row.consumption),
        )
        for row in df.itertuples()
    ]


def history_rows(df: pd.DataFrame):
    """Measured hours; cloud_cover (octas) is optional."""
    has_cloud = "cloud_cover" in df.columns
    return [
        TimeSeriesRow(
            when=DateHour.from_datetime(row.time.to_pydatetime()),
            production=float(row.production),
            consumption=float(row.consumption),
            cloud_cover=int(row.cloud_cover) if has_cloud and pd.notna(row.cloud_cover) else 0,
        )
        for row in df.itertuples()
    ]


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import hourly CSV data into the store.")
    parser.add_argument("kind", choices=["prices", "forecasts", "history"])
    parser.add_argument("csv_path", help="CSV with a time column (ISO, UTC if no offset).")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml.")
    return parser


def main(argv=None) -> int:
    args = _build_arg_parser().parse_args(argv)
    config = load_config(args.config)
    store = SolarStore(config["database"]["path"])

    if args.kind == "prices":
        saved = store.save_energy_prices(price_rows(_read_hourly_csv(args.csv_path, PRICE_COLUMNS)))
    elif args.kind == "forecasts":
        saved = store.save_energy_forecasts(
            forecast_rows(_read_hourly_csv(args.csv_path, FORECAST_COLUMNS))
        )
    else:
        saved = 0
        for row in history_rows(_read_hourly_csv(args.csv_path, HISTORY_COLUMNS)):
            store.save_time_series(row)
            saved += 1

    print(f"Imported {saved} {args.kind} rows into {config['database']['path']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
