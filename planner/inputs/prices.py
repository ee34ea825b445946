"""
Energy Price Input

Fetches day-ahead spot prices from elprisetjustnu.se. Prices are published
per Swedish calendar day around 13:00 for the following day. Days split into
quarter-hour slots are averaged per hour.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import pytz
import requests

from backend.hours import DateHour
from backend.store import EnergyPriceRow

logger = logging.getLogger("solarplant.inputs.prices")

PRICE_URL = "https://www.elprisetjustnu.se/api/v1/prices/{year}/{month:02d}-{day:02d}_{area}.json"
PRICE_TIMEZONE = "Europe/Stockholm"
VALID_AREAS = {"SE1", "SE2", "SE3", "SE4"}


class ElprisetJustNu:
    """Spot price source for one Swedish bidding area."""

    def __init__(self, area: str = "SE3", currency: str = "SEK", timeout: int = 10):
        if area not in VALID_AREAS:
            raise ValueError(f"Unknown price area {area!r}, expected one of {sorted(VALID_AREAS)}")
        self.area = area
        self.currency = currency.upper()
        self.timeout = timeout

    def url_for(self, day: date) -> str:
        return PRICE_URL.format(year=day.year, month=day.month, day=day.day, area=self.area)

    def fetch_day(self, day: date) -> List[EnergyPriceRow]:
        """
        Hourly prices for one Swedish calendar day.

        Returns an empty list when the day is not published yet.
        Raises requests.RequestException on other HTTP failures and
        ValueError when the payload can't be read.
        """
        url = self.url_for(day)
        response = requests.get(url, timeout=self.timeout)
        if response.status_code == 404:
            logger.debug("Prices for %s in %s not published yet", day, self.area)
            return []
        response.raise_for_status()
        return parse_prices(response.json(), self.currency)

    def fetch(self, now: Optional[datetime] = None) -> List[EnergyPriceRow]:
        """Prices for today and, once published, tomorrow."""
        now = now or datetime.now(pytz.utc)
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        today = now.astimezone(pytz.timezone(PRICE_TIMEZONE)).date()

        rows: List[EnergyPriceRow] = []
        for day in (today, today + timedelta(days=1)):
            rows.extend(self.fetch_day(day))
        logger.info("Fetched %d hourly prices for %s", len(rows), self.area)
        return rows


def parse_prices(payload, currency: str = "SEK") -> List[EnergyPriceRow]:
    """Average the price slots of an elprisetjustnu response per UTC hour."""
    if not isinstance(payload, list):
        raise ValueError("Expected a list of price entries")

    key = f"{currency.upper()}_per_kWh"
    slots: Dict[DateHour, List[float]] = defaultdict(list)
    for entry in payload:
        try:
            starts_at = datetime.fromisoformat(entry["time_start"])
            price = float(entry[key])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed price entry {entry!r}") from exc
        slots[DateHour.from_datetime(starts_at)].append(price)

    return [
        EnergyPriceRow(when=hour, price=sum(prices) / len(prices))
        for hour, prices in sorted(slots.items())
    ]
