"""
Hour Keys

Prices, forecasts and plans are stored per calendar hour, keyed by a UTC
date string plus hour of day. DateHour is that key.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import pytz

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True, order=True)
class DateHour:
    date: str  # YYYY-MM-DD (UTC)
    hour: int  # 0-23 (UTC)

    def __str__(self) -> str:
        return f"{self.date} {self.hour:02d}"

    def iso_string(self) -> str:
        return f"{self.date}T{self.hour:02d}:00:00Z"

    def to_datetime(self) -> datetime:
        """Start of the hour as a timezone-aware UTC datetime."""
        naive = datetime.strptime(self.date, DATE_FORMAT).replace(hour=self.hour)
        return pytz.utc.localize(naive)

    def localized_string(self, timezone: str = "Europe/Stockholm") -> str:
        local = self.to_datetime().astimezone(pytz.timezone(timezone))
        return f"{local.strftime(DATE_FORMAT)} {local.hour:02d}"

    def add(self, hours: int) -> DateHour:
        return DateHour.from_datetime(self.to_datetime() + timedelta(hours=hours))

    def sub(self, hours: int) -> DateHour:
        return self.add(-hours)

    @classmethod
    def from_datetime(cls, value: datetime) -> DateHour:
        """Hour containing value. Naive datetimes are taken as UTC."""
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        value = value.astimezone(pytz.utc)
        return cls(date=value.strftime(DATE_FORMAT), hour=value.hour)

    @classmethod
    def from_now(cls, now: Optional[datetime] = None) -> DateHour:
        return cls.from_datetime(now or datetime.now(pytz.utc))

    @classmethod
    def from_midnight(cls, now: Optional[datetime] = None) -> DateHour:
        return cls(date=cls.from_now(now).date, hour=0)

    @classmethod
    def parse(cls, text: str) -> DateHour:
        """Parse the "YYYY-MM-DD HH" form produced by str()."""
        date, _, hour = text.strip().partition(" ")
        datetime.strptime(date, DATE_FORMAT)
        hour_value = int(hour)
        if not 0 <= hour_value <= 23:
            raise ValueError(f"Hour out of range in {text!r}")
        return cls(date=date, hour=hour_value)
