"""
Dispatch Strategies

The four per-hour battery strategies and the enumeration of every
strategy sequence for a planning horizon.

Candidate index i in [0, 4**hours) maps to a sequence by reading i as a
base-4 number, most significant digit = hour 0. The optimizer relies on this
order for deterministic tie-breaking.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator, Tuple

MAX_HORIZON_HOURS = 24


class Strategy(IntEnum):
    DEFAULT = 0  # Maximize self-consumption
    PRESERVE = 1  # Keep the battery level, grid covers the balance
    CHARGE = 2  # Buy power if produced power is not enough
    DISCHARGE = 3  # Sell excess power to the grid from the battery

    @property
    def tag(self) -> str:
        """Persisted string form ("default", "preserve", ...)."""
        return self.name.lower()

    def __str__(self) -> str:
        return self.tag

    @classmethod
    def from_tag(cls, tag: str) -> Strategy:
        try:
            return cls[tag.strip().upper()]
        except (KeyError, AttributeError):
            raise ValueError(f"Unknown strategy: {tag!r}") from None

    @classmethod
    def is_valid(cls, value: int) -> bool:
        return cls.DEFAULT <= value <= cls.DISCHARGE


STRATEGY_COUNT = len(Strategy)
_STRATEGIES = tuple(Strategy)

StrategySequence = Tuple[Strategy, ...]


def is_supported_horizon(hours: int) -> bool:
    return 1 <= hours <= MAX_HORIZON_HOURS


def permutation_count(hours: int) -> int:
    """Number of candidate sequences for a horizon (1 for unsupported horizons)."""
    if not is_supported_horizon(hours):
        return 1
    return STRATEGY_COUNT**hours


def permutation_at(index: int, hours: int) -> StrategySequence:
    """Strategy sequence for candidate index (base-4, hour 0 most significant)."""
    if not is_supported_horizon(hours):
        return ()

    digits = [Strategy.DEFAULT] * hours
    for hour in range(hours - 1, -1, -1):
        index, digit = divmod(index, STRATEGY_COUNT)
        digits[hour] = _STRATEGIES[digit]
    return tuple(digits)


def permute(hours: int) -> Iterator[StrategySequence]:
    """
    Yield every strategy sequence of the given length in candidate index order.

    Horizons outside [1, MAX_HORIZON_HOURS] yield a single empty sequence.
    """
    if not is_supported_horizon(hours):
        yield ()
        return

    for index in range(permutation_count(hours)):
        yield permutation_at(index, hours)
