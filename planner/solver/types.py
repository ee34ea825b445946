"""
Solver Types

Result and error types for the dispatch optimizer.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from planner.strategy.strategies import Strategy


class PlanningError(Exception):
    """Base class for planner failures."""


class SearchTimeoutError(PlanningError):
    """The strategy search ran past its deadline."""

    def __init__(self, evaluated: int, total: int):
        super().__init__(f"Strategy search timed out after {evaluated} of {total} candidates")
        self.evaluated = evaluated
        self.total = total


@dataclass(frozen=True)
class PlanningOutput:
    """
    Best strategy sequence found by the optimizer.

    cost is total SEK for the horizon (negative = net profit) and is math.inf
    when every candidate was disqualified.
    battery_level is the simulated final level in percent.
    """

    cost: float
    battery_level: float
    strategies: Tuple[Strategy, ...]
    evaluated: int = 0

    @property
    def is_feasible(self) -> bool:
        return not math.isinf(self.cost)

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(s.tag for s in self.strategies)
