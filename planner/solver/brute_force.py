"""
Brute Force Strategy Search

Evaluates every strategy sequence for the horizon and keeps the cheapest one.

The candidate index space is split into contiguous batches. Each batch is
reduced to its own best (cost, index, level) without shared state, and the
batch results are merged with the same rule: lowest cost wins, lowest
candidate index breaks ties. Serial and parallel runs therefore always pick
the same sequence.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from typing import NamedTuple, Optional

from planner.inputs.types import PlanningInput
from planner.solver.evaluator import evaluate
from planner.solver.types import PlanningOutput, SearchTimeoutError
from planner.strategy.strategies import permutation_at, permutation_count

logger = logging.getLogger("solarplant.planner.solver")

DEFAULT_BATCH_SIZE = 4096


class BatchBest(NamedTuple):
    cost: float
    index: int
    battery_level: float
    evaluated: int


def _better(candidate: BatchBest, best: Optional[BatchBest]) -> bool:
    if best is None:
        return True
    return (candidate.cost, candidate.index) < (best.cost, best.index)


def evaluate_batch(planning_input: PlanningInput, start: int, stop: int) -> BatchBest:
    """Best candidate among indices [start, stop)."""
    hours = planning_input.horizon
    best: Optional[BatchBest] = None
    for index in range(start, stop):
        cost, level = evaluate(planning_input, permutation_at(index, hours))
        if best is None or cost < best.cost:
            best = BatchBest(cost, index, level, 0)
    return best._replace(evaluated=stop - start)


def merge(results) -> BatchBest:
    best: Optional[BatchBest] = None
    evaluated = 0
    for result in results:
        evaluated += result.evaluated
        if _better(result, best):
            best = result
    return best._replace(evaluated=evaluated)


def _batches(total: int, batch_size: int):
    for start in range(0, total, batch_size):
        yield start, min(start + batch_size, total)


def _check_deadline(deadline: Optional[float], evaluated: int, total: int) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise SearchTimeoutError(evaluated, total)


def _search_serial(planning_input, total, batch_size, deadline) -> BatchBest:
    results = []
    evaluated = 0
    for start, stop in _batches(total, batch_size):
        _check_deadline(deadline, evaluated, total)
        result = evaluate_batch(planning_input, start, stop)
        evaluated += result.evaluated
        results.append(result)
    return merge(results)


def _search_parallel(planning_input, total, batch_size, workers, deadline) -> BatchBest:
    results = []
    evaluated = 0
    batches = _batches(total, batch_size)
    executor = ProcessPoolExecutor(max_workers=workers)
    try:
        # At most workers * 2 batches in flight; the deadline is checked as each one completes
        pending = set()
        for start, stop in batches:
            pending.add(executor.submit(evaluate_batch, planning_input, start, stop))
            if len(pending) >= workers * 2:
                break

        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                result = future.result()
                evaluated += result.evaluated
                results.append(result)
            _check_deadline(deadline, evaluated, total)
            for start, stop in batches:
                pending.add(executor.submit(evaluate_batch, planning_input, start, stop))
                if len(pending) >= workers * 2:
                    break
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    return merge(results)


def best_strategies(
    planning_input: PlanningInput,
    workers: Optional[int] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    timeout: Optional[float] = None,
) -> PlanningOutput:
    """
    Find the cheapest strategy sequence for the forecast horizon.

    Args:
        planning_input: Battery snapshot, taxes and forecast
        workers: Worker processes (None = os.cpu_count(), 1 = in-process)
        batch_size: Candidates per batch
        timeout: Seconds before the search gives up with SearchTimeoutError

    Returns:
        PlanningOutput with the minimum-cost sequence. When every candidate is
        disqualified the first candidate is returned with cost math.inf.
    """
    hours = planning_input.horizon
    total = permutation_count(hours)
    deadline = time.monotonic() + timeout if timeout is not None else None
    batch_size = max(1, int(batch_size))
    if workers is None:
        workers = os.cpu_count() or 1

    started = time.monotonic()
    if workers <= 1 or total <= batch_size:
        best = _search_serial(planning_input, total, batch_size, deadline)
    else:
        best = _search_parallel(planning_input, total, batch_size, workers, deadline)

    logger.debug(
        "Evaluated %d candidates for %d hours in %.1f ms (workers=%d, cost=%s)",
        best.evaluated,
        hours,
        (time.monotonic() - started) * 1000.0,
        workers,
        best.cost,
    )

    return PlanningOutput(
        cost=best.cost,
        battery_level=best.battery_level,
        strategies=permutation_at(best.index, hours),
        evaluated=best.evaluated,
    )
