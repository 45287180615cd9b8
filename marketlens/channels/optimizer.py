"""Lookback and end-offset grid search for regression channels.

Search space:
    lookback    in [min_lookback, N]            (<= grid_samples values)
    end_offset  in [0, N * end_offset_fraction] (<= grid_samples values)

Each combination fits the channel and counts the window points lying
within ``proximity_tolerance`` of the centre line; the highest count wins
and ties keep the combination met first (lookbacks ascending, then end
offsets ascending). The same search is repeated on the most recent
``recent_fraction`` of the data. The std multiplier is chosen afterwards
by touch alignment at the winning window, not jointly with the grid.
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Sequence

import numpy as np

from marketlens.core.exceptions import InsufficientDataError
from marketlens.core.logging import get_logger

from .config import ChannelConfig, get_channel_config
from .regression import ols_line, window_bounds
from .touch import compute_touch_alignment

logger = get_logger("channels.optimizer")

# Shared executor for async callers
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="channel-optimizer")

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class OptimizationResult:
    """Best channel placement for one search."""

    optimal_lookback: int
    optimal_end_offset: int
    optimal_std_multiplier: float
    intercept_shift: float
    touches_upper: bool
    touches_lower: bool
    coverage_count: int  # points inside the aligned channel
    near_center_count: int  # points within tolerance of the centre line
    evaluations: int
    data_points: int

    def to_dict(self) -> dict:
        return {
            "optimal_lookback": self.optimal_lookback,
            "optimal_end_offset": self.optimal_end_offset,
            "optimal_std_multiplier": round(self.optimal_std_multiplier, 4),
            "intercept_shift": self.intercept_shift,
            "touches_upper": self.touches_upper,
            "touches_lower": self.touches_lower,
            "coverage_count": self.coverage_count,
            "near_center_count": self.near_center_count,
            "evaluations": self.evaluations,
            "data_points": self.data_points,
        }


@dataclass(frozen=True)
class OptimizationReport:
    """Long-horizon optimum next to the recent-regime optimum."""

    overall: OptimizationResult
    recent: OptimizationResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall.to_dict(),
            "recent": self.recent.to_dict() if self.recent else None,
        }


def sample_grid(low: int, high: int, samples: int) -> list[int]:
    """Up to ``samples`` evenly spaced unique integers in [low, high]."""
    if high < low:
        return []
    count = min(samples, high - low + 1)
    return sorted({int(round(v)) for v in np.linspace(low, high, count)})


def count_near_center(
    values: np.ndarray,
    lookback: int,
    end_offset: int,
    tolerance: float,
) -> int | None:
    """Window points within ``tolerance * |centre|`` of the regression line."""
    bounds = window_bounds(len(values), lookback, end_offset)
    if bounds is None:
        return None
    window = values[bounds[0] : bounds[1]]
    coefficients = ols_line(window)
    if coefficients is None:
        return None
    slope, intercept = coefficients
    center = slope * np.arange(len(window)) + intercept
    return int(np.count_nonzero(np.abs(window - center) <= tolerance * np.abs(center)))


def _best_in_row(
    values: np.ndarray,
    lookback: int,
    end_offsets: list[int],
    tolerance: float,
) -> tuple[int, int, int] | None:
    """(count, end_offset, evaluations) of the best end offset for one lookback."""
    best: tuple[int, int] | None = None
    evaluations = 0
    for end_offset in end_offsets:
        if lookback + end_offset > len(values):
            break
        count = count_near_center(values, lookback, end_offset, tolerance)
        if count is None:
            continue
        evaluations += 1
        if best is None or count > best[0]:
            best = (count, end_offset)
    if best is None:
        return None
    return best[0], best[1], evaluations


def _search(
    values: np.ndarray,
    config: ChannelConfig,
    progress: ProgressCallback | None,
    max_workers: int,
) -> OptimizationResult:
    n = len(values)
    lookbacks = sample_grid(config.min_lookback, n, config.grid_samples)
    end_offsets = sample_grid(0, int(n * config.end_offset_fraction), config.grid_samples)
    row = partial(
        _best_in_row,
        values,
        end_offsets=end_offsets,
        tolerance=config.proximity_tolerance,
    )

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="channel-grid") as pool:
            rows = pool.map(row, lookbacks)
            row_results = _collect(rows, len(lookbacks), progress)
    else:
        row_results = _collect(map(row, lookbacks), len(lookbacks), progress)

    # Reduce in grid order so threaded and sequential runs agree
    best_count, best_lookback, best_offset = -1, lookbacks[0], 0
    evaluations = 0
    for lookback, result in zip(lookbacks, row_results):
        if result is None:
            continue
        count, end_offset, row_evaluations = result
        evaluations += row_evaluations
        if count > best_count:
            best_count, best_lookback, best_offset = count, lookback, end_offset

    alignment = compute_touch_alignment(
        values,
        best_lookback,
        best_offset,
        chart_period=config.chart_period,
        boundary_fraction=config.boundary_fraction,
    )
    if alignment is not None and alignment.optimal_delta > 0:
        multiplier = alignment.optimal_delta
    else:
        # zero-width channel: any multiplier describes it
        multiplier = config.std_multiplier

    return OptimizationResult(
        optimal_lookback=best_lookback,
        optimal_end_offset=best_offset,
        optimal_std_multiplier=multiplier,
        intercept_shift=alignment.intercept_shift if alignment else 0.0,
        touches_upper=alignment.touches_upper if alignment else False,
        touches_lower=alignment.touches_lower if alignment else False,
        coverage_count=alignment.coverage_count if alignment else 0,
        near_center_count=max(best_count, 0),
        evaluations=evaluations,
        data_points=n,
    )


def _collect(rows, total: int, progress: ProgressCallback | None) -> list:
    results = []
    for done, result in enumerate(rows, start=1):
        results.append(result)
        if progress is not None:
            progress(done, total)
    return results


def simulate_lookback(
    values: Sequence[float] | np.ndarray,
    config: ChannelConfig | None = None,
    progress: ProgressCallback | None = None,
    max_workers: int | None = None,
) -> OptimizationReport:
    """
    Grid-search the channel window over the full series and its recent part.

    Args:
        values: Prices in chronological order
        config: Grid resolution, tolerances and fallback multiplier
        progress: Called as ``progress(rows_done, rows_total)`` after each
            lookback row of each search
        max_workers: Threads for the grid rows (default from config)

    Returns:
        OptimizationReport; ``recent`` is None when the recent slice is
        shorter than ``min_lookback``

    Raises:
        InsufficientDataError: if the series is shorter than ``min_lookback``
    """
    config = config or get_channel_config()
    workers = max_workers if max_workers is not None else config.optimizer_workers
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n < max(2, config.min_lookback):
        raise InsufficientDataError(
            "Not enough data for channel optimisation",
            details={"data_points": n, "required": config.min_lookback},
        )

    started = time.perf_counter()
    overall = _search(arr, config, progress, workers)

    recent = None
    recent_size = int(n * config.recent_fraction)
    if recent_size >= max(2, config.min_lookback):
        recent = _search(arr[-recent_size:], config, progress, workers)

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"Channel search over {n} points: lookback={overall.optimal_lookback} "
        f"end_offset={overall.optimal_end_offset} "
        f"std_multiplier={overall.optimal_std_multiplier:.3f} in {elapsed_ms:.0f}ms"
    )
    return OptimizationReport(overall=overall, recent=recent)


async def simulate_lookback_async(
    values: Sequence[float] | np.ndarray,
    config: ChannelConfig | None = None,
    max_workers: int | None = None,
) -> OptimizationReport:
    """Run :func:`simulate_lookback` on the shared executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        _executor,
        partial(simulate_lookback, values, config=config, max_workers=max_workers),
    )
