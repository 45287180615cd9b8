"""Channel touch alignment.

Centres a regression channel between its extreme residuals and decides
whether price actually turns at the upper and lower bound. Turning points
come from sign changes of the residual of a smoothed price, and a touch
only counts when it happens near either edge of the window.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from marketlens.core.exceptions import InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.cycles.crossover import simple_moving_average

from .regression import fit_linear_regression, snap_residuals

logger = get_logger("channels.touch")

# SMA period used to smooth prices before looking for turning points
CHART_PERIOD_SMA: dict[str, int] = {
    "7D": 1,
    "1M": 3,
    "3M": 5,
    "6M": 10,
    "1Y": 14,
    "3Y": 20,
    "5Y": 30,
}
DEFAULT_SMA_PERIOD = 3


@dataclass(frozen=True)
class TurningPoint:
    index: int
    residual: float  # centred residual of the raw price
    direction: str  # "up" or "down"


@dataclass(frozen=True)
class TouchAlignment:
    """Centred channel geometry and touch classification."""

    lookback: int
    end_offset: int
    slope: float
    base_intercept: float
    intercept_shift: float
    std_dev: float
    extreme_magnitude: float
    optimal_delta: float  # extreme_magnitude / std_dev
    touches_upper: bool
    touches_lower: bool
    coverage_count: int
    total_points: int

    @property
    def intercept(self) -> float:
        return self.base_intercept + self.intercept_shift

    def to_dict(self) -> dict:
        return {
            "lookback": self.lookback,
            "end_offset": self.end_offset,
            "slope": self.slope,
            "base_intercept": self.base_intercept,
            "intercept_shift": self.intercept_shift,
            "std_dev": self.std_dev,
            "extreme_magnitude": self.extreme_magnitude,
            "optimal_delta": self.optimal_delta,
            "touches_upper": self.touches_upper,
            "touches_lower": self.touches_lower,
            "coverage_count": self.coverage_count,
            "total_points": self.total_points,
        }


def sma_period_for_chart(chart_period: str | None) -> int:
    """Smoothing period for a display timeframe such as ``"3M"``."""
    return CHART_PERIOD_SMA.get(chart_period or "", DEFAULT_SMA_PERIOD)


def smooth_prices(values: np.ndarray, period: int) -> np.ndarray:
    """Trailing SMA that keeps the raw price until a full window exists."""
    values = np.asarray(values, dtype=float)
    if period <= 1:
        return values.copy()
    smoothed = simple_moving_average(values, period)
    return np.concatenate([values[: period - 1], smoothed[period - 1 :]])


def find_turning_points(smoothed_residuals: np.ndarray, raw_residuals: np.ndarray) -> list[TurningPoint]:
    """Sign changes of the smoothed residual, reported with the raw residual."""
    turning = []
    for i in range(1, len(smoothed_residuals)):
        prev = smoothed_residuals[i - 1]
        curr = smoothed_residuals[i]
        if (prev < 0 <= curr) or (prev > 0 >= curr) or (prev == 0 and curr != 0):
            turning.append(
                TurningPoint(
                    index=i,
                    residual=float(raw_residuals[i]),
                    direction="up" if curr >= 0 else "down",
                )
            )
    return turning


def compute_touch_alignment(
    values: Sequence[float] | np.ndarray,
    lookback: int,
    end_offset: int = 0,
    chart_period: str = "3M",
    boundary_fraction: float = 0.08,
) -> TouchAlignment | None:
    """
    Centre the channel on its extreme residuals and classify touches.

    The intercept shift is the midpoint of the largest and smallest
    residual, which makes the extremes symmetric around the shifted line.
    ``optimal_delta`` is the multiplier whose bands pass exactly through
    the extremes. A bound counts as touched only when a turning point sits
    on the extreme residual within the first or last ``boundary_fraction``
    of the window. A zero-noise window touches both bounds.

    Returns:
        TouchAlignment, or None when the window does not fit in the series
    """
    if not 0 < boundary_fraction <= 0.5:
        raise InvalidParameterError(
            "boundary_fraction must be in (0, 0.5]", details={"boundary_fraction": boundary_fraction}
        )

    arr = np.asarray(values, dtype=float)
    fit = fit_linear_regression(arr, lookback, end_offset)
    if fit is None:
        return None

    window = arr[fit.start : fit.end]
    n = len(window)
    residuals = fit.residuals

    intercept_shift = float(residuals.max() + residuals.min()) / 2
    adjusted = residuals - intercept_shift
    std_dev = float(np.sqrt(np.sum(adjusted * adjusted) / max(1, n - 1)))
    extreme = float(np.max(np.abs(adjusted)))

    optimal_delta = extreme / std_dev if std_dev > 0 else 0.0
    if not math.isfinite(optimal_delta):
        optimal_delta = 0.0

    tolerance = std_dev * 1e-6 if std_dev > 0 else 1e-6
    boundary_window = max(1, math.floor(n * boundary_fraction))

    # Smoothed residuals are taken against the same regression line
    model = fit.slope * np.arange(n) + fit.intercept
    smoothed = snap_residuals(smooth_prices(window, sma_period_for_chart(chart_period)) - model, window)
    smoothed_adjusted = smoothed - float(smoothed.max() + smoothed.min()) / 2

    if extreme == 0:
        touches_upper = touches_lower = True
    else:
        touches_upper = touches_lower = False
        for tp in find_turning_points(smoothed_adjusted, adjusted):
            # mid-window turns at the extreme do not count
            if tp.index >= boundary_window and tp.index < n - boundary_window:
                continue
            if abs(tp.residual - extreme) <= tolerance:
                touches_upper = True
            if abs(tp.residual + extreme) <= tolerance:
                touches_lower = True

    # adjusted residuals are distances from the shifted centre line
    half_width = optimal_delta * std_dev
    coverage = int(np.count_nonzero(np.abs(adjusted) <= half_width + tolerance))

    return TouchAlignment(
        lookback=n,
        end_offset=end_offset,
        slope=fit.slope,
        base_intercept=fit.intercept,
        intercept_shift=intercept_shift,
        std_dev=std_dev,
        extreme_magnitude=extreme,
        optimal_delta=optimal_delta,
        touches_upper=touches_upper,
        touches_lower=touches_lower,
        coverage_count=coverage,
        total_points=n,
    )
