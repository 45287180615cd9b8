"""Linear regression channels.

Fits ordinary least squares ``price ~ index`` over a trailing window and
draws a channel of ``std_multiplier`` residual standard deviations around
the fitted line, split into equal partition zones. Also provides the
rolling variant where every point gets the channel of its own trailing
window with volume-weighted partition levels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

import numpy as np

from marketlens.core.exceptions import InsufficientDataError, InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.domain import PricePoint, PriceSource, SeriesInput, sort_points

from .config import ChannelConfig, get_channel_config

logger = get_logger("channels.regression")

# Residuals this close to zero (relative to the price scale) are rounding noise
RESIDUAL_NOISE = 1e-9


@dataclass(frozen=True, eq=False)
class RegressionFit:
    """OLS fit over ``values[start:end]`` with x = 0..n-1 inside the window."""

    slope: float
    intercept: float
    std_dev: float  # sample standard deviation of the residuals
    start: int
    end: int  # exclusive
    residuals: np.ndarray

    @property
    def n(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "std_dev": self.std_dev,
            "start": self.start,
            "end": self.end,
        }


@dataclass(frozen=True)
class ChannelModel:
    """A fitted channel: centre line, width and placement."""

    slope: float
    intercept: float  # regression intercept before the shift
    std_dev: float
    lookback: int
    end_offset: int
    std_multiplier: float
    intercept_shift: float = 0.0

    def center(self, x: float) -> float:
        return self.slope * x + self.intercept + self.intercept_shift

    def upper(self, x: float) -> float:
        return self.center(x) + self.std_multiplier * self.std_dev

    def lower(self, x: float) -> float:
        return self.center(x) - self.std_multiplier * self.std_dev

    def partition_levels(self, x: float, bands: int) -> tuple[float, ...]:
        """The ``bands - 1`` levels splitting the channel into equal zones."""
        lower = self.lower(x)
        width = self.upper(x) - lower
        return tuple(lower + width * b / bands for b in range(1, bands))

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "std_dev": self.std_dev,
            "lookback": self.lookback,
            "end_offset": self.end_offset,
            "std_multiplier": self.std_multiplier,
            "intercept_shift": self.intercept_shift,
        }


@dataclass(frozen=True)
class ChannelPoint:
    """One price point with its channel values (None outside the window)."""

    date: date
    price: float
    center_line: float | None = None
    upper_bound: float | None = None
    lower_bound: float | None = None
    bands: tuple[float, ...] = ()
    std_dev: float | None = None

    @property
    def in_channel(self) -> bool:
        return self.center_line is not None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "date": self.date.isoformat(),
            "price": self.price,
            "center_line": self.center_line,
            "upper_bound": self.upper_bound,
            "lower_bound": self.lower_bound,
            "bands": list(self.bands),
        }
        if self.std_dev is not None:
            result["std_dev"] = self.std_dev
        return result


@dataclass
class ChannelResult:
    """A channel model with its per-point values."""

    model: ChannelModel
    points: list[ChannelPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model.to_dict(),
            "points": [p.to_dict() for p in self.points],
        }


def price_points(
    data: SeriesInput,
    source: PriceSource = "close",
) -> tuple[list[PricePoint], np.ndarray]:
    """Sorted points and the price values used for fitting."""
    points = sort_points(data)
    return points, np.array([p.price(source) for p in points], dtype=float)


def ols_line(y: np.ndarray) -> tuple[float, float] | None:
    n = len(y)
    if n < 2:
        return None
    x = np.arange(n, dtype=float)
    x_mean = x.mean()
    dx = x - x_mean
    slope = float(np.dot(dx, y - y.mean()) / np.dot(dx, dx))
    intercept = float(y.mean() - slope * x_mean)
    return slope, intercept


def snap_residuals(residuals: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Zero out residuals that are floating-point noise for this price scale."""
    scale = max(1.0, float(np.max(np.abs(values)))) if len(values) else 1.0
    snapped = residuals.copy()
    snapped[np.abs(snapped) <= RESIDUAL_NOISE * scale] = 0.0
    return snapped


def sample_std(residuals: np.ndarray) -> float:
    """Residual standard deviation with an n-1 denominator (floored at 1)."""
    return float(np.sqrt(np.sum(residuals * residuals) / max(1, len(residuals) - 1)))


def window_bounds(n: int, lookback: int, end_offset: int = 0) -> tuple[int, int] | None:
    """[start, end) of a ``lookback`` window ending ``end_offset`` before the last point."""
    end = n - end_offset
    start = end - lookback
    if lookback < 2 or start < 0:
        return None
    return start, end


def fit_linear_regression(
    values: Sequence[float] | np.ndarray,
    lookback: int,
    end_offset: int = 0,
) -> RegressionFit | None:
    """
    OLS fit over a trailing window.

    Args:
        values: Prices in chronological order
        lookback: Window size
        end_offset: Points between the window end and the latest point

    Returns:
        RegressionFit, or None when the window does not fit in the series

    Raises:
        InvalidParameterError: if end_offset is negative
    """
    if end_offset < 0:
        raise InvalidParameterError("end_offset must be non-negative", details={"end_offset": end_offset})

    arr = np.asarray(values, dtype=float)
    bounds = window_bounds(len(arr), lookback, end_offset)
    if bounds is None:
        return None
    start, end = bounds

    window = arr[start:end]
    coefficients = ols_line(window)
    if coefficients is None:
        return None
    slope, intercept = coefficients

    residuals = snap_residuals(window - (slope * np.arange(len(window)) + intercept), window)
    return RegressionFit(
        slope=slope,
        intercept=intercept,
        std_dev=sample_std(residuals),
        start=start,
        end=end,
        residuals=residuals,
    )


def build_channel(
    data: SeriesInput,
    lookback: int | None = None,
    std_multiplier: float | None = None,
    end_offset: int | None = None,
    intercept_shift: float = 0.0,
    price_source: PriceSource | None = None,
    channel_bands: int | None = None,
    config: ChannelConfig | None = None,
) -> ChannelResult:
    """
    Regression channel over one window with equal partition levels.

    The standard deviation is taken around the shifted centre line, so a
    non-zero ``intercept_shift`` widens the channel accordingly. Points
    outside the window carry no channel values.

    Raises:
        InsufficientDataError: if the window does not fit in the series
    """
    config = (config or get_channel_config()).with_overrides(
        lookback=lookback,
        end_offset=end_offset,
        std_multiplier=std_multiplier,
        price_source=price_source,
    )
    bands = channel_bands if channel_bands is not None else config.channel_bands

    points, values = price_points(data, config.price_source)
    fit = fit_linear_regression(values, config.lookback, config.end_offset)
    if fit is None:
        raise InsufficientDataError(
            "Not enough data for the requested channel window",
            details={"data_points": len(values), "lookback": config.lookback, "end_offset": config.end_offset},
        )

    shifted = fit.residuals - intercept_shift
    model = ChannelModel(
        slope=fit.slope,
        intercept=fit.intercept,
        std_dev=sample_std(shifted) if intercept_shift else fit.std_dev,
        lookback=config.lookback,
        end_offset=config.end_offset,
        std_multiplier=config.std_multiplier,
        intercept_shift=intercept_shift,
    )

    channel_points = []
    for idx, point in enumerate(points):
        if not fit.start <= idx < fit.end:
            channel_points.append(ChannelPoint(date=point.date, price=float(values[idx])))
            continue
        x = idx - fit.start
        channel_points.append(
            ChannelPoint(
                date=point.date,
                price=float(values[idx]),
                center_line=model.center(x),
                upper_bound=model.upper(x),
                lower_bound=model.lower(x),
                bands=model.partition_levels(x, bands),
            )
        )

    return ChannelResult(model=model, points=channel_points)


def volume_quantile_levels(
    prices: np.ndarray,
    volumes: np.ndarray,
    lower: float,
    upper: float,
    bands: int,
) -> tuple[float, ...]:
    """
    Partition levels that split traded volume into ``bands`` equal shares.

    Prices are sorted ascending and level ``k`` is the first price at which
    cumulative volume reaches ``k / bands`` of the total. Levels are clamped
    to [lower, upper]. With fewer than ``bands`` traded points or no volume
    the channel is split evenly instead.
    """
    even = tuple(lower + (upper - lower) * b / bands for b in range(1, bands))
    traded = volumes > 0
    if int(np.count_nonzero(traded)) < bands:
        return even

    order = np.argsort(prices[traded], kind="stable")
    sorted_prices = prices[traded][order]
    cumulative = np.cumsum(volumes[traded][order])
    total = cumulative[-1]
    if total <= 0:
        return even

    ratios = cumulative / total
    levels = []
    for b in range(1, bands):
        idx = int(np.searchsorted(ratios, b / bands, side="left"))
        level = sorted_prices[idx] if idx < len(sorted_prices) else even[b - 1]
        levels.append(float(min(max(level, lower), upper)))
    return tuple(levels)


def rolling_std_dev_channel(
    data: SeriesInput,
    period: int,
    std_multiplier: float | None = None,
    price_source: PriceSource | None = None,
    channel_bands: int | None = None,
    config: ChannelConfig | None = None,
) -> list[ChannelPoint]:
    """
    Per-point channel from each point's own trailing ``period`` window.

    The centre is the regression value at the window's last point and the
    width uses the population standard deviation of the window residuals.
    The first ``period - 1`` points carry no channel values.
    """
    if period < 2:
        raise InvalidParameterError("period must be at least 2", details={"period": period})

    config = (config or get_channel_config()).with_overrides(
        std_multiplier=std_multiplier, price_source=price_source
    )
    bands = channel_bands if channel_bands is not None else config.channel_bands
    points, values = price_points(data, config.price_source)
    volumes = np.array([p.volume or 0 for p in points], dtype=float)

    result = []
    for idx, point in enumerate(points):
        if idx < period - 1:
            result.append(ChannelPoint(date=point.date, price=float(values[idx])))
            continue

        window = values[idx - period + 1 : idx + 1]
        slope, intercept = ols_line(window)
        residuals = snap_residuals(window - (slope * np.arange(period) + intercept), window)
        std_dev = float(np.sqrt(np.mean(residuals * residuals)))

        center = slope * (period - 1) + intercept
        upper = center + std_dev * config.std_multiplier
        lower = center - std_dev * config.std_multiplier
        result.append(
            ChannelPoint(
                date=point.date,
                price=float(values[idx]),
                center_line=center,
                upper_bound=upper,
                lower_bound=lower,
                bands=volume_quantile_levels(
                    window, volumes[idx - period + 1 : idx + 1], lower, upper, bands
                ),
                std_dev=std_dev,
            )
        )

    logger.debug(f"Rolling channel over {len(points)} points with period {period}")
    return result
