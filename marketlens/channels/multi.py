"""Multiple channels and manually selected channel ranges.

``find_multiple_channels`` repeatedly picks the best-scoring regression
channel among the still unused parts of the series. ``fit_manual_channel``
aligns a channel on a range chosen by the user.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any

import numpy as np

from marketlens.core.exceptions import InsufficientDataError, InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.domain import PriceSource, SeriesInput

from .config import ChannelConfig, get_channel_config
from .regression import (
    ChannelModel,
    ChannelResult,
    build_channel,
    ols_line,
    price_points,
    snap_residuals,
)
from .touch import TouchAlignment, compute_touch_alignment

logger = get_logger("channels.multi")

MULTIPLIER_CANDIDATES: tuple[float, ...] = (1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0)
MIN_CENTER_PROXIMITY = 0.70  # share of points within 20% of the centre line
CENTER_BAND = 0.20
EDGE_DEVIATION_LIMIT = 1.5  # edge residuals vs whole-channel residuals
MIN_SCORE = 0.15
MAX_CHANNELS = 10
MAX_REUSED_SHARE = 0.5
OVERLAP_BUFFER = 0.2


@dataclass(frozen=True)
class ChannelSegment:
    """A channel fitted on ``values[start_idx:end_idx + 1]``."""

    start_idx: int
    end_idx: int  # inclusive
    start_date: date
    end_date: date
    slope: float
    intercept: float
    std_dev: float  # population standard deviation of the residuals
    std_multiplier: float
    coverage: float
    center_proximity: float
    touches_upper: bool
    touches_lower: bool
    score: float

    @property
    def lookback(self) -> int:
        return self.end_idx - self.start_idx + 1

    def model(self, total_points: int) -> ChannelModel:
        return ChannelModel(
            slope=self.slope,
            intercept=self.intercept,
            std_dev=self.std_dev,
            lookback=self.lookback,
            end_offset=total_points - 1 - self.end_idx,
            std_multiplier=self.std_multiplier,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_idx": self.start_idx,
            "end_idx": self.end_idx,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "lookback": self.lookback,
            "slope": self.slope,
            "intercept": self.intercept,
            "std_dev": self.std_dev,
            "std_multiplier": self.std_multiplier,
            "coverage": round(self.coverage, 4),
            "center_proximity": round(self.center_proximity, 4),
            "touches_upper": self.touches_upper,
            "touches_lower": self.touches_lower,
            "score": round(self.score, 4),
        }


@dataclass(frozen=True)
class _Candidate:
    start: int
    end: int  # exclusive
    slope: float
    intercept: float
    std_dev: float
    multiplier: float
    coverage: float
    center_proximity: float
    touches_upper: bool
    touches_lower: bool
    score: float


def _score_multipliers(
    window: np.ndarray,
    slope: float,
    intercept: float,
    std_dev: float,
    total_points: int,
) -> tuple[float, float, float, float, bool, bool] | None:
    """Best (score, multiplier, coverage, proximity, upper, lower) for one window."""
    n = len(window)
    center = slope * np.arange(n) + intercept
    tolerance = std_dev * 0.1
    near_center = np.abs(window - center) <= np.abs(center) * CENTER_BAND
    center_proximity = float(np.count_nonzero(near_center)) / n
    if center_proximity < MIN_CENTER_PROXIMITY:
        return None

    relative_fit = 1 / (1 + std_dev / (intercept if intercept != 0 else 1))
    length_bonus = math.log(n) / math.log(total_points)

    best = None
    for multiplier in MULTIPLIER_CANDIDATES:
        upper = center + multiplier * std_dev
        lower = center - multiplier * std_dev
        inside = (window >= lower - tolerance) & (window <= upper + tolerance)
        touches_upper = bool(np.any(np.abs(window - upper) <= tolerance))
        touches_lower = bool(np.any(np.abs(window - lower) <= tolerance))
        coverage = float(np.count_nonzero(inside)) / n

        if touches_upper and touches_lower:
            touch_bonus = 1.5
        elif touches_upper or touches_lower:
            touch_bonus = 1.2
        else:
            touch_bonus = 1.0
        width_penalty = 1 / (1 + multiplier / 4.0)
        score = coverage * touch_bonus * relative_fit * length_bonus * center_proximity * width_penalty

        if best is None or score > best[0]:
            best = (score, multiplier, coverage, center_proximity, touches_upper, touches_lower)
    return best


def _edges_fit(residuals: np.ndarray) -> bool:
    """False when either end of the channel strays far more than its middle."""
    n = len(residuals)
    edge = max(3, n // 10)
    overall = float(np.mean(np.abs(residuals)))
    start_dev = float(np.mean(np.abs(residuals[:edge])))
    end_dev = float(np.mean(np.abs(residuals[-edge:])))
    limit = overall * EDGE_DEVIATION_LIMIT
    return start_dev <= limit and end_dev <= limit


def _best_in_range(
    values: np.ndarray,
    start: int,
    end: int,
    min_points: int,
    max_points: int,
    used: np.ndarray,
) -> _Candidate | None:
    range_len = end - start + 1
    if range_len < min_points:
        return None

    min_lookback = min(min_points, range_len)
    max_lookback = min(max_points, range_len)
    lookback_step = max(1, (max_lookback - min_lookback) // 20)

    best: _Candidate | None = None
    for lookback in range(min_lookback, max_lookback + 1, lookback_step):
        max_start = max(0, end - lookback + 1)
        pos_step = max(1, (max_start - start) // 10)

        for pos in range(start, max_start + 1, pos_step):
            stop = min(pos + lookback, end + 1)
            window = values[pos:stop]
            n = len(window)
            if n < min_points:
                continue
            if np.count_nonzero(used[pos:stop]) > n * MAX_REUSED_SHARE:
                continue

            coefficients = ols_line(window)
            if coefficients is None:
                continue
            slope, intercept = coefficients
            residuals = snap_residuals(window - (slope * np.arange(n) + intercept), window)
            std_dev = float(np.std(residuals))
            if std_dev == 0:
                continue

            scored = _score_multipliers(window, slope, intercept, std_dev, len(values))
            if scored is None or not _edges_fit(residuals):
                continue

            score, multiplier, coverage, proximity, upper, lower = scored
            if best is None or score > best.score:
                best = _Candidate(
                    start=pos,
                    end=stop,
                    slope=slope,
                    intercept=intercept,
                    std_dev=std_dev,
                    multiplier=multiplier,
                    coverage=coverage,
                    center_proximity=proximity,
                    touches_upper=upper,
                    touches_lower=lower,
                    score=score,
                )
    return best


def find_multiple_channels(
    data: SeriesInput,
    min_ratio: float | None = None,
    max_ratio: float | None = None,
    price_source: PriceSource | None = None,
    config: ChannelConfig | None = None,
) -> list[ChannelSegment]:
    """
    Find up to ten non-overlapping channels, ordered by start.

    Channels are between ``min_ratio`` (at least 10 points) and
    ``max_ratio`` of the series long. Each round takes the best-scoring
    channel across the remaining ranges; the search stops when nothing
    scores at least 0.15. The middle of each accepted channel is marked
    used so later channels may overlap its edges but not its body.
    """
    config = config or get_channel_config()
    if min_ratio is None:
        min_ratio = config.multi_min_ratio
    if max_ratio is None:
        max_ratio = config.multi_max_ratio

    points, values = price_points(data, price_source if price_source is not None else config.price_source)
    total = len(values)
    if total == 0:
        return []

    min_points = max(10, math.floor(total * min_ratio))
    max_points = math.floor(total * max_ratio)
    used = np.zeros(total, dtype=bool)
    ranges: list[tuple[int, int]] = [(0, total - 1)]
    found: list[_Candidate] = []

    for _ in range(MAX_CHANNELS):
        if not ranges:
            break
        best: _Candidate | None = None
        best_range = -1
        for idx, (start, end) in enumerate(ranges):
            candidate = _best_in_range(values, start, end, min_points, max_points, used)
            if candidate is not None and (best is None or candidate.score > best.score):
                best, best_range = candidate, idx

        if best is None or best.score < MIN_SCORE:
            break
        found.append(best)

        buffer = math.floor((best.end - best.start) * OVERLAP_BUFFER)
        used[best.start + buffer : best.end - buffer] = True

        range_start, range_end = ranges[best_range]
        remaining = []
        if best.start - range_start >= min_points * 0.8:
            remaining.append((range_start, best.start - 1))
        if range_end - (best.end - 1) >= min_points * 0.8:
            remaining.append((best.end, range_end))
        ranges[best_range : best_range + 1] = remaining

    found.sort(key=lambda c: c.start)
    logger.debug(f"Found {len(found)} channels in {total} points")

    return [
        ChannelSegment(
            start_idx=c.start,
            end_idx=c.end - 1,
            start_date=points[c.start].date,
            end_date=points[c.end - 1].date,
            slope=c.slope,
            intercept=c.intercept,
            std_dev=c.std_dev,
            std_multiplier=c.multiplier,
            coverage=c.coverage,
            center_proximity=c.center_proximity,
            touches_upper=c.touches_upper,
            touches_lower=c.touches_lower,
            score=c.score,
        )
        for c in found
    ]


@dataclass
class ManualChannel:
    """Touch-aligned channel on a user-selected range."""

    start_idx: int
    end_idx: int
    alignment: TouchAlignment
    channel: ChannelResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_idx": self.start_idx,
            "end_idx": self.end_idx,
            "alignment": self.alignment.to_dict(),
            **self.channel.to_dict(),
        }


def fit_manual_channel(
    data: SeriesInput,
    start_idx: int,
    end_idx: int,
    chart_period: str | None = None,
    price_source: PriceSource | None = None,
    config: ChannelConfig | None = None,
) -> ManualChannel:
    """
    Align a channel on ``[start_idx, end_idx]`` (inclusive, chronological).

    The channel is centred on its extreme residuals and its multiplier is
    the one whose bounds pass through them; a zero-noise range keeps the
    configured multiplier.

    Raises:
        InvalidParameterError: if the indices are outside the series or reversed
        InsufficientDataError: if the range has fewer than two points
    """
    config = (config or get_channel_config()).with_overrides(
        chart_period=chart_period, price_source=price_source
    )
    points, values = price_points(data, config.price_source)
    n = len(values)
    if not 0 <= start_idx <= end_idx < n:
        raise InvalidParameterError(
            "Range must satisfy 0 <= start_idx <= end_idx < data length",
            details={"start_idx": start_idx, "end_idx": end_idx, "data_points": n},
        )

    lookback = end_idx - start_idx + 1
    end_offset = n - 1 - end_idx
    alignment = compute_touch_alignment(
        values,
        lookback,
        end_offset,
        chart_period=config.chart_period,
        boundary_fraction=config.boundary_fraction,
    )
    if alignment is None:
        raise InsufficientDataError(
            "A channel needs at least two points", details={"start_idx": start_idx, "end_idx": end_idx}
        )

    multiplier = alignment.optimal_delta if alignment.optimal_delta > 0 else config.std_multiplier
    channel = build_channel(
        points,
        lookback=lookback,
        std_multiplier=multiplier,
        end_offset=end_offset,
        intercept_shift=alignment.intercept_shift,
        config=config,
    )
    return ManualChannel(start_idx=start_idx, end_idx=end_idx, alignment=alignment, channel=channel)
