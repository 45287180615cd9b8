"""Moving-average crossover events.

Golden cross: the short SMA moves from below to above the long SMA.
Death cross: the short SMA moves from above to below the long SMA.
Days where the two averages are equal keep the last strict relation, so a
touch without a crossing fires nothing. Each event records the close-to-close performance a fixed number of
trading days later when that day exists in the series.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Sequence

import numpy as np
import pandas as pd

from marketlens.core.exceptions import InsufficientDataError, InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

from .config import CycleConfig, get_cycle_config

logger = get_logger("cycles.crossover")

CrossoverType = Literal["golden_cross", "death_cross"]

SIGNALS: dict[str, str] = {"golden_cross": "bullish", "death_cross": "bearish"}


@dataclass(frozen=True)
class CrossoverEvent:
    """A single SMA crossover."""

    date: date
    type: CrossoverType
    price: float
    forward_performance: dict[int, float] = field(default_factory=dict)  # horizon -> pct

    @property
    def signal(self) -> str:
        return SIGNALS[self.type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "type": self.type,
            "signal": self.signal,
            "price": round(self.price, 2),
            "forward_performance": {
                str(days): round(pct, 2) for days, pct in self.forward_performance.items()
            },
        }


@dataclass(frozen=True)
class ChartPoint:
    """Close and both moving averages for one date."""

    date: date
    price: float
    ma_short: float | None
    ma_long: float | None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "price": round(self.price, 2),
            "ma_short": round(self.ma_short, 2) if self.ma_short is not None else None,
            "ma_long": round(self.ma_long, 2) if self.ma_long is not None else None,
        }


@dataclass(frozen=True)
class HorizonStats:
    """Average forward return and win rate for one horizon."""

    horizon: int
    avg_return: float
    win_rate: float
    count: int

    def to_dict(self) -> dict:
        return {
            "horizon": self.horizon,
            "avg_return": round(self.avg_return, 2),
            "win_rate": round(self.win_rate, 1),
            "count": self.count,
        }


@dataclass
class CrossoverAnalysis:
    """Crossover events plus the current state of both averages."""

    ma_short: int
    ma_long: int
    crossovers: list[CrossoverEvent] = field(default_factory=list)
    total_crossovers: int = 0
    current_price: float = 0.0
    current_ma_short: float | None = None
    current_ma_long: float | None = None
    current_signal: str = "bearish"
    performance_summary: dict[str, list[HorizonStats]] = field(default_factory=dict)
    chart_data: list[ChartPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ma_short": self.ma_short,
            "ma_long": self.ma_long,
            "crossovers": [c.to_dict() for c in self.crossovers],
            "total_crossovers": self.total_crossovers,
            "current_price": round(self.current_price, 2),
            "current_ma_short": (
                round(self.current_ma_short, 2) if self.current_ma_short is not None else None
            ),
            "current_ma_long": (
                round(self.current_ma_long, 2) if self.current_ma_long is not None else None
            ),
            "current_signal": self.current_signal,
            "performance_summary": {
                kind: [s.to_dict() for s in stats] for kind, stats in self.performance_summary.items()
            },
            "chart_data": [p.to_dict() for p in self.chart_data],
        }


def simple_moving_average(values: np.ndarray, period: int) -> np.ndarray:
    """Trailing SMA; NaN until ``period`` values are available."""
    return pd.Series(values, dtype=float).rolling(window=period, min_periods=period).mean().to_numpy()


def _forward_performance(closes: np.ndarray, index: int, horizons: tuple[int, ...]) -> dict[int, float]:
    base = closes[index]
    perf = {}
    for days in horizons:
        if index + days < len(closes) and base != 0:
            perf[days] = float((closes[index + days] - base) / base * 100)
    return perf


def _summarize(events: list[CrossoverEvent], horizons: tuple[int, ...]) -> dict[str, list[HorizonStats]]:
    summary: dict[str, list[HorizonStats]] = {}
    for kind in ("golden_cross", "death_cross"):
        stats = []
        for days in horizons:
            values = [e.forward_performance[days] for e in events if e.type == kind and days in e.forward_performance]
            if not values:
                continue
            stats.append(
                HorizonStats(
                    horizon=days,
                    avg_return=float(np.mean(values)),
                    win_rate=sum(1 for v in values if v > 0) / len(values) * 100,
                    count=len(values),
                )
            )
        summary[kind] = stats
    return summary


def detect_crossovers(
    dates: Sequence[date],
    closes: np.ndarray,
    sma_short: np.ndarray,
    sma_long: np.ndarray,
    horizons: tuple[int, ...],
) -> list[CrossoverEvent]:
    """Every crossover between two aligned SMA arrays, oldest first."""
    events: list[CrossoverEvent] = []
    relation = 0  # last strict sign of short - long, 0 until one is seen
    for i in range(len(closes)):
        diff = sma_short[i] - sma_long[i]
        if np.isnan(diff) or diff == 0:
            continue
        current = 1 if diff > 0 else -1
        previous, relation = relation, current
        if previous == 0 or previous == current:
            continue

        kind: CrossoverType = "golden_cross" if current > 0 else "death_cross"
        events.append(
            CrossoverEvent(
                date=dates[i],
                type=kind,
                price=float(closes[i]),
                forward_performance=_forward_performance(closes, i, horizons),
            )
        )
    return events


def _optional(value: float) -> float | None:
    return None if np.isnan(value) else float(value)


def analyze_moving_average_crossovers(
    data: SeriesInput,
    ma_short: int | None = None,
    ma_long: int | None = None,
    config: CycleConfig | None = None,
) -> CrossoverAnalysis:
    """
    Detect golden and death crosses between two simple moving averages.

    Args:
        data: Price points (any order)
        ma_short: Short SMA period (default 50)
        ma_long: Long SMA period (default 200)

    Returns:
        CrossoverAnalysis with the most recent events, a per-type forward
        performance summary over all events, and per-date chart data

    Raises:
        InvalidParameterError: if the periods are not 1 <= ma_short < ma_long
        InsufficientDataError: if the series is shorter than ``ma_long``
    """
    config = (config or get_cycle_config()).with_overrides(ma_short=ma_short, ma_long=ma_long)
    short, long_ = config.ma_short, config.ma_long
    if short < 1 or short >= long_:
        raise InvalidParameterError(
            "ma_short must be at least 1 and below ma_long",
            details={"ma_short": short, "ma_long": long_},
        )

    points = sort_points(data)
    n = len(points)
    if n < long_:
        raise InsufficientDataError(
            "Not enough data for MA analysis",
            details={"data_points": n, "required": long_},
        )

    closes = np.array([p.close for p in points], dtype=float)
    sma_short = simple_moving_average(closes, short)
    sma_long = simple_moving_average(closes, long_)

    events = detect_crossovers(
        [p.date for p in points], closes, sma_short, sma_long, config.forward_horizons
    )

    current_short = _optional(sma_short[-1])
    current_long = _optional(sma_long[-1])
    signal = "bullish" if current_short is not None and current_long is not None and current_short > current_long else "bearish"

    chart = [
        ChartPoint(
            date=p.date,
            price=float(closes[i]),
            ma_short=_optional(sma_short[i]),
            ma_long=_optional(sma_long[i]),
        )
        for i, p in enumerate(points)
    ]

    logger.debug(f"Found {len(events)} crossovers ({short}/{long_}) in {n} points")

    return CrossoverAnalysis(
        ma_short=short,
        ma_long=long_,
        crossovers=events[-config.keep_recent :],
        total_crossovers=len(events),
        current_price=float(closes[-1]),
        current_ma_short=current_short,
        current_ma_long=current_long,
        current_signal=signal,
        performance_summary=_summarize(events, config.forward_horizons),
        chart_data=chart,
    )
