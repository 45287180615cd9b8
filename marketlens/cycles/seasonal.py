"""Seasonal and calendar return patterns.

Buckets daily returns (in percent) by calendar month, quarter and weekday
and reports the average return and win rate of each bucket. Benchmark
series are aggregated the same way and merged into each bucket record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np
import pandas as pd

from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

logger = get_logger("cycles.seasonal")

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class BucketStats:
    """Average return and win rate of one calendar bucket."""

    returns: tuple[float, ...] = ()

    @property
    def count(self) -> int:
        return len(self.returns)

    @property
    def avg_return(self) -> float:
        return float(np.mean(self.returns)) if self.returns else 0.0

    @property
    def win_rate(self) -> float:
        """Percentage of strictly positive returns."""
        if not self.returns:
            return 0.0
        return sum(1 for r in self.returns if r > 0) / len(self.returns) * 100


@dataclass(frozen=True)
class SeasonalBucket:
    """One month, quarter or weekday with optional benchmark stats."""

    key: int
    label: str
    stats: BucketStats
    benchmarks: dict[str, BucketStats] = field(default_factory=dict)

    @property
    def avg_return(self) -> float:
        return self.stats.avg_return

    @property
    def win_rate(self) -> float:
        return self.stats.win_rate

    @property
    def count(self) -> int:
        return self.stats.count

    def to_dict(self, label_key: str = "label") -> dict[str, Any]:
        result: dict[str, Any] = {
            label_key: self.label,
            "avg_return": round(self.avg_return, 2),
            "win_rate": round(self.win_rate, 1),
            "count": self.count,
        }
        for symbol, stats in self.benchmarks.items():
            result[f"{symbol}_avg_return"] = round(stats.avg_return, 2)
            result[f"{symbol}_win_rate"] = round(stats.win_rate, 1)
        return result


@dataclass
class SeasonalAnalysis:
    """Monthly, quarterly and weekday buckets."""

    monthly: list[SeasonalBucket] = field(default_factory=list)
    quarterly: list[SeasonalBucket] = field(default_factory=list)
    day_of_week: list[SeasonalBucket] = field(default_factory=list)
    benchmarks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "monthly": [b.to_dict("month") for b in self.monthly],
            "quarterly": [b.to_dict("quarter") for b in self.quarterly],
            "day_of_week": [b.to_dict("day") for b in self.day_of_week],
            "benchmarks": list(self.benchmarks),
        }


def daily_returns_pct(data: SeriesInput) -> pd.Series:
    """Close-to-close returns in percent, indexed by the later date.

    Pairs with a zero previous close are dropped.
    """
    points = sort_points(data)
    if len(points) < 2:
        return pd.Series(dtype=float, index=pd.DatetimeIndex([]))

    closes = pd.Series(
        [p.close for p in points],
        index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in points]),
        dtype=float,
    )
    prev = closes.shift(1)
    valid = prev.notna() & (prev != 0)
    return ((closes - prev) / prev * 100)[valid]


def _calendar_keys(returns: pd.Series) -> dict[str, np.ndarray]:
    index = returns.index
    months = np.asarray(index.month) - 1
    return {
        "month": months,
        "quarter": months // 3 + 1,
        # pandas counts Monday as 0; buckets count Sunday as 0
        "weekday": (np.asarray(index.dayofweek) + 1) % 7,
    }


def _bucketize(returns: pd.Series, keys: np.ndarray, all_keys: range) -> dict[int, BucketStats]:
    values = returns.to_numpy()
    return {key: BucketStats(returns=tuple(float(v) for v in values[keys == key])) for key in all_keys}


def _patterns(data: SeriesInput) -> dict[str, dict[int, BucketStats]]:
    returns = daily_returns_pct(data)
    keys = _calendar_keys(returns)
    return {
        "month": _bucketize(returns, keys["month"], range(12)),
        "quarter": _bucketize(returns, keys["quarter"], range(1, 5)),
        "weekday": _bucketize(returns, keys["weekday"], range(7)),
    }


def analyze_seasonal_patterns(
    data: SeriesInput,
    symbol: str | None = None,
    benchmarks: Mapping[str, SeriesInput] | None = None,
) -> SeasonalAnalysis:
    """
    Calendar return patterns for a series and optional benchmarks.

    Args:
        data: Price points of the analysed symbol
        symbol: The analysed symbol; a benchmark with the same name is skipped
        benchmarks: Benchmark symbol -> price points

    Returns:
        SeasonalAnalysis with 12 monthly, 4 quarterly and 7 weekday buckets.
        Empty buckets report 0 average return and 0 win rate.
    """
    main = _patterns(data)
    bench_patterns = {
        sym: _patterns(series)
        for sym, series in (benchmarks or {}).items()
        if sym != symbol
    }

    def build(kind: str, labels: Mapping[int, str]) -> list[SeasonalBucket]:
        return [
            SeasonalBucket(
                key=key,
                label=labels[key],
                stats=stats,
                benchmarks={sym: patterns[kind][key] for sym, patterns in bench_patterns.items()},
            )
            for key, stats in main[kind].items()
        ]

    analysis = SeasonalAnalysis(
        monthly=build("month", dict(enumerate(MONTH_NAMES))),
        quarterly=build("quarter", {q: f"Q{q}" for q in range(1, 5)}),
        day_of_week=build("weekday", dict(enumerate(DAY_NAMES))),
        benchmarks=list(bench_patterns),
    )
    logger.debug(f"Seasonal patterns for {symbol or 'series'} with {len(bench_patterns)} benchmarks")
    return analysis
