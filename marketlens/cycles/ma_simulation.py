"""Moving-average parameter sweep.

Runs the crossover detector over a grid of short/long SMA pairs and scores
each pair by the average forward performance after its crossovers. Pairs
with too few crossovers for their period ratio are kept in the full result
but left out of the ranking.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from marketlens.core.exceptions import InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

from .config import CycleConfig, get_cycle_config
from .crossover import CrossoverEvent, detect_crossovers, simple_moving_average

logger = get_logger("cycles.ma_simulation")


@dataclass(frozen=True)
class MAPairResult:
    """Forward performance of every crossover for one SMA pair."""

    short: int
    long: int
    crossover_count: int
    avg_performance: dict[int, float] = field(default_factory=dict)  # horizon -> avg pct
    win_rate: dict[int, float] = field(default_factory=dict)  # horizon -> pct of events > 0
    qualified: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "short": self.short,
            "long": self.long,
            "crossover_count": self.crossover_count,
            "avg_performance": {str(h): round(v, 2) for h, v in self.avg_performance.items()},
            "win_rate": {str(h): round(v, 1) for h, v in self.win_rate.items()},
            "qualified": self.qualified,
        }


@dataclass
class MASimulation:
    """All tested pairs ranked by the average return at ``rank_horizon``."""

    rank_horizon: int
    results: list[MAPairResult] = field(default_factory=list)
    top_n: int = 20
    market_return: float = 0.0  # buy-and-hold % from the first crossover to the last close

    @property
    def ranked(self) -> list[MAPairResult]:
        return [r for r in self.results if r.qualified]

    @property
    def top_results(self) -> list[MAPairResult]:
        return self.ranked[: self.top_n]

    @property
    def best(self) -> MAPairResult | None:
        ranked = self.ranked
        return ranked[0] if ranked else None

    def matrix(self, horizon: int | None = None) -> dict[int, dict[int, float | None]]:
        """``{long: {short: avg return}}``; pairs left out of the ranking map to None."""
        if horizon is None:
            horizon = self.rank_horizon
        grid: dict[int, dict[int, float | None]] = {}
        for r in sorted(self.results, key=lambda r: (r.long, r.short)):
            grid.setdefault(r.long, {})[r.short] = (
                r.avg_performance.get(horizon) if r.qualified else None
            )
        return grid

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank_horizon": self.rank_horizon,
            "top_results": [r.to_dict() for r in self.top_results],
            "all_results": [r.to_dict() for r in self.results],
            "tested_pairs": len(self.results),
            "market_return": round(self.market_return, 2),
        }


def ma_pairs(
    short_periods: tuple[int, ...],
    long_periods: tuple[int, ...],
    max_ratio: float,
) -> list[tuple[int, int]]:
    """(short, long) pairs in sweep order: long outer, short inner."""
    return [
        (short, long_)
        for long_ in long_periods
        for short in short_periods
        if short < long_ and short / long_ <= max_ratio
    ]


def _score_pair(
    short: int,
    long_: int,
    events: list[CrossoverEvent],
    horizons: tuple[int, ...],
    min_crossovers: int,
) -> MAPairResult:
    avg: dict[int, float] = {}
    wins: dict[int, float] = {}
    for days in horizons:
        values = [e.forward_performance[days] for e in events if days in e.forward_performance]
        avg[days] = float(np.mean(values)) if values else 0.0
        wins[days] = sum(1 for v in values if v > 0) / len(values) * 100 if values else 0.0

    count = len(events)
    qualified = count >= min_crossovers or count > math.ceil(long_ / short)
    return MAPairResult(
        short=short,
        long=long_,
        crossover_count=count,
        avg_performance=avg,
        win_rate=wins,
        qualified=qualified,
    )


def simulate_ma_parameters(
    data: SeriesInput,
    short_periods: tuple[int, ...] | None = None,
    long_periods: tuple[int, ...] | None = None,
    config: CycleConfig | None = None,
) -> MASimulation:
    """
    Sweep short/long SMA pairs and rank them by post-crossover returns.

    Every crossover of a pair counts, golden and death alike. Pairs whose
    long period exceeds the series length are not tested.

    Args:
        data: Price points (any order)
        short_periods: Short SMA periods (default from config)
        long_periods: Long SMA periods (default from config)

    Returns:
        MASimulation with every tested pair, ranked best first

    Raises:
        InvalidParameterError: if the ranking horizon is not one of the
            forward horizons
    """
    config = config or get_cycle_config()
    horizons = config.forward_horizons
    if config.sim_rank_horizon not in horizons:
        raise InvalidParameterError(
            "Ranking horizon must be one of the forward horizons",
            details={"rank_horizon": config.sim_rank_horizon, "horizons": list(horizons)},
        )

    points = sort_points(data)
    n = len(points)
    closes = np.array([p.close for p in points], dtype=float)
    dates = [p.date for p in points]

    if short_periods is None:
        short_periods = config.sim_short_periods
    if long_periods is None:
        long_periods = config.sim_long_periods
    pairs = [
        (short, long_)
        for short, long_ in ma_pairs(tuple(short_periods), tuple(long_periods), config.sim_max_ratio)
        if long_ <= n
    ]

    averages: dict[int, np.ndarray] = {}

    def sma(period: int) -> np.ndarray:
        if period not in averages:
            averages[period] = simple_moving_average(closes, period)
        return averages[period]

    results: list[MAPairResult] = []
    market_return = None
    for short, long_ in pairs:
        events = detect_crossovers(dates, closes, sma(short), sma(long_), horizons)
        if market_return is None and events and events[0].price:
            market_return = float((closes[-1] - events[0].price) / events[0].price * 100)
        results.append(_score_pair(short, long_, events, horizons, config.sim_min_crossovers))

    results.sort(key=lambda r: r.avg_performance[config.sim_rank_horizon], reverse=True)

    logger.info(
        f"MA sweep tested {len(results)} pairs on {n} points, "
        f"{sum(1 for r in results if r.qualified)} ranked"
    )
    return MASimulation(
        rank_horizon=config.sim_rank_horizon,
        results=results,
        top_n=config.sim_top_n,
        market_return=market_return or 0.0,
    )
