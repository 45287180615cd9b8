"""Return series and date alignment.

Converts price series into simple daily returns and intersects two return
series on their shared dates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import numpy as np

from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

logger = get_logger("correlation.returns")


@dataclass(frozen=True)
class ReturnPoint:
    """Simple return for one date: (close[t] - close[t-1]) / close[t-1]."""

    date: date
    value: float

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "return": self.value}


@dataclass(frozen=True, eq=False)
class AlignedSeries:
    """Two return arrays restricted to their common dates (ascending)."""

    dates: tuple[date, ...] = ()
    returns1: np.ndarray = field(default_factory=lambda: np.array([], dtype=float))
    returns2: np.ndarray = field(default_factory=lambda: np.array([], dtype=float))

    def __len__(self) -> int:
        return len(self.dates)

    @property
    def is_empty(self) -> bool:
        return len(self.dates) == 0

    def to_dict(self) -> dict:
        return {
            "dates": [d.isoformat() for d in self.dates],
            "returns1": self.returns1.tolist(),
            "returns2": self.returns2.tolist(),
        }


def compute_returns(series: SeriesInput) -> list[ReturnPoint]:
    """
    Compute daily simple returns from a price series.

    The input is sorted ascending first. A zero previous close would give a
    non-finite return, so that pair is skipped rather than emitted.

    Args:
        series: Price points in any order

    Returns:
        One ReturnPoint per consecutive pair (n-1 for clean input),
        empty for fewer than 2 points
    """
    points = sort_points(series)
    if len(points) < 2:
        return []

    returns = []
    skipped = 0
    for prev, curr in zip(points, points[1:]):
        if prev.close == 0:
            skipped += 1
            continue
        returns.append(ReturnPoint(date=curr.date, value=(curr.close - prev.close) / prev.close))

    if skipped:
        logger.debug(f"Skipped {skipped} returns with a zero previous close")

    return returns


def align_by_date(
    returns_a: list[ReturnPoint],
    returns_b: list[ReturnPoint],
) -> AlignedSeries:
    """
    Align two return series on shared dates.

    Output order is ascending by date regardless of input order. An empty
    result means the series do not overlap; callers must report that as an
    error rather than correlating nothing.
    """
    map_a = {r.date: r.value for r in returns_a}
    map_b = {r.date: r.value for r in returns_b}

    common = sorted(d for d in map_a if d in map_b)
    if not common:
        return AlignedSeries()

    return AlignedSeries(
        dates=tuple(common),
        returns1=np.array([map_a[d] for d in common], dtype=float),
        returns2=np.array([map_b[d] for d in common], dtype=float),
    )
