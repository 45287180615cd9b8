"""Peak and trough detection.

Flags strict local extrema on raw closes and measures the cycles between
consecutive peaks (and consecutive troughs). No smoothing is applied, so a
noisy series produces many small extrema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

import numpy as np

from marketlens.core.exceptions import InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

from .config import CycleConfig, get_cycle_config

logger = get_logger("cycles.peaks")


@dataclass(frozen=True)
class CyclePoint:
    """A detected peak or trough."""

    date: date
    price: float
    index: int

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "price": round(self.price, 2),
            "index": self.index,
        }


@dataclass(frozen=True)
class Cycle:
    """Distance between two consecutive extrema of the same type."""

    start: date
    end: date
    days: int  # calendar days
    price_change_pct: float
    from_price: float
    to_price: float

    def to_dict(self) -> dict:
        return {
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
            "days": self.days,
            "price_change_pct": round(self.price_change_pct, 2),
            "from_price": round(self.from_price, 2),
            "to_price": round(self.to_price, 2),
        }


@dataclass
class PeakTroughAnalysis:
    """Recent extrema and cycles with overall counts."""

    peaks: list[CyclePoint] = field(default_factory=list)
    troughs: list[CyclePoint] = field(default_factory=list)
    cycles: list[Cycle] = field(default_factory=list)
    trough_cycles: list[Cycle] = field(default_factory=list)
    avg_cycle_length: float = 0.0
    total_peaks: int = 0
    total_troughs: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "peaks": [p.to_dict() for p in self.peaks],
            "troughs": [t.to_dict() for t in self.troughs],
            "cycles": [c.to_dict() for c in self.cycles],
            "trough_cycles": [c.to_dict() for c in self.trough_cycles],
            "avg_cycle_length": round(self.avg_cycle_length),
            "total_peaks": self.total_peaks,
            "total_troughs": self.total_troughs,
        }


def find_local_extrema(
    values: Sequence[float] | np.ndarray,
    window: int = 5,
) -> tuple[list[int], list[int]]:
    """
    Find strict local maxima and minima.

    Index ``i`` is a maximum when values[i] is greater than every value in
    the ``window`` points before and after it (a minimum when it is lower
    than all of them). The first and last ``window`` points never qualify.

    Args:
        values: Values to scan
        window: Number of points on each side to compare against

    Returns:
        (maxima_indices, minima_indices)

    Raises:
        InvalidParameterError: if ``window`` is below 1
    """
    if window < 1:
        raise InvalidParameterError("window must be at least 1", details={"window": window})
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    maxima = []
    minima = []

    for i in range(window, n - window):
        before = arr[i - window : i]
        after = arr[i + 1 : i + window + 1]
        current = arr[i]

        if np.all(before < current) and np.all(after < current):
            maxima.append(i)
        if np.all(before > current) and np.all(after > current):
            minima.append(i)

    return maxima, minima


def _cycles_between(points: list[CyclePoint]) -> list[Cycle]:
    cycles = []
    for prev, curr in zip(points, points[1:]):
        change = (curr.price - prev.price) / prev.price * 100 if prev.price else 0.0
        cycles.append(
            Cycle(
                start=prev.date,
                end=curr.date,
                days=(curr.date - prev.date).days,
                price_change_pct=change,
                from_price=prev.price,
                to_price=curr.price,
            )
        )
    return cycles


def analyze_peak_trough(
    data: SeriesInput,
    window: int | None = None,
    config: CycleConfig | None = None,
) -> PeakTroughAnalysis:
    """
    Detect peaks and troughs on closing prices and the cycles between them.

    Only the most recent ``keep_recent`` peaks, troughs and cycles are
    returned; ``total_peaks``/``total_troughs`` count everything found.
    ``avg_cycle_length`` averages all peak-to-peak cycles.
    """
    config = config or get_cycle_config()
    if window is None:
        window = config.extremum_window
    keep = config.keep_recent

    points = sort_points(data)
    closes = np.array([p.close for p in points], dtype=float)
    peak_idx, trough_idx = find_local_extrema(closes, window)

    peaks = [CyclePoint(date=points[i].date, price=float(closes[i]), index=i) for i in peak_idx]
    troughs = [CyclePoint(date=points[i].date, price=float(closes[i]), index=i) for i in trough_idx]
    cycles = _cycles_between(peaks)
    trough_cycles = _cycles_between(troughs)

    avg_length = float(np.mean([c.days for c in cycles])) if cycles else 0.0
    logger.debug(f"Found {len(peaks)} peaks and {len(troughs)} troughs in {len(points)} points")

    return PeakTroughAnalysis(
        peaks=peaks[-keep:],
        troughs=troughs[-keep:],
        cycles=cycles[-keep:],
        trough_cycles=trough_cycles[-keep:],
        avg_cycle_length=avg_length,
        total_peaks=len(peaks),
        total_troughs=len(troughs),
    )
