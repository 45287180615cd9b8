"""Dominant cycle detection from price autocorrelation.

A lightweight stand-in for spectral analysis: the raw (not mean-centred)
autocorrelation of recent closes is scanned for local maxima, and the lags
of the strongest maxima are reported as candidate cycle lengths. Because
the mean is not removed, the values are dominated by the price level
rather than by periodicity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

from .config import CycleConfig, get_cycle_config
from .peaks import find_local_extrema

logger = get_logger("cycles.spectral")


@dataclass(frozen=True)
class DominantCycle:
    """Candidate cycle length in trading days."""

    period: int
    strength: float

    def to_dict(self) -> dict:
        return {"period": self.period, "strength": round(self.strength, 2)}


@dataclass
class DominantCycleAnalysis:
    cycles: list[DominantCycle] = field(default_factory=list)
    total_found: int = 0

    @property
    def interpretation(self) -> str:
        if not self.cycles:
            return "No significant cycles detected in the data."
        return (
            f"Found {self.total_found} significant cycles. "
            f"Primary cycle is approximately {self.cycles[0].period} days."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dominant_cycles": [c.to_dict() for c in self.cycles],
            "interpretation": self.interpretation,
        }


def raw_autocorrelation(prices: np.ndarray, max_lag: int) -> np.ndarray:
    """
    Mean lagged product ``sum(p[i] * p[i - lag]) / (N - lag)``.

    Element ``k`` holds lag ``k + 1``.
    """
    n = len(prices)
    values = np.zeros(max_lag, dtype=float)
    for lag in range(1, max_lag + 1):
        if lag < n:
            values[lag - 1] = float(np.dot(prices[lag:], prices[:-lag]) / (n - lag))
    return values


def analyze_dominant_cycles(
    data: SeriesInput,
    config: CycleConfig | None = None,
) -> DominantCycleAnalysis:
    """
    Rank local maxima of the raw autocorrelation curve.

    Uses the last ``spectral_max_points`` closes and lags
    1..min(spectral_max_lag, N // 2). A lag qualifies when its value is a
    strict local maximum over the surrounding extremum window and positive.
    """
    config = config or get_cycle_config()

    points = sort_points(data)
    closes = np.array([p.close for p in points], dtype=float)[-config.spectral_max_points :]
    max_lag = min(config.spectral_max_lag, len(closes) // 2)
    if max_lag < 1:
        return DominantCycleAnalysis()

    correlations = raw_autocorrelation(closes, max_lag)
    maxima, _ = find_local_extrema(correlations, config.extremum_window)

    found = [
        DominantCycle(period=i + 1, strength=float(correlations[i]))
        for i in maxima
        if correlations[i] > 0
    ]
    # stable sort keeps the shorter period first on equal strength
    found.sort(key=lambda c: c.strength, reverse=True)

    logger.debug(f"Autocorrelation over {len(closes)} closes: {len(found)} local maxima")
    return DominantCycleAnalysis(cycles=found[: config.spectral_top_n], total_found=len(found))
