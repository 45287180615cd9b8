"""
Indicator series for the signal engine.

Every function returns a float array aligned with its input, NaN until the
indicator has enough history.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from marketlens.cycles.crossover import simple_moving_average


def _seeded_smoothing(values: pd.Series, first: int, seed: float, **ewm_kwargs) -> np.ndarray:
    """Recursive smoothing from index ``first`` starting at ``seed``."""
    out = np.full(len(values), np.nan)
    if len(values) <= first:
        return out
    tail = values.iloc[first:].copy()
    tail.iloc[0] = seed
    out[first:] = tail.ewm(adjust=False, **ewm_kwargs).mean().to_numpy()
    return out


def exponential_moving_average(values: Sequence[float] | np.ndarray, period: int) -> np.ndarray:
    """
    EMA with multiplier ``2 / (period + 1)``.

    Seeded with the simple average of the first ``period`` values, so the
    first defined value sits at index ``period - 1``.
    """
    series = pd.Series(values, dtype=float)
    if len(series) < period:
        return np.full(len(series), np.nan)
    return _seeded_smoothing(series, period - 1, float(series.iloc[:period].mean()), span=period)


def relative_strength_index(values: Sequence[float] | np.ndarray, period: int = 14) -> np.ndarray:
    """
    RSI (0-100) with Wilder smoothing.

    The first value, at index ``period``, uses simple averages of the first
    ``period`` gains and losses. A window without losses reads 100.
    """
    series = pd.Series(values, dtype=float)
    if len(series) <= period:
        return np.full(len(series), np.nan)

    delta = series.diff()
    gains = delta.clip(lower=0)
    losses = (-delta).clip(lower=0)

    alpha = 1 / period
    avg_gain = _seeded_smoothing(gains, period, float(gains.iloc[1 : period + 1].mean()), alpha=alpha)
    avg_loss = _seeded_smoothing(losses, period, float(losses.iloc[1 : period + 1].mean()), alpha=alpha)

    with np.errstate(divide="ignore", invalid="ignore"):
        rsi = 100 - 100 / (1 + avg_gain / avg_loss)
    return np.where(avg_loss == 0, 100.0, rsi)


def volume_moving_average(volumes: Sequence[float] | np.ndarray, period: int = 20) -> np.ndarray:
    """Trailing SMA of volume."""
    return simple_moving_average(np.asarray(volumes, dtype=float), period)
