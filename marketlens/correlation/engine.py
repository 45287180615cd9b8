"""Correlation engine.

Pearson correlation, lagged cross-correlation, lead/lag inference, rolling
correlation and beta over aligned return arrays.

Lag convention for ``cross_correlation``:
    lag > 0  pairs x[lag:] with y[:-lag]   (series A leads series B)
    lag < 0  pairs x[:lag] with y[-lag:]   (series B leads series A)
    lag = 0  plain Pearson correlation
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

import numpy as np

from marketlens.core.exceptions import InvalidParameterError, PreconditionError
from marketlens.core.logging import get_logger

logger = get_logger("correlation.engine")

# Strength buckets on |correlation|, checked in order
STRENGTH_BUCKETS: tuple[tuple[float, str], ...] = (
    (0.3, "weak"),
    (0.5, "moderate"),
    (0.7, "strong"),
)


@dataclass(frozen=True)
class LagCorrelation:
    """Correlation of two series at one lag."""

    lag: int
    correlation: float

    def to_dict(self) -> dict:
        return {"lag": self.lag, "correlation": self.correlation}


@dataclass(frozen=True)
class RollingCorrelationPoint:
    """Trailing-window correlation ending on ``date``."""

    date: date
    correlation: float

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "correlation": self.correlation}


@dataclass(frozen=True)
class LeadLagResult:
    """Best lag between two series and which one leads."""

    lag: int
    correlation: float
    leader: str | None  # None when neither series leads
    follower: str | None
    lead_days: int
    strength: str
    interpretation: str

    def to_dict(self) -> dict:
        return {
            "best_lag": self.lag,
            "best_correlation": self.correlation,
            "leader": self.leader,
            "follower": self.follower,
            "lead_days": self.lead_days,
            "strength": self.strength,
            "interpretation": self.interpretation,
        }


def _as_array(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=float)


def pearson(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> float:
    """
    Pearson correlation coefficient.

    Returns 0.0 for mismatched lengths, empty input, zero variance on either
    side, or non-finite values. These are defined outcomes, not errors.
    """
    xa = _as_array(x)
    ya = _as_array(y)
    if len(xa) != len(ya) or len(xa) == 0:
        return 0.0
    if not (np.isfinite(xa).all() and np.isfinite(ya).all()):
        return 0.0
    # Constant input: the mean can be off by an ulp, so test the range directly
    if np.ptp(xa) == 0 or np.ptp(ya) == 0:
        return 0.0

    dx = xa - xa.mean()
    dy = ya - ya.mean()
    numerator = float(np.sum(dx * dy))
    denominator = float(np.sqrt(np.sum(dx * dx) * np.sum(dy * dy)))
    if denominator == 0:
        return 0.0

    return float(np.clip(numerator / denominator, -1.0, 1.0))


def correlation_strength(correlation: float) -> str:
    """Bucket |correlation| into weak / moderate / strong / very strong."""
    magnitude = abs(correlation)
    for upper, label in STRENGTH_BUCKETS:
        if magnitude < upper:
            return label
    return "very strong"


def _require_same_length(x: np.ndarray, y: np.ndarray) -> None:
    if len(x) != len(y):
        raise PreconditionError(
            f"Series lengths differ ({len(x)} vs {len(y)}); align them first",
            details={"len_x": len(x), "len_y": len(y)},
        )


def _lagged_pair(x: np.ndarray, y: np.ndarray, lag: int) -> tuple[np.ndarray, np.ndarray]:
    if lag > 0:
        return x[lag:], y[:-lag]
    if lag < 0:
        return x[:lag], y[-lag:]
    return x, y


def cross_correlation(
    x: Sequence[float] | np.ndarray,
    y: Sequence[float] | np.ndarray,
    max_lag: int = 10,
) -> list[LagCorrelation]:
    """
    Correlation at every lag in [-max_lag, max_lag].

    Each lag uses the maximal complete overlap, dropping |lag| points from
    the leading side. Lags at or beyond the series length correlate empty
    arrays and therefore report 0.

    Raises:
        PreconditionError: if x and y differ in length
        InvalidParameterError: if max_lag is negative
    """
    xa = _as_array(x)
    ya = _as_array(y)
    _require_same_length(xa, ya)
    if max_lag < 0:
        raise InvalidParameterError("max_lag must be non-negative", details={"max_lag": max_lag})

    results = []
    for lag in range(-max_lag, max_lag + 1):
        left, right = _lagged_pair(xa, ya, lag)
        results.append(LagCorrelation(lag=lag, correlation=pearson(left, right)))
    return results


def _interpret(lag: int, correlation: float, strength: str, symbol_a: str, symbol_b: str) -> str:
    direction = "positive" if correlation > 0 else "negative"
    days = abs(lag)
    plural = "s" if days > 1 else ""

    if lag == 0:
        return (
            f"Stocks move together with {strength} {direction} correlation "
            f"({correlation:.3f}). No clear leader."
        )
    leader, follower = (symbol_a, symbol_b) if lag > 0 else (symbol_b, symbol_a)
    return (
        f"{leader} leads {follower} by {days} day{plural} with {strength} "
        f"{direction} correlation ({correlation:.3f})."
    )


def find_leading_stock(
    lag_results: Sequence[LagCorrelation],
    symbol_a: str,
    symbol_b: str,
) -> LeadLagResult:
    """
    Pick the lag with the largest |correlation| and name the leader.

    Results are scanned in the order given (``cross_correlation`` emits
    -max_lag upward) and only a strictly larger magnitude replaces the
    current best, so the first occurrence wins ties.
    """
    best: LagCorrelation | None = None
    for result in lag_results:
        if best is None or abs(result.correlation) > abs(best.correlation):
            best = result

    if best is None:
        best = LagCorrelation(lag=0, correlation=0.0)

    leader = follower = None
    if best.lag > 0:
        leader, follower = symbol_a, symbol_b
    elif best.lag < 0:
        leader, follower = symbol_b, symbol_a

    strength = correlation_strength(best.correlation)
    return LeadLagResult(
        lag=best.lag,
        correlation=best.correlation,
        leader=leader,
        follower=follower,
        lead_days=abs(best.lag),
        strength=strength,
        interpretation=_interpret(best.lag, best.correlation, strength, symbol_a, symbol_b),
    )


def rolling_correlation(
    x: Sequence[float] | np.ndarray,
    y: Sequence[float] | np.ndarray,
    dates: Sequence[date],
    window: int = 30,
) -> list[RollingCorrelationPoint]:
    """
    Trailing-window Pearson correlation.

    Produces len(x) - window + 1 points, each stamped with the date of the
    last observation in its window. Shorter input yields an empty list.

    Raises:
        PreconditionError: if x, y and dates differ in length
        InvalidParameterError: if window < 1
    """
    xa = _as_array(x)
    ya = _as_array(y)
    _require_same_length(xa, ya)
    if len(dates) != len(xa):
        raise PreconditionError(
            f"dates length {len(dates)} does not match series length {len(xa)}",
        )
    if window < 1:
        raise InvalidParameterError("window must be at least 1", details={"window": window})

    return [
        RollingCorrelationPoint(
            date=dates[i],
            correlation=pearson(xa[i - window + 1 : i + 1], ya[i - window + 1 : i + 1]),
        )
        for i in range(window - 1, len(xa))
    ]


def beta(
    stock_returns: Sequence[float] | np.ndarray,
    market_returns: Sequence[float] | np.ndarray,
) -> float:
    """
    Beta = Cov(stock, market) / Var(market).

    Returns 0.0 for mismatched or empty input and for a flat market.
    """
    stock = _as_array(stock_returns)
    market = _as_array(market_returns)
    if len(stock) != len(market) or len(stock) == 0:
        return 0.0

    market_diff = market - market.mean()
    covariance = float(np.mean((stock - stock.mean()) * market_diff))
    variance = float(np.mean(market_diff * market_diff))
    return 0.0 if variance == 0 else covariance / variance
