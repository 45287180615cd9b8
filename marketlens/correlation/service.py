"""Two-stock correlation report.

Combines returns, alignment, the correlation engine and beta into the
record a dashboard renders for a symbol pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from marketlens.core.exceptions import InsufficientDataError, error_record
from marketlens.core.logging import get_logger
from marketlens.domain import PriceSeries, SeriesInput

from .config import CorrelationConfig, get_correlation_config
from .engine import (
    LagCorrelation,
    LeadLagResult,
    RollingCorrelationPoint,
    beta,
    correlation_strength,
    cross_correlation,
    find_leading_stock,
    pearson,
    rolling_correlation,
)
from .returns import align_by_date, compute_returns

logger = get_logger("correlation.service")


@dataclass(frozen=True)
class ReturnSummary:
    """Average return and RMS volatility of both aligned series."""

    avg_return1: float
    avg_return2: float
    volatility1: float
    volatility2: float

    def to_dict(self) -> dict:
        return {
            "avg_return1": self.avg_return1,
            "avg_return2": self.avg_return2,
            "volatility1": self.volatility1,
            "volatility2": self.volatility2,
        }


@dataclass(frozen=True)
class CorrelationReport:
    """Complete correlation analysis for a symbol pair."""

    symbol1: str
    symbol2: str
    years: int
    data_points: int
    correlation: float
    strength: str
    direction: str
    beta: float  # symbol2 against symbol1
    lead_lag: LeadLagResult
    cross_correlation: list[LagCorrelation] = field(default_factory=list)
    rolling_correlation: list[RollingCorrelationPoint] = field(default_factory=list)
    summary: ReturnSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol1": self.symbol1,
            "symbol2": self.symbol2,
            "years": self.years,
            "data_points": self.data_points,
            "correlation": {
                "value": self.correlation,
                "strength": self.strength.title(),
                "direction": self.direction,
            },
            "beta": self.beta,
            "lead_lag": self.lead_lag.to_dict(),
            "cross_correlation": [c.to_dict() for c in self.cross_correlation],
            "rolling_correlation": [r.to_dict() for r in self.rolling_correlation],
            "summary": self.summary.to_dict() if self.summary else None,
        }


def _summarize(returns1: np.ndarray, returns2: np.ndarray) -> ReturnSummary:
    # RMS of raw returns, not mean-centred
    return ReturnSummary(
        avg_return1=float(np.mean(returns1)),
        avg_return2=float(np.mean(returns2)),
        volatility1=float(np.sqrt(np.mean(returns1 * returns1))),
        volatility2=float(np.sqrt(np.mean(returns2 * returns2))),
    )


def build_correlation_report(
    series1: SeriesInput,
    series2: SeriesInput,
    symbol1: str,
    symbol2: str,
    config: CorrelationConfig | None = None,
) -> CorrelationReport:
    """
    Build the pair report, raising on insufficient data.

    Raises:
        InsufficientDataError: if either series is empty or they share no dates
    """
    config = config or get_correlation_config()

    history1 = PriceSeries.from_records(series1, symbol=symbol1).last_years(config.history_years)
    history2 = PriceSeries.from_records(series2, symbol=symbol2).last_years(config.history_years)
    if len(history1) == 0:
        raise InsufficientDataError(f"No data available for {symbol1}")
    if len(history2) == 0:
        raise InsufficientDataError(f"No data available for {symbol2}")

    aligned = align_by_date(compute_returns(history1), compute_returns(history2))
    if aligned.is_empty:
        raise InsufficientDataError("No overlapping dates between the two stocks")

    basic = pearson(aligned.returns1, aligned.returns2)
    lags = cross_correlation(aligned.returns1, aligned.returns2, config.max_lag)
    rolling = rolling_correlation(
        aligned.returns1, aligned.returns2, list(aligned.dates), config.rolling_window
    )

    return CorrelationReport(
        symbol1=symbol1,
        symbol2=symbol2,
        years=config.history_years,
        data_points=len(aligned),
        correlation=basic,
        strength=correlation_strength(basic),
        direction="Positive" if basic > 0 else "Negative",
        beta=beta(aligned.returns2, aligned.returns1),
        lead_lag=find_leading_stock(lags, symbol1, symbol2),
        cross_correlation=lags,
        rolling_correlation=rolling,
        summary=_summarize(aligned.returns1, aligned.returns2),
    )


def analyze_stock_correlation(
    series1: SeriesInput,
    series2: SeriesInput,
    symbol1: str,
    symbol2: str,
    years: int | None = None,
    max_lag: int | None = None,
    window: int | None = None,
    config: CorrelationConfig | None = None,
) -> dict[str, Any]:
    """
    Correlation, lead/lag and rolling correlation for two price series.

    Args:
        series1: Price points for ``symbol1`` (any order)
        series2: Price points for ``symbol2`` (any order)
        years: History window anchored on each series' latest date
        max_lag: Largest lag tested in either direction
        window: Rolling correlation window

    Returns:
        JSON-ready report, or ``{"error": message}`` for missing data
    """
    config = (config or get_correlation_config()).with_overrides(
        history_years=years, max_lag=max_lag, rolling_window=window
    )
    try:
        report = build_correlation_report(series1, series2, symbol1, symbol2, config)
    except InsufficientDataError as exc:
        logger.warning(f"Correlation {symbol1}/{symbol2}: {exc.message}")
        return error_record(exc)

    logger.debug(
        f"Correlation {symbol1}/{symbol2}: r={report.correlation:.3f} "
        f"lag={report.lead_lag.lag} over {report.data_points} points"
    )
    return report.to_dict()
