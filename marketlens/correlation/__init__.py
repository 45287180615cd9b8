"""Return correlation and lead/lag analysis between two instruments.

This module provides:
- Simple daily returns and date alignment
- Pearson, lagged cross-correlation and rolling correlation
- Lead/lag inference with a plain-language interpretation
- Beta and a combined two-stock report
- Stock reactions to a benchmark's largest moves
"""

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
from .reaction import BenchmarkReaction, analyze_benchmark_moves
from .returns import AlignedSeries, ReturnPoint, align_by_date, compute_returns
from .service import CorrelationReport, analyze_stock_correlation, build_correlation_report


__all__ = [
    "AlignedSeries",
    "BenchmarkReaction",
    "CorrelationConfig",
    "CorrelationReport",
    "LagCorrelation",
    "LeadLagResult",
    "ReturnPoint",
    "RollingCorrelationPoint",
    "align_by_date",
    "analyze_benchmark_moves",
    "analyze_stock_correlation",
    "beta",
    "build_correlation_report",
    "compute_returns",
    "correlation_strength",
    "cross_correlation",
    "find_leading_stock",
    "get_correlation_config",
    "pearson",
    "rolling_correlation",
]
