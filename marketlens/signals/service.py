"""Signal engine entry point.

Generates signals for a series, backtests them and returns one JSON-ready
record.
"""

from __future__ import annotations

from typing import Any

from marketlens.core.exceptions import InsufficientDataError, error_record
from marketlens.core.logging import get_logger
from marketlens.domain import PriceSeries, SeriesInput

from .backtest import backtest_strategy
from .config import SignalConfig, get_signal_config
from .strategy import generate_trading_signals

logger = get_logger("signals.service")


def analyze_strategy(
    data: SeriesInput,
    symbol: str | None = None,
    fast_period: int | None = None,
    slow_period: int | None = None,
    rsi_period: int | None = None,
    config: SignalConfig | None = None,
) -> dict[str, Any]:
    """
    Signals plus backtest for one series.

    Returns:
        ``{"symbol", "data_points", "signals", "indicators", "parameters",
        "backtest"}``, or a record with an ``error`` field when the series
        is too short
    """
    config = (config or get_signal_config()).with_overrides(
        fast_period=fast_period, slow_period=slow_period, rsi_period=rsi_period
    )
    series = PriceSeries.from_records(data, symbol=symbol)
    payload: dict[str, Any] = {"symbol": symbol, "data_points": len(series)}

    try:
        signals = generate_trading_signals(series, config=config)
    except InsufficientDataError as exc:
        logger.warning(f"Signal analysis for {symbol or 'series'}: {exc.message}")
        return {**payload, **error_record(exc)}

    backtest = backtest_strategy(series, signals)
    return {**payload, **signals.to_dict(), "backtest": backtest.to_dict()}
