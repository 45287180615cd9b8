"""Trend-following signals and their backtest.

This module provides:
- EMA, Wilder RSI and volume moving-average series
- BUY/SELL signals from EMA crosses with RSI, volume and stop/target exits
- A long-only cash backtest of those signals
"""

from .backtest import BacktestResult, BacktestTrade, backtest_strategy
from .config import SignalConfig, get_signal_config
from .indicators import exponential_moving_average, relative_strength_index, volume_moving_average
from .service import analyze_strategy
from .strategy import TradeSignal, TradingSignals, generate_trading_signals


__all__ = [
    "BacktestResult",
    "BacktestTrade",
    "SignalConfig",
    "TradeSignal",
    "TradingSignals",
    "analyze_strategy",
    "backtest_strategy",
    "exponential_moving_average",
    "generate_trading_signals",
    "get_signal_config",
    "relative_strength_index",
    "volume_moving_average",
]
