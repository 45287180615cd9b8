"""MarketLens analytics core.

Pure computations over daily OHLCV series: return correlation and
lead/lag, calendar and cycle patterns, moving-average crossovers and
parameter sweeps, trend-following signals with a backtest, and
adaptive regression channels. No I/O; every entry point takes in-memory
price points and returns records that serialise to JSON.
"""

__version__ = "1.0.0"
