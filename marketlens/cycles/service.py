"""Cycle analysis entry point.

Dispatches a price series to one of the cycle analyzers by mode name and
wraps the result with the mode, symbol and number of points analysed.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Mapping

from marketlens.core.exceptions import InsufficientDataError, error_record
from marketlens.core.logging import get_logger
from marketlens.domain import PriceSeries, SeriesInput

from .config import CycleConfig, get_cycle_config
from .crossover import analyze_moving_average_crossovers
from .ma_simulation import simulate_ma_parameters
from .peaks import analyze_peak_trough
from .seasonal import analyze_seasonal_patterns
from .spectral import analyze_dominant_cycles
from .support_resistance import analyze_support_resistance

logger = get_logger("cycles.service")

CycleMode = Literal[
    "seasonal", "peak-trough", "ma-crossover", "ma-simulation", "fourier", "support-resistance"
]

CYCLE_MODES: tuple[str, ...] = (
    "seasonal",
    "peak-trough",
    "ma-crossover",
    "ma-simulation",
    "fourier",
    "support-resistance",
)


def analyze_cycles(
    data: SeriesInput,
    mode: CycleMode | str,
    symbol: str | None = None,
    years: int | None = None,
    ma_short: int | None = None,
    ma_long: int | None = None,
    benchmarks: Mapping[str, SeriesInput] | None = None,
    config: CycleConfig | None = None,
) -> dict[str, Any]:
    """
    Run one cycle analysis and return a JSON-ready record.

    Args:
        data: Price points (any order)
        mode: seasonal | peak-trough | ma-crossover | ma-simulation | fourier |
            support-resistance
        symbol: Ticker of ``data``; echoed back and excluded from benchmarks
        years: History window anchored on the latest date
        ma_short: Short SMA period for ma-crossover
        ma_long: Long SMA period for ma-crossover
        benchmarks: Benchmark series for seasonal comparisons

    Returns:
        ``{"mode", "symbol", "data_points", ...analysis}``, or a record with
        an ``error`` field for an unknown mode, empty input or too little
        data for the chosen analysis
    """
    if mode not in CYCLE_MODES:
        return {"error": "Invalid analysis mode"}

    config = (config or get_cycle_config()).with_overrides(
        history_years=years, ma_short=ma_short, ma_long=ma_long
    )
    series = PriceSeries.from_records(data, symbol=symbol).last_years(config.history_years)
    if len(series) == 0:
        return {"error": "No historical data available"}

    payload: dict[str, Any] = {"mode": mode, "symbol": symbol, "data_points": len(series)}

    analyzers: dict[str, Callable[[], Any]] = {
        "seasonal": lambda: analyze_seasonal_patterns(
            series,
            symbol=symbol,
            benchmarks={
                sym: PriceSeries.from_records(b, symbol=sym).last_years(config.history_years)
                for sym, b in (benchmarks or {}).items()
            },
        ),
        "peak-trough": lambda: analyze_peak_trough(series, config=config),
        "ma-crossover": lambda: analyze_moving_average_crossovers(series, config=config),
        "ma-simulation": lambda: simulate_ma_parameters(series, config=config),
        "fourier": lambda: analyze_dominant_cycles(series, config=config),
        "support-resistance": lambda: analyze_support_resistance(series, config=config),
    }

    try:
        result = analyzers[mode]()
    except InsufficientDataError as exc:
        logger.warning(f"Cycle analysis {mode} for {symbol or 'series'}: {exc.message}")
        return {**payload, **error_record(exc)}

    return {**payload, **result.to_dict()}
