"""Pattern and cycle analysis on daily closes.

This module provides:
- Seasonal return patterns by month, quarter and weekday
- Peak/trough detection and peak-to-peak cycle lengths
- Moving-average crossover events with forward performance
- A sweep of moving-average pairs ranked by post-crossover returns
- Dominant cycle candidates from price autocorrelation
- Support and resistance levels from price clustering
"""

from .config import CycleConfig, get_cycle_config
from .crossover import (
    CrossoverAnalysis,
    CrossoverEvent,
    analyze_moving_average_crossovers,
    detect_crossovers,
    simple_moving_average,
)
from .ma_simulation import MAPairResult, MASimulation, simulate_ma_parameters
from .peaks import Cycle, CyclePoint, PeakTroughAnalysis, analyze_peak_trough, find_local_extrema
from .seasonal import SeasonalAnalysis, SeasonalBucket, analyze_seasonal_patterns
from .service import CYCLE_MODES, analyze_cycles
from .spectral import DominantCycle, DominantCycleAnalysis, analyze_dominant_cycles
from .support_resistance import PriceLevel, SupportResistanceAnalysis, analyze_support_resistance


__all__ = [
    "CYCLE_MODES",
    "CrossoverAnalysis",
    "CrossoverEvent",
    "Cycle",
    "CycleConfig",
    "CyclePoint",
    "DominantCycle",
    "DominantCycleAnalysis",
    "MAPairResult",
    "MASimulation",
    "PeakTroughAnalysis",
    "PriceLevel",
    "SeasonalAnalysis",
    "SeasonalBucket",
    "SupportResistanceAnalysis",
    "analyze_cycles",
    "analyze_dominant_cycles",
    "analyze_moving_average_crossovers",
    "analyze_peak_trough",
    "analyze_seasonal_patterns",
    "analyze_support_resistance",
    "detect_crossovers",
    "find_local_extrema",
    "get_cycle_config",
    "simple_moving_average",
    "simulate_ma_parameters",
]
