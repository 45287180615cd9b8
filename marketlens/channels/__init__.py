"""Linear regression channels.

This module provides:
- OLS channel fitting over trailing windows with partition zones
- Touch alignment that centres the channel on its extreme residuals
- Grid search over lookback and end offset (sync and async)
- Multiple-channel discovery and manual range fitting
- Volume profile, bound confluence and per-zone volume
"""

from .config import ChannelConfig, get_channel_config
from .multi import ChannelSegment, ManualChannel, find_multiple_channels, fit_manual_channel
from .optimizer import (
    OptimizationReport,
    OptimizationResult,
    sample_grid,
    simulate_lookback,
    simulate_lookback_async,
)
from .regression import (
    ChannelModel,
    ChannelPoint,
    ChannelResult,
    RegressionFit,
    build_channel,
    fit_linear_regression,
    rolling_std_dev_channel,
)
from .service import analyze_channel
from .touch import TouchAlignment, compute_touch_alignment, sma_period_for_chart
from .volume_profile import (
    BoundConfluence,
    VolumeProfile,
    analyze_channel_confluence,
    calculate_volume_profile,
    zone_volume_distribution,
)


__all__ = [
    "BoundConfluence",
    "ChannelConfig",
    "ChannelModel",
    "ChannelPoint",
    "ChannelResult",
    "ChannelSegment",
    "ManualChannel",
    "OptimizationReport",
    "OptimizationResult",
    "RegressionFit",
    "TouchAlignment",
    "VolumeProfile",
    "analyze_channel",
    "analyze_channel_confluence",
    "build_channel",
    "calculate_volume_profile",
    "compute_touch_alignment",
    "find_multiple_channels",
    "fit_linear_regression",
    "fit_manual_channel",
    "get_channel_config",
    "rolling_std_dev_channel",
    "sample_grid",
    "simulate_lookback",
    "simulate_lookback_async",
    "sma_period_for_chart",
    "zone_volume_distribution",
]
