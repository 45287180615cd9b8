"""Channel analysis entry point.

Optionally grid-searches the channel window, builds the channel with the
chosen parameters and adds the volume profile view when volume exists.
"""

from __future__ import annotations

from typing import Any

from marketlens.core.exceptions import InsufficientDataError, error_record
from marketlens.core.logging import get_logger
from marketlens.domain import PriceSeries, PriceSource, SeriesInput

from .config import ChannelConfig, get_channel_config
from .optimizer import simulate_lookback
from .regression import build_channel
from .volume_profile import (
    analyze_channel_confluence,
    calculate_volume_profile,
    zone_volume_distribution,
)

logger = get_logger("channels.service")


def analyze_channel(
    data: SeriesInput,
    symbol: str | None = None,
    lookback: int | None = None,
    end_offset: int | None = None,
    std_multiplier: float | None = None,
    price_source: PriceSource | None = None,
    chart_period: str | None = None,
    optimize: bool = True,
    config: ChannelConfig | None = None,
) -> dict[str, Any]:
    """
    Build a regression channel, optimised or with explicit parameters.

    With ``optimize`` the overall grid-search optimum (window, centring
    shift and multiplier) is used and the full optimisation report is
    returned alongside; otherwise ``lookback``/``end_offset``/
    ``std_multiplier`` are used as given.

    Returns:
        JSON-ready record, or ``{"error": message}`` when the series is too
        short for the requested window or the search
    """
    config = (config or get_channel_config()).with_overrides(
        lookback=lookback,
        end_offset=end_offset,
        std_multiplier=std_multiplier,
        price_source=price_source,
        chart_period=chart_period,
    )
    series = PriceSeries.from_records(data, symbol=symbol)

    try:
        report = None
        intercept_shift = 0.0
        if optimize:
            report = simulate_lookback(series.price_values(config.price_source), config=config)
            best = report.overall
            config = config.with_overrides(
                lookback=best.optimal_lookback,
                end_offset=best.optimal_end_offset,
                std_multiplier=best.optimal_std_multiplier,
            )
            intercept_shift = best.intercept_shift

        channel = build_channel(series, intercept_shift=intercept_shift, config=config)
    except InsufficientDataError as exc:
        logger.warning(f"Channel for {symbol or 'series'}: {exc.message}")
        return error_record(exc)

    result: dict[str, Any] = {
        "symbol": symbol,
        "data_points": len(series),
        "price_source": config.price_source,
        "optimization": report.to_dict() if report else None,
        **channel.to_dict(),
    }

    volumes = series.volumes()
    if volumes.any():
        profile = calculate_volume_profile(series, price_source=config.price_source, config=config)
        result["volume_profile"] = profile.to_dict() if profile else None
        result["confluence"] = [
            c.to_dict() for c in analyze_channel_confluence(channel.points, profile, config=config)
        ]
        result["zone_volume"] = {
            str(zone): round(pct, 2)
            for zone, pct in zone_volume_distribution(channel.points, volumes, config=config).items()
        }

    return result
