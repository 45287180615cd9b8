"""Regression channel configuration.

Channel geometry, grid-search resolution and touch detection thresholds.
Loaded from environment with defaults; per-call overrides go through
:meth:`ChannelConfig.with_overrides`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

from marketlens.domain import PriceSource


class ChannelSettings(BaseSettings):
    """Channel settings from environment."""

    model_config = ConfigDict(extra="ignore")

    # Channel geometry
    channel_lookback: int = Field(default=120, ge=2, le=5000, description="Default regression window")
    channel_std_multiplier: float = Field(
        default=2.0, gt=0, le=10, description="Band half-width in residual standard deviations"
    )
    channel_price_source: PriceSource = Field(default="close", description="close, hl2 or ohlc4")
    channel_bands: int = Field(default=10, ge=1, le=50, description="Equal zones between the bounds")
    channel_chart_period: str = Field(
        default="3M", description="Display timeframe used to pick the touch smoothing period"
    )

    # Grid search
    channel_grid_samples: int = Field(
        default=50, ge=2, le=500, description="Maximum samples per grid dimension"
    )
    channel_min_lookback: int = Field(default=20, ge=2, le=1000, description="Shortest lookback tried")
    channel_end_offset_fraction: float = Field(
        default=0.2, ge=0, lt=1, description="Largest end offset as a fraction of the series"
    )
    channel_recent_fraction: float = Field(
        default=0.25, gt=0, le=1, description="Share of the series searched for the recent regime"
    )
    channel_proximity_tolerance: float = Field(
        default=0.01, gt=0, le=0.5, description="Relative distance from centre counted as near"
    )
    channel_optimizer_workers: int = Field(
        default=1, ge=1, le=32, description="Threads used for the grid search"
    )

    # Touch detection
    channel_boundary_fraction: float = Field(
        default=0.08, gt=0, le=0.5, description="Edge share of the window where touches count"
    )

    # Volume profile
    channel_volume_bins: int = Field(default=70, ge=5, le=500, description="Volume profile bins")
    channel_confluence_proximity: float = Field(
        default=0.02, gt=0, le=0.5, description="Relative distance for bound/volume confluence"
    )

    # Multi-channel search
    channel_multi_min_ratio: float = Field(
        default=0.05, gt=0, le=1, description="Shortest channel as a share of the series"
    )
    channel_multi_max_ratio: float = Field(
        default=0.5, gt=0, le=1, description="Longest channel as a share of the series"
    )


@dataclass(frozen=True)
class ChannelConfig:
    """Complete channel configuration."""

    lookback: int = 120
    end_offset: int = 0
    std_multiplier: float = 2.0
    price_source: PriceSource = "close"
    channel_bands: int = 10
    chart_period: str = "3M"

    grid_samples: int = 50
    min_lookback: int = 20
    end_offset_fraction: float = 0.2
    recent_fraction: float = 0.25
    proximity_tolerance: float = 0.01
    optimizer_workers: int = 1

    boundary_fraction: float = 0.08

    volume_bins: int = 70
    confluence_proximity: float = 0.02

    multi_min_ratio: float = 0.05
    multi_max_ratio: float = 0.5

    @classmethod
    def from_settings(cls, settings: ChannelSettings | None = None) -> ChannelConfig:
        """Create config from settings."""
        if settings is None:
            settings = ChannelSettings()

        return cls(
            lookback=settings.channel_lookback,
            std_multiplier=settings.channel_std_multiplier,
            price_source=settings.channel_price_source,
            channel_bands=settings.channel_bands,
            chart_period=settings.channel_chart_period,
            grid_samples=settings.channel_grid_samples,
            min_lookback=settings.channel_min_lookback,
            end_offset_fraction=settings.channel_end_offset_fraction,
            recent_fraction=settings.channel_recent_fraction,
            proximity_tolerance=settings.channel_proximity_tolerance,
            optimizer_workers=settings.channel_optimizer_workers,
            boundary_fraction=settings.channel_boundary_fraction,
            volume_bins=settings.channel_volume_bins,
            confluence_proximity=settings.channel_confluence_proximity,
            multi_min_ratio=settings.channel_multi_min_ratio,
            multi_max_ratio=settings.channel_multi_max_ratio,
        )

    def with_overrides(
        self,
        lookback: int | None = None,
        end_offset: int | None = None,
        std_multiplier: float | None = None,
        price_source: PriceSource | None = None,
        chart_period: str | None = None,
        grid_samples: int | None = None,
        proximity_tolerance: float | None = None,
        boundary_fraction: float | None = None,
    ) -> ChannelConfig:
        """Return a new config with optional overrides applied."""
        overrides = {
            key: value
            for key, value in (
                ("lookback", lookback),
                ("end_offset", end_offset),
                ("std_multiplier", std_multiplier),
                ("price_source", price_source),
                ("chart_period", chart_period),
                ("grid_samples", grid_samples),
                ("proximity_tolerance", proximity_tolerance),
                ("boundary_fraction", boundary_fraction),
            )
            if value is not None
        }
        return replace(self, **overrides) if overrides else self


@lru_cache(maxsize=1)
def get_channel_config() -> ChannelConfig:
    """Get cached channel configuration from settings."""
    return ChannelConfig.from_settings()
