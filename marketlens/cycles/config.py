"""Cycle analysis configuration with thresholds and windows.

All thresholds are loaded from environment or settings, with sensible
defaults. Individual calls can override them through
:meth:`CycleConfig.with_overrides`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class CycleSettings(BaseSettings):
    """Cycle analysis settings from environment."""

    model_config = ConfigDict(extra="ignore")

    cycles_history_years: int = Field(
        default=5, ge=1, le=30, description="Years of price history analysed"
    )

    # Moving-average crossover
    cycles_ma_short: int = Field(default=50, ge=2, le=400, description="Short SMA period")
    cycles_ma_long: int = Field(default=200, ge=3, le=800, description="Long SMA period")
    cycles_forward_horizons: list[int] = Field(
        default=[3, 7, 14, 30],
        description="Trading days after a crossover to measure performance",
    )

    # Extremum detection
    cycles_extremum_window: int = Field(
        default=5, ge=1, le=50, description="Points each side for a strict local extremum"
    )
    cycles_keep_recent: int = Field(
        default=10, ge=1, le=100, description="Recent peaks/troughs/cycles/crossovers kept"
    )

    # Autocorrelation cycle detector
    cycles_spectral_max_points: int = Field(
        default=512, ge=32, le=4096, description="Most recent closes used for autocorrelation"
    )
    cycles_spectral_max_lag: int = Field(
        default=200, ge=10, le=2048, description="Largest autocorrelation lag"
    )
    cycles_spectral_top_n: int = Field(default=5, ge=1, le=20, description="Cycles reported")

    # Support / resistance clustering
    cycles_sr_buckets: int = Field(default=50, ge=5, le=500, description="Price buckets")
    cycles_sr_min_touches: int = Field(
        default=5, ge=1, le=100, description="Closes a bucket needs to become a level"
    )
    cycles_sr_levels_per_side: int = Field(
        default=5, ge=1, le=20, description="Levels reported on each side of price"
    )

    # MA parameter sweep
    cycles_sim_short_periods: list[int] = Field(
        default=[3, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55, 60, 70, 80, 90, 100],
        description="Short SMA periods tried by the MA sweep",
    )
    cycles_sim_long_periods: list[int] = Field(
        default=[20, 25, 30, 50, 60, 70, 80, 100, 120, 150, 180, 200, 220, 250, 280, 300],
        description="Long SMA periods tried by the MA sweep",
    )
    cycles_sim_max_ratio: float = Field(
        default=0.6, gt=0.0, lt=1.0, description="Largest short/long ratio tried"
    )
    cycles_sim_min_crossovers: int = Field(
        default=3, ge=1, le=100, description="Crossovers that always keep a pair in the ranking"
    )
    cycles_sim_rank_horizon: int = Field(
        default=7, ge=1, le=365, description="Forward horizon used to rank MA pairs"
    )
    cycles_sim_top_n: int = Field(default=20, ge=1, le=200, description="Top MA pairs reported")


@dataclass(frozen=True)
class CycleConfig:
    """Complete cycle analysis configuration."""

    history_years: int = 5

    ma_short: int = 50
    ma_long: int = 200
    forward_horizons: tuple[int, ...] = field(default=(3, 7, 14, 30))

    extremum_window: int = 5
    keep_recent: int = 10

    spectral_max_points: int = 512
    spectral_max_lag: int = 200
    spectral_top_n: int = 5

    sr_buckets: int = 50
    sr_min_touches: int = 5
    sr_levels_per_side: int = 5

    sim_short_periods: tuple[int, ...] = field(
        default=(3, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55, 60, 70, 80, 90, 100)
    )
    sim_long_periods: tuple[int, ...] = field(
        default=(20, 25, 30, 50, 60, 70, 80, 100, 120, 150, 180, 200, 220, 250, 280, 300)
    )
    sim_max_ratio: float = 0.6
    sim_min_crossovers: int = 3
    sim_rank_horizon: int = 7
    sim_top_n: int = 20

    @classmethod
    def from_settings(cls, settings: CycleSettings | None = None) -> CycleConfig:
        """Create config from settings."""
        if settings is None:
            settings = CycleSettings()

        return cls(
            history_years=settings.cycles_history_years,
            ma_short=settings.cycles_ma_short,
            ma_long=settings.cycles_ma_long,
            forward_horizons=tuple(settings.cycles_forward_horizons),
            extremum_window=settings.cycles_extremum_window,
            keep_recent=settings.cycles_keep_recent,
            spectral_max_points=settings.cycles_spectral_max_points,
            spectral_max_lag=settings.cycles_spectral_max_lag,
            spectral_top_n=settings.cycles_spectral_top_n,
            sr_buckets=settings.cycles_sr_buckets,
            sr_min_touches=settings.cycles_sr_min_touches,
            sr_levels_per_side=settings.cycles_sr_levels_per_side,
            sim_short_periods=tuple(settings.cycles_sim_short_periods),
            sim_long_periods=tuple(settings.cycles_sim_long_periods),
            sim_max_ratio=settings.cycles_sim_max_ratio,
            sim_min_crossovers=settings.cycles_sim_min_crossovers,
            sim_rank_horizon=settings.cycles_sim_rank_horizon,
            sim_top_n=settings.cycles_sim_top_n,
        )

    def with_overrides(
        self,
        history_years: int | None = None,
        ma_short: int | None = None,
        ma_long: int | None = None,
        extremum_window: int | None = None,
    ) -> CycleConfig:
        """Return a new config with optional overrides applied."""
        overrides = {}
        if history_years is not None:
            overrides["history_years"] = history_years
        if ma_short is not None:
            overrides["ma_short"] = ma_short
        if ma_long is not None:
            overrides["ma_long"] = ma_long
        if extremum_window is not None:
            overrides["extremum_window"] = extremum_window

        return replace(self, **overrides) if overrides else self


@lru_cache(maxsize=1)
def get_cycle_config() -> CycleConfig:
    """Get cached cycle configuration from settings."""
    return CycleConfig.from_settings()
