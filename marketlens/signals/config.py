"""Trend-following signal and backtest configuration.

Indicator periods, entry/exit thresholds and backtest costs are loaded from
environment or settings. Individual calls can override the indicator
periods through :meth:`SignalConfig.with_overrides`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class SignalSettings(BaseSettings):
    """Signal engine settings from environment."""

    model_config = ConfigDict(extra="ignore")

    # Indicators
    signals_fast_period: int = Field(default=10, ge=2, le=200, description="Fast EMA period")
    signals_slow_period: int = Field(default=30, ge=3, le=400, description="Slow EMA period")
    signals_rsi_period: int = Field(default=14, ge=2, le=100, description="RSI period")
    signals_volume_period: int = Field(default=20, ge=1, le=200, description="Volume SMA period")

    # Entry / exit rules
    signals_rsi_overbought: float = Field(
        default=70.0, gt=50.0, le=100.0, description="RSI above which entries are blocked and positions exit"
    )
    signals_volume_confirm_ratio: float = Field(
        default=0.8, ge=0.0, le=5.0, description="Volume must exceed this fraction of its SMA to enter"
    )
    signals_stop_loss_pct: float = Field(
        default=5.0, gt=0.0, lt=100.0, description="Exit when price falls this % below entry"
    )
    signals_take_profit_pct: float = Field(
        default=10.0, gt=0.0, le=1000.0, description="Exit when price rises this % above entry"
    )

    # Backtest
    signals_initial_capital: float = Field(default=10_000.0, gt=0.0, description="Starting cash")
    signals_position_size: float = Field(
        default=1.0, gt=0.0, le=1.0, description="Fraction of cash invested per entry"
    )
    signals_commission: float = Field(
        default=0.001, ge=0.0, lt=0.1, description="Commission per side as a fraction of value"
    )


@dataclass(frozen=True)
class SignalConfig:
    """Complete signal engine configuration."""

    fast_period: int = 10
    slow_period: int = 30
    rsi_period: int = 14
    volume_period: int = 20

    rsi_overbought: float = 70.0
    volume_confirm_ratio: float = 0.8
    stop_loss_pct: float = 5.0
    take_profit_pct: float = 10.0

    initial_capital: float = 10_000.0
    position_size: float = 1.0
    commission: float = 0.001

    @classmethod
    def from_settings(cls, settings: SignalSettings | None = None) -> SignalConfig:
        """Create config from settings."""
        if settings is None:
            settings = SignalSettings()

        return cls(
            fast_period=settings.signals_fast_period,
            slow_period=settings.signals_slow_period,
            rsi_period=settings.signals_rsi_period,
            volume_period=settings.signals_volume_period,
            rsi_overbought=settings.signals_rsi_overbought,
            volume_confirm_ratio=settings.signals_volume_confirm_ratio,
            stop_loss_pct=settings.signals_stop_loss_pct,
            take_profit_pct=settings.signals_take_profit_pct,
            initial_capital=settings.signals_initial_capital,
            position_size=settings.signals_position_size,
            commission=settings.signals_commission,
        )

    def with_overrides(
        self,
        fast_period: int | None = None,
        slow_period: int | None = None,
        rsi_period: int | None = None,
    ) -> SignalConfig:
        """Return a new config with optional overrides applied."""
        overrides = {}
        if fast_period is not None:
            overrides["fast_period"] = fast_period
        if slow_period is not None:
            overrides["slow_period"] = slow_period
        if rsi_period is not None:
            overrides["rsi_period"] = rsi_period

        return replace(self, **overrides) if overrides else self


@lru_cache(maxsize=1)
def get_signal_config() -> SignalConfig:
    """Get cached signal configuration from settings."""
    return SignalConfig.from_settings()
