"""Correlation engine configuration.

Defaults can be overridden from the environment (``CORRELATION_*``) or per
call through :meth:`CorrelationConfig.with_overrides`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class CorrelationSettings(BaseSettings):
    """Correlation settings from environment."""

    model_config = ConfigDict(extra="ignore")

    correlation_history_years: int = Field(
        default=5, ge=1, le=30, description="Years of history to correlate"
    )
    correlation_max_lag: int = Field(
        default=10, ge=0, le=120, description="Maximum lead/lag tested (days)"
    )
    correlation_rolling_window: int = Field(
        default=30, ge=2, le=504, description="Rolling correlation window (days)"
    )
    correlation_reaction_top_n: int = Field(
        default=20, ge=1, le=250, description="Benchmark moves examined for reactions"
    )


@dataclass(frozen=True)
class CorrelationConfig:
    """Complete correlation configuration."""

    history_years: int = 5
    max_lag: int = 10
    rolling_window: int = 30
    reaction_top_n: int = 20

    @classmethod
    def from_settings(
        cls, settings: CorrelationSettings | None = None
    ) -> CorrelationConfig:
        """Create config from settings."""
        if settings is None:
            settings = CorrelationSettings()

        return cls(
            history_years=settings.correlation_history_years,
            max_lag=settings.correlation_max_lag,
            rolling_window=settings.correlation_rolling_window,
            reaction_top_n=settings.correlation_reaction_top_n,
        )

    def with_overrides(
        self,
        history_years: int | None = None,
        max_lag: int | None = None,
        rolling_window: int | None = None,
        reaction_top_n: int | None = None,
    ) -> CorrelationConfig:
        """Return a new config with optional overrides applied."""
        overrides = {}
        if history_years is not None:
            overrides["history_years"] = history_years
        if max_lag is not None:
            overrides["max_lag"] = max_lag
        if rolling_window is not None:
            overrides["rolling_window"] = rolling_window
        if reaction_top_n is not None:
            overrides["reaction_top_n"] = reaction_top_n

        return replace(self, **overrides) if overrides else self


@lru_cache(maxsize=1)
def get_correlation_config() -> CorrelationConfig:
    """Get cached correlation configuration from settings."""
    return CorrelationConfig.from_settings()
