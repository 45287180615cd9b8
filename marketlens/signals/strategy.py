"""Trend-following entry and exit signals.

A long position opens on a fast/slow EMA golden cross when RSI is below the
overbought threshold and volume confirms. It closes on the first of: a
death cross, RSI above the overbought threshold, the stop loss or the take
profit. At most one position is open at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

import numpy as np

from marketlens.core.exceptions import InsufficientDataError, InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.cycles.peaks import CyclePoint, find_local_extrema
from marketlens.domain import SeriesInput, sort_points

from .config import SignalConfig, get_signal_config
from .indicators import exponential_moving_average, relative_strength_index, volume_moving_average

logger = get_logger("signals.strategy")

SignalType = Literal["BUY", "SELL"]

SWING_WINDOW = 2


def _rounded(values: np.ndarray, digits: int = 2) -> list[float | None]:
    return [None if np.isnan(v) else round(float(v), digits) for v in values]


@dataclass(frozen=True)
class TradeSignal:
    """One entry or exit with the indicator readings behind it."""

    type: SignalType
    date: date
    price: float
    index: int
    fast_ma: float
    slow_ma: float
    rsi: float
    volume: int
    volume_ma: float | None
    reason: str
    profit_loss_pct: float | None = None  # exits only

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "date": self.date.isoformat(),
            "price": round(self.price, 2),
            "index": self.index,
            "indicators": {
                "fast_ma": round(self.fast_ma, 2),
                "slow_ma": round(self.slow_ma, 2),
                "rsi": round(self.rsi, 2),
                "volume": self.volume,
                "volume_ma": round(self.volume_ma) if self.volume_ma is not None else None,
            },
            "reason": self.reason,
            "profit_loss_pct": (
                round(self.profit_loss_pct, 2) if self.profit_loss_pct is not None else None
            ),
        }


@dataclass
class TradingSignals:
    """Signals plus the indicator series they were derived from."""

    config: SignalConfig
    signals: list[TradeSignal] = field(default_factory=list)
    fast_ma: np.ndarray = field(default_factory=lambda: np.array([]))
    slow_ma: np.ndarray = field(default_factory=lambda: np.array([]))
    rsi: np.ndarray = field(default_factory=lambda: np.array([]))
    volume_ma: np.ndarray = field(default_factory=lambda: np.array([]))
    swing_lows: list[CyclePoint] = field(default_factory=list)
    swing_highs: list[CyclePoint] = field(default_factory=list)

    @property
    def buy_signals(self) -> list[TradeSignal]:
        return [s for s in self.signals if s.type == "BUY"]

    @property
    def sell_signals(self) -> list[TradeSignal]:
        return [s for s in self.signals if s.type == "SELL"]

    @property
    def in_position(self) -> bool:
        return bool(self.signals) and self.signals[-1].type == "BUY"

    def to_dict(self) -> dict[str, Any]:
        cfg = self.config
        return {
            "signals": [s.to_dict() for s in self.signals],
            "indicators": {
                "fast_ma": _rounded(self.fast_ma),
                "slow_ma": _rounded(self.slow_ma),
                "rsi": _rounded(self.rsi),
                "volume_ma": _rounded(self.volume_ma, 0),
                "support": [p.to_dict() for p in self.swing_lows],
                "resistance": [p.to_dict() for p in self.swing_highs],
            },
            "parameters": {
                "fast_period": cfg.fast_period,
                "slow_period": cfg.slow_period,
                "rsi_period": cfg.rsi_period,
                "rsi_overbought": cfg.rsi_overbought,
                "volume_period": cfg.volume_period,
                "stop_loss_pct": cfg.stop_loss_pct,
                "take_profit_pct": cfg.take_profit_pct,
            },
        }


def _exit_reason(
    cfg: SignalConfig,
    death_cross: bool,
    rsi: float,
    price: float,
    entry: float,
) -> str | None:
    stop = entry * (1 - cfg.stop_loss_pct / 100)
    target = entry * (1 + cfg.take_profit_pct / 100)
    if death_cross:
        return f"Death Cross (MA{cfg.fast_period} < MA{cfg.slow_period})"
    if rsi > cfg.rsi_overbought:
        return f"RSI Overbought: {rsi:.1f}"
    if price <= stop:
        return f"Stop Loss hit at {stop:.2f}"
    if price >= target:
        return f"Take Profit hit at {target:.2f}"
    return None


def generate_trading_signals(
    data: SeriesInput,
    fast_period: int | None = None,
    slow_period: int | None = None,
    rsi_period: int | None = None,
    config: SignalConfig | None = None,
) -> TradingSignals:
    """
    Generate BUY/SELL signals from EMA crosses, RSI and volume.

    Crosses follow the same rule as the SMA crossover detector: days where
    both EMAs are equal keep the previous relation. When the series carries
    no volume at all the volume confirmation is skipped.

    Args:
        data: Price points (any order)
        fast_period: Fast EMA period (default 10)
        slow_period: Slow EMA period (default 30)
        rsi_period: RSI period (default 14)

    Returns:
        TradingSignals with alternating BUY/SELL signals, oldest first

    Raises:
        InvalidParameterError: if the periods are not fast < slow
        InsufficientDataError: if there are fewer than slow + rsi points
    """
    cfg = (config or get_signal_config()).with_overrides(
        fast_period=fast_period, slow_period=slow_period, rsi_period=rsi_period
    )
    if cfg.fast_period < 1 or cfg.fast_period >= cfg.slow_period:
        raise InvalidParameterError(
            "fast_period must be at least 1 and below slow_period",
            details={"fast_period": cfg.fast_period, "slow_period": cfg.slow_period},
        )

    points = sort_points(data)
    n = len(points)
    required = cfg.slow_period + cfg.rsi_period
    if n < required:
        raise InsufficientDataError(
            "Insufficient data for analysis", details={"data_points": n, "required": required}
        )

    closes = np.array([p.close for p in points], dtype=float)
    volumes = np.array([p.volume or 0 for p in points], dtype=float)
    check_volume = bool(volumes.any())

    fast = exponential_moving_average(closes, cfg.fast_period)
    slow = exponential_moving_average(closes, cfg.slow_period)
    rsi = relative_strength_index(closes, cfg.rsi_period)
    volume_ma = volume_moving_average(volumes, cfg.volume_period)

    signals: list[TradeSignal] = []
    relation = 0
    entry: float | None = None
    for i in range(cfg.slow_period - 1, n):
        diff = fast[i] - slow[i]
        cross = 0
        if diff != 0:
            current = 1 if diff > 0 else -1
            if relation != 0 and current != relation:
                cross = current
            relation = current

        if np.isnan(rsi[i]):
            continue

        price = float(closes[i])
        vol_ma = None if np.isnan(volume_ma[i]) else float(volume_ma[i])
        snapshot = dict(
            date=points[i].date,
            price=price,
            index=i,
            fast_ma=float(fast[i]),
            slow_ma=float(slow[i]),
            rsi=float(rsi[i]),
            volume=int(volumes[i]),
            volume_ma=vol_ma,
        )

        if entry is None:
            threshold = (vol_ma if vol_ma is not None else 0.0) * cfg.volume_confirm_ratio
            volume_ok = not check_volume or volumes[i] > threshold
            if cross > 0 and rsi[i] < cfg.rsi_overbought and volume_ok:
                reason = (
                    f"Golden Cross (MA{cfg.fast_period} > MA{cfg.slow_period}), "
                    f"RSI: {rsi[i]:.1f}" + (", Volume confirmed" if check_volume else "")
                )
                signals.append(TradeSignal(type="BUY", reason=reason, **snapshot))
                entry = price
            continue

        reason = _exit_reason(cfg, cross < 0, float(rsi[i]), price, entry)
        if reason is not None:
            signals.append(
                TradeSignal(
                    type="SELL",
                    reason=reason,
                    profit_loss_pct=(price - entry) / entry * 100 if entry else 0.0,
                    **snapshot,
                )
            )
            entry = None

    highs, lows = find_local_extrema(closes, SWING_WINDOW)
    logger.debug(
        f"Generated {len(signals)} signals (EMA {cfg.fast_period}/{cfg.slow_period}) on {n} points"
    )
    return TradingSignals(
        config=cfg,
        signals=signals,
        fast_ma=fast,
        slow_ma=slow,
        rsi=rsi,
        volume_ma=volume_ma,
        swing_lows=[CyclePoint(date=points[i].date, price=float(closes[i]), index=i) for i in lows],
        swing_highs=[CyclePoint(date=points[i].date, price=float(closes[i]), index=i) for i in highs],
    )
