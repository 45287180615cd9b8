"""Support and resistance levels from price clustering.

Splits the observed close range into equal-width buckets, keeps the buckets
price visited often enough, and reports the levels nearest to the current
price on each side.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

from .config import CycleConfig, get_cycle_config

logger = get_logger("cycles.support_resistance")


@dataclass(frozen=True)
class PriceLevel:
    """A price bucket that closes visited repeatedly."""

    price: float  # lower edge of the bucket
    level_type: str  # "support" or "resistance"
    touches: int  # closes inside the bucket
    distance_pct: float  # absolute distance from current price, % of current price

    def to_dict(self) -> dict:
        return {
            "price": round(self.price, 2),
            "level_type": self.level_type,
            "touches": self.touches,
            "distance_pct": round(self.distance_pct, 2),
        }


@dataclass
class SupportResistanceAnalysis:
    """Nearest support and resistance levels around the current price."""

    current_price: float
    bucket_size: float = 0.0
    support: list[PriceLevel] = field(default_factory=list)
    resistance: list[PriceLevel] = field(default_factory=list)

    @property
    def nearest_support(self) -> PriceLevel | None:
        return self.support[0] if self.support else None

    @property
    def nearest_resistance(self) -> PriceLevel | None:
        return self.resistance[0] if self.resistance else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_price": round(self.current_price, 2),
            "bucket_size": round(self.bucket_size, 4),
            "support": [s.to_dict() for s in self.support],
            "resistance": [r.to_dict() for r in self.resistance],
            "nearest_support": round(self.nearest_support.price, 2) if self.nearest_support else None,
            "nearest_resistance": (
                round(self.nearest_resistance.price, 2) if self.nearest_resistance else None
            ),
        }


def cluster_price_buckets(prices: np.ndarray, buckets: int = 50) -> tuple[float, dict[int, int]]:
    """
    Count closes per equal-width bucket.

    Returns:
        (bucket_size, {bucket_index: count}); bucket ``k`` spans
        [k * size, (k + 1) * size). A flat series has size 0 and no buckets.
    """
    if len(prices) == 0:
        return 0.0, {}
    price_range = float(np.max(prices) - np.min(prices))
    if price_range <= 0:
        return 0.0, {}

    size = price_range / buckets
    counts: dict[int, int] = {}
    for price in prices:
        key = math.floor(price / size)
        counts[key] = counts.get(key, 0) + 1
    return size, counts


def analyze_support_resistance(
    data: SeriesInput,
    config: CycleConfig | None = None,
) -> SupportResistanceAnalysis:
    """
    Support and resistance from close clustering.

    Buckets with at least ``sr_min_touches`` closes become levels. Levels
    below the current (latest) close are support, ordered from highest
    down; levels above are resistance, ordered from lowest up. At most
    ``sr_levels_per_side`` are kept per side.
    """
    config = config or get_cycle_config()

    points = sort_points(data)
    if not points:
        return SupportResistanceAnalysis(current_price=0.0)

    closes = np.array([p.close for p in points], dtype=float)
    current = float(closes[-1])
    size, counts = cluster_price_buckets(closes, config.sr_buckets)

    support: list[PriceLevel] = []
    resistance: list[PriceLevel] = []
    for key, touches in counts.items():
        if touches < config.sr_min_touches:
            continue
        level = key * size
        distance = abs(level - current) / current * 100 if current else 0.0
        if level < current:
            support.append(PriceLevel(level, "support", touches, distance))
        elif level > current:
            resistance.append(PriceLevel(level, "resistance", touches, distance))

    support.sort(key=lambda lvl: lvl.price, reverse=True)
    resistance.sort(key=lambda lvl: lvl.price)
    keep = config.sr_levels_per_side

    logger.debug(f"{len(support)} support and {len(resistance)} resistance candidates at {current:.2f}")
    return SupportResistanceAnalysis(
        current_price=current,
        bucket_size=size,
        support=support[:keep],
        resistance=resistance[:keep],
    )
