"""Volume at price and its confluence with channel bounds."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Sequence

import numpy as np

from marketlens.core.exceptions import InvalidParameterError, PreconditionError
from marketlens.core.logging import get_logger
from marketlens.domain import PriceSource, SeriesInput

from .config import ChannelConfig, get_channel_config
from .regression import ChannelPoint, price_points

logger = get_logger("channels.volume_profile")

BoundState = Literal["strong", "weak", "neutral"]


@dataclass(frozen=True)
class VolumeBin:
    price_level: float  # bin midpoint
    price_min: float
    price_max: float
    volume: float

    def to_dict(self) -> dict:
        return {
            "price_level": self.price_level,
            "price_min": self.price_min,
            "price_max": self.price_max,
            "volume": self.volume,
        }


@dataclass
class VolumeProfile:
    """Volume histogram over price with its notable nodes.

    ``poc`` is the point of control (the bin with the most volume). High
    volume nodes exceed mean + one standard deviation of bin volume; low
    volume nodes traded something but less than mean - one deviation.
    """

    bins: list[VolumeBin]
    poc: VolumeBin
    hvns: list[VolumeBin] = field(default_factory=list)
    lvns: list[VolumeBin] = field(default_factory=list)
    avg_volume: float = 0.0
    std_dev_volume: float = 0.0
    min_price: float = 0.0
    max_price: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bins": [b.to_dict() for b in self.bins],
            "poc": self.poc.to_dict(),
            "hvns": [b.to_dict() for b in self.hvns],
            "lvns": [b.to_dict() for b in self.lvns],
            "avg_volume": self.avg_volume,
            "std_dev_volume": self.std_dev_volume,
            "min_price": self.min_price,
            "max_price": self.max_price,
        }


@dataclass(frozen=True)
class BoundConfluence:
    date: date
    upper_bound_state: BoundState
    lower_bound_state: BoundState

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "upper_bound_state": self.upper_bound_state,
            "lower_bound_state": self.lower_bound_state,
        }


def calculate_volume_profile(
    data: SeriesInput,
    bins: int | None = None,
    price_source: PriceSource = "close",
    config: ChannelConfig | None = None,
) -> VolumeProfile | None:
    """
    Bucket traded volume into equal-width price bins.

    Returns:
        VolumeProfile, or None for an empty series or a flat price range
    """
    config = config or get_channel_config()
    if bins is None:
        bins = config.volume_bins
    if bins < 1:
        raise InvalidParameterError("bins must be at least 1", details={"bins": bins})

    points, prices = price_points(data, price_source)
    if len(prices) == 0:
        return None
    min_price = float(prices.min())
    max_price = float(prices.max())
    price_range = max_price - min_price
    if price_range == 0:
        return None

    bin_size = price_range / bins
    volumes = np.zeros(bins, dtype=float)
    for point, price in zip(points, prices):
        index = min(math.floor((price - min_price) / bin_size), bins - 1)
        volumes[index] += point.volume or 0

    profile_bins = [
        VolumeBin(
            price_level=min_price + (i + 0.5) * bin_size,
            price_min=min_price + i * bin_size,
            price_max=min_price + (i + 1) * bin_size,
            volume=float(volumes[i]),
        )
        for i in range(bins)
    ]

    avg = float(volumes.mean())
    std = float(volumes.std())
    # argmax returns the first bin on ties
    poc = profile_bins[int(np.argmax(volumes))]

    return VolumeProfile(
        bins=profile_bins,
        poc=poc,
        hvns=[b for b in profile_bins if b.volume > avg + std],
        lvns=[b for b in profile_bins if 0 < b.volume < avg - std],
        avg_volume=avg,
        std_dev_volume=std,
        min_price=min_price,
        max_price=max_price,
    )


def _bound_state(price: float, profile: VolumeProfile, proximity: float) -> BoundState:
    threshold = price * proximity
    if abs(price - profile.poc.price_level) < threshold:
        return "strong"
    if any(abs(price - node.price_level) < threshold for node in profile.hvns):
        return "strong"
    if any(abs(price - node.price_level) < threshold for node in profile.lvns):
        return "weak"
    return "neutral"


def analyze_channel_confluence(
    points: Sequence[ChannelPoint],
    profile: VolumeProfile | None,
    proximity: float | None = None,
    config: ChannelConfig | None = None,
) -> list[BoundConfluence]:
    """
    Classify each channel bound against the volume profile.

    A bound within ``proximity`` (relative) of the point of control or a
    high volume node is strong, near a low volume node weak, otherwise
    neutral. Points without a channel are neutral on both sides.
    """
    config = config or get_channel_config()
    if proximity is None:
        proximity = config.confluence_proximity

    result = []
    for point in points:
        if profile is None or point.upper_bound is None or point.lower_bound is None:
            result.append(BoundConfluence(point.date, "neutral", "neutral"))
            continue
        result.append(
            BoundConfluence(
                date=point.date,
                upper_bound_state=_bound_state(point.upper_bound, profile, proximity),
                lower_bound_state=_bound_state(point.lower_bound, profile, proximity),
            )
        )
    return result


def zone_volume_distribution(
    points: Sequence[ChannelPoint],
    volumes: Sequence[float],
    channel_bands: int | None = None,
    config: ChannelConfig | None = None,
) -> dict[int, float]:
    """
    Share of traded volume (percent) that happened in each channel zone.

    Zones run from 0 (lowest) to ``channel_bands - 1``. A point lands in the
    first zone whose boundaries contain its price; prices outside the
    channel and points without volume are ignored. Points whose partition
    levels are missing fall back to an even split of the channel.

    Raises:
        PreconditionError: if points and volumes differ in length
    """
    if len(points) != len(volumes):
        raise PreconditionError(
            f"points length {len(points)} does not match volumes length {len(volumes)}",
        )
    config = config or get_channel_config()
    bands = channel_bands if channel_bands is not None else config.channel_bands

    zone_volumes: dict[int, float] = {}
    total = 0.0
    for point, volume in zip(points, volumes):
        if volume == 0:
            continue
        if point.lower_bound is None or point.upper_bound is None:
            continue

        zone = None
        boundaries = (point.lower_bound, *point.bands, point.upper_bound)
        if len(boundaries) == bands + 1:
            for z in range(bands):
                if boundaries[z] <= point.price <= boundaries[z + 1]:
                    zone = z
                    break
        else:
            width = point.upper_bound - point.lower_bound
            if width <= 0:
                continue
            position = (point.price - point.lower_bound) / width
            zone = max(0, min(bands - 1, math.floor(position * bands)))

        if zone is None:
            continue
        zone_volumes[zone] = zone_volumes.get(zone, 0.0) + volume
        total += volume

    if total <= 0:
        return {}
    return {zone: vol / total * 100 for zone, vol in sorted(zone_volumes.items())}
