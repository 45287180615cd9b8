"""Pytest configuration and synthetic price fixtures."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pytest

from marketlens.channels.config import ChannelConfig
from marketlens.correlation.config import CorrelationConfig
from marketlens.cycles.config import CycleConfig


def business_days(start: date, count: int) -> list[date]:
    """``count`` consecutive weekdays from ``start``."""
    days = []
    current = start
    while len(days) < count:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days


def make_points(
    closes,
    start: date = date(2023, 1, 2),
    volumes=None,
    weekdays_only: bool = True,
) -> list[dict]:
    """Build price dicts with ISO dates from a sequence of closes."""
    closes = list(closes)
    if weekdays_only:
        dates = business_days(start, len(closes))
    else:
        dates = [start + timedelta(days=i) for i in range(len(closes))]
    points = []
    for i, (d, close) in enumerate(zip(dates, closes)):
        point = {"date": d.isoformat(), "close": float(close)}
        if volumes is not None:
            point["volume"] = int(volumes[i])
        points.append(point)
    return points


@pytest.fixture
def linear_points():
    """200 closes on a perfect line from 100 upward."""
    return make_points(100.0 + 0.5 * np.arange(200))


@pytest.fixture
def rise_fall_points():
    """300 closes rising linearly 100 -> 160, then falling to 120."""
    rise = np.linspace(100.0, 160.0, 200)
    fall = np.linspace(160.0, 120.0, 101)[1:]
    return make_points(np.concatenate([rise, fall]))


@pytest.fixture
def noisy_points():
    """Trending series with a deterministic wobble and volume."""
    idx = np.arange(400)
    closes = 100.0 + 0.1 * idx + 3.0 * np.sin(idx / 7.0) + 1.5 * np.cos(idx / 3.0)
    volumes = 1_000_000 + 200_000 * np.sin(idx / 5.0)
    return make_points(closes, volumes=volumes)


@pytest.fixture
def correlation_config():
    return CorrelationConfig()


@pytest.fixture
def cycle_config():
    return CycleConfig()


@pytest.fixture
def channel_config():
    return ChannelConfig()


@pytest.fixture
def points_factory():
    """The :func:`make_points` builder for tests that need custom shapes."""
    return make_points
