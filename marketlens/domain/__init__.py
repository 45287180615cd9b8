"""Domain models for price input shared by every analytics package.

Usage:
    from marketlens.domain import PriceSeries

    series = PriceSeries.from_records(
        [{"date": "2024-01-02", "close": 185.6}, ...], symbol="AAPL"
    )
"""

from marketlens.domain.price import (
    PricePoint,
    PriceSeries,
    PriceSource,
    SeriesInput,
    sort_points,
)

__all__ = [
    "PricePoint",
    "PriceSeries",
    "PriceSource",
    "SeriesInput",
    "sort_points",
]
