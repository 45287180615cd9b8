"""Price domain models.

Type-safe representations of daily OHLCV input. Every analysis entry point
normalises its input through :func:`sort_points`, so callers may pass
unsorted lists of dicts, :class:`PricePoint` objects, a :class:`PriceSeries`
or a pandas DataFrame.
"""

from __future__ import annotations

from datetime import date as DateType
from datetime import timedelta
from typing import Any, Iterable, Iterator, Literal, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, computed_field


PriceSource = Literal["close", "hl2", "ohlc4"]


class PricePoint(BaseModel):
    """Single daily OHLCV point.

    Only ``date`` and ``close`` are required. Missing open/high/low fall
    back to the close when a derived price source needs them.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    date: DateType = Field(..., description="Trading date")
    close: float = Field(..., ge=0, description="Closing price")
    open: float | None = Field(default=None, ge=0, description="Opening price")
    high: float | None = Field(default=None, ge=0, description="High price")
    low: float | None = Field(default=None, ge=0, description="Low price")
    volume: int | None = Field(default=None, ge=0, description="Trading volume")

    @computed_field
    @property
    def hl2(self) -> float:
        """Midpoint of the high/low range."""
        high = self.high if self.high else self.close
        low = self.low if self.low else self.close
        return (high + low) / 2

    @computed_field
    @property
    def ohlc4(self) -> float:
        """Average of open, high, low and close."""
        open_ = self.open if self.open else self.close
        high = self.high if self.high else self.close
        low = self.low if self.low else self.close
        return (open_ + high + low + self.close) / 4

    def price(self, source: PriceSource = "close") -> float:
        """Price value for the given source."""
        if source == "hl2":
            return self.hl2
        if source == "ohlc4":
            return self.ohlc4
        return self.close


SeriesInput = Union["PriceSeries", pd.DataFrame, Iterable[Union[PricePoint, dict[str, Any]]]]


def sort_points(data: SeriesInput) -> list[PricePoint]:
    """Coerce any supported input into PricePoints sorted ascending by date."""
    if data is None:
        return []
    if isinstance(data, PriceSeries):
        return list(data.points)
    if isinstance(data, pd.DataFrame):
        return list(PriceSeries.from_dataframe(data).points)

    points = [p if isinstance(p, PricePoint) else PricePoint.model_validate(p) for p in data]
    points.sort(key=lambda p: p.date)
    return points


class PriceSeries(BaseModel):
    """Daily price history for one symbol, always sorted ascending."""

    model_config = ConfigDict(frozen=True)

    symbol: str | None = Field(default=None, description="Ticker symbol")
    points: tuple[PricePoint, ...] = Field(default=(), description="Points (chronological)")

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[PricePoint]:  # type: ignore[override]
        return iter(self.points)

    def __getitem__(self, index: int) -> PricePoint:
        return self.points[index]

    @classmethod
    def from_records(cls, records: SeriesInput, symbol: str | None = None) -> PriceSeries:
        """Build a sorted series from dicts, PricePoints or a DataFrame."""
        return cls(symbol=symbol, points=tuple(sort_points(records)))

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, symbol: str | None = None) -> PriceSeries:
        """Create a series from a DataFrame.

        Accepts a date index or a ``date`` column and either capitalised
        (yfinance style) or lowercase OHLCV column names.
        """
        if df is None or df.empty:
            return cls(symbol=symbol, points=())

        columns = {c.lower(): c for c in df.columns}
        frame = df
        if "date" in columns:
            frame = df.set_index(columns["date"])

        points = []
        for idx, row in frame.iterrows():
            bar_date = idx.date() if hasattr(idx, "date") and callable(idx.date) else idx
            record: dict[str, Any] = {"date": bar_date}
            for key in ("open", "high", "low", "close", "volume"):
                col = columns.get(key)
                if col is None:
                    continue
                value = row[col]
                if pd.isna(value):
                    continue
                record[key] = int(value) if key == "volume" else float(value)
            points.append(PricePoint.model_validate(record))

        points.sort(key=lambda p: p.date)
        return cls(symbol=symbol, points=tuple(points))

    @computed_field
    @property
    def start_date(self) -> DateType | None:
        return self.points[0].date if self.points else None

    @computed_field
    @property
    def end_date(self) -> DateType | None:
        return self.points[-1].date if self.points else None

    def closes(self) -> np.ndarray:
        return np.array([p.close for p in self.points], dtype=float)

    def volumes(self) -> np.ndarray:
        return np.array([p.volume or 0 for p in self.points], dtype=float)

    def dates(self) -> list[DateType]:
        return [p.date for p in self.points]

    def price_values(self, source: PriceSource = "close") -> np.ndarray:
        return np.array([p.price(source) for p in self.points], dtype=float)

    def last_years(self, years: int | None) -> PriceSeries:
        """Keep points within ``years`` of the latest date in the series.

        The window is anchored on the series itself rather than the wall
        clock so results stay reproducible.
        """
        if not years or not self.points:
            return self
        cutoff = self.points[-1].date - timedelta(days=round(365.25 * years))
        return PriceSeries(
            symbol=self.symbol,
            points=tuple(p for p in self.points if p.date >= cutoff),
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to a DataFrame indexed by date."""
        if not self.points:
            return pd.DataFrame(columns=["open", "high", "low", "close", "volume"])
        df = pd.DataFrame(
            [
                {
                    "date": pd.Timestamp(p.date),
                    "open": p.open,
                    "high": p.high,
                    "low": p.low,
                    "close": p.close,
                    "volume": p.volume,
                }
                for p in self.points
            ]
        )
        return df.set_index("date")
