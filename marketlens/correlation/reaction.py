"""Stock reactions to a benchmark's biggest moves.

Finds the benchmark's largest up (or down) days and reports how the stock
moved on the same day and over the following sessions, next to the
benchmark's own follow-through.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

from marketlens.core.exceptions import InvalidParameterError
from marketlens.core.logging import get_logger
from marketlens.domain import PricePoint, SeriesInput, sort_points

from .config import CorrelationConfig, get_correlation_config

logger = get_logger("correlation.reaction")

MoveDirection = Literal["up", "down"]

REACTION_HORIZONS: tuple[int, ...] = (1, 2, 3, 7)


@dataclass(frozen=True)
class BenchmarkReaction:
    """Stock and benchmark behaviour around one large benchmark move."""

    date: date
    benchmark_change: float  # percent
    stock_same_day: float | None
    stock_after: dict[int, float] = field(default_factory=dict)
    benchmark_after: dict[int, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "date": self.date.isoformat(),
            "benchmark_change": round(self.benchmark_change, 2),
            "stock_same_day": (
                round(self.stock_same_day, 2) if self.stock_same_day is not None else None
            ),
        }
        for days, change in self.stock_after.items():
            result[f"stock_after_{days}d"] = round(change, 2)
        for days, change in self.benchmark_after.items():
            result[f"benchmark_after_{days}d"] = round(change, 2)
        return result


def _pct_change(start: float, end: float) -> float | None:
    if start == 0:
        return None
    return (end - start) / start * 100


def _forward_changes(points: list[PricePoint], index: int) -> dict[int, float]:
    changes = {}
    for days in REACTION_HORIZONS:
        if index + days < len(points):
            change = _pct_change(points[index].close, points[index + days].close)
            if change is not None:
                changes[days] = change
    return changes


def analyze_benchmark_moves(
    stock: SeriesInput,
    benchmark: SeriesInput,
    direction: MoveDirection = "up",
    top_n: int | None = None,
    config: CorrelationConfig | None = None,
) -> list[BenchmarkReaction]:
    """
    Reactions of ``stock`` to the benchmark's ``top_n`` largest moves.

    Moves are ranked by absolute size; dates the stock did not trade are
    skipped. Horizons without enough future data are left out.
    """
    if direction not in ("up", "down"):
        raise InvalidParameterError("direction must be 'up' or 'down'", details={"direction": direction})

    config = config or get_correlation_config()
    if top_n is None:
        top_n = config.reaction_top_n

    stock_points = sort_points(stock)
    bench_points = sort_points(benchmark)
    stock_index = {p.date: i for i, p in enumerate(stock_points)}

    moves: list[tuple[int, float]] = []
    for i in range(1, len(bench_points)):
        change = _pct_change(bench_points[i - 1].close, bench_points[i].close)
        if change is None:
            continue
        if (direction == "up" and change > 0) or (direction == "down" and change < 0):
            moves.append((i, change))

    moves.sort(key=lambda m: abs(m[1]), reverse=True)

    reactions = []
    for bench_idx, change in moves[:top_n]:
        move_date = bench_points[bench_idx].date
        stock_idx = stock_index.get(move_date)
        if stock_idx is None:
            continue

        same_day = None
        if stock_idx > 0:
            same_day = _pct_change(stock_points[stock_idx - 1].close, stock_points[stock_idx].close)

        reactions.append(
            BenchmarkReaction(
                date=move_date,
                benchmark_change=change,
                stock_same_day=same_day,
                stock_after=_forward_changes(stock_points, stock_idx),
                benchmark_after=_forward_changes(bench_points, bench_idx),
            )
        )

    logger.debug(f"Matched {len(reactions)} of {min(top_n, len(moves))} benchmark {direction} moves")
    return reactions
