"""Long-only backtest of generated trading signals.

Each BUY invests ``position_size`` of available cash, each SELL liquidates
the whole position, and both sides pay ``commission`` on traded value. A
position still open after the last signal is closed at the final close.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from marketlens.core.logging import get_logger
from marketlens.domain import SeriesInput, sort_points

from .config import SignalConfig, get_signal_config
from .strategy import TradeSignal, TradingSignals

logger = get_logger("signals.backtest")

# Profit factor reported when there are gains but no losses
MAX_PROFIT_FACTOR = 999.99

END_OF_PERIOD = "End of backtest period"


@dataclass(frozen=True)
class BacktestTrade:
    """One executed side of a round trip."""

    type: str  # "BUY" or "SELL"
    date: date
    price: float
    shares: float
    value: float  # cash out for a BUY (incl. commission), cash in for a SELL (net)
    commission: float
    reason: str
    profit_loss: float | None = None  # SELL only, against the full cost of the entry
    profit_loss_pct: float | None = None

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "type": self.type,
            "date": self.date.isoformat(),
            "price": round(self.price, 2),
            "shares": round(self.shares, 4),
            "value": round(self.value, 2),
            "commission": round(self.commission, 2),
            "reason": self.reason,
        }
        if self.profit_loss is not None:
            record["profit_loss"] = round(self.profit_loss, 2)
            record["profit_loss_pct"] = round(self.profit_loss_pct or 0.0, 2)
        return record


@dataclass
class BacktestResult:
    """Trades and summary statistics of a backtest."""

    initial_capital: float
    final_capital: float
    trades: list[BacktestTrade] = field(default_factory=list)
    winning_trades: int = 0
    losing_trades: int = 0
    total_profit: float = 0.0
    total_loss: float = 0.0
    total_commission: float = 0.0

    @property
    def total_return(self) -> float:
        return self.final_capital - self.initial_capital

    @property
    def total_return_pct(self) -> float:
        return self.total_return / self.initial_capital * 100 if self.initial_capital else 0.0

    @property
    def total_trades(self) -> int:
        return self.winning_trades + self.losing_trades

    @property
    def win_rate(self) -> float:
        return self.winning_trades / self.total_trades * 100 if self.total_trades else 0.0

    @property
    def avg_win(self) -> float:
        return self.total_profit / self.winning_trades if self.winning_trades else 0.0

    @property
    def avg_loss(self) -> float:
        return self.total_loss / self.losing_trades if self.losing_trades else 0.0

    @property
    def profit_factor(self) -> float:
        if self.total_loss > 0:
            return min(self.total_profit / self.total_loss, MAX_PROFIT_FACTOR)
        return MAX_PROFIT_FACTOR if self.total_profit > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "initial_capital": round(self.initial_capital, 2),
                "final_capital": round(self.final_capital, 2),
                "total_return": round(self.total_return, 2),
                "total_return_pct": round(self.total_return_pct, 2),
                "total_trades": self.total_trades,
                "winning_trades": self.winning_trades,
                "losing_trades": self.losing_trades,
                "win_rate": round(self.win_rate, 2),
                "avg_win": round(self.avg_win, 2),
                "avg_loss": round(self.avg_loss, 2),
                "profit_factor": round(self.profit_factor, 2),
                "total_commission": round(self.total_commission, 2),
            },
            "trades": [t.to_dict() for t in self.trades],
        }


class _Book:
    """Cash and open position while replaying signals."""

    def __init__(self, config: SignalConfig):
        self.config = config
        self.result = BacktestResult(
            initial_capital=config.initial_capital, final_capital=config.initial_capital
        )
        self.shares = 0.0
        self.cost = 0.0

    def buy(self, when: date, price: float, reason: str) -> None:
        invest = self.result.final_capital * self.config.position_size
        fee = invest * self.config.commission
        self.shares = (invest - fee) / price
        self.cost = invest
        self.result.final_capital -= invest
        self.result.total_commission += fee
        self.result.trades.append(BacktestTrade("BUY", when, price, self.shares, invest, fee, reason))

    def sell(self, when: date, price: float, reason: str) -> None:
        gross = self.shares * price
        fee = gross * self.config.commission
        net = gross - fee
        pnl = net - self.cost

        self.result.final_capital += net
        self.result.total_commission += fee
        if pnl > 0:
            self.result.winning_trades += 1
            self.result.total_profit += pnl
        else:
            self.result.losing_trades += 1
            self.result.total_loss += abs(pnl)

        self.result.trades.append(
            BacktestTrade(
                "SELL",
                when,
                price,
                self.shares,
                net,
                fee,
                reason,
                profit_loss=pnl,
                profit_loss_pct=pnl / self.cost * 100 if self.cost else 0.0,
            )
        )
        self.shares = 0.0
        self.cost = 0.0


def backtest_strategy(
    data: SeriesInput,
    signals: TradingSignals | Iterable[TradeSignal],
    config: SignalConfig | None = None,
) -> BacktestResult:
    """
    Replay signals against a cash account.

    BUY signals while a position is open and SELL signals while flat are
    ignored. A zero-price BUY is skipped.

    Args:
        data: The price points the signals were generated from
        signals: TradingSignals or any iterable of TradeSignal
        config: Capital, position size and commission (default from settings)

    Returns:
        BacktestResult; ``final_capital`` equals the initial capital plus
        the sum of every round trip's profit or loss
    """
    if isinstance(signals, TradingSignals):
        config = config or signals.config
        signals = signals.signals
    book = _Book(config or get_signal_config())

    for signal in signals:
        if signal.type == "BUY" and book.shares == 0 and signal.price > 0:
            book.buy(signal.date, signal.price, signal.reason)
        elif signal.type == "SELL" and book.shares > 0:
            book.sell(signal.date, signal.price, signal.reason)

    if book.shares > 0:
        points = sort_points(data)
        last = points[-1]
        book.sell(last.date, last.close, END_OF_PERIOD)

    result = book.result
    logger.debug(
        f"Backtest: {result.total_trades} round trips, return {result.total_return_pct:.2f}%"
    )
    return result
