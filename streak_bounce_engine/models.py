"""Records produced by the engine.

Every record is a frozen dataclass and knows how to turn itself into plain
JSON-serializable values (``to_dict``) using the camelCase field names the
HTTP layer and the web client read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

@dataclass(frozen=True)
class Bar:
    """One trading day."""

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

# Ordered most-recent-first: series[0] is the latest bar.
PriceSeries = Tuple[Bar, ...]

@dataclass(frozen=True)
class ProbabilityRecord:
    probability: float = 0.0
    occurrences: int = 0
    successes: int = 0

    @property
    def insufficient_history(self) -> bool:
        return self.occurrences == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probability": self.probability,
            "occurrences": self.occurrences,
            "successes": self.successes,
            "insufficientHistory": self.insufficient_history,
        }

@dataclass(frozen=True)
class MoveStatistics:
    average: float = 0.0
    positive_average: float = 0.0
    negative_average: float = 0.0
    samples: int = 0

    @property
    def insufficient_history(self) -> bool:
        return self.samples == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average": self.average,
            "positiveAverage": self.positive_average,
            "negativeAverage": self.negative_average,
            "samples": self.samples,
            "insufficientHistory": self.insufficient_history,
        }

@dataclass(frozen=True)
class AnalysisRecord:
    symbol: str
    current_price: float
    current_streak: int
    as_of_date: date
    probabilities: Dict[int, ProbabilityRecord]
    move_statistics: MoveStatistics
    recent_bars: Tuple[Bar, ...]
    streak_length: int = 3
    lookback_days: int = 252

    def probability_at_current_streak(self) -> Optional[ProbabilityRecord]:
        return self.probabilities.get(self.current_streak)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "currentPrice": self.current_price,
            "currentStreak": self.current_streak,
            "asOfDate": self.as_of_date.isoformat(),
            "streakLength": self.streak_length,
            "lookbackDays": self.lookback_days,
            "probabilities": {str(k): v.to_dict() for k, v in sorted(self.probabilities.items())},
            "moveStatistics": self.move_statistics.to_dict(),
            "recentBars": [b.to_dict() for b in self.recent_bars],
        }

@dataclass(frozen=True)
class Trade:
    entry_date: date
    exit_date: date
    entry_price: float
    exit_price: float
    return_percent: float
    running_capital: float
    symbol: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.symbol is not None:
            out["symbol"] = self.symbol
        out.update({
            "entryDate": self.entry_date.isoformat(),
            "exitDate": self.exit_date.isoformat(),
            "entryPrice": self.entry_price,
            "exitPrice": self.exit_price,
            "returnPercent": self.return_percent,
            "runningCapital": self.running_capital,
        })
        return out

@dataclass(frozen=True)
class BacktestResult:
    trades: Tuple[Trade, ...]
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_return: float
    initial_capital: float
    final_capital: float
    total_return: float
    streak_length: int
    lookback_days: int
    hold_days: int
    symbol: Optional[str] = None

    def to_dict(self, trades_limit: Optional[int] = None) -> Dict[str, Any]:
        trades = self.trades if trades_limit is None else self.trades[: int(trades_limit)]
        return {
            "symbol": self.symbol,
            "streakLength": self.streak_length,
            "lookbackDays": self.lookback_days,
            "holdDays": self.hold_days,
            "initialCapital": self.initial_capital,
            "totalTrades": self.total_trades,
            "winningTrades": self.winning_trades,
            "losingTrades": self.losing_trades,
            "winRate": self.win_rate,
            "avgReturn": self.avg_return,
            "finalCapital": self.final_capital,
            "totalReturn": self.total_return,
            "trades": [t.to_dict() for t in trades],
        }

@dataclass(frozen=True)
class StockResult:
    """Per-symbol line of a portfolio run; ``error`` marks a placeholder."""

    symbol: str
    initial_capital: float
    final_capital: float
    total_return: float
    total_trades: int = 0
    win_rate: float = 0.0
    avg_return: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "symbol": self.symbol,
            "initialCapital": self.initial_capital,
            "finalCapital": self.final_capital,
            "totalReturn": self.total_return,
            "totalTrades": self.total_trades,
            "winRate": self.win_rate,
            "avgReturn": self.avg_return,
        }
        if self.error is not None:
            out["error"] = self.error
        return out

@dataclass(frozen=True)
class PortfolioResult:
    symbols: Tuple[str, ...]
    initial_capital: float
    final_capital: float
    total_return: float
    average_stock_return: float
    stock_results: Tuple[StockResult, ...]
    trades: Tuple[Trade, ...]
    streak_length: int
    lookback_days: int
    hold_days: int
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    allocations: Dict[str, float] = field(default_factory=dict)

    @property
    def total_trades(self) -> int:
        return len(self.trades)

    def to_dict(self, trades_limit: Optional[int] = None) -> Dict[str, Any]:
        trades: List[Trade] = list(self.trades if trades_limit is None else self.trades[: int(trades_limit)])
        return {
            "portfolio": {
                "symbols": list(self.symbols),
                "initialCapital": self.initial_capital,
                "finalCapital": self.final_capital,
                "totalReturn": self.total_return,
                "averageStockReturn": self.average_stock_return,
                "allocations": dict(self.allocations),
            },
            "settings": {
                "streakLength": self.streak_length,
                "holdDays": self.hold_days,
                "lookbackDays": self.lookback_days,
            },
            "stockResults": [r.to_dict() for r in self.stock_results],
            "trades": [t.to_dict() for t in trades],
            "summary": {
                "totalTrades": self.total_trades,
                "winningTrades": self.winning_trades,
                "losingTrades": self.losing_trades,
                "winRate": self.win_rate,
            },
        }
