from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidParameters
from .models import BacktestResult, PortfolioResult, PriceSeries, StockResult, Trade
from .series import closes
from .streaks import red_streak_ends

def check_settings(streak_length: int, lookback_days: int, hold_days: int, initial_capital: float) -> None:
    if int(streak_length) < 1:
        raise InvalidParameters(f"streak_length must be >= 1 (got {streak_length})")
    if int(lookback_days) < 1:
        raise InvalidParameters(f"lookback_days must be >= 1 (got {lookback_days})")
    if int(hold_days) < 1:
        raise InvalidParameters(f"hold_days must be >= 1 (got {hold_days})")
    if not float(initial_capital) > 0:
        raise InvalidParameters(f"initial_capital must be > 0 (got {initial_capital})")

def _pct(rets: np.ndarray, mask: np.ndarray) -> float:
    return float(mask.sum() / len(rets) * 100.0) if len(rets) else 0.0

def simulate_red_streak_long(
    series: PriceSeries,
    *,
    streak_length: int,
    lookback_days: int,
    hold_days: int,
    initial_capital: float,
    symbol: Optional[str] = None,
) -> BacktestResult:
    """Buy the close of the first day after a red streak, sell `hold_days` later.

    The series is most-recent-first. For a streak ending at index i
    (bars i-streak_length+1 .. i all red):
      - entry = close[i - streak_length]               (next trading day)
      - exit  = close[i - streak_length - hold_days]   (hold_days later)

    Candidates run from i = streak_length + hold_days up to
    min(lookback_days, len(series)) - 1, never past the second-oldest bar
    because the streak test reads close[i + 1].

    Capital compounds trade by trade in scan order (newest entry first):
      capital *= 1 + ret/100
    """
    check_settings(streak_length, lookback_days, hold_days, initial_capital)
    n = int(streak_length)
    hold = int(hold_days)
    c = closes(series)

    ends = red_streak_ends(c, n, start=n + hold, stop=min(int(lookback_days), len(c)))
    entry_idx = ends - n
    exit_idx = entry_idx - hold

    entry = c[entry_idx]
    exit_ = c[exit_idx]
    rets = (exit_ - entry) / entry * 100.0

    capital = float(initial_capital)
    trades: List[Trade] = []
    for k in range(len(rets)):
        ret = float(rets[k])
        capital *= 1.0 + ret / 100.0
        trades.append(Trade(
            symbol=symbol,
            entry_date=series[int(entry_idx[k])].date,
            exit_date=series[int(exit_idx[k])].date,
            entry_price=float(entry[k]),
            exit_price=float(exit_[k]),
            return_percent=ret,
            running_capital=capital,
        ))

    return BacktestResult(
        symbol=symbol,
        trades=tuple(trades),
        total_trades=len(trades),
        winning_trades=int((rets > 0).sum()),
        losing_trades=int((rets < 0).sum()),
        win_rate=_pct(rets, rets > 0),
        avg_return=float(rets.mean()) if len(rets) else 0.0,
        initial_capital=float(initial_capital),
        final_capital=capital,
        total_return=(capital - float(initial_capital)) / float(initial_capital) * 100.0,
        streak_length=n,
        lookback_days=int(lookback_days),
        hold_days=hold,
    )

def backtest(
    series: PriceSeries,
    streak_length: int = 3,
    lookback_days: int = 252,
    hold_days: int = 1,
    initial_capital: float = 10000.0,
    symbol: Optional[str] = None,
) -> BacktestResult:
    return simulate_red_streak_long(
        series,
        streak_length=streak_length,
        lookback_days=lookback_days,
        hold_days=hold_days,
        initial_capital=initial_capital,
        symbol=symbol,
    )

def normalize_symbols(symbols: Iterable[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for s in symbols or ():
        sym = str(s or "").strip().upper()
        if sym and sym not in out:
            out.append(sym)
    return tuple(out)

def allocate_capital(
    symbols: Sequence[str],
    initial_capital: float,
    weights: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """Split capital across symbols: equal by default, else by normalized weights."""
    if not symbols:
        raise InvalidParameters("at least one symbol is required")
    total = float(initial_capital)
    if not weights:
        return {s: total / len(symbols) for s in symbols}

    try:
        w = {str(k).strip().upper(): float(v) for k, v in weights.items()}
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(f"weights must be numbers: {exc}") from exc
    missing = [s for s in symbols if s not in w]
    if missing:
        raise InvalidParameters(f"missing weights for: {', '.join(missing)}")
    if any(w[s] <= 0 for s in symbols):
        raise InvalidParameters("weights must be positive")
    wsum = sum(w[s] for s in symbols)
    return {s: total * w[s] / wsum for s in symbols}

def portfolio_backtest(
    symbols: Iterable[str],
    fetch: Callable[[str], PriceSeries],
    *,
    streak_length: int = 3,
    lookback_days: int = 252,
    hold_days: int = 1,
    initial_capital: float = 10000.0,
    weights: Optional[Mapping[str, float]] = None,
) -> PortfolioResult:
    """Run the single-stock rule independently on each symbol's slice of capital.

    `fetch` returns the symbol's series (and may raise). A failed symbol keeps
    its allocation untouched as a zero-return placeholder.
    """
    syms = normalize_symbols(symbols)
    if not syms:
        raise InvalidParameters("Please provide at least one stock symbol")
    check_settings(streak_length, lookback_days, hold_days, initial_capital)
    allocations = allocate_capital(syms, initial_capital, weights)

    stock_results: List[StockResult] = []
    all_trades: List[Trade] = []
    for sym in syms:
        alloc = allocations[sym]
        try:
            series = fetch(sym)
            res = simulate_red_streak_long(
                series,
                streak_length=streak_length,
                lookback_days=lookback_days,
                hold_days=hold_days,
                initial_capital=alloc,
                symbol=sym,
            )
        except Exception as exc:
            logging.warning("portfolio backtest failed for %s: %s", sym, exc)
            stock_results.append(StockResult(
                symbol=sym,
                initial_capital=alloc,
                final_capital=alloc,
                total_return=0.0,
                error=str(exc),
            ))
            continue

        stock_results.append(StockResult(
            symbol=sym,
            initial_capital=alloc,
            final_capital=res.final_capital,
            total_return=res.total_return,
            total_trades=res.total_trades,
            win_rate=res.win_rate,
            avg_return=res.avg_return,
        ))
        all_trades.extend(res.trades)

    all_trades.sort(key=lambda t: t.entry_date, reverse=True)
    rets = np.asarray([t.return_percent for t in all_trades], dtype=float)

    total_final = float(sum(r.final_capital for r in stock_results))
    ok = [r for r in stock_results if r.error is None]
    return PortfolioResult(
        symbols=syms,
        initial_capital=float(initial_capital),
        final_capital=total_final,
        total_return=(total_final - float(initial_capital)) / float(initial_capital) * 100.0,
        average_stock_return=float(np.mean([r.total_return for r in ok])) if ok else 0.0,
        stock_results=tuple(stock_results),
        trades=tuple(all_trades),
        streak_length=int(streak_length),
        lookback_days=int(lookback_days),
        hold_days=int(hold_days),
        winning_trades=int((rets > 0).sum()),
        losing_trades=int((rets < 0).sum()),
        win_rate=_pct(rets, rets > 0),
        allocations=allocations,
    )
