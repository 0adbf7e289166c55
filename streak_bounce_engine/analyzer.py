from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .backtester import backtest as _backtest
from .backtester import check_settings, normalize_symbols, portfolio_backtest as _portfolio_backtest
from .config import EngineConfig
from .errors import InsufficientHistory
from .models import AnalysisRecord, BacktestResult, PortfolioResult, PriceSeries
from .patterns import check_params, move_statistics, probability_table
from .providers import DataProvider
from .ranker import find_opportunities, scan_metrics
from .ratelimit import RateLimiter
from .streaks import current_streak

def analyze_series(
    symbol: str,
    series: PriceSeries,
    streak_length: int = 3,
    lookback_days: int = 252,
    *,
    max_probability_streak: int = 5,
    recent_bars: int = 20,
) -> AnalysisRecord:
    """Build an AnalysisRecord from an already-fetched series (no I/O)."""
    check_params(streak_length, lookback_days)
    if not series:
        raise InsufficientHistory(symbol, 0)

    return AnalysisRecord(
        symbol=symbol,
        current_price=float(series[0].close),
        current_streak=current_streak(series),
        as_of_date=series[0].date,
        # always 1..max, independent of the requested streak length
        probabilities=probability_table(series, lookback_days, range(1, int(max_probability_streak) + 1)),
        move_statistics=move_statistics(series, streak_length, lookback_days),
        recent_bars=tuple(series[: int(recent_bars)]),
        streak_length=int(streak_length),
        lookback_days=int(lookback_days),
    )

class StockAnalyzer:
    """Fetches series through a provider and runs the analytics on them.

    Every provider call goes through the rate limiter, so batch runs stay under
    the provider's calls-per-minute ceiling. Batch methods process symbols one
    at a time and skip (log) symbols that fail.
    """

    def __init__(
        self,
        provider: DataProvider,
        cfg: Optional[EngineConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.provider = provider
        self.cfg = cfg or EngineConfig()
        self.rate_limiter = rate_limiter or RateLimiter(self.cfg.rate_limit_sec)

    def fetch(self, symbol: str, size: str = "full") -> PriceSeries:
        self.rate_limiter.wait()
        return self.provider.fetch_daily_series(symbol, size)

    def analyze(self, symbol: str, streak_length: int = 3, lookback_days: int = 252) -> AnalysisRecord:
        check_params(streak_length, lookback_days)
        series = self.fetch(symbol, "full")
        return analyze_series(
            symbol,
            series,
            streak_length,
            lookback_days,
            max_probability_streak=self.cfg.max_probability_streak,
            recent_bars=self.cfg.recent_bars,
        )

    def analyze_many(
        self,
        symbols: Iterable[str],
        streak_length: int = 3,
        lookback_days: int = 252,
    ) -> List[AnalysisRecord]:
        check_params(streak_length, lookback_days)
        syms = normalize_symbols(symbols)
        out: List[AnalysisRecord] = []
        for k, sym in enumerate(syms, start=1):
            logging.info("Analyzing %s (%d/%d)", sym, k, len(syms))
            try:
                out.append(self.analyze(sym, streak_length, lookback_days))
            except Exception:
                logging.exception("Failed to analyze %s", sym)
        return out

    def opportunities(
        self,
        symbols: Iterable[str],
        streak_length: int = 3,
        min_streak: Optional[int] = None,
        min_probability: Optional[float] = None,
    ) -> Dict[str, Any]:
        records = self.analyze_many(symbols, streak_length)
        picked = find_opportunities(
            records,
            self.cfg.min_streak if min_streak is None else min_streak,
            self.cfg.min_probability if min_probability is None else min_probability,
        )
        return {
            "opportunities": [r.to_dict() for r in picked],
            "allResults": [r.to_dict() for r in records],
            "totalAnalyzed": len(records),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def quick_scan(self, symbols: Iterable[str], limit: int = 10) -> Dict[str, Any]:
        top = list(normalize_symbols(symbols))[: max(0, int(limit))]
        out = self.opportunities(top, self.cfg.streak_length)
        out["totalScanned"] = len(top)
        return out

    def market_scan(
        self,
        symbols: Iterable[str],
        streak_length: int = 3,
        lookback_days: int = 252,
    ) -> Dict[str, Any]:
        """Analyze every symbol and attach the ranking metrics to each record."""
        syms = normalize_symbols(symbols)
        logging.info("Starting full market scan (%d symbols)", len(syms))
        start = time.monotonic()

        results: List[Dict[str, Any]] = []
        for rec in self.analyze_many(syms, streak_length, lookback_days):
            row = rec.to_dict()
            row["metrics"] = scan_metrics(rec)
            results.append(row)

        elapsed = time.monotonic() - start
        logging.info("Market scan complete. Scanned %d/%d stocks in %.1fs", len(results), len(syms), elapsed)
        return {
            "results": results,
            "scanTime": elapsed,
            "totalScanned": len(results),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def backtest(
        self,
        symbol: str,
        streak_length: int = 3,
        lookback_days: int = 252,
        hold_days: int = 1,
        initial_capital: float = 10000.0,
    ) -> BacktestResult:
        check_settings(streak_length, lookback_days, hold_days, initial_capital)
        series = self.fetch(symbol, "full")
        return _backtest(series, streak_length, lookback_days, hold_days, initial_capital, symbol=symbol)

    def portfolio_backtest(
        self,
        symbols: Iterable[str],
        streak_length: int = 3,
        lookback_days: int = 252,
        hold_days: int = 1,
        initial_capital: float = 10000.0,
        weights: Optional[Mapping[str, float]] = None,
    ) -> PortfolioResult:
        return _portfolio_backtest(
            symbols,
            self.fetch,
            streak_length=streak_length,
            lookback_days=lookback_days,
            hold_days=hold_days,
            initial_capital=initial_capital,
            weights=weights,
        )
