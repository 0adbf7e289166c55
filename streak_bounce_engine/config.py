from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v not in (None, "") else default

def _env_bool(key: str, default: bool = True) -> bool:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    return v.strip().lower() not in ("0", "false", "no", "off")

def _env_symbols(key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    v = os.getenv(key)
    if v is None or v.strip() == "":
        return default
    return tuple(s.strip().upper() for s in v.split(",") if s.strip())

DEFAULT_UNIVERSE: Tuple[str, ...] = (
    "AAPL", "MSFT", "AMZN", "NVDA", "GOOGL", "META", "TSLA", "BRK.B", "JPM", "V",
    "UNH", "XOM", "JNJ", "PG", "MA", "HD", "CVX", "LLY", "ABBV", "MRK",
)

@dataclass(frozen=True)
class EngineConfig:
    # Data provider: alphavantage | sqlite | csv
    provider: str = _env_str("STREAK_PROVIDER", "alphavantage")
    alpha_vantage_api_key: str = _env_str("ALPHA_VANTAGE_API_KEY", "")
    alpha_vantage_url: str = _env_str("ALPHA_VANTAGE_URL", "https://www.alphavantage.co/query")
    http_timeout_sec: float = _env_float("STREAK_HTTP_TIMEOUT_SEC", 15.0)
    db_path: str = _env_str("STOCK_DB_PATH", "market_data.db")
    table: str = _env_str("STOCK_DB_TABLE", "daily_price")
    csv_dir: str = _env_str("STREAK_CSV_DIR", "data")

    # Red-streak analysis
    streak_length: int = _env_int("STREAK_LENGTH", 3)
    lookback_days: int = _env_int("STREAK_LOOKBACK_DAYS", 252)
    max_probability_streak: int = _env_int("STREAK_MAX_PROBABILITY_STREAK", 5)
    recent_bars: int = _env_int("STREAK_RECENT_BARS", 20)

    # Opportunity thresholds
    min_streak: int = _env_int("STREAK_MIN_STREAK", 2)
    min_probability: float = _env_float("STREAK_MIN_PROBABILITY", 60.0)

    # Backtest
    hold_days: int = _env_int("STREAK_HOLD_DAYS", 1)
    initial_capital: float = _env_float("STREAK_INITIAL_CAPITAL", 10000.0)
    recent_trades_limit: int = _env_int("STREAK_RECENT_TRADES", 20)
    portfolio_trades_limit: int = _env_int("STREAK_PORTFOLIO_TRADES", 30)

    # Provider pacing: 75 calls/minute plan -> 0.8s between calls
    rate_limit_sec: float = _env_float("STREAK_RATE_LIMIT_SEC", 0.8)

    # Caching is done by the HTTP layer, never by the analytics
    cache_ttl_sec: float = _env_float("STREAK_CACHE_TTL_SEC", 3600.0)
    market_scan_ttl_sec: float = _env_float("STREAK_MARKET_SCAN_TTL_SEC", 4 * 3600.0)
    market_scan_background: bool = _env_bool("STREAK_MARKET_SCAN_BACKGROUND", True)

    universe: Tuple[str, ...] = _env_symbols("STREAK_UNIVERSE", DEFAULT_UNIVERSE)
