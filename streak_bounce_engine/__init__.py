"""Red-streak bounce engine (daily bars, LONG only).

Core idea:
- A red streak is a run of consecutive lower daily closes.
- For each streak length, scan the lookback window for past streaks and
  measure how often the next trading day closed higher (bounce probability)
  and by how much (move statistics).
- Rank symbols currently on a streak by the bounce probability observed at
  their own streak length.
- Backtest: buy the close of the day after an N-day streak, sell the close
  `hold_days` later; single stock or an equal/weighted basket.
"""

__all__ = [
    "config",
    "errors",
    "models",
    "series",
    "streaks",
    "patterns",
    "analyzer",
    "ranker",
    "backtester",
    "providers",
    "ratelimit",
    "cache",
    "indicators",
    "alerts",
    "db",
]
