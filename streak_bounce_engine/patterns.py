"""Historical red-streak pattern statistics.

Both statistics rescan the lookback window from scratch on every call:

    window   = the most recent min(lookback_days, len(series)) bars
    streak   = red streak of `streak_length` days ending at index i,
               for streak_length <= i <= len(window) - 2
    follow   = bar i - streak_length (the next trading day after the streak)
    last red = bar i - streak_length + 1

A follow-on close above the last red close counts as a bounce.
"""

from __future__ import annotations

from typing import Dict, Iterable

import numpy as np

from .errors import InvalidParameters
from .models import MoveStatistics, ProbabilityRecord
from .streaks import Closes, as_closes, red_streak_ends

def check_params(streak_length: int, lookback_days: int) -> None:
    if int(streak_length) < 1:
        raise InvalidParameters(f"streak_length must be >= 1 (got {streak_length})")
    if int(lookback_days) < 1:
        raise InvalidParameters(f"lookback_days must be >= 1 (got {lookback_days})")

def follow_on_moves(series: Closes, streak_length: int, lookback_days: int = 252) -> np.ndarray:
    """Signed % move of the follow-on close vs. the last red close, per occurrence."""
    check_params(streak_length, lookback_days)
    c = as_closes(series)
    window = c[: min(int(lookback_days), len(c))]
    n = int(streak_length)

    ends = red_streak_ends(window, n, start=n, stop=len(window) - 1)
    if not len(ends):
        return np.zeros(0, dtype=float)

    follow = window[ends - n]
    last_red = window[ends - n + 1]
    return (follow - last_red) / last_red * 100.0

def bounce_probability(series: Closes, streak_length: int, lookback_days: int = 252) -> ProbabilityRecord:
    moves = follow_on_moves(series, streak_length, lookback_days)
    occurrences = int(len(moves))
    if occurrences == 0:
        return ProbabilityRecord()
    successes = int((moves > 0).sum())
    return ProbabilityRecord(
        probability=successes / occurrences * 100.0,
        occurrences=occurrences,
        successes=successes,
    )

def move_statistics(series: Closes, streak_length: int, lookback_days: int = 252) -> MoveStatistics:
    moves = follow_on_moves(series, streak_length, lookback_days)
    if not len(moves):
        return MoveStatistics()
    pos = moves[moves > 0]
    neg = moves[moves < 0]
    return MoveStatistics(
        average=float(moves.mean()),
        positive_average=float(pos.mean()) if len(pos) else 0.0,
        negative_average=float(neg.mean()) if len(neg) else 0.0,
        samples=int(len(moves)),
    )

def probability_table(
    series: Closes,
    lookback_days: int = 252,
    streak_lengths: Iterable[int] = range(1, 6),
) -> Dict[int, ProbabilityRecord]:
    """Bounce probability for each streak length (1..5 by default)."""
    c = as_closes(series)
    return {int(n): bounce_probability(c, int(n), lookback_days) for n in streak_lengths}
