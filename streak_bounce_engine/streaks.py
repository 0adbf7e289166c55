from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .models import PriceSeries
from .series import closes as _closes

Closes = Union[PriceSeries, Sequence[float], np.ndarray]

def as_closes(data: Closes) -> np.ndarray:
    """Accept a PriceSeries or raw closes (both most-recent-first)."""
    if isinstance(data, np.ndarray):
        return data.astype(float, copy=False)
    if len(data) and hasattr(data[0], "close"):
        return _closes(data)  # type: ignore[arg-type]
    return np.asarray(data, dtype=float)

def down_days(c: np.ndarray) -> np.ndarray:
    """down[k] is True when close[k] < close[k+1] (a red day vs. the day before).

    Length is len(c) - 1; the oldest bar has no predecessor.
    """
    c = np.asarray(c, dtype=float)
    if len(c) < 2:
        return np.zeros(0, dtype=bool)
    return c[:-1] < c[1:]

def current_streak(series: Closes) -> int:
    """Consecutive strictly lower closes ending at the most recent bar."""
    down = down_days(as_closes(series))
    if not len(down) or not down[0]:
        return 0
    ups = np.flatnonzero(~down)
    return int(ups[0]) if len(ups) else int(len(down))

def red_streak_ends(c: np.ndarray, streak_length: int, start: int, stop: int) -> np.ndarray:
    """Indices i in [start, stop) where a red streak of `streak_length` days ends at i.

    "Ends at i" in most-recent-first terms: down[i-j] holds for every
    j in 0..streak_length-1, so bars i-streak_length+1 .. i each closed below
    the bar after them in the array. Indices whose window would leave the
    array are never returned.
    """
    n = int(streak_length)
    down = down_days(c)
    start = max(int(start), n - 1, 0)
    stop = min(int(stop), len(down))
    if n <= 0 or stop <= start:
        return np.zeros(0, dtype=int)

    # run[k]: consecutive down days starting at k and extending to older bars
    run = np.zeros(len(down), dtype=int)
    count = 0
    for k in range(len(down) - 1, -1, -1):
        count = count + 1 if down[k] else 0
        run[k] = count

    idx = np.arange(start, stop)
    # all of down[i-n+1 .. i] is equivalent to run[i-n+1] >= n
    ok = run[idx - n + 1] >= n
    return idx[ok]
