from __future__ import annotations

from typing import Optional, Sequence
import numpy as np

from .models import PriceSeries
from .series import closes, volumes

def rsi_sma(values: Sequence[float], period: int = 14) -> np.ndarray:
    """RSI using simple average of the last `period` gains/losses.

    `values` are chronological (oldest first). Returns array with NaN for the
    first `period` bars where RSI is undefined, and 100 whenever the window
    has no losses (flat included).

    Note:
      - This uses a simple moving average (SMA) of gains/losses, not Wilder's RMA.
    """
    c = np.asarray(values, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if n < period + 1 or period <= 0:
        return out

    d = np.diff(c)
    gains = np.clip(d, 0, None)
    losses = np.clip(-d, 0, None)

    # map diffs (len n-1) to indices 1..n-1
    g = np.zeros(n, dtype=float)
    l = np.zeros(n, dtype=float)
    g[1:] = gains
    l[1:] = losses

    gsum = np.cumsum(g)
    lsum = np.cumsum(l)

    for i in range(period, n):
        g_avg = (gsum[i] - gsum[i - period]) / period
        l_avg = (lsum[i] - lsum[i - period]) / period
        if l_avg == 0.0:
            out[i] = 100.0
        else:
            rs = g_avg / l_avg
            out[i] = 100.0 - (100.0 / (1.0 + rs))
    return out

def latest_rsi(series: PriceSeries, bars: int = 14) -> float:
    """RSI over the `bars` most recent closes (bars-1 day-over-day changes).

    Fewer than `bars` bars gives the neutral 50.
    """
    if len(series) < bars or bars < 2:
        return 50.0
    c = closes(series)[:bars][::-1]
    return float(rsi_sma(c, bars - 1)[-1])

def day_change_pct(series: PriceSeries) -> Optional[float]:
    """Latest close vs. the previous close, in percent."""
    if len(series) < 2:
        return None
    cur, prev = series[0].close, series[1].close
    return (cur - prev) / prev * 100.0

def volume_multiplier(series: PriceSeries, window: int = 20) -> Optional[float]:
    """Latest volume over the mean volume of the previous `window - 1` bars."""
    if len(series) < window:
        return None
    v = volumes(series)[:window]
    avg = float(v[1:].mean())
    if avg <= 0:
        # no trading in the window: any volume today is an unbounded spike
        return float("inf") if v[0] > 0 else None
    return float(v[0] / avg)
