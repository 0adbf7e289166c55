"""PriceSeries adapter.

Normalizes whatever a provider hands back (Alpha Vantage JSON, a DataFrame,
a list of row mappings) into an immutable tuple of ``Bar`` ordered
most-recent-first.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, Mapping

import numpy as np
import pandas as pd

from .models import Bar, PriceSeries

AV_DAILY_KEY = "Time Series (Daily)"
AV_COLUMNS = {
    "1. open": "open",
    "2. high": "high",
    "3. low": "low",
    "4. close": "close",
    "5. volume": "volume",
}
COLUMNS = ["date", "open", "high", "low", "close", "volume"]

def series_from_frame(df: pd.DataFrame) -> PriceSeries:
    """DataFrame with date/open/high/low/close/volume columns -> PriceSeries.

    Column names are matched case-insensitively. Rows without a parsable date
    or close are dropped; duplicate dates keep the last row.
    """
    if df is None or df.empty:
        return ()

    if not any(str(c).strip().lower() == "date" for c in df.columns):
        df = df.reset_index()
    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})
    df = df.rename(columns={"index": "date", "timestamp": "date"})
    for c in COLUMNS:
        if c not in df.columns:
            df[c] = np.nan if c != "date" else None

    df = df[COLUMNS].copy()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    for c in ("open", "high", "low", "close", "volume"):
        df[c] = pd.to_numeric(df[c], errors="coerce")
    df = df.dropna(subset=["date", "close"])
    df = df.drop_duplicates(subset=["date"], keep="last")
    df = df.sort_values("date", ascending=False)

    # Missing O/H/L fall back to the close; missing volume to 0
    for c in ("open", "high", "low"):
        df[c] = df[c].fillna(df["close"])
    df["volume"] = df["volume"].fillna(0)

    return tuple(
        Bar(
            date=ts.date(),
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            volume=int(v),
        )
        for ts, o, h, l, c, v in df.itertuples(index=False, name=None)
    )

def parse_alpha_vantage(payload: Mapping[str, Any]) -> PriceSeries:
    """Alpha Vantage TIME_SERIES_DAILY payload -> PriceSeries."""
    ts: Dict[str, Dict[str, str]] = dict(payload.get(AV_DAILY_KEY) or {})
    if not ts:
        return ()
    df = pd.DataFrame.from_dict(ts, orient="index")
    df.index.name = "date"
    df = df.reset_index().rename(columns=AV_COLUMNS)
    return series_from_frame(df)

def series_from_records(rows: Iterable[Mapping[str, Any]]) -> PriceSeries:
    """List of ``{"date", "open", ..., "volume"}`` mappings -> PriceSeries."""
    return series_from_frame(pd.DataFrame(list(rows)))

def series_from_closes(closes: Iterable[float], end: date | None = None) -> PriceSeries:
    """Build a series from closes alone (most-recent-first), one business day apart.

    Open/high/low are set to the close and volume to 0. Handy for fixtures and
    for callers that only track closing prices.
    """
    values = [float(c) for c in closes]
    if not values:
        return ()
    end_ts = pd.Timestamp(end or date.today())
    dates = pd.bdate_range(end=end_ts, periods=len(values))[::-1]
    return tuple(
        Bar(date=d.date(), open=c, high=c, low=c, close=c, volume=0)
        for d, c in zip(dates, values)
    )

def closes(series: PriceSeries) -> np.ndarray:
    """Close prices as a float array, in series order (most-recent-first)."""
    return np.asarray([b.close for b in series], dtype=float)

def volumes(series: PriceSeries) -> np.ndarray:
    return np.asarray([b.volume for b in series], dtype=float)
