"""Daily price providers.

Every provider returns a PriceSeries ordered most-recent-first and raises
DataUnavailable instead of handing back an empty series.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd
import requests

from .config import EngineConfig
from .db import fetch_bars
from .errors import DataUnavailable, InvalidParameters
from .models import PriceSeries
from .series import parse_alpha_vantage, series_from_frame, series_from_records

COMPACT_BARS = 100
SIZES = ("compact", "full")

def _check_size(size: str) -> str:
    if size not in SIZES:
        raise InvalidParameters(f"size must be one of {SIZES} (got {size!r})")
    return size

class DataProvider(ABC):
    name = "base"

    @abstractmethod
    def fetch_daily_series(self, symbol: str, size: str = "compact") -> PriceSeries:
        """Daily bars for `symbol`, most recent first."""
        raise NotImplementedError

    def _require(self, symbol: str, series: PriceSeries) -> PriceSeries:
        if not series:
            raise DataUnavailable(symbol, f"{self.name}: empty series")
        logging.info("%s: most recent data from %s (%d bars)", symbol, series[0].date.isoformat(), len(series))
        return series

class AlphaVantageProvider(DataProvider):
    """TIME_SERIES_DAILY from Alpha Vantage."""

    name = "alphavantage"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.alphavantage.co/query",
        timeout: float = 15.0,
        session: Optional[Any] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = float(timeout)
        self.session = session

    def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        http = self.session or requests
        try:
            resp = http.get(self.base_url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DataUnavailable(params["symbol"], f"request failed: {exc}") from exc
        if resp.status_code != 200:
            raise DataUnavailable(params["symbol"], f"HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise DataUnavailable(params["symbol"], "invalid JSON response") from exc

    def fetch_daily_series(self, symbol: str, size: str = "compact") -> PriceSeries:
        _check_size(size)
        if not self.api_key:
            raise DataUnavailable(symbol, "ALPHA_VANTAGE_API_KEY is not set")

        data = self._get({
            "function": "TIME_SERIES_DAILY",
            "symbol": symbol,
            "outputsize": size,
            "apikey": self.api_key,
        })
        if "Error Message" in data:
            raise DataUnavailable(symbol, str(data["Error Message"]))
        for key in ("Note", "Information"):
            # Alpha Vantage reports throttling as a 200 with a note and no series
            if key in data and "Time Series (Daily)" not in data:
                raise DataUnavailable(symbol, f"rate limited: {data[key]}")

        return self._require(symbol, parse_alpha_vantage(data))

class SQLiteProvider(DataProvider):
    """Reads a local `daily_price(code, date, open, high, low, close, volume)` table."""

    name = "sqlite"

    def __init__(self, db_path: str, table: str = "daily_price"):
        self.db_path = db_path
        self.table = table

    def fetch_daily_series(self, symbol: str, size: str = "compact") -> PriceSeries:
        limit = COMPACT_BARS if _check_size(size) == "compact" else None
        try:
            rows = fetch_bars(self.db_path, symbol, table=self.table, limit=limit)
        except Exception as exc:
            raise DataUnavailable(symbol, f"sqlite read failed: {exc}") from exc
        return self._require(symbol, series_from_records(rows))

class CsvProvider(DataProvider):
    """One `<SYMBOL>.csv` per symbol with date,open,high,low,close,volume columns."""

    name = "csv"

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def fetch_daily_series(self, symbol: str, size: str = "compact") -> PriceSeries:
        _check_size(size)
        path = self.directory / f"{symbol.upper()}.csv"
        if not path.exists():
            raise DataUnavailable(symbol, f"no csv at {path}")
        try:
            df = pd.read_csv(path)
        except Exception as exc:
            raise DataUnavailable(symbol, f"csv read failed: {exc}") from exc
        series = series_from_frame(df)
        if size == "compact":
            series = series[:COMPACT_BARS]
        return self._require(symbol, series)

def make_provider(cfg: EngineConfig) -> DataProvider:
    kind = (cfg.provider or "").strip().lower()
    if kind == "alphavantage":
        return AlphaVantageProvider(cfg.alpha_vantage_api_key, base_url=cfg.alpha_vantage_url, timeout=cfg.http_timeout_sec)
    if kind == "sqlite":
        return SQLiteProvider(cfg.db_path, table=cfg.table)
    if kind == "csv":
        return CsvProvider(cfg.csv_dir)
    raise InvalidParameters(f"unknown provider: {cfg.provider!r}")
