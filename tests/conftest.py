from datetime import date
from typing import Dict, List, Sequence

import pytest

from streak_bounce_engine.analyzer import StockAnalyzer
from streak_bounce_engine.config import EngineConfig
from streak_bounce_engine.errors import DataUnavailable
from streak_bounce_engine.models import PriceSeries
from streak_bounce_engine.providers import DataProvider
from streak_bounce_engine.ratelimit import RateLimiter
from streak_bounce_engine.series import series_from_closes


class FakeClock:
    """Manual clock; sleeping advances it instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, sec: float) -> None:
        self.sleeps.append(sec)
        self.now += sec


class FakeProvider(DataProvider):
    name = "fake"

    def __init__(self, closes_by_symbol: Dict[str, Sequence[float]], end: date = date(2024, 3, 29)):
        self.series = {s: series_from_closes(c, end=end) for s, c in closes_by_symbol.items()}
        self.calls: List[tuple] = []

    def fetch_daily_series(self, symbol: str, size: str = "compact") -> PriceSeries:
        self.calls.append((symbol, size))
        if symbol not in self.series:
            raise DataUnavailable(symbol, "unknown symbol")
        return self.series[symbol]


# Most-recent-first closes used across tests.
# DOWN3: on a 4-day red streak right now; one past 3-day streak, which did not bounce.
# FLAT_UP: every close above the one before it. CHOPPY: 3-day streak now, 4 of 5 past ones bounced.
DOWN3 = [90, 91, 92, 93, 94, 89, 88, 87, 95, 96]
FLAT_UP = [110, 109, 108, 107, 106, 105, 104, 103, 102, 101, 100]
CHOPPY = [
    100, 101, 102, 103, 99, 100, 101, 97, 98, 99, 100, 96,
    98, 99, 100, 95, 96, 97, 98, 94, 95, 96, 97, 98, 93,
]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider({"DOWN": DOWN3, "UP": FLAT_UP, "CHOP": CHOPPY})


@pytest.fixture
def cfg():
    return EngineConfig(provider="csv", rate_limit_sec=0.8)


@pytest.fixture
def analyzer(provider, cfg, clock):
    return StockAnalyzer(provider, cfg, RateLimiter(cfg.rate_limit_sec, clock=clock, sleep=clock.sleep))
