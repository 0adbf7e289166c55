from __future__ import annotations

class EngineError(Exception):
    """Base class for every error raised by the engine."""

class DataUnavailable(EngineError):
    """The data provider could not return a price series for a symbol."""

    def __init__(self, symbol: str, reason: str = "no data"):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{symbol}: {reason}")

class InsufficientHistory(DataUnavailable):
    """A series has no bars at all, so there is nothing to analyze.

    Short-but-nonempty histories never raise; the statistics degrade to the
    zero-occurrence / zero-sample records instead.
    """

    def __init__(self, symbol: str, n_bars: int = 0):
        self.n_bars = n_bars
        super().__init__(symbol, f"insufficient history ({n_bars} bars)")

class InvalidParameters(EngineError, ValueError):
    """Rejected settings, raised before any computation starts."""
