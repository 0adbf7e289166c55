"""Alert condition checks.

An alert is a plain mapping, the same shape the web client posts:

    {"name": ..., "symbol": "AAPL", "alertType": "streak",
     "conditions": {"streakLength": 3}}

`evaluate_alert` fetches what it needs through a StockAnalyzer and returns an
AlertTrigger when the condition holds, else None. Storing alerts, scheduling
checks and delivering notifications are left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from .analyzer import StockAnalyzer
from .errors import InvalidParameters
from .indicators import day_change_pct, latest_rsi, volume_multiplier

ALERT_LOOKBACK_DAYS = 252
DEFAULT_STREAK = 3

@dataclass(frozen=True)
class AlertTrigger:
    reason: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "data": dict(self.data)}

def _cond(conditions: Mapping[str, Any], key: str) -> Any:
    if key not in conditions or conditions[key] is None:
        raise InvalidParameters(f"alert condition '{key}' is required")
    return conditions[key]

def _streak(analyzer: StockAnalyzer, symbol: str, cond: Mapping[str, Any]) -> Optional[AlertTrigger]:
    trigger = int(_cond(cond, "streakLength"))
    rec = analyzer.analyze(symbol, trigger, ALERT_LOOKBACK_DAYS)
    if rec.current_streak > 0 and rec.current_streak >= trigger:
        pr = rec.probability_at_current_streak()
        return AlertTrigger(
            f"{symbol} has {rec.current_streak} consecutive red days (trigger: {trigger})",
            {
                "currentStreak": rec.current_streak,
                "probability": pr.probability if pr is not None else None,
                "price": rec.current_price,
            },
        )
    return None

def _probability(analyzer: StockAnalyzer, symbol: str, cond: Mapping[str, Any]) -> Optional[AlertTrigger]:
    threshold = float(_cond(cond, "probability"))
    rec = analyzer.analyze(symbol, DEFAULT_STREAK, ALERT_LOOKBACK_DAYS)
    if rec.current_streak <= 0:
        return None
    pr = rec.probability_at_current_streak()
    prob = pr.probability if pr is not None else 0.0
    if prob >= threshold:
        return AlertTrigger(
            f"{symbol} bounce probability is {prob:.1f}% (trigger: >={threshold:g}%)",
            {"currentStreak": rec.current_streak, "probability": prob, "price": rec.current_price},
        )
    return None

def _gain(analyzer: StockAnalyzer, symbol: str, cond: Mapping[str, Any]) -> Optional[AlertTrigger]:
    threshold = float(_cond(cond, "gainPercentage"))
    rec = analyzer.analyze(symbol, DEFAULT_STREAK, ALERT_LOOKBACK_DAYS)
    if rec.current_streak <= 0:
        return None
    expected = rec.move_statistics.positive_average
    if expected >= threshold:
        pr = rec.probability_at_current_streak()
        return AlertTrigger(
            f"{symbol} expected gain is {expected:.1f}% (trigger: >={threshold:g}%)",
            {
                "currentStreak": rec.current_streak,
                "expectedGain": expected,
                "probability": pr.probability if pr is not None else None,
                "price": rec.current_price,
            },
        )
    return None

def _price(analyzer: StockAnalyzer, symbol: str, cond: Mapping[str, Any]) -> Optional[AlertTrigger]:
    trigger = float(_cond(cond, "priceChange"))
    series = analyzer.fetch(symbol, "compact")
    change = day_change_pct(series)
    if change is None:
        return None
    data = {"currentPrice": series[0].close, "previousPrice": series[1].close, "changePercent": change}
    if trigger > 0 and change >= trigger:
        return AlertTrigger(f"{symbol} price increased by {change:.2f}% (trigger: +{trigger:g}%)", data)
    if trigger < 0 and change <= trigger:
        return AlertTrigger(f"{symbol} price decreased by {abs(change):.2f}% (trigger: {trigger:g}%)", data)
    return None

def _volume(analyzer: StockAnalyzer, symbol: str, cond: Mapping[str, Any]) -> Optional[AlertTrigger]:
    trigger = float(_cond(cond, "volumeMultiplier"))
    series = analyzer.fetch(symbol, "compact")
    mult = volume_multiplier(series)
    if mult is None or mult < trigger:
        return None
    return AlertTrigger(
        f"{symbol} volume is {mult:.1f}x average (trigger: {trigger:g}x)",
        {"currentVolume": series[0].volume, "volumeMultiplier": mult, "price": series[0].close},
    )

def _rsi(analyzer: StockAnalyzer, symbol: str, cond: Mapping[str, Any]) -> Optional[AlertTrigger]:
    spec = _cond(cond, "rsi")
    if not isinstance(spec, Mapping):
        raise InvalidParameters("alert condition 'rsi' must be {direction, level}")
    direction = str(_cond(spec, "direction")).lower()
    level = float(_cond(spec, "level"))
    if direction not in ("below", "above"):
        raise InvalidParameters(f"rsi direction must be 'below' or 'above' (got {direction!r})")

    series = analyzer.fetch(symbol, "compact")
    if len(series) < 14:
        return None
    rsi = latest_rsi(series, 14)
    hit = rsi <= level if direction == "below" else rsi >= level
    if not hit:
        return None
    return AlertTrigger(
        f"{symbol} RSI is {rsi:.1f} (trigger: {direction} {level:g})",
        {"rsi": rsi, "price": series[0].close},
    )

EVALUATORS: Dict[str, Callable[[StockAnalyzer, str, Mapping[str, Any]], Optional[AlertTrigger]]] = {
    "streak": _streak,
    "probability": _probability,
    "gain": _gain,
    "price": _price,
    "volume": _volume,
    "rsi": _rsi,
}

def evaluate_alert(analyzer: StockAnalyzer, alert: Mapping[str, Any]) -> Optional[AlertTrigger]:
    symbol = str(alert.get("symbol") or "").strip().upper()
    if not symbol:
        raise InvalidParameters("alert symbol is required")
    alert_type = str(alert.get("alertType") or "").strip().lower()
    fn = EVALUATORS.get(alert_type)
    if fn is None:
        raise InvalidParameters(f"unknown alert type: {alert_type!r}")
    return fn(analyzer, symbol, alert.get("conditions") or {})
