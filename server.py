from __future__ import annotations

import logging
import math
import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from streak_bounce_engine.alerts import evaluate_alert
from streak_bounce_engine.analyzer import StockAnalyzer
from streak_bounce_engine.cache import TTLCache
from streak_bounce_engine.config import EngineConfig
from streak_bounce_engine.errors import DataUnavailable, EngineError, InvalidParameters
from streak_bounce_engine.providers import make_provider

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

CFG = EngineConfig()

_analyzer: Optional[StockAnalyzer] = None
_analyzer_lock = threading.Lock()

# Analysis records keyed by "SYMBOL-streak-lookback"
_analysis_cache = TTLCache(CFG.cache_ttl_sec)

# Full market scan: served stale while a background refresh runs
_market_scan_cache = TTLCache(CFG.market_scan_ttl_sec)
_market_scan_lock = threading.Lock()
_market_scan_state: Dict[str, Any] = {"running": False, "last_error": None, "last_error_ts": 0.0}
MARKET_SCAN_KEY = "market_scan"


def get_analyzer() -> StockAnalyzer:
    global _analyzer
    with _analyzer_lock:
        if _analyzer is None:
            _analyzer = StockAnalyzer(make_provider(CFG), CFG)
        return _analyzer


def set_analyzer(analyzer: Optional[StockAnalyzer]) -> None:
    """Swap the analyzer (tests, alternative providers) and drop cached results."""
    global _analyzer
    with _analyzer_lock:
        _analyzer = analyzer
    _analysis_cache.clear()
    _market_scan_cache.clear()


def _int_arg(source: Dict[str, Any], key: str, default: int) -> int:
    v = source.get(key)
    if v is None or v == "":
        return int(default)
    try:
        return int(v)
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(f"'{key}' must be an integer (got {v!r})") from exc


def _float_arg(source: Dict[str, Any], key: str, default: float) -> float:
    v = source.get(key)
    if v is None or v == "":
        return float(default)
    try:
        return float(v)
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(f"'{key}' must be a number (got {v!r})") from exc


def _symbols_arg(payload: Dict[str, Any]) -> List[Any]:
    symbols = payload.get("symbols")
    if not isinstance(symbols, list):
        raise InvalidParameters("Symbols array required")
    # null or blank entries are dropped by the analyzer
    return symbols


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _run_market_scan() -> None:
    try:
        out = get_analyzer().market_scan(CFG.universe, CFG.streak_length, CFG.lookback_days)
        _market_scan_cache.set(MARKET_SCAN_KEY, out)
    except Exception as exc:
        with _market_scan_lock:
            _market_scan_state["last_error"] = str(exc)
            _market_scan_state["last_error_ts"] = time.time()
        logging.exception("Market scan failed")
    finally:
        with _market_scan_lock:
            _market_scan_state["running"] = False


def _start_market_scan() -> bool:
    """Start a refresh unless one is already running; True when started."""
    with _market_scan_lock:
        if _market_scan_state["running"]:
            return False
        _market_scan_state["running"] = True
    if CFG.market_scan_background:
        thread = threading.Thread(target=_run_market_scan, daemon=True)
        thread.start()
    else:
        _run_market_scan()
    return True


app = Flask(__name__)
CORS(app, resources={r"/api/*": {"origins": "*"}})


@app.errorhandler(InvalidParameters)
def _invalid_parameters(exc: InvalidParameters):
    return jsonify({"error": str(exc)}), 400


@app.errorhandler(DataUnavailable)
def _data_unavailable(exc: DataUnavailable):
    return jsonify({"error": str(exc), "symbol": exc.symbol}), 502


@app.errorhandler(EngineError)
def _engine_error(exc: EngineError):
    return jsonify({"error": str(exc)}), 500


# ---------- API ----------
@app.get("/api/health")
def health():
    return jsonify({
        "status": "ok",
        "provider": CFG.provider,
        "apiKeySet": bool(CFG.alpha_vantage_api_key),
        "timestamp": _now_iso(),
        "cacheSize": len(_analysis_cache),
        "cacheDuration": f"{CFG.cache_ttl_sec / 60:g} minutes",
    })


@app.get("/api/stocks")
def stocks():
    return jsonify([{"symbol": s} for s in CFG.universe])


@app.get("/api/analyze/<symbol>")
def analyze(symbol: str):
    symbol = symbol.strip().upper()
    streak = _int_arg(request.args, "streakLength", CFG.streak_length)
    lookback = _int_arg(request.args, "lookbackDays", CFG.lookback_days)

    key = f"{symbol}-{streak}-{lookback}"
    cached = _analysis_cache.get(key)
    if cached is not None:
        return jsonify(cached)

    out = get_analyzer().analyze(symbol, streak, lookback).to_dict()
    _analysis_cache.set(key, out)
    return jsonify(out)


@app.post("/api/analyze-batch")
def analyze_batch():
    payload = request.get_json(silent=True) or {}
    symbols = _symbols_arg(payload)
    streak = _int_arg(payload, "streakLength", CFG.streak_length)
    records = get_analyzer().analyze_many(symbols, streak)
    return jsonify([r.to_dict() for r in records])


@app.post("/api/opportunities")
def opportunities():
    payload = request.get_json(silent=True) or {}
    symbols = _symbols_arg(payload)
    out = get_analyzer().opportunities(
        symbols,
        _int_arg(payload, "streakLength", CFG.streak_length),
        min_streak=_int_arg(payload, "minStreak", CFG.min_streak),
        min_probability=_float_arg(payload, "minProbability", CFG.min_probability),
    )
    return jsonify(out)


@app.get("/api/quick-scan")
def quick_scan():
    limit = _int_arg(request.args, "limit", 10)
    return jsonify(get_analyzer().quick_scan(CFG.universe, limit))


@app.get("/api/market-scan")
def market_scan():
    data = _market_scan_cache.get(MARKET_SCAN_KEY, allow_stale=True)
    age = _market_scan_cache.age(MARKET_SCAN_KEY)

    if data is not None and _market_scan_cache.is_fresh(MARKET_SCAN_KEY):
        return jsonify({**data, "cached": True, "cacheAge": f"{int(age // 60)} minutes"})

    if data is not None:
        _start_market_scan()
        return jsonify({
            **data,
            "cached": True,
            "updating": True,
            "cacheAge": f"{int(age // 60)} minutes",
            "message": "Returning cached data while updating in background",
        })

    _start_market_scan()
    data = _market_scan_cache.get(MARKET_SCAN_KEY)
    if data is not None:
        # synchronous refresh (background disabled)
        return jsonify({**data, "cached": False})
    with _market_scan_lock:
        last_error = _market_scan_state["last_error"]
    return jsonify({
        "scanning": True,
        "message": "Full market scan initiated. This will take several minutes.",
        "estimatedTime": f"{math.ceil(len(CFG.universe) * CFG.rate_limit_sec / 60)} minutes",
        "totalStocks": len(CFG.universe),
        "lastError": last_error,
    })


@app.post("/api/backtest")
def backtest():
    payload = request.get_json(silent=True) or {}
    symbol = str(payload.get("symbol") or "").strip().upper()
    if not symbol:
        raise InvalidParameters("symbol is required")
    res = get_analyzer().backtest(
        symbol,
        _int_arg(payload, "streakLength", CFG.streak_length),
        _int_arg(payload, "lookbackDays", CFG.lookback_days),
        _int_arg(payload, "holdDays", CFG.hold_days),
        _float_arg(payload, "initialCapital", CFG.initial_capital),
    )
    return jsonify(res.to_dict(trades_limit=CFG.recent_trades_limit))


@app.post("/api/portfolio-backtest")
def portfolio_backtest():
    payload = request.get_json(silent=True) or {}
    symbols = payload.get("symbols")
    if not symbols or not isinstance(symbols, list):
        raise InvalidParameters("Please provide at least one stock symbol")
    weights = payload.get("weights")
    if weights is not None and not isinstance(weights, dict):
        raise InvalidParameters("weights must be an object of symbol -> weight")
    res = get_analyzer().portfolio_backtest(
        symbols,
        _int_arg(payload, "streakLength", CFG.streak_length),
        _int_arg(payload, "lookbackDays", CFG.lookback_days),
        _int_arg(payload, "holdDays", CFG.hold_days),
        _float_arg(payload, "initialCapital", CFG.initial_capital),
        weights=weights,
    )
    return jsonify(res.to_dict(trades_limit=CFG.portfolio_trades_limit))


@app.post("/api/clear-cache")
def clear_cache():
    n = _analysis_cache.clear()
    return jsonify({"message": "Cache cleared successfully", "itemsCleared": n, "timestamp": _now_iso()})


@app.post("/api/alerts/evaluate")
def alerts_evaluate():
    payload = request.get_json(silent=True) or {}
    trig = evaluate_alert(get_analyzer(), payload)
    if trig is None:
        return jsonify({"triggered": False})
    return jsonify({"triggered": True, **trig.to_dict()})


if __name__ == "__main__":
    host = os.getenv("STREAK_SERVER_HOST", "0.0.0.0")
    port = int(os.getenv("STREAK_SERVER_PORT", "3001"))
    logging.info("API key configured: %s", bool(CFG.alpha_vantage_api_key))
    app.run(host=host, port=port)
