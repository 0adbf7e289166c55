from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sqlite3
import sys
from typing import Any, Dict, List, Optional

from .alerts import evaluate_alert
from .analyzer import StockAnalyzer
from .config import EngineConfig
from .db import list_symbols
from .errors import EngineError, InvalidParameters
from .providers import make_provider

def _p(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))

def _symbols(raw: List[str]) -> List[str]:
    out: List[str] = []
    for item in raw or []:
        out.extend(s for s in item.split(",") if s.strip())
    return out

def _config(args: argparse.Namespace) -> EngineConfig:
    overrides: Dict[str, Any] = {}
    if args.provider:
        overrides["provider"] = args.provider
    if args.db:
        overrides["db_path"] = args.db
    if args.table:
        overrides["table"] = args.table
    if args.csv_dir:
        overrides["csv_dir"] = args.csv_dir
    if args.rate_limit is not None:
        overrides["rate_limit_sec"] = args.rate_limit
    return dataclasses.replace(EngineConfig(), **overrides)

def _analyzer(args: argparse.Namespace) -> StockAnalyzer:
    cfg = _config(args)
    return StockAnalyzer(make_provider(cfg), cfg)

def _weights(raw: Optional[List[str]]) -> Optional[Dict[str, float]]:
    if not raw:
        return None
    out: Dict[str, float] = {}
    for item in raw:
        sym, sep, val = item.partition("=")
        if not sep:
            raise InvalidParameters(f"weight must look like SYMBOL=VALUE (got {item!r})")
        try:
            out[sym.strip().upper()] = float(val)
        except ValueError as exc:
            raise InvalidParameters(f"bad weight value in {item!r}") from exc
    return out

def cmd_analyze(args: argparse.Namespace) -> None:
    a = _analyzer(args)
    rec = a.analyze(args.symbol.upper(), args.streak, args.lookback)
    _p(rec.to_dict())

def cmd_scan(args: argparse.Namespace) -> None:
    a = _analyzer(args)
    symbols = _symbols(args.symbols)
    if args.from_db:
        try:
            symbols += [code for code, _n in list_symbols(a.cfg.db_path, a.cfg.table, min_rows=args.min_rows)]
        except sqlite3.Error as exc:
            raise EngineError(f"cannot list symbols in {a.cfg.db_path}: {exc}") from exc
    symbols = symbols or list(a.cfg.universe)
    if args.full:
        _p(a.market_scan(symbols, args.streak, args.lookback))
        return
    _p(a.opportunities(symbols, args.streak, min_streak=args.min_streak, min_probability=args.min_probability))

def cmd_backtest(args: argparse.Namespace) -> None:
    a = _analyzer(args)
    res = a.backtest(args.symbol.upper(), args.streak, args.lookback, args.hold, args.capital)
    _p(res.to_dict(trades_limit=args.limit_trades))

def cmd_portfolio(args: argparse.Namespace) -> None:
    a = _analyzer(args)
    res = a.portfolio_backtest(
        _symbols(args.symbols),
        args.streak,
        args.lookback,
        args.hold,
        args.capital,
        weights=_weights(args.weight),
    )
    _p(res.to_dict(trades_limit=args.limit_trades))

def cmd_alert(args: argparse.Namespace) -> None:
    a = _analyzer(args)
    try:
        conditions = json.loads(args.conditions)
    except ValueError as exc:
        raise InvalidParameters(f"--conditions is not valid JSON: {exc}") from exc
    alert = {"symbol": args.symbol, "alertType": args.type, "conditions": conditions}
    trig = evaluate_alert(a, alert)
    _p({"triggered": trig is not None, **(trig.to_dict() if trig else {})})

def build_parser() -> argparse.ArgumentParser:
    cfg = EngineConfig()
    p = argparse.ArgumentParser(prog="streak_bounce_engine", description="Red-streak bounce statistics and backtests (daily bars).")
    p.add_argument("--provider", default=None, choices=["alphavantage", "sqlite", "csv"], help=f"Data provider (default: {cfg.provider})")
    p.add_argument("--db", default=None, help=f"SQLite DB path (default: {cfg.db_path})")
    p.add_argument("--table", default=None, help=f"Price table (default: {cfg.table})")
    p.add_argument("--csv-dir", default=None, help=f"Directory of <SYMBOL>.csv files (default: {cfg.csv_dir})")
    p.add_argument("--rate-limit", type=float, default=None, help=f"Seconds between provider calls (default: {cfg.rate_limit_sec})")
    p.add_argument("-v", "--verbose", action="store_true")

    sub = p.add_subparsers(dest="cmd", required=True)

    p_an = sub.add_parser("analyze", help="Current streak, bounce probabilities (1..5) and move stats for one symbol")
    p_an.add_argument("symbol")
    p_an.add_argument("--streak", type=int, default=cfg.streak_length)
    p_an.add_argument("--lookback", type=int, default=cfg.lookback_days)
    p_an.set_defaults(func=cmd_analyze)

    p_scan = sub.add_parser("scan", help="Analyze many symbols and rank opportunities")
    p_scan.add_argument("symbols", nargs="*", help="Symbols (space or comma separated; default: configured universe)")
    p_scan.add_argument("--streak", type=int, default=cfg.streak_length)
    p_scan.add_argument("--lookback", type=int, default=cfg.lookback_days)
    p_scan.add_argument("--min-streak", type=int, default=cfg.min_streak)
    p_scan.add_argument("--min-probability", type=float, default=cfg.min_probability)
    p_scan.add_argument("--full", action="store_true", help="Full market scan with per-symbol metrics instead of opportunities")
    p_scan.add_argument("--from-db", action="store_true", help="Add every symbol stored in the SQLite price table")
    p_scan.add_argument("--min-rows", type=int, default=2, help="With --from-db: skip symbols with fewer stored bars")
    p_scan.set_defaults(func=cmd_scan)

    p_bt = sub.add_parser("backtest", help="Red-streak entry / fixed-hold exit backtest for one symbol")
    p_bt.add_argument("symbol")
    p_bt.add_argument("--streak", type=int, default=cfg.streak_length)
    p_bt.add_argument("--lookback", type=int, default=cfg.lookback_days)
    p_bt.add_argument("--hold", type=int, default=cfg.hold_days)
    p_bt.add_argument("--capital", type=float, default=cfg.initial_capital)
    p_bt.add_argument("--limit-trades", type=int, default=cfg.recent_trades_limit)
    p_bt.set_defaults(func=cmd_backtest)

    p_pf = sub.add_parser("portfolio", help="Same rule over a basket, capital split per symbol")
    p_pf.add_argument("symbols", nargs="+")
    p_pf.add_argument("--streak", type=int, default=cfg.streak_length)
    p_pf.add_argument("--lookback", type=int, default=cfg.lookback_days)
    p_pf.add_argument("--hold", type=int, default=cfg.hold_days)
    p_pf.add_argument("--capital", type=float, default=cfg.initial_capital)
    p_pf.add_argument("--weight", action="append", help="SYMBOL=WEIGHT (repeatable; default: equal split)")
    p_pf.add_argument("--limit-trades", type=int, default=cfg.portfolio_trades_limit)
    p_pf.set_defaults(func=cmd_portfolio)

    p_al = sub.add_parser("alert", help="Check one alert condition now")
    p_al.add_argument("symbol")
    p_al.add_argument("--type", required=True, choices=["streak", "probability", "gain", "price", "volume", "rsi"])
    p_al.add_argument("--conditions", required=True, help='JSON, e.g. \'{"streakLength": 3}\'')
    p_al.set_defaults(func=cmd_alert)

    return p

def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    try:
        args.func(args)
    except EngineError as exc:
        _p({"ok": False, "error": str(exc)})
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
