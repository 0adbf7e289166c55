from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Tuple, Optional

def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn

def ensure_table(db_path: str, table: str = "daily_price") -> None:
    conn = connect(db_path)
    try:
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                code TEXT NOT NULL,
                date TEXT NOT NULL,
                open REAL, high REAL, low REAL, close REAL NOT NULL,
                volume INTEGER,
                PRIMARY KEY (code, date)
            )
            """
        )
        conn.commit()
    finally:
        conn.close()

def list_symbols(db_path: str, table: str = "daily_price", min_rows: int = 1) -> List[Tuple[str, int]]:
    """Return [(symbol, n_rows), ...]"""
    conn = connect(db_path)
    try:
        cur = conn.execute(
            f"SELECT code, COUNT(*) as n FROM {table} GROUP BY code HAVING n >= ? ORDER BY code",
            (int(min_rows),),
        )
        return [(str(r[0]), int(r[1])) for r in cur.fetchall()]
    finally:
        conn.close()

def upsert_bars(db_path: str, symbol: str, rows: List[Dict[str, Any]], table: str = "daily_price") -> int:
    """Insert or replace daily rows ({date, open, high, low, close, volume}) for a symbol."""
    conn = connect(db_path)
    try:
        conn.executemany(
            f"INSERT OR REPLACE INTO {table} (code, date, open, high, low, close, volume) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (symbol, str(r["date"]), r.get("open"), r.get("high"), r.get("low"), r["close"], r.get("volume"))
                for r in rows
            ],
        )
        conn.commit()
        return len(rows)
    finally:
        conn.close()

def fetch_bars(
    db_path: str,
    symbol: str,
    table: str = "daily_price",
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Fetch daily rows for a symbol, most recent first.

    Returns a list of {date, open, high, low, close, volume} dicts (empty when
    the symbol has no rows).
    """
    conn = connect(db_path)
    try:
        lim_sql = f" LIMIT {int(limit)}" if limit is not None else ""
        cur = conn.execute(
            f"SELECT date, open, high, low, close, volume FROM {table} WHERE code=? ORDER BY date DESC{lim_sql}",
            (symbol,),
        )
        return [dict(r) for r in cur.fetchall()]
    finally:
        conn.close()
