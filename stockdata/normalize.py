"""Normalization helpers for Alpaca bar payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

import pandas as pd

from .models import Bar

CANON = ["symbol", "timestamp", "open", "high", "low", "close", "volume"]


def _rename_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.rename(
        columns={
            "S": "symbol",
            "Symbol": "symbol",
            "t": "timestamp",
            "T": "timestamp",
            "time": "timestamp",
            "Time": "timestamp",
            "level_0": "symbol",
            "level_1": "timestamp",
            "o": "open",
            "Open": "open",
            "openPrice": "open",
            "h": "high",
            "High": "high",
            "highPrice": "high",
            "l": "low",
            "Low": "low",
            "lowPrice": "low",
            "c": "close",
            "Close": "close",
            "closePrice": "close",
            "v": "volume",
            "Volume": "volume",
        }
    )


def _ensure_columns(df: pd.DataFrame) -> pd.DataFrame:
    for column in CANON:
        if column not in df.columns:
            df[column] = pd.NA
    return df


def _rows_from_bar_data(data: Dict[str, Sequence[Any]]) -> List[dict[str, Any]]:
    rows: List[dict[str, Any]] = []
    for sym, items in data.items():
        for bar in items or []:
            rows.append(
                {
                    "symbol": str(sym).upper(),
                    "timestamp": getattr(bar, "timestamp", getattr(bar, "t", None)),
                    "open": getattr(bar, "open", getattr(bar, "o", None)),
                    "high": getattr(bar, "high", getattr(bar, "h", None)),
                    "low": getattr(bar, "low", getattr(bar, "l", None)),
                    "close": getattr(bar, "close", getattr(bar, "c", None)),
                    "volume": getattr(bar, "volume", getattr(bar, "v", None)),
                }
            )
    return rows


def to_bars_df(obj: Any) -> pd.DataFrame:
    """Return a canonical bars frame from a BarSet, DataFrame, list or REST payload."""

    if isinstance(obj, dict) and "bars" in obj:
        obj = obj["bars"]

    if isinstance(obj, pd.DataFrame):
        df = obj.copy()
        if isinstance(df.index, pd.MultiIndex):
            df = df.reset_index()
    elif isinstance(obj, (list, tuple)):
        df = pd.DataFrame(obj)
    elif isinstance(obj, dict):
        rows = []
        for sym, entries in obj.items():
            for entry in entries or []:
                record = dict(entry)
                record.setdefault("symbol", sym)
                rows.append(record)
        df = pd.DataFrame(rows)
    elif isinstance(getattr(obj, "data", None), dict):
        df = pd.DataFrame(_rows_from_bar_data(obj.data))
    else:
        df = pd.DataFrame(columns=CANON)

    df = _rename_columns(df)
    df = _ensure_columns(df)
    df["symbol"] = df["symbol"].astype(str).str.strip().str.upper()
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    for column in ["open", "high", "low", "close", "volume"]:
        df[column] = pd.to_numeric(df[column], errors="coerce").astype("float64")

    return df[CANON].reset_index(drop=True)


def bars_by_symbol(df: pd.DataFrame, limit: int | None = None) -> Dict[str, List[Bar]]:
    """Group a canonical bars frame into ``{symbol: [Bar, ...]}`` in time order.

    Rows without a usable price are dropped. When ``limit`` is set only the
    most recent ``limit`` bars are kept per symbol.
    """

    if df.empty:
        return {}
    frame = df.dropna(subset=["open", "high", "low", "close"])
    frame = frame.sort_values(["symbol", "timestamp"], kind="stable")
    frame = frame.drop_duplicates(subset=["symbol", "timestamp"], keep="last")

    grouped: Dict[str, List[Bar]] = {}
    for symbol, rows in frame.groupby("symbol", sort=False):
        if limit:
            rows = rows.tail(int(limit))
        grouped[str(symbol)] = [
            Bar(
                symbol=row.symbol,
                timestamp=None if pd.isna(row.timestamp) else row.timestamp,
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=0.0 if pd.isna(row.volume) else row.volume,
            )
            for row in rows.itertuples(index=False)
        ]
    return grouped


__all__ = ["CANON", "bars_by_symbol", "to_bars_df"]
