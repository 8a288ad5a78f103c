"""Data model for the tracked stock universe and the per-session snapshot."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

import pandas as pd
from pydantic import BaseModel, field_validator, model_validator


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def coerce(cls, value: Any) -> "OrderSide":
        if isinstance(value, cls):
            return value
        text = str(getattr(value, "value", value) or "").strip().upper()
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unknown order side: {value!r}") from exc


# Alpaca REST short keys and the camel-case names older broker SDKs used.
_BAR_KEY_ALIASES = {
    "S": "symbol",
    "t": "timestamp",
    "o": "open",
    "openPrice": "open",
    "h": "high",
    "highPrice": "high",
    "l": "low",
    "lowPrice": "low",
    "c": "close",
    "closePrice": "close",
    "v": "volume",
}


def _normalize_symbol(value: Any) -> str:
    return str(value or "").strip().upper()


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    else:
        ts = ts.tz_convert("UTC")
    return ts.to_pydatetime()


def _coerce_float(value: Any) -> float:
    if value in (None, ""):
        return float("nan")
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


class Bar(BaseModel):
    """One OHLCV bar for one symbol."""

    symbol: str = ""
    timestamp: Optional[datetime] = None
    open: float
    high: float
    low: float
    close: float
    volume: float

    model_config = {"extra": "ignore", "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _rename_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        renamed = {}
        for key, value in data.items():
            target = _BAR_KEY_ALIASES.get(key, key)
            renamed.setdefault(target, value)
        return renamed

    @field_validator("symbol", mode="before")
    @classmethod
    def _symbol(cls, value: Any) -> str:
        return _normalize_symbol(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> Optional[datetime]:
        return _parse_timestamp(value)

    @field_validator("open", "high", "low", "close", "volume", mode="before")
    @classmethod
    def _floats(cls, value: Any) -> float:
        return _coerce_float(value)


@dataclass
class InstrumentRecord:
    """Working state for one tracked symbol.

    The five value series are index-aligned: position ``i`` in each describes
    the same bar. In backtest mode they stay empty until a replay driver
    fills them.
    """

    symbol: str
    last_order: OrderSide = OrderSide.SELL
    signals: List[Any] = field(default_factory=list)
    open_values: List[float] = field(default_factory=list)
    close_values: List[float] = field(default_factory=list)
    high_values: List[float] = field(default_factory=list)
    low_values: List[float] = field(default_factory=list)
    volume_values: List[float] = field(default_factory=list)
    price: float = 0.0

    def __post_init__(self) -> None:
        self.last_order = OrderSide.coerce(self.last_order)
        lengths = {
            len(self.open_values),
            len(self.close_values),
            len(self.high_values),
            len(self.low_values),
            len(self.volume_values),
        }
        if len(lengths) > 1:
            raise ValueError(f"Bar series for {self.symbol} are not index-aligned")

    @property
    def subject(self) -> str:
        return self.symbol

    def __len__(self) -> int:
        return len(self.close_values)


@dataclass
class PortfolioState:
    starting_capital: float = 0.0
    cash: float = 0.0
    positions: List[Any] = field(default_factory=list)
    tmp: List[Any] = field(default_factory=list)


@dataclass
class StockData:
    """Mutable working state threaded through a session's ticks.

    ``session`` and ``io`` belong to the caller and may be ``None``.
    """

    settings: Any
    session: Any = None
    io: Any = None
    algos: List[Any] = field(default_factory=list)
    halt_trading: bool = False
    market_closing: bool = False
    last_roi: float = 0.0
    portfolio: PortfolioState = field(default_factory=PortfolioState)
    orders: List[Any] = field(default_factory=list)
    stocks: List[InstrumentRecord] = field(default_factory=list)

    def symbols(self) -> List[str]:
        return [stock.symbol for stock in self.stocks]

    def get_stock(self, symbol: str) -> Optional[InstrumentRecord]:
        for stock in self.stocks:
            if stock.symbol == symbol:
                return stock
        return None


__all__ = ["Bar", "InstrumentRecord", "OrderSide", "PortfolioState", "StockData"]
