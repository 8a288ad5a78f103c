"""Default reconciliation of broker positions into a session snapshot."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence

from .models import OrderSide, StockData

LOGGER = logging.getLogger(__name__)


def _position_attr(position: Any, *names: str) -> Any:
    for name in names:
        if isinstance(position, Mapping):
            if name in position and position[name] not in (None, ""):
                return position[name]
        else:
            value = getattr(position, name, None)
            if value not in (None, ""):
                return value
    return None


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def position_symbol(position: Any) -> Optional[str]:
    symbol = _position_attr(position, "symbol")
    if symbol is None:
        return None
    symbol = str(symbol).strip().upper()
    return symbol or None


def normalize_position(position: Any) -> Dict[str, Any]:
    qty = _to_float(_position_attr(position, "qty", "quantity"))
    entry = _to_float(_position_attr(position, "avg_entry_price", "avgEntryPrice", "entry_price"))
    current = _to_float(_position_attr(position, "current_price", "currentPrice", "price"))
    side = _position_attr(position, "side")
    return {
        "symbol": position_symbol(position),
        "qty": qty,
        "avg_entry_price": entry,
        "current_price": current,
        "side": str(getattr(side, "value", side) or "long").lower(),
        "cost_basis": abs(qty) * entry,
    }


def sync_portfolio_positions(provider: Any, stock_data: StockData, positions: Sequence[Any]) -> StockData:
    """Record held positions on the snapshot.

    Each held symbol's record is marked ``BUY`` and priced from the position;
    cash is the starting capital less the cost basis of what is held.
    ``provider`` is accepted for interface parity and not used here.
    """

    normalized: List[Dict[str, Any]] = []
    for position in positions or ():
        entry = normalize_position(position)
        if entry["symbol"] is None:
            LOGGER.warning("POSITION_SKIPPED reason=no_symbol position=%r", position)
            continue
        normalized.append(entry)

    invested = 0.0
    for entry in normalized:
        invested += entry["cost_basis"]
        record = stock_data.get_stock(entry["symbol"])
        if record is None:
            continue
        record.last_order = OrderSide.BUY
        if entry["current_price"]:
            record.price = entry["current_price"]

    stock_data.portfolio.positions = normalized
    stock_data.portfolio.cash = stock_data.portfolio.starting_capital - invested
    LOGGER.info(
        "PORTFOLIO_SYNCED positions=%d invested=%.2f cash=%.2f",
        len(normalized),
        invested,
        stock_data.portfolio.cash,
    )
    return stock_data


__all__ = ["normalize_position", "position_symbol", "sync_portfolio_positions"]
