"""Build and merge per-symbol instrument records."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import InstrumentRecord, OrderSide

LOGGER = logging.getLogger(__name__)

# Field name on our Bar model / alpaca-py bars, then REST short key, then the
# camel-case name older broker SDKs used.
_FIELD_KEYS = {
    "open": ("open", "o", "openPrice"),
    "close": ("close", "c", "closePrice"),
    "high": ("high", "h", "highPrice"),
    "low": ("low", "l", "lowPrice"),
    "volume": ("volume", "v"),
}


def _bar_value(bar: Any, name: str) -> Optional[float]:
    for key in _FIELD_KEYS[name]:
        if isinstance(bar, Mapping):
            if key in bar:
                return bar[key]
        elif hasattr(bar, key):
            return getattr(bar, key)
    return None


def build_records(
    bars_by_symbol: Optional[Mapping[str, Sequence[Any]]],
    symbols: Iterable[str],
    is_backtest: bool,
    last_order: OrderSide | str = OrderSide.SELL,
) -> List[InstrumentRecord]:
    """Create one :class:`InstrumentRecord` per symbol.

    ``symbols`` is expected to be deduplicated already. In backtest mode the
    value series stay empty; a replay driver fills them later. In live mode a
    symbol with no bars is valid and also gets empty series.
    """

    side = OrderSide.coerce(last_order)
    source = bars_by_symbol or {}
    records: List[InstrumentRecord] = []
    for symbol in symbols:
        series: Dict[str, List[Any]] = {name: [] for name in _FIELD_KEYS}
        if not is_backtest:
            for bar in source.get(symbol) or ():
                for name in _FIELD_KEYS:
                    series[name].append(_bar_value(bar, name))
        records.append(
            InstrumentRecord(
                symbol=symbol,
                last_order=side,
                signals=[],
                open_values=series["open"],
                close_values=series["close"],
                high_values=series["high"],
                low_values=series["low"],
                volume_values=series["volume"],
                price=0.0,
            )
        )
    return records


def merge_records(
    fresh: Sequence[InstrumentRecord],
    prior: Sequence[InstrumentRecord],
) -> List[InstrumentRecord]:
    """Merge freshly built records over the previous tick's records by symbol.

    The result holds exactly one record per distinct symbol: fresh symbols
    first in fresh order, then symbols only the prior list knew about. A fresh
    record replaces its prior counterpart but inherits the prior signal
    history, followed by any signals already on the fresh record. A fresh
    record that has no price yet keeps the prior price.
    """

    prior_by_symbol: Dict[str, InstrumentRecord] = {}
    for record in prior:
        prior_by_symbol.setdefault(record.symbol, record)

    merged: Dict[str, InstrumentRecord] = {}
    carried = 0
    for record in fresh:
        if record.symbol in merged:
            LOGGER.warning("MERGE_DUPLICATE symbol=%s source=fresh", record.symbol)
        previous = prior_by_symbol.get(record.symbol)
        if previous is not None:
            if previous.signals:
                record.signals = list(previous.signals) + list(record.signals)
                carried += 1
            if not record.price:
                record.price = previous.price
        merged[record.symbol] = record

    for symbol, record in prior_by_symbol.items():
        merged.setdefault(symbol, record)

    LOGGER.debug(
        "MERGE_DONE fresh=%d prior=%d merged=%d signals_carried=%d",
        len(fresh),
        len(prior),
        len(merged),
        carried,
    )
    return list(merged.values())


__all__ = ["build_records", "merge_records"]
