"""Default console/telemetry hook for subscribed symbols."""
from __future__ import annotations

import logging
from typing import Any, Sequence

import utils.telemetry as telemetry

LOGGER = logging.getLogger(__name__)

_PREVIEW = 10


def console_output_stock_data(symbols: Sequence[str], settings: Any) -> None:
    symbols = list(symbols)
    preview = ",".join(symbols[:_PREVIEW])
    if len(symbols) > _PREVIEW:
        preview += f",+{len(symbols) - _PREVIEW}"
    LOGGER.info(
        "STOCKS_SUBSCRIBED count=%d screener=%s symbols=%s",
        len(symbols),
        bool(getattr(settings, "use_stock_screener", False)),
        preview,
    )
    telemetry.log_event(
        {
            "event": "STOCKS_SUBSCRIBED",
            "component": "stockdata",
            "count": len(symbols),
            "symbols": symbols,
        }
    )
