"""Choose the bounded set of symbols tracked during a session."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from .config import Settings, load_default_symbols
from .provider import Screener

LOGGER = logging.getLogger(__name__)

MAX_UNIVERSE_SIZE = 150


def unique_symbols(symbols: Iterable[str]) -> List[str]:
    """Return upper-cased symbols without blanks or repeats, first occurrence wins."""

    seen: set[str] = set()
    ordered: List[str] = []
    for raw in symbols:
        symbol = str(raw or "").strip().upper()
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)
        ordered.append(symbol)
    return ordered


def select_universe(settings: Settings, screener: Optional[Screener] = None) -> List[str]:
    """Return the symbols to track this run, capped at :data:`MAX_UNIVERSE_SIZE`.

    Backtests and runs without the screener use the default symbols file.
    Otherwise screener candidates are used, combined with the defaults when
    ``use_default_stocks`` is set and the combined list fits under the cap.
    Screener errors propagate to the caller.
    """

    default_stocks = unique_symbols(load_default_symbols(settings.stocks_file))

    if settings.is_backtest or not settings.use_stock_screener:
        stocks = default_stocks
        source = "defaults"
    else:
        if screener is None:
            raise ValueError("use_stock_screener is enabled but no screener was supplied")
        candidates = unique_symbols(screener.get_stocks())
        combined = unique_symbols([*default_stocks, *candidates])
        if len(combined) <= MAX_UNIVERSE_SIZE and settings.use_default_stocks:
            stocks = combined
            source = "defaults+screener"
        else:
            stocks = candidates
            source = "screener"
        LOGGER.info(
            "SCREENER_CANDIDATES count=%d defaults=%d combined=%d",
            len(candidates),
            len(default_stocks),
            len(combined),
        )

    selected = unique_symbols(stocks)[:MAX_UNIVERSE_SIZE]
    LOGGER.info("UNIVERSE_SELECTED source=%s count=%d", source, len(selected))
    return selected


class CandidatesFileScreener:
    """Screener backed by the ``latest_candidates.csv`` a screener run writes.

    Rows are ranked by ``score`` (descending) when that column is present.
    A missing or unreadable file raises, like any other screener failure.
    """

    def __init__(self, path: Path, top_n: Optional[int] = None) -> None:
        self.path = Path(path)
        self.top_n = top_n

    def get_stocks(self) -> List[str]:
        frame = pd.read_csv(self.path)
        if "symbol" not in frame.columns:
            raise ValueError(f"Candidates file has no symbol column: {self.path}")
        if "score" in frame.columns:
            frame["score"] = pd.to_numeric(frame["score"], errors="coerce")
            frame = frame.sort_values("score", ascending=False, na_position="last", kind="stable")
        symbols = unique_symbols(frame["symbol"].dropna().astype(str))
        if self.top_n:
            symbols = symbols[: int(self.top_n)]
        LOGGER.info("Loaded %d symbols from %s", len(symbols), self.path)
        return symbols


__all__ = ["CandidatesFileScreener", "MAX_UNIVERSE_SIZE", "select_universe", "unique_symbols"]
