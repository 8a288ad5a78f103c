"""Collaborator interfaces and the Alpaca-backed bar provider."""
from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from alpaca.data.enums import DataFeed
from alpaca.data.historical import StockHistoricalDataClient
from alpaca.data.live import StockDataStream
from alpaca.data.requests import StockBarsRequest
from alpaca.data.timeframe import TimeFrame, TimeFrameUnit
from alpaca.trading.client import TradingClient

from utils.env import assert_alpaca_creds, get_alpaca_creds, is_paper_trading

from .models import Bar
from .normalize import bars_by_symbol, to_bars_df

LOGGER = logging.getLogger(__name__)


class BarProvider(Protocol):
    def get_bars(
        self,
        interval: str,
        symbols: Sequence[str],
        *,
        limit: int,
        until: datetime,
    ) -> Mapping[str, Sequence[Any]]: ...


class FeedClient(Protocol):
    def subscribe_for_bars(self, symbols: Sequence[str]) -> None: ...


class Screener(Protocol):
    def get_stocks(self) -> Sequence[str]: ...


class PortfolioSync(Protocol):
    def sync_portfolio_positions(self, provider: Any, stock_data: Any, positions: Sequence[Any]) -> Any: ...


class AlgoInitializer(Protocol):
    def initialize_algos(self, stock_data: Any) -> Any: ...


class OutputSink(Protocol):
    def console_output_stock_data(self, symbols: Sequence[str], settings: Any) -> None: ...


_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*(min|minute|t|h|hour|d|day|w|week|m|month)\s*$", re.IGNORECASE)
_UNITS = {
    "min": TimeFrameUnit.Minute,
    "minute": TimeFrameUnit.Minute,
    "t": TimeFrameUnit.Minute,
    "h": TimeFrameUnit.Hour,
    "hour": TimeFrameUnit.Hour,
    "d": TimeFrameUnit.Day,
    "day": TimeFrameUnit.Day,
    "w": TimeFrameUnit.Week,
    "week": TimeFrameUnit.Week,
    "m": TimeFrameUnit.Month,
    "month": TimeFrameUnit.Month,
}
_UNIT_SPAN = {
    TimeFrameUnit.Minute: timedelta(minutes=1),
    TimeFrameUnit.Hour: timedelta(hours=1),
    TimeFrameUnit.Day: timedelta(days=1),
    TimeFrameUnit.Week: timedelta(weeks=1),
    TimeFrameUnit.Month: timedelta(days=31),
}
# Markets are closed nights and weekends, so look back well past limit * span.
_MIN_LOOKBACK = timedelta(days=4)
_LOOKBACK_FACTOR = 3


def parse_interval(interval: str) -> TimeFrame:
    """Parse ``"1Min"``/``"5Min"``/``"1Hour"``/``"1Day"`` style intervals."""

    match = _INTERVAL_RE.match(interval or "")
    if not match:
        raise ValueError(f"Unsupported bar interval: {interval!r}")
    amount, unit = match.groups()
    return TimeFrame(int(amount), _UNITS[unit.lower()])


def lookback_start(until: datetime, timeframe: TimeFrame, limit: int) -> datetime:
    span = _UNIT_SPAN[timeframe.unit_value] * timeframe.amount_value
    return until - max(span * int(limit) * _LOOKBACK_FACTOR, _MIN_LOOKBACK)


async def _log_bar(bar: Any) -> None:
    LOGGER.debug("BAR_RECEIVED symbol=%s close=%s", getattr(bar, "symbol", "?"), getattr(bar, "close", "?"))


class AlpacaProvider:
    """Bar retrieval, streaming registration and positions over alpaca-py."""

    def __init__(
        self,
        data_client: Optional[StockHistoricalDataClient] = None,
        trading_client: Optional[TradingClient] = None,
        stream: Optional[StockDataStream] = None,
        *,
        feed: Optional[str] = None,
        on_bar: Optional[Callable[[Any], Awaitable[None]]] = None,
    ) -> None:
        _, _, _, env_feed = get_alpaca_creds()
        self.feed = DataFeed((feed or env_feed).lower())
        self._data_client = data_client
        self._trading_client = trading_client
        self._stream = stream
        self._on_bar = on_bar or _log_bar
        self._stream_thread: Optional[threading.Thread] = None
        self.subscribed: List[str] = []

    @classmethod
    def from_env(cls, **kwargs: Any) -> "AlpacaProvider":
        """Build clients from ``APCA_*`` credentials; missing keys raise."""

        key, secret = assert_alpaca_creds()
        _, _, _, feed = get_alpaca_creds()
        feed = kwargs.pop("feed", None) or feed
        return cls(
            StockHistoricalDataClient(key, secret),
            TradingClient(key, secret, paper=is_paper_trading()),
            StockDataStream(key, secret, feed=DataFeed(feed)),
            feed=feed,
            **kwargs,
        )

    @property
    def data_client(self) -> StockHistoricalDataClient:
        if self._data_client is None:
            raise RuntimeError("Alpaca data client is not configured")
        return self._data_client

    @property
    def trading_client(self) -> TradingClient:
        if self._trading_client is None:
            raise RuntimeError("Alpaca trading client is not configured")
        return self._trading_client

    def get_bars(
        self,
        interval: str,
        symbols: Sequence[str],
        *,
        limit: int = 150,
        until: Optional[datetime] = None,
    ) -> Dict[str, List[Bar]]:
        """Return up to ``limit`` bars per symbol ending at ``until``.

        Errors from the data API propagate.
        """

        if not symbols:
            return {}
        timeframe = parse_interval(interval)
        end = until or datetime.now(timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        request = StockBarsRequest(
            symbol_or_symbols=list(symbols),
            timeframe=timeframe,
            start=lookback_start(end, timeframe, limit),
            end=end,
            feed=self.feed,
        )
        barset = self.data_client.get_stock_bars(request)
        grouped = bars_by_symbol(to_bars_df(barset), limit=limit)
        LOGGER.info(
            "BARS_FETCHED interval=%s symbols=%d with_bars=%d rows=%d",
            interval,
            len(symbols),
            len(grouped),
            sum(len(rows) for rows in grouped.values()),
        )
        return grouped

    def subscribe_for_bars(self, symbols: Sequence[str]) -> None:
        if self._stream is None:
            raise RuntimeError("Alpaca data stream is not configured")
        new_symbols = [symbol for symbol in symbols if symbol not in self.subscribed]
        if not new_symbols:
            return
        self._stream.subscribe_bars(self._on_bar, *new_symbols)
        self.subscribed.extend(new_symbols)
        LOGGER.info("STREAM_SUBSCRIBED symbols=%d total=%d", len(new_symbols), len(self.subscribed))

    def start_stream(self) -> threading.Thread:
        """Run the websocket stream on a daemon thread."""

        if self._stream is None:
            raise RuntimeError("Alpaca data stream is not configured")
        if self._stream_thread is None or not self._stream_thread.is_alive():
            self._stream_thread = threading.Thread(
                target=self._stream.run, name="alpaca-bar-stream", daemon=True
            )
            self._stream_thread.start()
        return self._stream_thread

    def stop_stream(self) -> None:
        if self._stream is not None and self._stream_thread is not None:
            self._stream.stop()
            self._stream_thread = None

    def get_positions(self) -> list:
        return list(self.trading_client.get_all_positions())


__all__ = [
    "AlgoInitializer",
    "AlpacaProvider",
    "BarProvider",
    "FeedClient",
    "OutputSink",
    "PortfolioSync",
    "Screener",
    "lookback_start",
    "parse_interval",
]
