"""Build and refresh the per-session stock snapshot."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence

from . import outputs as default_outputs
from . import portfolio as default_portfolio
from .models import OrderSide, PortfolioState, StockData
from .portfolio import position_symbol
from .provider import AlgoInitializer, BarProvider, FeedClient, OutputSink, PortfolioSync
from .records import build_records, merge_records
from .universe import unique_symbols

LOGGER = logging.getLogger(__name__)

BAR_INTERVAL = "1Min"
DEFAULT_LIMIT = 150


def _with_position_symbols(symbols: Iterable[str], positions: Sequence[Any]) -> List[str]:
    expanded = unique_symbols(symbols)
    for position in positions:
        symbol = position_symbol(position)
        if symbol and symbol not in expanded:
            expanded.append(symbol)
    return expanded


def subscribe_to_stocks(
    client: FeedClient,
    symbols: Sequence[str],
    settings: Any,
    *,
    output: Optional[OutputSink] = None,
) -> None:
    """Register ``symbols`` for streaming bars and, when live, report them."""

    client.subscribe_for_bars(symbols)

    if not settings.is_backtest:
        sink = output or default_outputs
        try:
            sink.console_output_stock_data(symbols, settings)
        except Exception:
            LOGGER.warning("Console output for subscribed stocks failed", exc_info=True)


def initialize_stock_data(
    provider: Optional[BarProvider],
    symbols: Sequence[str],
    settings: Any,
    positions: Sequence[Any] = (),
    orders: Optional[List[Any]] = None,
    session: Any = None,
    io: Any = None,
    limit: int = DEFAULT_LIMIT,
    until: Optional[datetime] = None,
    last_order: OrderSide | str = OrderSide.SELL,
    *,
    portfolio: Optional[PortfolioSync] = None,
) -> StockData:
    """Create the session snapshot.

    Backtests get empty series and never touch ``provider``. Live sessions
    also track every held position, fetch minute bars ending at ``until``
    and reconcile the portfolio. A failed bar fetch propagates.
    """

    positions = list(positions or ())
    stock_data = StockData(
        session=session,
        settings=settings,
        io=io,
        portfolio=PortfolioState(
            starting_capital=settings.starting_capital,
            cash=settings.starting_capital,
        ),
        orders=orders if orders is not None else [],
    )

    if settings.is_backtest:
        stock_data.stocks = build_records({}, symbols, True, last_order)
        LOGGER.info("STOCK_DATA_INIT mode=backtest symbols=%d", len(stock_data.stocks))
        return stock_data

    if provider is None:
        raise ValueError("A bar provider is required outside backtest mode")

    symbols = _with_position_symbols(symbols, positions)
    bars = provider.get_bars(
        BAR_INTERVAL,
        symbols,
        limit=limit,
        until=until or datetime.now(timezone.utc),
    )
    stock_data.stocks = build_records(bars, symbols, False, last_order)

    sync = portfolio or default_portfolio
    stock_data = sync.sync_portfolio_positions(provider, stock_data, positions)
    LOGGER.info(
        "STOCK_DATA_INIT mode=live symbols=%d positions=%d",
        len(stock_data.stocks),
        len(positions),
    )
    return stock_data


def update_stock_data(
    provider: BarProvider,
    symbols: Sequence[str],
    stock_data: StockData,
    limit: int = DEFAULT_LIMIT,
    until: Optional[datetime] = None,
    last_order: OrderSide | str = OrderSide.SELL,
    *,
    algos: Optional[AlgoInitializer] = None,
) -> StockData:
    """Refresh bars for ``symbols`` and merge them into ``stock_data``.

    Backtests are returned unchanged. The merge keeps one record per symbol,
    fresh bars winning and prior signal history carried forward. Symbols
    still held in the portfolio stay ``BUY`` and keep their last price. A
    failed bar fetch propagates and leaves the snapshot untouched.
    """

    if stock_data.settings.is_backtest:
        return stock_data

    symbols = unique_symbols(symbols)
    bars = provider.get_bars(
        BAR_INTERVAL,
        symbols,
        limit=limit,
        until=until or datetime.now(timezone.utc),
    )

    prior = stock_data.stocks
    stock_data.stocks = build_records(bars, symbols, False, last_order)
    held = {position_symbol(position) for position in stock_data.portfolio.positions}
    for record in stock_data.stocks:
        if record.symbol in held:
            record.last_order = OrderSide.BUY

    if algos is not None:
        try:
            stock_data = algos.initialize_algos(stock_data)
        except Exception:
            stock_data.stocks = prior
            raise

    stock_data.stocks = merge_records(stock_data.stocks, prior)
    LOGGER.info(
        "STOCK_DATA_UPDATE fetched=%d prior=%d tracked=%d",
        len(symbols),
        len(prior),
        len(stock_data.stocks),
    )
    return stock_data


__all__ = ["initialize_stock_data", "subscribe_to_stocks", "update_stock_data"]
