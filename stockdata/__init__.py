"""Live stock universe and OHLCV state for an Alpaca trading session."""

from .models import Bar, InstrumentRecord, OrderSide, PortfolioState, StockData
from .quotes import QuoteClient, fetch_quote
from .records import build_records, merge_records
from .stock_data import initialize_stock_data, subscribe_to_stocks, update_stock_data
from .universe import MAX_UNIVERSE_SIZE, select_universe

__all__ = [
    "Bar",
    "InstrumentRecord",
    "MAX_UNIVERSE_SIZE",
    "OrderSide",
    "PortfolioState",
    "QuoteClient",
    "StockData",
    "build_records",
    "fetch_quote",
    "initialize_stock_data",
    "merge_records",
    "select_universe",
    "subscribe_to_stocks",
    "update_stock_data",
]
