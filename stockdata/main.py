"""Run a stock-data session: select, initialize, subscribe, then poll."""

from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

import utils.telemetry as telemetry
from utils.env import AlpacaCredentialsError, load_env
from utils.logger_utils import configure_console_logging, init_logging

from .config import Settings, SettingsError, load_settings
from .models import StockData
from .provider import AlpacaProvider
from .quotes import QuoteClient
from .stock_data import initialize_stock_data, subscribe_to_stocks, update_stock_data
from .universe import CandidatesFileScreener, select_universe

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track a live stock universe and its minute bars")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings YAML (default: config/settings.yml)",
    )
    parser.add_argument(
        "--backtest",
        action="store_true",
        help="Build the snapshot in backtest mode without any network calls",
    )
    parser.add_argument(
        "--ticks",
        type=int,
        default=0,
        help="Number of polling ticks to run (default: 0, run until interrupted)",
    )
    parser.add_argument(
        "--poll-seconds",
        type=float,
        default=None,
        help="Seconds between polling ticks (overrides settings)",
    )
    parser.add_argument(
        "--quote",
        type=str,
        default=None,
        help="Print a quote for a single symbol and exit",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Register symbols but do not start the websocket stream",
    )
    return parser.parse_args(argv if argv is not None else None)


def run_session(
    provider: AlpacaProvider,
    settings: Settings,
    symbols: List[str],
    *,
    ticks: int = 0,
    start_stream: bool = True,
    sleep: Callable[[float], None] = time.sleep,
    sentinel: Optional[telemetry.RunSentinel] = None,
) -> StockData:
    """Initialize the snapshot and poll ``update_stock_data`` ``ticks`` times.

    A failed tick is logged and the next tick retries; ``ticks=0`` polls until
    interrupted.
    """

    positions = provider.get_positions()
    stock_data = initialize_stock_data(
        provider,
        symbols,
        settings,
        positions,
        limit=settings.bar_limit,
    )
    tracked = stock_data.symbols()
    subscribe_to_stocks(provider, tracked, settings)
    if start_stream:
        provider.start_stream()

    completed = 0
    try:
        while ticks <= 0 or completed < ticks:
            sleep(settings.poll_seconds)
            completed += 1
            try:
                stock_data = update_stock_data(
                    provider, tracked, stock_data, limit=settings.bar_limit
                )
            except Exception as exc:
                logger.error("TICK_FAILED tick=%d error=%s", completed, exc)
                if sentinel is not None:
                    sentinel.tick("error", error=str(exc))
                continue
            if sentinel is not None:
                sentinel.tick("ok", tracked=len(stock_data.stocks))
            if stock_data.halt_trading:
                logger.warning("HALT_TRADING set; stopping session after tick %d", completed)
                break
    except KeyboardInterrupt:
        logger.info("Session interrupted after %d ticks", completed)
    finally:
        if start_stream:
            provider.stop_stream()
    return stock_data


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv if argv is not None else None)
    configure_console_logging()
    init_logging("stockdata", "stockdata.log")
    load_env()

    if args.quote:
        quote = QuoteClient().fetch_quote(args.quote)
        if quote is None:
            logger.warning("No quote available for %s", args.quote)
            return 1
        print(json.dumps(quote, indent=2, sort_keys=True, default=str))
        return 0

    try:
        settings = load_settings(args.config)
    except (SettingsError, OSError) as exc:
        logger.error("Invalid settings: %s", exc)
        return 1
    if args.backtest:
        settings.is_backtest = True
    if args.poll_seconds is not None:
        settings.poll_seconds = args.poll_seconds

    screener = CandidatesFileScreener(settings.candidates_file)
    try:
        symbols = select_universe(settings, screener)
    except Exception as exc:
        logger.error("Universe selection failed: %s", exc)
        return 1

    mode = "backtest" if settings.is_backtest else "live"
    with telemetry.RunSentinel(component="stockdata", mode=mode, extra={"symbols": len(symbols)}) as sentinel:
        if settings.is_backtest:
            stock_data = initialize_stock_data(None, symbols, settings)
            logger.info("Backtest snapshot ready with %d stocks", len(stock_data.stocks))
            return 0

        try:
            provider = AlpacaProvider.from_env()
        except AlpacaCredentialsError as exc:
            logger.error("Missing Alpaca credentials: %s", ",".join(exc.missing))
            return 1

        try:
            stock_data = run_session(
                provider,
                settings,
                symbols,
                ticks=args.ticks,
                start_stream=not args.no_stream,
                sentinel=sentinel,
            )
        except Exception as exc:
            logger.error("Session initialization failed: %s", exc)
            return 1

    logger.info(
        "SESSION_DONE stocks=%d positions=%d cash=%.2f",
        len(stock_data.stocks),
        len(stock_data.portfolio.positions),
        stock_data.portfolio.cash,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
