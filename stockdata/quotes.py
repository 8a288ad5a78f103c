"""Best-effort point-in-time quotes from Financial Modeling Prep.

Quote lookups are advisory display data. Every failure (missing input,
missing API key, HTTP error, empty or malformed body) is logged and turned
into ``None``; nothing in this module raises to its callers.
"""
from __future__ import annotations

import collections
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from utils.env import get_fmp_api_key

LOGGER = logging.getLogger(__name__)

FMP_BASE_URL = "https://financialmodelingprep.com/api/v3"


class TokenBucket:
    """Sliding-window limiter allowing ``max_per_minute`` acquisitions per minute."""

    def __init__(
        self,
        max_per_minute: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_per_minute = max(1, int(max_per_minute or 1))
        self._timestamps: collections.deque[float] = collections.deque()
        self._lock = threading.Lock()
        self._clock = clock
        self._sleep = sleep

    def acquire(self) -> None:
        while True:
            with self._lock:
                now = self._clock()
                cutoff = now - 60
                while self._timestamps and self._timestamps[0] <= cutoff:
                    self._timestamps.popleft()
                if len(self._timestamps) < self.max_per_minute:
                    self._timestamps.append(now)
                    return
                sleep_for = max(self._timestamps[0] + 60 - now, 0.01)
            self._sleep(min(sleep_for, 0.5))


class QuoteClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = FMP_BASE_URL,
        timeout: float = 10.0,
        max_per_minute: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limiter = TokenBucket(max_per_minute) if max_per_minute else None
        self.http = session or requests.Session()

    def _resolve_key(self) -> Optional[str]:
        return self.api_key or get_fmp_api_key()

    def fetch_quote(self, symbol: Optional[str]) -> Optional[Dict[str, Any]]:
        symbol = str(symbol or "").strip().upper()
        api_key = self._resolve_key()
        if not symbol:
            LOGGER.warning("QUOTE_SKIPPED reason=no_symbol")
            return None
        if not api_key:
            LOGGER.warning("QUOTE_SKIPPED symbol=%s reason=no_api_key", symbol)
            return None

        if self.limiter is not None:
            self.limiter.acquire()
        url = f"{self.base_url}/quote/{symbol}"
        try:
            response = self.http.get(url, params={"apikey": api_key}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            LOGGER.error("QUOTE_FAILED symbol=%s reason=http error=%s", symbol, exc)
            return None
        except ValueError as exc:
            LOGGER.error("QUOTE_FAILED symbol=%s reason=malformed error=%s", symbol, exc)
            return None

        if not payload:
            LOGGER.warning("QUOTE_EMPTY symbol=%s", symbol)
            return None
        if not isinstance(payload, list) or not isinstance(payload[0], dict):
            LOGGER.error(
                "QUOTE_FAILED symbol=%s reason=malformed payload_type=%s",
                symbol,
                type(payload).__name__,
            )
            return None
        return payload[0]

    def fetch_quotes(self, symbols: Iterable[str], max_workers: int = 8) -> Dict[str, Dict[str, Any]]:
        """Fetch quotes concurrently; symbols without a quote are left out."""

        wanted = list(dict.fromkeys(str(s or "").strip().upper() for s in symbols if s))
        if not wanted:
            return {}
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(wanted)))) as pool:
            results = list(pool.map(self.fetch_quote, wanted))
        quotes = {symbol: quote for symbol, quote in zip(wanted, results) if quote is not None}
        LOGGER.info("QUOTES_FETCHED requested=%d ok=%d", len(wanted), len(quotes))
        return quotes


_default_client: Optional[QuoteClient] = None


def fetch_quote(symbol: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the latest quote for ``symbol`` or ``None`` when unavailable."""

    global _default_client
    if _default_client is None:
        _default_client = QuoteClient()
    return _default_client.fetch_quote(symbol)


__all__ = ["FMP_BASE_URL", "QuoteClient", "TokenBucket", "fetch_quote"]
