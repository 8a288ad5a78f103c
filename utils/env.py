"""Environment loading helpers for the session runner and API clients."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv


_ENV_ALIASES: tuple[tuple[str, ...], ...] = (
    ("APCA_API_KEY_ID", "ALPACA_API_KEY_ID"),
    ("APCA_API_SECRET_KEY", "ALPACA_API_SECRET_KEY"),
    ("APCA_API_BASE_URL", "ALPACA_API_BASE_URL"),
    ("APCA_DATA_API_BASE_URL", "APCA_API_DATA_URL", "ALPACA_API_DATA_URL"),
    ("FINANCIAL_MODELING_PREP_API_KEY", "FMP_API_KEY"),
)

_REQUIRED_PRIMARY: tuple[str, ...] = (
    "APCA_API_KEY_ID",
    "APCA_API_SECRET_KEY",
)

PAPER_TRADING_URL = "https://paper-api.alpaca.markets"
LIVE_TRADING_URL = "https://api.alpaca.markets"


class AlpacaCredentialsError(RuntimeError):
    """Raised when required Alpaca credentials are missing or malformed."""

    def __init__(self, reason: str, *, missing: Sequence[str] | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.missing = tuple(missing or ())


def _normalize_apca_base_url(value: str) -> str:
    """Return ``value`` without trailing ``/v2`` or slashes."""

    trimmed = value.strip().rstrip("/")
    if trimmed.endswith("/v2"):
        trimmed = trimmed[: -len("/v2")]
    return trimmed.rstrip("/")


def _resolve_env_value(primary: str, *aliases: str) -> tuple[str, str | None]:
    """Return ``(value, source_key)`` for env ``primary`` or its aliases."""

    for key in (primary, *aliases):
        trimmed = (os.environ.get(key) or "").strip()
        if trimmed:
            return trimmed, key
    return "", None


def _normalize_env_aliases() -> None:
    for primary_key, *aliases in _ENV_ALIASES:
        value, _ = _resolve_env_value(primary_key, *aliases)
        if not value:
            continue
        if primary_key == "APCA_API_BASE_URL":
            value = _normalize_apca_base_url(value)
        elif primary_key == "APCA_DATA_API_BASE_URL":
            value = value.rstrip("/")
        os.environ[primary_key] = value


def load_env(
    required_keys: Sequence[str] | None = None,
    *,
    override: bool = False,
) -> tuple[list[str], list[str]]:
    """Load environment files from well-known locations.

    ``~/.config/stockdata/.env`` is read first, then ``<repo>/.env``. Returns
    ``(loaded_files, missing_required)`` so callers can emit diagnostics
    before proceeding.
    """

    repo_root = Path(__file__).resolve().parents[1]
    user_env = Path(os.path.expanduser("~/.config/stockdata/.env"))
    repo_env = repo_root / ".env"

    loaded_files: list[str] = []
    for path in (user_env, repo_env):
        if path.exists() and load_dotenv(path, override=override):
            loaded_files.append(str(path))

    _normalize_env_aliases()

    required = list(required_keys) if required_keys is not None else list(_REQUIRED_PRIMARY)
    missing_required = [key for key in required if not os.environ.get(key)]
    return loaded_files, missing_required


def trading_base_url() -> str:
    """Return the Alpaca trading API base URL, defaulting to paper trading."""

    env_base, _ = _resolve_env_value("APCA_API_BASE_URL", "ALPACA_API_BASE_URL")
    if env_base:
        return _normalize_apca_base_url(env_base)
    env = (os.getenv("APCA_API_ENV") or "paper").strip().lower()
    return LIVE_TRADING_URL if env == "live" else PAPER_TRADING_URL


def is_paper_trading() -> bool:
    return "paper" in urlparse(trading_base_url()).netloc.lower()


def get_alpaca_creds() -> Tuple[Optional[str], Optional[str], str, str]:
    """Return ``(key, secret, trading_base_url, feed)`` from the environment."""

    key, _ = _resolve_env_value("APCA_API_KEY_ID", "ALPACA_API_KEY_ID")
    secret, _ = _resolve_env_value("APCA_API_SECRET_KEY", "ALPACA_API_SECRET_KEY")
    feed = (os.getenv("ALPACA_DATA_FEED") or "iex").strip().lower()
    return key or None, secret or None, trading_base_url(), feed


def assert_alpaca_creds() -> tuple[str, str]:
    """Return ``(key, secret)`` or raise :class:`AlpacaCredentialsError`."""

    key, secret, _, _ = get_alpaca_creds()
    missing: list[str] = []
    if not key:
        missing.append("APCA_API_KEY_ID")
    if not secret:
        missing.append("APCA_API_SECRET_KEY")
    if missing:
        raise AlpacaCredentialsError("missing", missing=missing)
    return key, secret


def get_fmp_api_key() -> Optional[str]:
    """Return the Financial Modeling Prep API key, or ``None`` when unset."""

    value, _ = _resolve_env_value("FINANCIAL_MODELING_PREP_API_KEY", "FMP_API_KEY")
    return value or None


__all__ = [
    "AlpacaCredentialsError",
    "assert_alpaca_creds",
    "get_alpaca_creds",
    "get_fmp_api_key",
    "is_paper_trading",
    "load_env",
    "trading_base_url",
]
