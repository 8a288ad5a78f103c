from .env import get_alpaca_creds, get_fmp_api_key, load_env
from .logger_utils import configure_console_logging, init_logging

__all__ = [
    "get_alpaca_creds",
    "get_fmp_api_key",
    "load_env",
    "configure_console_logging",
    "init_logging",
]
