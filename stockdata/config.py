"""Run settings for a stock-data session."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yml"
STOCKS_PATH = CONFIG_DIR / "stocks.json"
CANDIDATES_PATH = PROJECT_ROOT / "data" / "latest_candidates.csv"

_PATH_FIELDS = ("stocks_file", "candidates_file")


class SettingsError(ValueError):
    """Raised when the settings file or default-symbols file is invalid."""


@dataclass
class Settings:
    is_backtest: bool = False
    starting_capital: float = 100_000.0
    use_stock_screener: bool = False
    use_default_stocks: bool = True
    stocks_file: Path = STOCKS_PATH
    candidates_file: Path = CANDIDATES_PATH
    bar_limit: int = 150
    poll_seconds: float = 60.0
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base_dir: Path = PROJECT_ROOT) -> "Settings":
        known = {f.name for f in fields(cls)} - {"extra"}
        unknown = sorted(set(data) - known - {"extra"})
        if unknown:
            raise SettingsError(f"Unknown settings keys: {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key in _PATH_FIELDS:
                path = Path(value).expanduser()
                kwargs[key] = path if path.is_absolute() else base_dir / path
            elif key in ("is_backtest", "use_stock_screener", "use_default_stocks"):
                if not isinstance(value, bool):
                    raise SettingsError(f"{key} must be true or false, got {value!r}")
                kwargs[key] = value
            elif key == "extra":
                kwargs[key] = dict(value or {})
            else:
                kwargs[key] = value

        settings = cls(**kwargs)
        try:
            settings.starting_capital = float(settings.starting_capital)
            settings.bar_limit = int(settings.bar_limit)
            settings.poll_seconds = float(settings.poll_seconds)
        except (TypeError, ValueError) as exc:
            raise SettingsError(f"Invalid numeric setting: {exc}") from exc
        if settings.bar_limit <= 0:
            raise SettingsError("bar_limit must be positive")
        if settings.starting_capital < 0:
            raise SettingsError("starting_capital must not be negative")
        return settings


def load_settings(path: Optional[Path] = None, *, base_dir: Path = PROJECT_ROOT) -> Settings:
    """Load :class:`Settings` from a YAML file; a missing default file yields defaults."""

    settings_path = Path(path) if path is not None else SETTINGS_PATH
    if not settings_path.exists():
        if path is not None:
            raise SettingsError(f"Settings file not found: {settings_path}")
        return Settings()
    with settings_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise SettingsError(f"Settings file must contain a mapping: {settings_path}")
    return Settings.from_mapping(data, base_dir=base_dir)


def load_default_symbols(path: Path) -> List[str]:
    """Read the default-symbols JSON list from ``path``."""

    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SettingsError(f"Default symbols file is not valid JSON: {path}") from exc
    if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
        raise SettingsError(f"Default symbols file must be a JSON list of strings: {path}")
    return list(payload)


__all__ = [
    "Settings",
    "SettingsError",
    "load_default_symbols",
    "load_settings",
    "SETTINGS_PATH",
    "STOCKS_PATH",
]
