from pathlib import Path

import pytest

from stockdata.config import (
    SETTINGS_PATH,
    Settings,
    SettingsError,
    load_default_symbols,
    load_settings,
)


pytestmark = pytest.mark.alpaca_optional


def test_repo_settings_and_default_symbols_load():
    settings = load_settings(SETTINGS_PATH)
    symbols = load_default_symbols(settings.stocks_file)

    assert settings.is_backtest is False
    assert settings.bar_limit == 150
    assert symbols
    assert all(isinstance(symbol, str) for symbol in symbols)


def test_relative_paths_resolve_against_base_dir(tmp_path):
    config = tmp_path / "settings.yml"
    config.write_text(
        "is_backtest: true\n"
        "starting_capital: 5000\n"
        "stocks_file: config/stocks.json\n",
        encoding="utf-8",
    )

    settings = load_settings(config, base_dir=tmp_path)

    assert settings.is_backtest is True
    assert settings.starting_capital == 5000.0
    assert settings.stocks_file == tmp_path / "config" / "stocks.json"


@pytest.mark.parametrize(
    "contents",
    [
        "bogus_key: 1\n",
        "is_backtest: 'yes'\n",
        "bar_limit: 0\n",
        "starting_capital: lots\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_settings_raise(tmp_path, contents):
    config = tmp_path / "settings.yml"
    config.write_text(contents, encoding="utf-8")

    with pytest.raises(SettingsError):
        load_settings(config)


def test_missing_explicit_settings_file_raises(tmp_path):
    with pytest.raises(SettingsError):
        load_settings(tmp_path / "nope.yml")


def test_defaults_when_nothing_configured():
    settings = Settings()

    assert settings.use_default_stocks is True
    assert settings.use_stock_screener is False
    assert isinstance(settings.stocks_file, Path)


@pytest.mark.parametrize("contents", ['{"AAPL": 1}', "[1, 2]", "not json"])
def test_default_symbols_must_be_list_of_strings(tmp_path, contents):
    path = tmp_path / "stocks.json"
    path.write_text(contents, encoding="utf-8")

    with pytest.raises(SettingsError):
        load_default_symbols(path)
