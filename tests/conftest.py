import json
import os
import sys
from pathlib import Path

import pytest
from alpaca.data.timeframe import TimeFrame

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _tf_eq(self, other):
    return (
        isinstance(other, TimeFrame)
        and self.amount_value == other.amount_value
        and self.unit_value == other.unit_value
    )

TimeFrame.__eq__ = _tf_eq


@pytest.fixture(autouse=True)
def check_alpaca_env(request):
    if request.node.get_closest_marker("alpaca_optional"):
        return
    api_key = os.getenv("APCA_API_KEY_ID")
    secret = os.getenv("APCA_API_SECRET_KEY")
    if not api_key or not secret:
        pytest.skip("Skipping Alpaca-dependent tests due to missing credentials")


@pytest.fixture(autouse=True)
def _isolated_events(tmp_path, monkeypatch):
    import utils.telemetry as telemetry

    events_path = tmp_path / "events.jsonl"
    monkeypatch.setattr(telemetry, "events_path", lambda: events_path)
    return events_path


@pytest.fixture
def stocks_file(tmp_path):
    def _write(symbols):
        path = tmp_path / "stocks.json"
        path.write_text(json.dumps(list(symbols)), encoding="utf-8")
        return path

    return _write
