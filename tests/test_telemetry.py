import json
from pathlib import Path

import pytest

import utils.telemetry as telemetry


pytestmark = pytest.mark.alpaca_optional


def _read_events(path: Path) -> list[dict]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text("utf-8").splitlines()]


def test_run_sentinel_writes_start_ticks_end(_isolated_events, monkeypatch):
    monkeypatch.setattr(telemetry, "get_version", lambda: "test-version")

    with telemetry.RunSentinel(component="unit-test", mode="live", extra={"symbols": 3}) as rs:
        rs.tick(status="ok", tracked=3)
        rs.tick(status="error", error="timeout")

    events = _read_events(_isolated_events)
    assert [event["event"] for event in events] == [
        "RUN_START",
        "TICK_STATUS",
        "TICK_STATUS",
        "RUN_END",
    ]

    run_start, first, second, run_end = events
    assert run_start["mode"] == "live"
    assert run_start["symbols"] == 3
    assert first["tick"] == 1 and second["tick"] == 2
    assert run_end["status"] == "ok"
    assert run_end["ticks"] == 2
    assert run_end["version"] == "test-version"


def test_run_sentinel_records_errors(_isolated_events):
    with pytest.raises(RuntimeError):
        with telemetry.RunSentinel(component="unit-test"):
            raise RuntimeError("bars unavailable")

    run_end = _read_events(_isolated_events)[-1]
    assert run_end["status"] == "error"
    assert run_end["error"] == "bars unavailable"
