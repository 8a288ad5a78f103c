import os
import json
import sys
import subprocess
from pathlib import Path
from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc).isoformat()


def repo_root() -> Path:
    """Resolve the repository root regardless of the current working directory."""

    here = Path(__file__).resolve()
    return here.parents[1]


def events_path() -> Path:
    path = repo_root() / "data" / "stockdata_events.jsonl"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def get_version() -> str:
    try:
        sha = subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"], text=True, stderr=subprocess.DEVNULL
        ).strip()
        return sha
    except Exception:
        return os.environ.get("STOCKDATA_VERSION", "unknown")


def log_event(ev: dict):
    ev.setdefault("ts", utcnow())
    ev.setdefault("component", "unknown")
    path = events_path()
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(json.dumps(ev, default=str) + "\n")
    if os.environ.get("STOCKDATA_DEBUG_EVENT_PATH") == "1":
        print(f"[telemetry] wrote event to: {path}", file=sys.stderr)


class RunSentinel:
    """Context manager that guarantees RUN_START/RUN_END emission for a session."""

    def __init__(self, component: str, mode: str = "live", extra: dict | None = None):
        self.component = component
        self.mode = mode
        self.extra = extra or {}
        self.version = get_version()
        self.ticks = 0

    def __enter__(self):
        log_event(
            {
                "event": "RUN_START",
                "component": self.component,
                "version": self.version,
                "mode": self.mode,
                **self.extra,
            }
        )
        return self

    def tick(self, status: str, **kvs):
        self.ticks += 1
        log_event(
            {
                "event": "TICK_STATUS",
                "component": self.component,
                "status": status,
                "tick": self.ticks,
                "version": self.version,
                **kvs,
            }
        )

    def __exit__(self, _exc_type, exc, _tb):
        log_event(
            {
                "event": "RUN_END",
                "component": self.component,
                "version": self.version,
                "ticks": self.ticks,
                "status": "error" if exc else "ok",
                "error": None if not exc else str(exc),
            }
        )
        return False


emit_event = log_event
