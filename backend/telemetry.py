"""Pipeline telemetry: event logging and summary reader."""

import json
import os
from collections import Counter
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Optional

from text_utils import normalize_whitespace

_BACKEND_DIR = Path(__file__).resolve().parent


def telemetry_path() -> Path:
    return _BACKEND_DIR / (
        os.getenv("PIPELINE_TELEMETRY_LOG", "pipeline_telemetry.log") or "pipeline_telemetry.log"
    )


def telemetry_enabled() -> bool:
    return (os.getenv("PIPELINE_TELEMETRY_ENABLED", "1") or "1").strip().lower() in (
        "1", "true", "yes", "on",
    )


def append_pipeline_telemetry(event: str, payload: Optional[dict] = None) -> None:
    if not telemetry_enabled():
        return
    try:
        data = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": normalize_whitespace(event or "event"),
            "payload": payload or {},
        }
        path = telemetry_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(data, ensure_ascii=False, default=str) + "\n")
    except OSError:
        pass


def _parse_iso_utc(ts_raw: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(str(ts_raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def _read_events(path: Path, cutoff: datetime) -> tuple[list[dict], int, Optional[str]]:
    """Events newer than ``cutoff`` in file order, unreadable line count, and any read error.

    A read error keeps whatever was collected before it.
    """
    events: list[dict] = []
    parse_errors = 0
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                raw = line.strip()
                if not raw:
                    continue
                try:
                    item = json.loads(raw)
                except json.JSONDecodeError:
                    parse_errors += 1
                    continue
                if not isinstance(item, dict):
                    parse_errors += 1
                    continue
                ts = _parse_iso_utc(str(item.get("ts") or ""))
                if not ts or ts < cutoff:
                    continue
                payload = item.get("payload")
                events.append(
                    {
                        "ts": ts.isoformat(),
                        "event": normalize_whitespace(str(item.get("event") or "")) or "event",
                        "payload": payload if isinstance(payload, dict) else {},
                    }
                )
    except (OSError, UnicodeDecodeError) as exc:
        return events, parse_errors, f"{type(exc).__name__}: {exc}"
    return events, parse_errors, None


def read_pipeline_telemetry_summary(hours: int = 24, limit: int = 6) -> dict:
    """Counts per event, failures per stage and the reject rate over the last ``hours``."""
    h = max(1, min(168, int(hours or 24)))
    n = max(1, min(25, int(limit or 6)))
    now_utc = datetime.now(timezone.utc)
    path = telemetry_path()
    file_exists = path.exists()
    events, parse_errors, read_error = (
        _read_events(path, now_utc - timedelta(hours=h)) if file_exists else ([], 0, None)
    )

    counts = Counter(e["event"] for e in events)
    stage_failures = Counter(
        normalize_whitespace(str(e["payload"].get("stage") or "")) or "UNKNOWN"
        for e in events
        if e["event"] == "turn_failed"
    )
    handled = counts["turn_completed"] + counts["turn_rejected"]
    reject_rate = round(counts["turn_rejected"] / handled * 100.0, 2) if handled else 0.0

    return {
        "status": "ok",
        "now_utc": now_utc.isoformat(),
        "window_hours": h,
        "telemetry_enabled": telemetry_enabled(),
        "file_exists": file_exists,
        "file_path": path.name,
        "counts": dict(counts),
        "stage_failures": dict(stage_failures),
        "reject_rate_percent": reject_rate,
        "filter_fail_open_count": counts["filter_fail_open"],
        "reply_parse_fallback_count": counts["reply_parse_fallback"],
        "recent": events[-n:],
        "parse_errors": parse_errors,
        "read_error": read_error,
    }
