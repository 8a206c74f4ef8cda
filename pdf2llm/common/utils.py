import json
import os
import shutil
import sys
import yaml
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple
from pathlib import Path

# Progress event schema constants for lightweight validation/testing
PROGRESS_EVENT_SCHEMA: Dict[str, Tuple[type, ...]] = {
    "timestamp": (str,),
    "run_id": (str, type(None)),
    "stage": (str,),
    "status": (str,),
    "current": (int, type(None)),
    "total": (int, type(None)),
    "percent": (float, int, type(None)),
    "message": (str, type(None)),
    "artifact": (str, type(None)),
    "module_id": (str, type(None)),
    "extra": (dict,),
}
# `warning` is an event-level status for non-fatal issues (e.g. markdown conversion failed).
# Stage state keeps its lifecycle status (running/done/failed/skipped).
PROGRESS_STATUS_VALUES = {"running", "done", "failed", "skipped", "warning"}


def load_settings(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def ensure_dir(path: str):
    os.makedirs(path, exist_ok=True)


def save_json(path: str, data: Any):
    """Save JSON file, ensuring parent directory exists."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def save_jsonl(path: str, rows):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")


def append_jsonl(path: str, row):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=False) + "\n")


def read_jsonl(path: str):
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield json.loads(line)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def warn(message: str):
    print(f"WARNING: {message}", file=sys.stderr)


@contextmanager
def work_area(path: str, keep: bool = False) -> Iterator[str]:
    """
    Scoped intermediate directory (sample page text, pre-normalization concat).
    Removed on every exit path, success or failure, unless `keep` is set.
    """
    ensure_dir(path)
    try:
        yield path
    finally:
        if not keep:
            shutil.rmtree(path, ignore_errors=True)


def _type_ok(val: Any, allowed: Tuple[type, ...]) -> bool:
    if val is None:
        return type(None) in allowed
    for typ in allowed:
        if typ is float and isinstance(val, (int, float)) and not isinstance(val, bool):
            return True
        if typ is int and isinstance(val, int) and not isinstance(val, bool):
            return True
        if isinstance(val, typ):
            return True
    return False


def validate_progress_event(event: Dict[str, Any]):
    """Lightweight runtime guard to keep progress events well-shaped."""
    missing = [k for k in PROGRESS_EVENT_SCHEMA if k not in event]
    if missing:
        raise ValueError(f"Missing progress event fields: {missing}")
    if event.get("status") not in PROGRESS_STATUS_VALUES:
        raise ValueError(f"Invalid progress status: {event.get('status')}")
    for key, allowed in PROGRESS_EVENT_SCHEMA.items():
        if not _type_ok(event.get(key), allowed):
            expected = ", ".join([t.__name__ if t is not type(None) else "None" for t in allowed])
            raise ValueError(f"Field '{key}' expected types [{expected}], got {type(event.get(key)).__name__}")


class ProgressLogger:
    """
    Stage event emitter for a single pdf2llm run.
    - Appends JSONL events to progress_path (append-only).
    - Updates the state file with per-stage status + progress counters.
    Both paths are optional; with neither set, log() only builds and validates the event.
    """

    def __init__(self, state_path: Optional[str] = None, progress_path: Optional[str] = None,
                 run_id: Optional[str] = None):
        self.state_path = state_path
        self.progress_path = progress_path
        self.run_id = run_id
        if progress_path:
            Path(progress_path).parent.mkdir(parents=True, exist_ok=True)
        if state_path:
            Path(state_path).parent.mkdir(parents=True, exist_ok=True)

    def log(self, stage: str, status: str, current: Optional[int] = None, total: Optional[int] = None,
            message: Optional[str] = None, artifact: Optional[str] = None, module_id: Optional[str] = None,
            extra: Optional[Dict[str, Any]] = None):
        now = utc_now()
        percent = None
        if current is not None and total:
            percent = round((current / total) * 100, 1)

        event = {
            "timestamp": now,
            "run_id": self.run_id,
            "stage": stage,
            "status": status,
            "current": current,
            "total": total,
            "percent": percent,
            "message": message,
            "artifact": artifact,
            "module_id": module_id,
            "extra": extra or {},
        }

        validate_progress_event(event)

        if self.progress_path:
            append_jsonl(self.progress_path, event)

        if self.state_path:
            self._update_state(stage, status, event)

        return event

    def _update_state(self, stage: str, status: str, event: Dict[str, Any]):
        state: Dict[str, Any] = {}
        if os.path.exists(self.state_path):
            try:
                with open(self.state_path, "r", encoding="utf-8") as f:
                    state = json.load(f)
            except (OSError, ValueError):
                state = {}
        stages = state.get("stages", {})
        if self.run_id:
            state["run_id"] = self.run_id
        stage_state = stages.get(stage, {})
        state_status = status
        if status == "warning":
            prev = stage_state.get("status")
            state_status = prev if prev in {"done", "failed", "skipped"} else "running"
        stage_state.update({
            "status": state_status,
            "artifact": event["artifact"] or stage_state.get("artifact"),
            "updated_at": event["timestamp"],
            "module_id": event["module_id"] or stage_state.get("module_id"),
            "progress": {
                "current": event["current"],
                "total": event["total"],
                "percent": event["percent"],
                "message": event["message"],
            }
        })
        stages[stage] = stage_state
        state["stages"] = stages
        with open(self.state_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)
