from .utils import (
    load_settings,
    ensure_dir,
    save_json,
    save_jsonl,
    append_jsonl,
    read_jsonl,
    work_area,
    ProgressLogger,
    PROGRESS_EVENT_SCHEMA,
    PROGRESS_STATUS_VALUES,
    validate_progress_event,
)
from .page_numbers import validate_sequential_page_numbers

__all__ = [
    "load_settings",
    "ensure_dir",
    "save_json",
    "save_jsonl",
    "append_jsonl",
    "read_jsonl",
    "work_area",
    "ProgressLogger",
    "PROGRESS_EVENT_SCHEMA",
    "PROGRESS_STATUS_VALUES",
    "validate_progress_event",
    "validate_sequential_page_numbers",
]
