"""
Logging middleware: writes a JSONL record for every lifecycle event.
"""

import json
import os
import re
import time
from typing import Any, Dict, Optional

from relaycode import hooks

# Module state
_log_path: Optional[str] = None
_run_context: Dict[str, Any] = {}

ALL_EVENTS = [
    "turn_start", "turn_end",
    "tool_before", "tool_after",
    "format_error", "incomplete_message", "turn_blocks_ignored",
    "pending_created", "pending_revised", "pending_committed", "pending_rejected",
    "pending_discarded",
    "discovery_added", "mode_switched", "document_saved",
    "compaction", "persistence_error", "codebase_changed",
]

# Payload fields that can hold whole file buffers.
_SKIP_FIELDS = ("params", "original_content", "proposed_content")


def get_log_path() -> Optional[str]:
    return _log_path


def set_log_path(path: Optional[str]) -> None:
    global _log_path
    _log_path = path


def _write_event(event_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
    if not _log_path:
        return
    rec: Dict[str, Any] = {"ts": time.strftime("%Y-%m-%dT%H:%M:%S"), "event": event_type}
    for key in ("run_name", "root", "work_dir"):
        val = _run_context.get(key)
        if val:
            rec[key] = val
    if payload:
        rec.update(payload)
    parent = os.path.dirname(_log_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(_log_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")


def _on_event(event_name: str):
    """Create a hook callback that logs the event data."""
    def callback(data: Dict[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k not in _SKIP_FIELDS and k != "event"}
        _write_event(event_name, payload)
    return callback


def log_event(event_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
    _write_event(event_type, payload)


def init_logging(log_dir: str, run_name: Optional[str] = None) -> str:
    """Create the log file path under ``log_dir`` (once per process). Returns the path."""
    global _log_path
    if _log_path:
        return _log_path
    os.makedirs(log_dir, exist_ok=True)
    timestamp = time.strftime("%Y-%m-%d_%H-%M-%S")
    safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", run_name or "host")
    _log_path = os.path.join(log_dir, f"relaycode_{safe_name}_{timestamp}.jsonl")
    return _log_path


def update_run_context(context: Dict[str, Any]) -> None:
    _run_context.update(context)


def reset() -> None:
    global _log_path
    _log_path = None
    _run_context.clear()


def install(log_path: Optional[str] = None, run_context: Optional[Dict[str, Any]] = None) -> None:
    """Register logging hooks for all lifecycle events."""
    global _log_path
    if log_path:
        _log_path = log_path
    if run_context:
        _run_context.update(run_context)

    for event in ALL_EVENTS:
        hooks.register(event, _on_event(event))
