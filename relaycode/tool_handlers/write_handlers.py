"""
Mutating tool handlers.

create() and delete() take effect immediately. compute_update() and
compute_insert() only build the proposed buffer; writing it is the pending
edit controller's job.
"""

import os
from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple

from relaycode.errors import ToolExecutionError
from relaycode.tool_handlers._path import _validate_path, normalize_newlines


@dataclass(frozen=True)
class ProposedEdit:
    target_path: str  # as written by the agent, root-relative
    abs_path: str
    original_content: str
    proposed_content: str
    description: str


def _split_contents(params: Mapping[str, Any]) -> List[str]:
    contents = params.get("contents")
    if not contents:
        return []
    return normalize_newlines(str(contents)).split("\n")


def _parse_line_number(value: Any, name: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ToolExecutionError(f"{name} must be an integer, got {value!r}")


def _read_existing(root: str, name: Any) -> Tuple[str, str]:
    path = _validate_path(root, name, check_exists=True)
    if os.path.isdir(path):
        raise ToolExecutionError(f"{name} is a directory")
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            content = normalize_newlines(f.read())
    except (OSError, UnicodeDecodeError) as e:
        raise ToolExecutionError(f"cannot read {name} ({e})")
    return path, content


def compute_update(root: str, params: Mapping[str, Any]) -> ProposedEdit:
    """Replace 1-based inclusive lines [start_line, end_line]. Raises ToolExecutionError."""
    name = params.get("file_name")
    path, original = _read_existing(root, name)
    lines = original.split("\n")
    start = _parse_line_number(params.get("start_line"), "start_line")
    end = _parse_line_number(params.get("end_line"), "end_line")
    if not 0 < start <= end <= len(lines):
        raise ToolExecutionError(
            f"invalid line range {start}-{end} for {name} ({len(lines)} lines)"
        )
    updated = lines[: start - 1] + _split_contents(params) + lines[end:]
    return ProposedEdit(
        target_path=str(name).strip(),
        abs_path=path,
        original_content=original,
        proposed_content="\n".join(updated),
        description=params.get("change_description") or "File update",
    )


def compute_insert(root: str, params: Mapping[str, Any]) -> ProposedEdit:
    """Insert contents before 1-based line_number (line_count + 1 appends)."""
    name = params.get("file_name")
    path, original = _read_existing(root, name)
    lines = original.split("\n")
    line = _parse_line_number(params.get("line_number"), "line_number")
    if not 1 <= line <= len(lines) + 1:
        raise ToolExecutionError(
            f"invalid line number {line} for {name} ({len(lines)} lines)"
        )
    updated = lines[: line - 1] + _split_contents(params) + lines[line - 1:]
    return ProposedEdit(
        target_path=str(name).strip(),
        abs_path=path,
        original_content=original,
        proposed_content="\n".join(updated),
        description=params.get("change_description") or "Line insertion",
    )


def create(root: str, params: Mapping[str, Any]) -> str:
    name = params.get("path")
    try:
        path = _validate_path(root, name)
    except ToolExecutionError as e:
        return f"error: {e}"
    if os.path.isdir(path):
        return f"error: {name} is a directory"
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(params.get("contents") or "")
    except OSError as e:
        return f"error: cannot create {name} ({e})"
    return f"ok: created {name}"


def delete(root: str, params: Mapping[str, Any]) -> str:
    name = params.get("file_name")
    try:
        path = _validate_path(root, name, check_exists=True)
    except ToolExecutionError as e:
        return f"error: {e}"
    if os.path.isdir(path):
        return f"error: {name} is a directory; only files can be deleted"
    try:
        os.unlink(path)
    except OSError as e:
        return f"error: cannot delete {name} ({e})"
    return f"ok: deleted {name}"
