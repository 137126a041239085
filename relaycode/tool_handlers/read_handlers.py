"""
Information tools over files and directories: read(), list_dir().
"""

import os
from typing import Any, List, Mapping

from relaycode.errors import ToolExecutionError
from relaycode.tool_handlers._path import (
    _is_path_within_sandbox,
    _validate_path,
    is_binary_name,
    read_lines,
)

TREE_DEPTH = 2


def count_lines(path: str) -> int:
    try:
        return len(read_lines(path))
    except (OSError, UnicodeDecodeError):
        return 0


def _build_tree(directory: str, root: str, prefix: str, depth: int = 0) -> List[str]:
    if depth >= TREE_DEPTH:
        return []
    dirs: List[str] = []
    files: List[str] = []
    for entry in os.scandir(directory):
        if entry.name.startswith("."):
            continue
        if not _is_path_within_sandbox(entry.path, root):
            continue
        if entry.is_dir():
            dirs.append(entry.name)
        else:
            files.append(entry.name)
    dirs.sort()
    files.sort()

    out: List[str] = []
    for i, name in enumerate(dirs):
        is_last = i == len(dirs) - 1 and not files
        out.append(f"{prefix}{'└── ' if is_last else '├── '}{name}/")
        child_prefix = prefix + ("    " if is_last else "│   ")
        out.extend(_build_tree(os.path.join(directory, name), root, child_prefix, depth + 1))
    for i, name in enumerate(files):
        branch = "└── " if i == len(files) - 1 else "├── "
        if is_binary_name(name):
            out.append(f"{prefix}{branch}{name} (binary)")
        else:
            out.append(f"{prefix}{branch}{name} ({count_lines(os.path.join(directory, name))} lines)")
    return out


def list_dir(root: str, params: Mapping[str, Any]) -> str:
    shown = params.get("path") or "."
    try:
        path = _validate_path(root, shown, check_exists=True)
    except ToolExecutionError as e:
        return f"error: {e}"
    if not os.path.isdir(path):
        return f"error: {shown} is not a directory"
    try:
        tree = _build_tree(path, root, "")
    except OSError as e:
        return f"error: cannot list directory {shown} ({e})"
    body = "\n".join(tree) if tree else "[Empty directory]"
    return f"Contents of {shown}:\n{body}"


def read(root: str, params: Mapping[str, Any]) -> str:
    name = params.get("file_name") or "."
    if is_binary_name(name):
        return (
            f"error: cannot read {name} - binary and compressed files are not supported. "
            "Only plain text files can be read."
        )
    try:
        path = _validate_path(root, name, check_exists=True)
    except ToolExecutionError as e:
        return f"error: {e}"

    if os.path.isdir(path):
        return list_dir(root, {"path": name})

    try:
        lines = read_lines(path)
    except UnicodeDecodeError:
        return f"error: cannot read {name} - file appears to be binary"
    except OSError as e:
        return f"error: cannot read {name} ({e})"

    if not "".join(lines).strip():
        return f"{name} is empty"
    numbered = "\n".join(f"{i}: {line}" for i, line in enumerate(lines, 1))
    return f"Content of {name}:\n{numbered}"
