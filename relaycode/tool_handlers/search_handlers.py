"""
Search tool handlers: search_by_name(), search_by_content().
"""

import os
import re
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from relaycode.errors import ToolExecutionError
from relaycode.tool_handlers._path import (
    DEFAULT_IGNORE_DIRS,
    FILE_TYPE_EXTENSIONS,
    _is_path_within_sandbox,
    _validate_path,
    file_extension,
    is_binary_name,
    read_lines,
    to_display_path,
)

DEFAULT_CONTEXT_LINES = 10


def _walk_files(folder: str, root: str) -> Iterator[str]:
    """Yield files under folder, skipping links that resolve outside root."""
    for dirpath, dirs, files in os.walk(folder):
        dirs[:] = sorted(d for d in dirs if d not in DEFAULT_IGNORE_DIRS)
        for name in sorted(files):
            path = os.path.join(dirpath, name)
            if _is_path_within_sandbox(path, root):
                yield path


def _compile(regex: Optional[str], flags: int = 0) -> re.Pattern:
    if not regex:
        raise ToolExecutionError("regex is required")
    try:
        return re.compile(regex, flags)
    except re.error as e:
        raise ToolExecutionError(f"invalid regex {regex!r} ({e})")


def _resolve_folder(root: str, folder: str) -> str:
    path = _validate_path(root, folder, check_exists=True)
    if not os.path.isdir(path):
        raise ToolExecutionError(f"{folder} is not a directory")
    return path


def search_by_name(root: str, params: Mapping[str, Any]) -> str:
    regex = params.get("regex")
    folder = params.get("folder") or "."
    try:
        pattern = _compile(regex, re.IGNORECASE)
        base = _resolve_folder(root, folder)
    except ToolExecutionError as e:
        return f"error: {e}"

    hits = sorted(
        to_display_path(path, root)
        for path in _walk_files(base, root)
        if pattern.search(os.path.basename(path))
    )
    if not hits:
        return f'No files found matching "{regex}" in {folder}'
    return "Files found:\n" + "\n".join(hits)


def _merge_windows(windows: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge 0-based inclusive windows that overlap, preserving order."""
    merged: List[List[int]] = []
    for start, end in windows:
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(s, e) for s, e in merged]


def _file_sections(lines: List[str], pattern: re.Pattern, context: int) -> List[str]:
    last = len(lines) - 1
    windows = [
        (max(0, i - context), min(last, i + context))
        for i, line in enumerate(lines)
        if pattern.search(line)
    ]
    sections = []
    for start, end in _merge_windows(windows):
        rows = []
        for i in range(start, end + 1):
            marker = " // <-- MATCH" if pattern.search(lines[i]) else ""
            rows.append(f"{i + 1}: {lines[i]}{marker}")
        sections.append(f"(lines {start + 1}-{end + 1}):\n" + "\n".join(rows))
    return sections


def search_by_content(root: str, params: Mapping[str, Any], context: int = DEFAULT_CONTEXT_LINES) -> str:
    regex = params.get("regex")
    folder = params.get("folder") or "."
    file_type = params.get("file_type")
    try:
        pattern = _compile(regex)
        base = _resolve_folder(root, folder)
        allowed = None
        if file_type:
            allowed = FILE_TYPE_EXTENSIONS.get(str(file_type).lower())
            if allowed is None:
                raise ToolExecutionError(
                    f"unknown file_type '{file_type}' (expected: {', '.join(sorted(FILE_TYPE_EXTENSIONS))})"
                )
    except ToolExecutionError as e:
        return f"error: {e}"

    blocks: List[str] = []
    for path in _walk_files(base, root):
        name = os.path.basename(path)
        if is_binary_name(name):
            continue
        if allowed is not None and file_extension(name) not in allowed:
            continue
        try:
            lines = read_lines(path)
        except (OSError, UnicodeDecodeError):
            continue
        rel = to_display_path(path, root)
        blocks.extend(f"{rel} {section}" for section in _file_sections(lines, pattern, context))

    if not blocks:
        return f'No content found matching "{regex}" in {folder}'
    return "\n\n".join(blocks)
