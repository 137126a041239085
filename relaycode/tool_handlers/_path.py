"""
Path validation, ignore checks and file-type tables for tool handlers.
"""

import os
from typing import List, Optional

from relaycode.errors import ToolExecutionError

DEFAULT_IGNORE_DIRS = {".git", "node_modules", "__pycache__", ".venv", ".pytest_cache"}

BINARY_EXTENSIONS = {
    ".jar", ".ear", ".war", ".zip", ".tar", ".gz", ".7z", ".rar",
    ".exe", ".dll", ".so", ".dylib", ".lib", ".a", ".o",
    ".class", ".pyc", ".pyo", ".beam", ".elc",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp",
    ".mp3", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm",
    ".ttf", ".otf", ".woff", ".woff2", ".eot",
    ".db", ".sqlite", ".sqlite3",
    ".min.js", ".min.css",
}

CODE_EXTENSIONS = {
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".c", ".cpp", ".cs", ".rb", ".go",
    ".php", ".swift", ".kt", ".rs", ".scala", ".clj", ".lua", ".sh", ".bash",
    ".html", ".css", ".scss", ".sass", ".less", ".sql", ".json", ".xml", ".yaml", ".yml",
    ".h", ".hpp", ".m", ".mm", ".r", ".pl", ".pm", ".t", ".ex", ".exs", ".elm",
    ".vue", ".svelte", ".astro",
}

REQUIREMENTS_EXTENSIONS = {".md", ".txt", ".rst", ".adoc", ".org", ".tex", ".rtf"}

FILE_TYPE_EXTENSIONS = {
    "code": CODE_EXTENSIONS,
    "requirements": REQUIREMENTS_EXTENSIONS,
}


def _is_path_within_sandbox(path: str, sandbox_root: str) -> bool:
    try:
        resolved = os.path.realpath(path)
        sandbox_resolved = os.path.realpath(sandbox_root)
        return resolved == sandbox_resolved or resolved.startswith(sandbox_resolved + os.sep)
    except (OSError, ValueError):
        return False


def to_display_path(path: str, root: str) -> str:
    """Root-relative, forward-slash rendering of a resolved path."""
    rel = os.path.relpath(os.path.realpath(path), os.path.realpath(root))
    if rel == ".":
        return "."
    return rel.replace(os.sep, "/")


def _validate_path(root: str, path: Optional[str], check_exists: bool = False) -> str:
    """
    Resolve ``path`` against the codebase root and make sure it stays inside.
    Returns the realpath.
    """
    if path is None or not str(path).strip():
        raise ToolExecutionError("path is required")
    raw = str(path).strip()
    target = os.path.realpath(os.path.join(root, raw))
    if not _is_path_within_sandbox(target, root):
        raise ToolExecutionError(f"Access denied: path '{raw}' is outside the codebase root")
    if check_exists and not os.path.exists(target):
        raise ToolExecutionError(f"{raw} not found")
    return target


def file_extension(name: str) -> str:
    lowered = name.lower()
    for compound in (".min.js", ".min.css"):
        if lowered.endswith(compound):
            return compound
    return os.path.splitext(lowered)[1]


def is_binary_name(name: str) -> bool:
    return file_extension(name) in BINARY_EXTENSIONS


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def read_lines(path: str) -> List[str]:
    """Read a text file as LF-normalized lines (``split("\\n")`` semantics)."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return normalize_newlines(f.read()).split("\n")
