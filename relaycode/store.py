"""
Whole-file persistence helpers for host artifacts.

Every read and write is a scoped open/close. There is no atomic replace: a
crash mid-write can leave a partially written artifact.
"""

import json
import os
from typing import Any, Dict, Optional

from relaycode.errors import PersistenceError


def read_text_if_exists(path: str) -> str:
    """Return the artifact's text, or "" when it does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return ""
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError(path, f"cannot read artifact ({e})") from e


def write_text(path: str, content: str) -> None:
    parent = os.path.dirname(path)
    try:
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise PersistenceError(path, f"cannot write artifact ({e})") from e


def remove_if_exists(path: str) -> bool:
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise PersistenceError(path, f"cannot remove artifact ({e})") from e


def read_json_if_exists(path: str) -> Optional[Dict[str, Any]]:
    """Return the decoded JSON object, None when absent or blank."""
    text = read_text_if_exists(path)
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PersistenceError(path, f"corrupt JSON ({e})") from e
    if not isinstance(data, dict):
        raise PersistenceError(path, "expected a JSON object")
    return data


def write_json(path: str, data: Dict[str, Any]) -> None:
    write_text(path, json.dumps(data, indent=2, ensure_ascii=False))
