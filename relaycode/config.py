"""Host configuration.

A single HostContext is built once (from defaults, an optional JSON file and
the environment) and passed explicitly to every component.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}
_FALSEY = {"0", "false", "no", "off"}


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def env_flag(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = str(env.get(name, "")).strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY:
        return True
    if raw in _FALSEY:
        return False
    raise ValueError(f"Environment flag '{name}' must be a boolean, got '{raw}'")


@dataclass(frozen=True)
class HostContext:
    root: str
    work_dir: str = "."
    conversation_file: str = "conversation.md"
    response_file: str = "ai-response.md"
    pending_file: str = "pending-changes.json"
    mode_file: str = "mode.md"
    managed_dir: str = "ai-managed"
    docs_dir: str = "ai-docs"
    log_dir: Optional[str] = None
    max_discoveries: int = 50
    max_conversation_chars: int = 250000
    preview_before: int = 20
    preview_after: int = 40
    search_context: int = 10
    compact_conversation: bool = True

    def artifact(self, name: str) -> str:
        """Absolute path of a work-dir artifact (conversation, pending record, ...)."""
        return os.path.join(os.path.abspath(self.work_dir), name)

    @property
    def conversation_path(self) -> str:
        return self.artifact(self.conversation_file)

    @property
    def response_path(self) -> str:
        return self.artifact(self.response_file)

    @property
    def pending_path(self) -> str:
        return self.artifact(self.pending_file)

    @property
    def mode_path(self) -> str:
        return self.artifact(self.mode_file)

    @property
    def discoveries_path(self) -> str:
        return os.path.join(self.artifact(self.managed_dir), "discoveries.md")

    @property
    def root_path(self) -> str:
        return os.path.realpath(self.root)


_INT_FIELDS = {"max_discoveries", "max_conversation_chars", "preview_before", "preview_after", "search_context"}

_ENV_OVERRIDES = {
    "CODEBASE_PATH": "root",
    "RELAYCODE_WORK_DIR": "work_dir",
    "RELAYCODE_LOG_DIR": "log_dir",
    "RELAYCODE_MAX_DISCOVERIES": "max_discoveries",
    "RELAYCODE_MAX_CONVERSATION_CHARS": "max_conversation_chars",
}


def _coerce_field(key: str, value: Any) -> Any:
    if key in _INT_FIELDS:
        try:
            coerced = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Config '{key}' must be an integer, got {value!r}") from exc
        if coerced < 0:
            raise ValueError(f"Config '{key}' must be >= 0")
        return coerced
    if key == "compact_conversation":
        if isinstance(value, bool):
            return value
        return env_flag({key: str(value)}, key)
    if value is None:
        return None
    return str(value).strip()


def build_context(overrides: Dict[str, Any], base: Optional[HostContext] = None) -> HostContext:
    known = {f.name for f in fields(HostContext)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")
    values = {key: _coerce_field(key, value) for key, value in overrides.items()}
    if base is not None:
        return replace(base, **values)
    if not values.get("root"):
        raise ValueError("Config 'root' (or CODEBASE_PATH) is required")
    return HostContext(**values)


def load_context(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> HostContext:
    """Build a HostContext: JSON file, then environment, then keyword overrides."""
    env = os.environ if env is None else env
    merged: Dict[str, Any] = {}
    if config_path:
        data = load_json(config_path)
        if not isinstance(data, dict):
            raise ValueError(f"Config file '{config_path}' must contain a JSON object")
        merged.update(data)
    for env_name, key in _ENV_OVERRIDES.items():
        raw = env.get(env_name)
        if raw is not None and str(raw).strip():
            merged[key] = raw
    if "RELAYCODE_COMPACT_CONVERSATION" in env:
        merged["compact_conversation"] = env_flag(env, "RELAYCODE_COMPACT_CONVERSATION", True)
    merged.update(overrides)
    return build_context(merged)
