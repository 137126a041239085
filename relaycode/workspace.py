"""
Agent-managed notes: the discovery log, the mode selector and saved
documents (findings, plans and other named blocks).
"""

import os
import re
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from relaycode import hooks, store
from relaycode.compaction import compact_discoveries, parse_discoveries
from relaycode.config import HostContext
from relaycode.errors import ToolExecutionError

DEFAULT_MODES = ("exploration", "planning", "implementation")
DEFAULT_MODE_FILE = "x exploration\n  planning\n  implementation"
ACTIVE_PREFIX = "x "

_BLOCK_IMPORTANCE_RE = re.compile(r"^importance:\s*(\d+)\s*$", re.IGNORECASE)
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")

# Named blocks with a fixed destination under the managed dir.
BLOCK_FILES = {
    "DETAILED_PLAN": "detailed-plan.md",
    "EXPLORATION_FINDINGS": "exploration-findings.md",
}


def clamp_importance(value: Optional[str]) -> int:
    try:
        importance = int(str(value).strip())
    except (TypeError, ValueError):
        importance = 5
    return max(1, min(10, importance))


def active_mode(mode_text: str) -> str:
    for line in mode_text.split("\n"):
        if line.startswith(ACTIVE_PREFIX):
            return line[len(ACTIVE_PREFIX):].strip()
    return DEFAULT_MODES[0]


def sanitize_name(name: str) -> str:
    cleaned = _UNSAFE_NAME_RE.sub("-", name.strip()).strip(".-")
    if cleaned.lower().endswith(".md"):
        cleaned = cleaned[:-3]
    return cleaned


class WorkspaceNotes:
    def __init__(self, ctx: HostContext, today: Optional[Callable[[], date]] = None):
        self.ctx = ctx
        self._today = today or date.today

    # ---------------------------
    # Discoveries
    # ---------------------------

    @property
    def discoveries_path(self) -> str:
        return self.ctx.discoveries_path

    def discoveries(self) -> str:
        return store.read_text_if_exists(self.discoveries_path)

    def add_discovery(self, content: str, importance: Optional[str] = None) -> str:
        text = " ".join(line.strip() for line in (content or "").split("\n") if line.strip())
        if not text:
            raise ToolExecutionError("discovery content is required")
        level = clamp_importance(importance)
        entry = f"[{self._today().strftime('%Y-%m-%d')}] importance:{level} {text}"

        existing = self.discoveries().rstrip("\n")
        updated = f"{existing}\n{entry}" if existing.strip() else entry
        compacted = compact_discoveries(updated, self.ctx.max_discoveries)
        if compacted != updated:
            hooks.notify(
                "compaction",
                target="discoveries",
                before=len(parse_discoveries(updated)),
                after=len(parse_discoveries(compacted)),
            )
        store.write_text(self.discoveries_path, compacted)
        hooks.notify("discovery_added", importance=level, content=text)
        return f"Discovery recorded (importance {level})"

    def add_discovery_block(self, payload: str) -> str:
        lines = payload.split("\n")
        importance = None
        m = _BLOCK_IMPORTANCE_RE.match(lines[0].strip()) if lines else None
        if m:
            importance = m.group(1)
            lines = lines[1:]
        return self.add_discovery("\n".join(lines), importance)

    # ---------------------------
    # Mode
    # ---------------------------

    def mode_lines(self) -> List[str]:
        text = store.read_text_if_exists(self.ctx.mode_path)
        if not text.strip():
            text = DEFAULT_MODE_FILE
        return text.split("\n")

    def current_mode(self) -> str:
        return active_mode("\n".join(self.mode_lines()))

    def switch_mode(self, mode: Optional[str]) -> str:
        wanted = (mode or "").strip().lower()
        lines = self.mode_lines()
        known = [self._mode_name(line) for line in lines if line.strip()]
        if wanted not in known:
            raise ToolExecutionError(
                f"unknown mode '{mode}' (expected one of: {', '.join(known)})"
            )
        updated = []
        for line in lines:
            name = self._mode_name(line)
            if not line.strip():
                updated.append(line)
            elif name == wanted:
                updated.append(f"{ACTIVE_PREFIX}{name}")
            else:
                updated.append(f"  {name}")
        store.write_text(self.ctx.mode_path, "\n".join(updated))
        hooks.notify("mode_switched", mode=wanted)
        return f"Switched to {wanted} mode"

    @staticmethod
    def _mode_name(line: str) -> str:
        if line.startswith(ACTIVE_PREFIX):
            line = line[len(ACTIVE_PREFIX):]
        return line.strip().lower()

    # ---------------------------
    # Documents
    # ---------------------------

    def save_document(self, kind: str, name: Optional[str], content: Optional[str]) -> str:
        """Save a findings/plan document as ``<docs_dir>/<name>.md``."""
        safe = sanitize_name(name or "")
        if not safe:
            raise ToolExecutionError(f'missing required "name" for {kind}')
        path = os.path.join(self.ctx.artifact(self.ctx.docs_dir), f"{safe}.md")
        store.write_text(path, content or "")
        rel = f"{self.ctx.docs_dir}/{safe}.md"
        hooks.notify("document_saved", kind=kind, path=rel)
        return f"Saved {rel}"

    def save_block(self, key: str, payload: str) -> str:
        filename = BLOCK_FILES.get(key) or f"{key.lower().replace('_', '-')}.md"
        path = os.path.join(self.ctx.artifact(self.ctx.managed_dir), filename)
        store.write_text(path, payload)
        rel = f"{self.ctx.managed_dir}/{filename}"
        hooks.notify("document_saved", kind=key, path=rel)
        return f"Saved {rel}"

    def apply_block(self, key: str, payload: str) -> str:
        if key == "DISCOVERED":
            return self.add_discovery_block(payload)
        if key == "SWITCH_TO":
            first = payload.strip().split("\n")[0] if payload.strip() else ""
            return self.switch_mode(first)
        return self.save_block(key, payload)

    def apply_blocks(self, blocks: Dict[str, str]) -> List[Tuple[str, str]]:
        """Apply named blocks, DISCOVERED first. Failures become ``error:`` results."""
        keys = sorted(blocks, key=lambda k: k != "DISCOVERED")
        results = []
        for key in keys:
            try:
                result = self.apply_block(key, blocks[key])
            except ToolExecutionError as e:
                result = f"error: {e}"
            results.append((key, result))
        return results
