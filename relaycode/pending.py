"""
Pending edit controller.

UPDATE and INSERT never touch the file directly. The computed buffer is
persisted as a single pending record and shown to the agent as a preview; the
file is written only when a later turn replies with [COMMIT]. A COMMIT with
nothing pending is an error and changes nothing, so replaying a commit turn is
harmless.

States are derived from the record on disk:

    NO_PENDING --propose--> AWAITING_CONFIRMATION --commit--> NO_PENDING
                            AWAITING_CONFIRMATION --revise (same path)--> AWAITING_CONFIRMATION
                            AWAITING_CONFIRMATION --commit, target gone--> NO_PENDING (discarded)
"""

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from relaycode import hooks, store
from relaycode.collaborators import Collaborators, NullCollaborators
from relaycode.config import HostContext
from relaycode.errors import PendingEditConflict, PersistenceError, ToolExecutionError
from relaycode.protocol.parser import ToolInvocation
from relaycode.protocol.schema import ToolKind
from relaycode.tool_handlers._path import _validate_path, normalize_newlines
from relaycode.tool_handlers.write_handlers import ProposedEdit, compute_insert, compute_update

NO_PENDING = "NO_PENDING"
AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"

EDIT_KINDS = (ToolKind.UPDATE, ToolKind.INSERT)


@dataclass
class PendingEdit:
    target_path: str
    original_content: str
    proposed_content: str
    description: str
    source_invocation: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, data: Dict[str, Any], path: str = "") -> "PendingEdit":
        try:
            return cls(
                target_path=str(data["target_path"]),
                original_content=str(data["original_content"]),
                proposed_content=str(data["proposed_content"]),
                description=str(data.get("description") or ""),
                source_invocation=dict(data.get("source_invocation") or {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(path, f"malformed pending record ({e})") from e


class PendingEditStore:
    """The single pending record, kept as JSON in the work dir."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[PendingEdit]:
        data = store.read_json_if_exists(self.path)
        if data is None:
            return None
        return PendingEdit.from_record(data, self.path)

    def save(self, edit: PendingEdit) -> None:
        store.write_json(self.path, edit.to_record())

    def clear(self) -> None:
        store.remove_if_exists(self.path)


def _first_divergence(a: List[str], b: List[str]) -> int:
    for i, (x, y) in enumerate(zip(a, b)):
        if x != y:
            return i
    return min(len(a), len(b))


def _window(lines: List[str], anchor: int, before: int, after: int) -> Tuple[int, int]:
    start = max(0, anchor - before)
    end = min(len(lines) - 1, anchor + after)
    return start, end


def _numbered(lines: List[str], start: int, end: int) -> str:
    return "\n".join(f"{i + 1}: {lines[i]}" for i in range(start, end + 1))


def render_preview(edit: PendingEdit, before: int = 20, after: int = 40) -> str:
    """Confirmation message with line-numbered original and new excerpts."""
    original = edit.original_content.split("\n")
    proposed = edit.proposed_content.split("\n")
    anchor = _first_divergence(original, proposed)
    start, o_end = _window(original, anchor, before, after)
    _, n_end = _window(proposed, anchor, before, after)
    return (
        "SYSTEM: PENDING UPDATE\n"
        f"File: {edit.target_path}\n"
        f"Description: {edit.description}\n"
        "\n"
        f"ORIGINAL CODE (lines {start + 1}-{o_end + 1}):\n"
        f"{_numbered(original, start, o_end)}\n"
        "\n"
        f"NEW CODE (lines {start + 1}-{n_end + 1}):\n"
        f"{_numbered(proposed, start, n_end)}\n"
        "\n"
        "Reply with [COMMIT] to apply changes."
    )


def _same_path(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return os.path.normpath(a.strip()) == os.path.normpath(b.strip())


class PendingEditController:
    def __init__(
        self,
        ctx: HostContext,
        collaborators: Optional[Collaborators] = None,
        edit_store: Optional[PendingEditStore] = None,
    ):
        self.ctx = ctx
        self.collaborators = collaborators or NullCollaborators()
        self.store = edit_store or PendingEditStore(ctx.pending_path)

    # ---------------------------
    # State
    # ---------------------------

    def current(self) -> Optional[PendingEdit]:
        return self.store.load()

    @property
    def state(self) -> str:
        return AWAITING_CONFIRMATION if self.current() is not None else NO_PENDING

    # ---------------------------
    # Turn gating
    # ---------------------------

    def check_turn(self, invocations: Sequence[ToolInvocation]) -> None:
        """Reject a turn that is neither a commit nor a same-path revision.

        Only meaningful while an edit is pending; raises PendingEditConflict and
        leaves the record untouched.
        """
        pending = self.current()
        if pending is None:
            return
        advances = False
        for inv in invocations:
            if inv.kind is ToolKind.COMMIT:
                self._check_commit_target(pending, inv)
                advances = True
            elif inv.kind in EDIT_KINDS:
                self._check_revision_target(pending, inv)
                advances = True
            elif inv.kind in (ToolKind.CREATE, ToolKind.DELETE):
                raise self._conflict(
                    pending, f"{inv.kind.value} is not allowed while an edit awaits confirmation"
                )
        if not advances:
            raise self._conflict(pending, "reply with [COMMIT] to apply it or revise the same file")

    def _conflict(self, pending: PendingEdit, reason: str) -> PendingEditConflict:
        hooks.notify("pending_rejected", target_path=pending.target_path, reason=reason)
        return PendingEditConflict(f"pending edit for {pending.target_path}: {reason}")

    def _check_commit_target(self, pending: PendingEdit, inv: ToolInvocation) -> None:
        named = (inv.get("file_name") or "").strip()
        if named and not _same_path(named, pending.target_path):
            raise self._conflict(pending, f"cannot commit {named}; the pending edit is for {pending.target_path}")

    def _check_revision_target(self, pending: PendingEdit, inv: ToolInvocation) -> None:
        target = inv.get("file_name")
        if not _same_path(target, pending.target_path):
            raise self._conflict(
                pending, f"cannot edit {target} until the pending edit is committed"
            )

    def _discard(self, pending: PendingEdit, reason: str) -> ToolExecutionError:
        """Drop a pending edit whose target is gone; it can never be committed."""
        self.store.clear()
        hooks.notify("pending_discarded", target_path=pending.target_path, reason=reason)
        return ToolExecutionError(
            f"{pending.target_path} {reason}; the pending edit was discarded"
        )

    # ---------------------------
    # Transitions
    # ---------------------------

    def propose(self, inv: ToolInvocation) -> str:
        """Compute an UPDATE/INSERT and persist it as the pending edit.

        Creates a new pending edit, or revises the outstanding one when it
        targets the same path. Raises ToolExecutionError on range errors and
        PendingEditConflict for a different path; neither touches the record.
        """
        if inv.kind not in EDIT_KINDS:
            raise ToolExecutionError(f"{inv.kind.value} cannot be proposed as a pending edit")
        pending = self.current()
        if pending is not None:
            self._check_revision_target(pending, inv)

        root = self.ctx.root_path
        if inv.kind is ToolKind.UPDATE:
            proposed: ProposedEdit = compute_update(root, inv.params)
        else:
            proposed = compute_insert(root, inv.params)

        edit = PendingEdit(
            target_path=proposed.target_path,
            original_content=proposed.original_content,
            proposed_content=proposed.proposed_content,
            description=proposed.description,
            source_invocation=inv.to_dict(),
        )
        self.store.save(edit)
        event = "pending_revised" if pending is not None else "pending_created"
        hooks.notify(event, target_path=edit.target_path, tool=inv.kind.value, description=edit.description)
        return render_preview(edit, self.ctx.preview_before, self.ctx.preview_after)

    def commit(self, inv: Optional[ToolInvocation] = None) -> str:
        pending = self.current()
        if pending is None:
            raise ToolExecutionError("nothing to commit")
        if inv is not None:
            self._check_commit_target(pending, inv)

        try:
            path = _validate_path(self.ctx.root_path, pending.target_path)
        except ToolExecutionError:
            raise self._discard(pending, "now resolves outside the codebase root")
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                current = normalize_newlines(f.read())
        except FileNotFoundError:
            raise self._discard(pending, "no longer exists")
        except (OSError, UnicodeDecodeError) as e:
            raise self._discard(pending, f"can no longer be read ({e})")
        if current != pending.original_content:
            hooks.notify("pending_rejected", target_path=pending.target_path, reason="stale")
            raise ToolExecutionError(
                f"{pending.target_path} changed on disk since the edit was proposed; "
                "re-read it and propose the edit again"
            )

        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(pending.proposed_content)
        except OSError as e:
            raise ToolExecutionError(f"cannot write {pending.target_path} ({e})")
        self.store.clear()
        hooks.notify("pending_committed", target_path=pending.target_path, description=pending.description)
        hooks.notify("codebase_changed", path=pending.target_path, change="committed")

        self.collaborators.indexer.refresh()
        self.collaborators.vcs.commit_and_push(pending.target_path, f"AI: {pending.description}")
        return f"Changes committed to {pending.target_path}"
