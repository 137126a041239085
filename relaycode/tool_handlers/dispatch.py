"""
Tool dispatch: ToolExecutor.execute() maps one invocation to its handler.

Every failure becomes an ``error: ...`` result string. PersistenceError is
the exception: a broken host artifact aborts the turn and propagates.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from relaycode import hooks
from relaycode.collaborators import Collaborators, NullCollaborators
from relaycode.config import HostContext
from relaycode.errors import PersistenceError, ToolExecutionError
from relaycode.pending import PendingEditController
from relaycode.protocol.parser import ToolInvocation
from relaycode.protocol.schema import ToolKind, missing_required
from relaycode.tool_handlers import read_handlers, search_handlers, write_handlers
from relaycode.workspace import WorkspaceNotes


@dataclass(frozen=True)
class ToolResult:
    kind: ToolKind
    name: str
    output: str
    is_error: bool = False
    # Set when the result is a pending-edit preview; the write turn stops there.
    awaiting_confirmation: bool = False


def is_tool_error(result: str) -> bool:
    return isinstance(result, str) and result.startswith("error:")


class ToolExecutor:
    def __init__(
        self,
        ctx: HostContext,
        controller: Optional[PendingEditController] = None,
        notes: Optional[WorkspaceNotes] = None,
        collaborators: Optional[Collaborators] = None,
    ):
        self.ctx = ctx
        self.collaborators = collaborators or NullCollaborators()
        self.controller = controller or PendingEditController(ctx, self.collaborators)
        self.notes = notes or WorkspaceNotes(ctx)
        self._dispatch: Dict[ToolKind, Callable[[ToolInvocation], str]] = {
            ToolKind.LIST: self._list,
            ToolKind.READ: self._read,
            ToolKind.SEARCH_BY_NAME: self._search_by_name,
            ToolKind.SEARCH_BY_CONTENT: self._search_by_content,
            ToolKind.CREATE: self._create,
            ToolKind.UPDATE: self._propose,
            ToolKind.INSERT: self._propose,
            ToolKind.DELETE: self._delete,
            ToolKind.MESSAGE: self._message,
            ToolKind.DISCOVERED: self._discovered,
            ToolKind.SWITCH_TO: self._switch_to,
            ToolKind.EXPLORATION_FINDINGS: self._save_document,
            ToolKind.DETAILED_PLAN: self._save_document,
            ToolKind.COMMIT: self._commit,
        }
        missing = set(ToolKind) - set(self._dispatch)
        if missing:
            raise RuntimeError(f"no handler for tool kinds: {sorted(k.value for k in missing)}")

    @property
    def root(self) -> str:
        return self.ctx.root_path

    def execute(self, inv: ToolInvocation) -> ToolResult:
        data = hooks.emit("tool_before", {"kind": inv.kind.value, "name": inv.name, "params": dict(inv.params)})
        if data.get("skip"):
            output = data.get("result") or "error: skipped by hook"
        else:
            output = self._run(inv)
        is_error = is_tool_error(output)
        awaiting = inv.kind in (ToolKind.UPDATE, ToolKind.INSERT) and not is_error
        hooks.notify(
            "tool_after",
            kind=inv.kind.value,
            name=inv.name,
            is_error=is_error,
            path_value=inv.get("file_name") or inv.get("path"),
            result_chars=len(output),
        )
        return ToolResult(inv.kind, inv.name, output, is_error, awaiting)

    def _run(self, inv: ToolInvocation) -> str:
        missing = missing_required(inv.kind, inv.params)
        if missing:
            return f"error: [{inv.name}] missing required argument(s): {', '.join(missing)}"
        try:
            return self._dispatch[inv.kind](inv)
        except PersistenceError:
            raise
        except ToolExecutionError as e:
            return f"error: {e}"
        except Exception as e:
            return f"error: {inv.kind.value} failed ({e})"

    def _structure_changed(self, path: str, change: str) -> None:
        hooks.notify("codebase_changed", path=path, change=change)
        self.collaborators.indexer.refresh()

    # ---------------------------
    # Information tools
    # ---------------------------

    def _list(self, inv: ToolInvocation) -> str:
        return read_handlers.list_dir(self.root, inv.params)

    def _read(self, inv: ToolInvocation) -> str:
        return read_handlers.read(self.root, inv.params)

    def _search_by_name(self, inv: ToolInvocation) -> str:
        return search_handlers.search_by_name(self.root, inv.params)

    def _search_by_content(self, inv: ToolInvocation) -> str:
        return search_handlers.search_by_content(self.root, inv.params, self.ctx.search_context)

    # ---------------------------
    # Action tools
    # ---------------------------

    def _create(self, inv: ToolInvocation) -> str:
        result = write_handlers.create(self.root, inv.params)
        if not is_tool_error(result):
            self._structure_changed(inv.params["path"], "created")
        return result

    def _delete(self, inv: ToolInvocation) -> str:
        result = write_handlers.delete(self.root, inv.params)
        if not is_tool_error(result):
            self._structure_changed(inv.params["file_name"], "deleted")
        return result

    def _propose(self, inv: ToolInvocation) -> str:
        return self.controller.propose(inv)

    def _commit(self, inv: ToolInvocation) -> str:
        return self.controller.commit(inv)

    def _message(self, inv: ToolInvocation) -> str:
        # Already part of the transcript; nothing to execute.
        return ""

    def _discovered(self, inv: ToolInvocation) -> str:
        return self.notes.add_discovery(inv.get("content", ""), inv.get("importance"))

    def _switch_to(self, inv: ToolInvocation) -> str:
        return self.notes.switch_mode(inv.get("mode"))

    def _save_document(self, inv: ToolInvocation) -> str:
        return self.notes.save_document(inv.kind.value, inv.get("name"), inv.get("content"))
