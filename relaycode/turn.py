"""
One externally triggered turn: parse -> classify -> execute -> append -> compact.

Usage:
    from relaycode.config import load_context
    from relaycode.turn import TurnProcessor

    processor = TurnProcessor(load_context())
    outcome = processor.process_response_file()
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from relaycode import hooks, store
from relaycode.collaborators import Collaborators, NullCollaborators
from relaycode.config import HostContext
from relaycode.conversation import ConversationLog, cut_off_notice, format_error_feedback, system_box
from relaycode.errors import PendingEditConflict, PersistenceError
from relaycode.pending import PendingEditController
from relaycode.protocol.classifier import READ, WRITE, validate_parsed
from relaycode.protocol.parser import ParsedResponse, ToolInvocation, parse_response
from relaycode.protocol.schema import ToolKind
from relaycode.tool_handlers.dispatch import ToolExecutor, ToolResult
from relaycode.workspace import WorkspaceNotes

# Turn statuses
EMPTY = "empty"
INCOMPLETE = "incomplete"
FORMAT_ERROR = "format_error"
REJECTED = "rejected"
COMPLETED = "completed"
AWAITING_CONFIRMATION = "awaiting_confirmation"

SPECIAL_KINDS = (
    ToolKind.DISCOVERED,
    ToolKind.SWITCH_TO,
    ToolKind.EXPLORATION_FINDINGS,
    ToolKind.DETAILED_PLAN,
)
FILE_KINDS = (ToolKind.CREATE, ToolKind.UPDATE, ToolKind.INSERT, ToolKind.DELETE, ToolKind.COMMIT)


@dataclass
class TurnOutcome:
    status: str
    kind: Optional[str] = None
    results: List[ToolResult] = field(default_factory=list)
    block_results: List[Tuple[str, str]] = field(default_factory=list)
    error: Optional[str] = None
    message_end: bool = False

    @property
    def ok(self) -> bool:
        return self.status in (COMPLETED, AWAITING_CONFIRMATION)


class TurnProcessor:
    def __init__(self, ctx: HostContext, collaborators: Optional[Collaborators] = None):
        self.ctx = ctx
        self.collaborators = collaborators or NullCollaborators()
        self.conversation = ConversationLog(ctx)
        self.notes = WorkspaceNotes(ctx)
        self.controller = PendingEditController(ctx, self.collaborators)
        self.executor = ToolExecutor(ctx, self.controller, self.notes, self.collaborators)

    def submit_operator_message(self) -> bool:
        submitted = self.conversation.submit_operator_message()
        if submitted:
            self.collaborators.renderer.render()
        return submitted

    def process_response_file(self) -> TurnOutcome:
        """Process the response artifact, then clear it."""
        try:
            text = store.read_text_if_exists(self.ctx.response_path)
        except PersistenceError as e:
            hooks.notify("persistence_error", path=e.path, reason=e.reason)
            raise
        if not text.strip():
            return TurnOutcome(EMPTY)
        outcome = self.process(text)
        store.write_text(self.ctx.response_path, "")
        return outcome

    def process(self, text: str) -> TurnOutcome:
        hooks.notify("turn_start", chars=len(text or ""))
        try:
            outcome = self._process(text or "")
        except PersistenceError as e:
            hooks.notify("persistence_error", path=e.path, reason=e.reason)
            raise
        hooks.notify(
            "turn_end",
            status=outcome.status,
            kind=outcome.kind,
            tools=len(outcome.results),
            errors=sum(1 for r in outcome.results if r.is_error),
        )
        if outcome.status != EMPTY:
            self.collaborators.renderer.render()
        return outcome

    # ---------------------------
    # Pipeline
    # ---------------------------

    def _process(self, text: str) -> TurnOutcome:
        if not text.strip():
            return TurnOutcome(EMPTY)
        parsed = parse_response(text)

        if parsed.box_opened and not parsed.well_formed_wrapper:
            self.conversation.append(text)
            self.conversation.append(cut_off_notice(text))
            hooks.notify("incomplete_message", chars=len(text))
            return TurnOutcome(INCOMPLETE, message_end=parsed.message_end)

        validation = validate_parsed(parsed)
        if not validation.valid:
            return self._format_error(parsed, validation.error, validation.kind)

        try:
            self.controller.check_turn(parsed.invocations)
        except PendingEditConflict as e:
            self.conversation.append(text)
            self.conversation.append(f"SYSTEM: ERROR - {e}. Reply with [COMMIT] to apply changes.")
            return TurnOutcome(REJECTED, kind=validation.kind, error=str(e), message_end=parsed.message_end)

        self.conversation.append(text)
        if validation.kind == READ:
            outcome = self._read_turn(parsed)
        else:
            outcome = self._write_turn(parsed)
        outcome.message_end = parsed.message_end

        if self.ctx.compact_conversation:
            self.conversation.compact()
        return outcome

    def _format_error(self, parsed: ParsedResponse, error: str, kind: str) -> TurnOutcome:
        if parsed.box_opened:
            self.conversation.append(parsed.raw_text)
            self.conversation.append(format_error_feedback(error))
        else:
            self.conversation.append(format_error_feedback(error, parsed.raw_text))
        hooks.notify("format_error", error=error, kind=kind)
        return TurnOutcome(FORMAT_ERROR, kind=kind, error=error, message_end=parsed.message_end)

    def _record(self, result: ToolResult) -> None:
        if result.awaiting_confirmation:
            self.conversation.append(result.output)
        elif result.output:
            self.conversation.append(system_box(f"Tool result ({result.name})", result.output))

    def _read_turn(self, parsed: ParsedResponse) -> TurnOutcome:
        outcome = TurnOutcome(COMPLETED, kind=READ)
        if parsed.blocks:
            # Named blocks only take effect on write turns.
            hooks.notify("turn_blocks_ignored", keys=sorted(parsed.blocks))
        for inv in parsed.invocations:
            result = self.executor.execute(inv)
            self._record(result)
            outcome.results.append(result)
        return outcome

    def _write_turn(self, parsed: ParsedResponse) -> TurnOutcome:
        outcome = TurnOutcome(COMPLETED, kind=WRITE)
        for key, result in self.notes.apply_blocks(parsed.blocks):
            outcome.block_results.append((key, result))
            self.conversation.append(system_box(f"Block result ({key})", result))

        special = [inv for inv in parsed.invocations if inv.kind in SPECIAL_KINDS]
        file_ops = [inv for inv in parsed.invocations if inv.kind in FILE_KINDS]
        queue = special + file_ops
        for i, inv in enumerate(queue):
            result = self.executor.execute(inv)
            self._record(result)
            outcome.results.append(result)
            if result.awaiting_confirmation:
                outcome.status = AWAITING_CONFIRMATION
                for rest in queue[i + 1:]:
                    skipped = self._skip(rest)
                    self._record(skipped)
                    outcome.results.append(skipped)
                break
        return outcome

    def _skip(self, inv: ToolInvocation) -> ToolResult:
        """Report a file operation left unrun because an edit now awaits confirmation."""
        pending = self.controller.current()
        target = pending.target_path if pending is not None else "the proposed file"
        reason = f"skipped: an edit for {target} awaits confirmation"
        hooks.notify("pending_rejected", target_path=target, reason=reason, tool=inv.kind.value)
        return ToolResult(inv.kind, inv.name, f"error: {inv.name} {reason}", is_error=True)
