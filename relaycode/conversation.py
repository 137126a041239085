"""
The conversation artifact: an append-only transcript plus the operator's
next message.

    === CONVERSATION HISTORY ===

    <history>

    === WAITING FOR YOUR MESSAGE ===
    [write here when ready]
"""

from dataclasses import dataclass
from typing import List, Optional

from relaycode import hooks, store
from relaycode.compaction import USER_PREFIX, compact_conversation
from relaycode.config import HostContext

HISTORY_MARKER = "=== CONVERSATION HISTORY ==="
AWAITING_MARKER = "=== WAITING FOR YOUR MESSAGE ==="
PLACEHOLDER = "[write here when ready]"

BOX_WIDTH = 70
CUT_OFF_TAIL = 100


def system_box(title: str, body: str = "") -> str:
    """Frame a tool result as a double-line SYSTEM box."""
    header = f" SYSTEM: {title} "
    if len(header) > BOX_WIDTH - 4:
        header = header[: BOX_WIDTH - 8] + "... "
    pad = max(0, BOX_WIDTH - len(header) - 4)
    lines = [f"╔═{header}{'═' * pad}═╗"]
    if body:
        lines.extend(f"║ {line}" for line in body.replace("\r\n", "\n").split("\n"))
    lines.append(f"╚{'═' * (BOX_WIDTH - 2)}╝")
    return "\n".join(lines)


def format_error_feedback(message: str, response_text: Optional[str] = None) -> str:
    """Feedback for a rejected turn; an unboxed response is echoed back."""
    out = f"SYSTEM: ERROR - {message}"
    if response_text is not None:
        out += (
            "\n\nYour response was missing the required ASCII box format. Here's what you wrote:\n\n"
            "--- START OF YOUR INVALID RESPONSE ---\n"
            f"{response_text}\n"
            "--- END OF YOUR INVALID RESPONSE ---\n\n"
            "Please reformat this response with the proper ASCII box."
        )
    return out


def cut_off_notice(response_text: str) -> str:
    tail = response_text.rstrip()[-CUT_OFF_TAIL:]
    return f'SYSTEM: Your message was cut off. Please continue from: "{tail}"'


@dataclass
class ConversationState:
    history: str = ""
    awaiting: str = ""

    def render(self) -> str:
        awaiting = self.awaiting if self.awaiting.strip() else PLACEHOLDER
        return f"{HISTORY_MARKER}\n\n{self.history}\n\n{AWAITING_MARKER}\n{awaiting}"


def _section(lines: List[str], marker: str, other: str) -> Optional[str]:
    stripped = [line.strip() for line in lines]
    if marker not in stripped:
        return None
    start = stripped.index(marker) + 1
    end = len(lines)
    if other in stripped[start:]:
        end = stripped.index(other, start)
    return "\n".join(lines[start:end]).strip("\n")


def parse_conversation(text: str) -> ConversationState:
    lines = text.replace("\r\n", "\n").split("\n")
    history = _section(lines, HISTORY_MARKER, AWAITING_MARKER)
    awaiting = _section(lines, AWAITING_MARKER, HISTORY_MARKER)
    if history is None and awaiting is None:
        # A bare file is all history.
        history = text.strip("\n")
    awaiting = (awaiting or "").strip()
    if awaiting == PLACEHOLDER:
        awaiting = ""
    return ConversationState(history=history or "", awaiting=awaiting)


class ConversationLog:
    def __init__(self, ctx: HostContext):
        self.ctx = ctx
        self.path = ctx.conversation_path

    def load(self) -> ConversationState:
        return parse_conversation(store.read_text_if_exists(self.path))

    def save(self, state: ConversationState) -> None:
        store.write_text(self.path, state.render())

    @property
    def history(self) -> str:
        return self.load().history

    def append(self, message: str) -> None:
        state = self.load()
        message = message.strip("\n")
        state.history = f"{state.history}\n\n{message}" if state.history.strip() else message
        self.save(state)

    def submit_operator_message(self) -> bool:
        """Move the awaiting message into history behind a ``> `` prefix.

        Returns False when there is nothing to submit.
        """
        state = self.load()
        text = state.awaiting.strip()
        if not text:
            return False
        quoted = f"{USER_PREFIX}{text}"
        state.history = f"{state.history}\n\n{quoted}" if state.history.strip() else quoted
        state.awaiting = ""
        self.save(state)
        return True

    def compact(self, max_length: Optional[int] = None) -> bool:
        limit = self.ctx.max_conversation_chars if max_length is None else max_length
        state = self.load()
        compacted = compact_conversation(state.history, limit)
        if compacted == state.history:
            return False
        hooks.notify(
            "compaction",
            target="conversation",
            before_chars=len(state.history),
            after_chars=len(compacted),
        )
        state.history = compacted
        self.save(state)
        return True
