"""
Turn-level classification: a response is either all information tools or all
action tools, and must be wrapped in the assistant box.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from relaycode.errors import FormatError
from relaycode.protocol.lexer import BOX_BOTTOM, BOX_TOP
from relaycode.protocol.parser import ParsedResponse, ToolInvocation
from relaycode.protocol.schema import INFORMATION_KINDS, ToolKind

READ = "read"
WRITE = "write"
MIXED = "mixed"
EMPTY = "empty"

ERR_NOT_WRAPPED = "Response must be wrapped in ASCII box starting with ┌─ ASSISTANT ─"
ERR_MIXED = "Cannot mix READ tools with WRITE tools in the same response"
ERR_EMPTY = "Response must contain at least one tool"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    kind: str
    error: Optional[str] = None


def is_information(kind: ToolKind) -> bool:
    return kind in INFORMATION_KINDS


def classify(invocations: Iterable[ToolInvocation]) -> str:
    has_info = has_action = False
    for inv in invocations:
        if is_information(inv.kind):
            has_info = True
        else:
            has_action = True
    if has_info and has_action:
        return MIXED
    if has_info:
        return READ
    if has_action:
        return WRITE
    return EMPTY


def has_wrapper(raw_text: str) -> bool:
    lines = [line.strip() for line in raw_text.replace("\r\n", "\n").split("\n")]
    top = next((i for i, line in enumerate(lines) if line.startswith(BOX_TOP)), None)
    if top is None:
        return False
    return any(line.startswith(BOX_BOTTOM) for line in lines[top + 1:])


def validate(raw_text: str, invocations: Sequence[ToolInvocation]) -> ValidationResult:
    kind = classify(invocations)
    if not has_wrapper(raw_text or ""):
        return ValidationResult(False, kind, ERR_NOT_WRAPPED)
    if kind == MIXED:
        return ValidationResult(False, kind, ERR_MIXED)
    if kind == EMPTY:
        return ValidationResult(False, kind, ERR_EMPTY)
    return ValidationResult(True, kind)


def validate_parsed(parsed: ParsedResponse) -> ValidationResult:
    return validate(parsed.raw_text, parsed.invocations)


def ensure_valid(raw_text: str, invocations: Sequence[ToolInvocation]) -> str:
    """Return the turn kind (read/write) or raise FormatError."""
    result = validate(raw_text, invocations)
    if not result.valid:
        raise FormatError(result.error)
    return result.kind
