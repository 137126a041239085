"""
Lexer for agent responses.

Two passes: ``scan_box`` unwraps the ASCII box the agent draws around its
reply and rejoins display-wrapped lines; ``tokenize`` turns logical lines into
typed tokens for the parser.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from relaycode.protocol.schema import ToolKind, resolve_tag

BOX_TOP = "┌─ ASSISTANT"
BOX_BOTTOM = "└─"
BOX_SIDE = "│"
CONTINUATION = "↪ "

_TOOL_START_RE = re.compile(r"^\[([A-Z_]+)\](?:\s+(.*))?$")
_END_TAG_RE = re.compile(r"^\[END_([A-Z_]+)\]$")
_BLOCK_START_RE = re.compile(r"^(\w+): \[\[\[START\]\]\]$")
BLOCK_END = "[[[END]]]"


@dataclass
class LogicalLine:
    number: int  # 1-based, counted over logical lines
    text: str


@dataclass
class BoxScan:
    box_opened: bool
    box_closed: bool
    lines: List[LogicalLine]

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


def _strip_borders(raw: str) -> str:
    content = raw.lstrip()
    if content.startswith(BOX_SIDE):
        content = content[len(BOX_SIDE):]
        if content.startswith(" "):
            content = content[1:]
    else:
        content = raw
    trimmed = content.rstrip()
    if trimmed.endswith(BOX_SIDE):
        content = trimmed[: -len(BOX_SIDE)].rstrip()
    return content


def scan_box(text: str) -> BoxScan:
    """Return the logical lines of a response, unwrapping the box if present."""
    raw_lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    top = None
    for i, line in enumerate(raw_lines):
        if line.strip().startswith(BOX_TOP):
            top = i
            break

    if top is None:
        lines = [LogicalLine(i + 1, line) for i, line in enumerate(raw_lines)]
        return BoxScan(box_opened=False, box_closed=False, lines=lines)

    closed = False
    logical: List[str] = []
    for line in raw_lines[top + 1:]:
        if line.strip().startswith(BOX_BOTTOM):
            closed = True
            break
        content = _strip_borders(line)
        if content.startswith(CONTINUATION) and logical:
            logical[-1] += content[len(CONTINUATION):]
        else:
            logical.append(content)

    lines = [LogicalLine(i + 1, text_) for i, text_ in enumerate(logical)]
    return BoxScan(box_opened=True, box_closed=closed, lines=lines)


@dataclass
class ToolStart:
    line: LogicalLine
    tag: str
    kind: ToolKind
    args: Optional[str]
    implied: Dict[str, str]


@dataclass
class ToolEnd:
    line: LogicalLine
    tag: str


@dataclass
class BlockStart:
    line: LogicalLine
    key: str


@dataclass
class BlockEnd:
    line: LogicalLine


@dataclass
class TextLine:
    line: LogicalLine


Token = Union[ToolStart, ToolEnd, BlockStart, BlockEnd, TextLine]


def classify_line(line: LogicalLine) -> Token:
    stripped = line.text.strip()
    if stripped == BLOCK_END:
        return BlockEnd(line)
    m = _BLOCK_START_RE.match(stripped)
    if m:
        return BlockStart(line, m.group(1))
    m = _END_TAG_RE.match(stripped)
    if m:
        return ToolEnd(line, m.group(1))
    m = _TOOL_START_RE.match(stripped)
    if m:
        resolved = resolve_tag(m.group(1))
        if resolved is not None:
            kind, implied = resolved
            return ToolStart(line, m.group(1), kind, m.group(2), implied)
    return TextLine(line)


def tokenize(lines: List[LogicalLine]) -> List[Token]:
    return [classify_line(line) for line in lines]
