"""
Response parser: logical lines -> tool invocations and named blocks.

The parser is total. Malformed markup degrades to ordinary content and never
raises; turn-level validity is decided later by the classifier.
"""

import re
import shlex
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from relaycode.protocol.lexer import (
    BlockEnd,
    BlockStart,
    LogicalLine,
    Token,
    ToolEnd,
    ToolStart,
    scan_box,
    tokenize,
)
from relaycode.protocol.schema import TOOL_SPECS, ArgStyle, ToolKind, ToolSpec

MESSAGE_END = "[[[MESSAGE_END]]]"

_IMPORTANCE_RE = re.compile(r"^(\d+)(?:\s+(.*))?$", re.DOTALL)


@dataclass(frozen=True)
class ToolInvocation:
    kind: ToolKind
    name: str
    params: Mapping[str, str]
    span: Tuple[int, int]
    source: str = ""
    terminated: bool = False

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.params.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "name": self.name, "params": dict(self.params)}


@dataclass
class ToolNode:
    """A tool start plus the logical lines collected as its body."""

    start: ToolStart
    body: List[LogicalLine] = field(default_factory=list)
    # The matching [END_NAME] line, when one was seen.
    end: Optional[LogicalLine] = None

    @property
    def last_line(self) -> int:
        if self.end is not None:
            return self.end.number
        return self.body[-1].number if self.body else self.start.line.number


@dataclass
class ParsedResponse:
    raw_text: str
    well_formed_wrapper: bool
    box_opened: bool
    invocations: List[ToolInvocation]
    blocks: Dict[str, str]
    message_end: bool

    @property
    def kinds(self) -> List[ToolKind]:
        return [inv.kind for inv in self.invocations]


def split_args(raw: str) -> List[str]:
    """Quote-aware split that keeps backslashes; falls back to whitespace split."""
    lexer = shlex.shlex(raw, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    lexer.escape = ""
    try:
        return list(lexer)
    except ValueError:
        return raw.split()


def _trim_blank(lines: List[str]) -> List[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _join(*parts: Optional[str]) -> str:
    return "\n".join(p for p in parts if p)


def parse_tool_params(
    kind: ToolKind,
    args: Optional[str],
    body_lines: List[str],
    implied: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Build the parameter mapping for one tool from its start-line args and body."""
    spec: ToolSpec = TOOL_SPECS[kind]
    args = (args or "").strip()
    body = _trim_blank(list(body_lines))
    params: Dict[str, str] = {}

    if spec.description_param:
        if body and body[0].lstrip().startswith("# "):
            params[spec.description_param] = body[0].lstrip()[2:].strip()
            body = _trim_blank(body[1:])
        elif spec.description_default is not None:
            params[spec.description_param] = spec.description_default
    body_text = "\n".join(body)

    if spec.arg_style is ArgStyle.TOKENS:
        tokens = split_args(args) if args else []
        for name, value in zip(spec.positional, tokens):
            params[name] = value
        if spec.body_param and body_text:
            params[spec.body_param] = body_text
    elif spec.arg_style is ArgStyle.IMPORTANCE:
        m = _IMPORTANCE_RE.match(args)
        if m:
            params["importance"] = m.group(1)
            rest = (m.group(2) or "").strip()
        else:
            rest = args
        content = _join(rest, body_text)
        if content:
            params["content"] = content
    elif kind is ToolKind.MESSAGE:
        content = _join(args, body_text)
        if content:
            params["content"] = content
    elif kind is ToolKind.SWITCH_TO:
        mode = args
        if not mode and body:
            mode = body[0].strip()
        if mode:
            params["mode"] = mode
    else:
        if args and spec.positional:
            params[spec.positional[0]] = args
        if spec.body_param and body_text:
            params[spec.body_param] = body_text

    for key, value in (implied or {}).items():
        params.setdefault(key, value)
    for key, value in spec.defaults.items():
        params.setdefault(key, value)
    return params


def _node_to_invocation(node: ToolNode) -> ToolInvocation:
    start = node.start
    params = parse_tool_params(
        start.kind, start.args, [line.text for line in node.body], start.implied,
    )
    source_lines = [start.line.text] + [line.text for line in node.body]
    if node.end is not None:
        source_lines.append(node.end.text)
    return ToolInvocation(
        kind=start.kind,
        name=start.tag,
        params=params,
        span=(start.line.number, node.last_line),
        source="\n".join(source_lines),
        terminated=node.end is not None,
    )


def _ends(node: ToolNode, tok: ToolEnd) -> bool:
    return tok.tag in (node.start.tag, node.start.kind.value)


def _block_end_index(tokens: List[Token], start: int) -> Optional[int]:
    for j in range(start + 1, len(tokens)):
        if isinstance(tokens[j], BlockEnd):
            return j
    return None


def parse_invocations(lines: List[LogicalLine]) -> Tuple[List[ToolInvocation], Dict[str, str]]:
    invocations: List[ToolInvocation] = []
    blocks: Dict[str, str] = {}
    node: Optional[ToolNode] = None

    def close(end: Optional[LogicalLine] = None) -> None:
        nonlocal node
        if node is not None:
            node.end = end
            invocations.append(_node_to_invocation(node))
            node = None

    tokens = tokenize(lines)
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        i += 1
        if isinstance(tok, BlockStart):
            end = _block_end_index(tokens, i - 1)
            if end is not None:
                close()
                payload = [t.line.text for t in tokens[i:end]]
                blocks[tok.key] = "\n".join(payload).strip()
                i = end + 1
                continue
            # Unterminated sections are plain content.
        if isinstance(tok, ToolStart):
            close()
            node = ToolNode(start=tok)
        elif isinstance(tok, ToolEnd) and node is not None and _ends(node, tok):
            close(end=tok.line)
        elif node is not None and tok.line.text.strip() != MESSAGE_END:
            node.body.append(tok.line)

    close()
    return invocations, blocks


def parse_blocks(text: str) -> Dict[str, str]:
    """Named ``KEY: [[[START]]] ... [[[END]]]`` sections of a response."""
    _, blocks = parse_invocations(scan_box(text).lines)
    return blocks


def has_message_end(text: str) -> bool:
    return MESSAGE_END in text


def parse_response(text: str) -> ParsedResponse:
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    scan = scan_box(text)
    invocations, blocks = parse_invocations(scan.lines)
    return ParsedResponse(
        raw_text=text,
        well_formed_wrapper=scan.box_opened and scan.box_closed,
        box_opened=scan.box_opened,
        invocations=invocations,
        blocks=blocks,
        message_end=has_message_end(scan.text) or has_message_end(text),
    )
